# src/parapdf/__init__.py
from . import logger as _logger  # noqa: F401  registers the PROGRESS level
from .costs import aggregate, get_pricing
from .exceptions import (
    AnalysisError,
    DispatchError,
    ParaPDFError,
    PermanentAnalysisError,
    SetupError,
    TransientAnalysisError,
)
from .models import Analysis, BatchResult, Pricing, Unit, UnitResult
from .parallel import BatchDispatcher, ProgressEvent, RetryPolicy

__version__ = "0.1.0"

__all__ = [
    "Analysis",
    "AnalysisError",
    "BatchDispatcher",
    "BatchResult",
    "DispatchError",
    "ParaPDFError",
    "PermanentAnalysisError",
    "Pricing",
    "ProgressEvent",
    "RetryPolicy",
    "SetupError",
    "TransientAnalysisError",
    "Unit",
    "UnitResult",
    "aggregate",
    "get_pricing",
]

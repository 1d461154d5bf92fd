# parapdf/models.py
from dataclasses import dataclass, field, asdict
from typing import List, Optional, Any, Dict


@dataclass(frozen=True)
class Unit:
    """One page, or contiguous page range, to be analyzed on its own."""
    index: int
    start_page: int  # 0-based, inclusive
    end_page: int    # 0-based, inclusive
    payload: Any
    payload_type: str  # "text", "pdf", "image" or "error"
    label: str

    @property
    def is_single_page(self) -> bool:
        return self.start_page == self.end_page


@dataclass
class UnitResult:
    """Outcome of processing one Unit."""
    index: int
    label: str
    start_page: int
    end_page: int
    output_text: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    input_cost: float = 0.0
    output_cost: float = 0.0
    total_cost: float = 0.0
    attempts: int = 0
    duration_seconds: float = 0.0
    completed_at: str = ""

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        # 1-based page numbers for anything a person reads
        d["start_page"] = self.start_page + 1
        d["end_page"] = self.end_page + 1
        return d


@dataclass(frozen=True)
class Pricing:
    """USD price per million tokens."""
    input_per_mtok: float
    output_per_mtok: float


@dataclass(frozen=True)
class BatchResult:
    """The complete, ordered outcome of one batch run."""
    source_path: str
    model: str
    total_pages: int
    unit_count: int
    units: List[UnitResult] = field(default_factory=list)
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_input_cost: float = 0.0
    total_output_cost: float = 0.0
    total_cost: float = 0.0
    duration_seconds: float = 0.0
    generated_at: str = ""

    @property
    def succeeded(self) -> List[UnitResult]:
        return [u for u in self.units if u.succeeded]

    @property
    def failed(self) -> List[UnitResult]:
        return [u for u in self.units if not u.succeeded]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_path": self.source_path,
            "model": self.model,
            "total_pages": self.total_pages,
            "unit_count": self.unit_count,
            "units": [u.to_dict() for u in self.units],
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_input_cost": self.total_input_cost,
            "total_output_cost": self.total_output_cost,
            "total_cost": self.total_cost,
            "duration_seconds": round(self.duration_seconds, 4),
            "generated_at": self.generated_at,
        }


@dataclass
class Analysis:
    """Generated text and token usage for one successful call."""
    text: str
    input_tokens: int = 0
    output_tokens: int = 0

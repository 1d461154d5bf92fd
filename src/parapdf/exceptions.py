# parapdf/exceptions.py
class ParaPDFError(Exception):
    """Base exception for the parapdf library."""
    pass


class SetupError(ParaPDFError):
    """Raised when a batch cannot start at all."""
    pass


class ConfigError(SetupError):
    pass


class CredentialError(SetupError):
    pass


class DocumentError(SetupError):
    """Raised when the source document is missing, unreadable or empty."""
    pass


class AnalysisError(ParaPDFError):
    """Raised by an analysis client when a single unit fails."""
    kind = "permanent"


class TransientAnalysisError(AnalysisError):
    """Throttling or other remote failure that is safe to retry."""
    kind = "transient"


class PermanentAnalysisError(AnalysisError):
    kind = "permanent"


class DispatchError(ParaPDFError):
    """Raised when a worker hits an unexpected (non-data) failure."""
    pass

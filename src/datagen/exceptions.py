"""Error taxonomy for dataset generation runs."""


class DatagenError(RuntimeError):
    """Base exception for run failures."""


class SourceIOError(DatagenError):
    """Raised when the prompts file cannot be opened or read. Fatal."""


class SinkWriteError(DatagenError):
    """Raised when a dataset line cannot be written. Fatal."""


class RequestError(DatagenError):
    """Raised when a single completion request fails."""


class PricingLookupError(DatagenError):
    """Raised when model pricing cannot be fetched."""

"""Error types raised by the segmentation engine."""


class SegEngineError(Exception):
    """Base class for all engine errors."""


class ValidationError(SegEngineError):
    """A segment definition is incomplete or malformed."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class SegmentNotFoundError(SegEngineError):
    """No segment with the requested id exists."""

    def __init__(self, segment_id: str) -> None:
        super().__init__(f"Segment {segment_id} not found")
        self.segment_id = segment_id


class PersistenceError(SegEngineError):
    """A persistence call failed."""

    def __init__(self, operation: str, table: str, message: str = "") -> None:
        detail = f": {message}" if message else ""
        super().__init__(f"{operation} on '{table}' failed{detail}")
        self.operation = operation
        self.table = table


class PersistenceTimeoutError(PersistenceError):
    """A persistence call did not complete within the configured timeout."""

    def __init__(self, operation: str, table: str, timeout: float) -> None:
        super().__init__(operation, table, f"timed out after {timeout}s")
        self.timeout = timeout


class CatalogLoadError(SegEngineError):
    """The segment catalog could not be loaded."""

"""
Error taxonomy for the monitoring core.

Every error here is surfaced to the caller; nothing in the core retries.
The HTTP adapter maps each class to a status code.
"""


class MonitoringError(Exception):
    """Base class for failures raised by the monitoring core."""


class NotFoundError(MonitoringError):
    """Unknown facility or stall id."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class InvalidRequestError(MonitoringError):
    """Malformed mutation input, e.g. a feedback post without content."""


class InternalInconsistencyError(MonitoringError):
    """Roster corruption that should never happen, such as a stall id owned twice."""

"""Exception hierarchy shared across the capture and dispatch layers."""

__all__ = [
    "CaptureError",
    "ConnectionFailedError",
    "DeliveryError",
    "RetryExhaustedError",
]


class CaptureError(Exception):
    """Base class for errors raised by gpscapture."""


class ConnectionFailedError(CaptureError):
    """The receiver could not be opened within the connect-attempt ceiling."""

    def __init__(self, message: str, attempts: int, last_error: BaseException | None = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class DeliveryError(CaptureError):
    """A sink rejected or failed to store a batch."""

    def __init__(self, message: str, sink: str | None = None, status: int | None = None):
        super().__init__(message)
        self.sink = sink
        self.status = status


class RetryExhaustedError(CaptureError):
    """Every attempt of a retried operation failed."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_exception: BaseException | None = None,
        operation_name: str | None = None,
    ):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception
        self.operation_name = operation_name

"""Exceptions raised by the retry handler."""

from typing import Optional


class RetryError(Exception):
    """Base exception for retry handler failures."""

    def __init__(self, message: str, operation_key: str) -> None:
        super().__init__(message)
        self.operation_key = operation_key


class RetryExhaustedError(RetryError):
    """Every allowed attempt failed.

    Attributes:
        operation_key: Key the operation ran under (the site name)
        attempts: Number of attempts made
        last_error: Exception raised by the final attempt
    """

    def __init__(self, operation_key: str, attempts: int, last_error: Optional[BaseException]) -> None:
        super().__init__(
            f"Operation '{operation_key}' failed after {attempts} attempt(s): {last_error}",
            operation_key,
        )
        self.attempts = attempts
        self.last_error = last_error


class CircuitOpenError(RetryError):
    """The circuit for a key is open; the operation was not invoked.

    Attributes:
        operation_key: Key whose circuit is open
        retry_after: Seconds until a trial call will be allowed
    """

    def __init__(self, operation_key: str, retry_after: float) -> None:
        super().__init__(
            f"Circuit open for '{operation_key}', next trial in {max(retry_after, 0.0):.1f}s",
            operation_key,
        )
        self.retry_after = max(retry_after, 0.0)

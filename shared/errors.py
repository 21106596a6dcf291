"""
Error taxonomy for the console.

Remote calls fail in one of two ways: the request never got a usable answer
(TransientNetworkError) or the server answered and refused it (RejectedError).
Neither is fatal; the console keeps its last good state and surfaces a notice.
"""

from typing import Iterable, Optional, Tuple


class ConsoleError(Exception):
    """Base class for all console errors."""


class TransientNetworkError(ConsoleError):
    """Connection failure, timeout, or a server-side (5xx/408/429) error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RejectedError(ConsoleError):
    """The server understood the request and refused it (validation, conflict, not found)."""

    def __init__(self, reason: str, status_code: Optional[int] = None):
        super().__init__(f"HTTP {status_code}: {reason}" if status_code else reason)
        self.reason = reason
        self.status_code = status_code


class EntityBusyError(ConsoleError):
    """A mutation was requested for ids that already have one in flight."""

    def __init__(self, entity_ids: Iterable[str]):
        self.entity_ids: Tuple[str, ...] = tuple(entity_ids)
        super().__init__(f"Operation already in progress for: {', '.join(self.entity_ids)}")


class UnsupportedOperation(ConsoleError):
    """The resource gateway cannot perform the requested operation."""


def failure_reason(exc: BaseException) -> str:
    """Short operator-facing reason for a failed remote call."""
    if isinstance(exc, RejectedError):
        return exc.reason
    return str(exc) or exc.__class__.__name__

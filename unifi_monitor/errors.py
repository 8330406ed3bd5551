"""Exception types raised by the monitor components.

Every error here is recoverable: the loop logs it and carries on with the
next product or the next cycle.
"""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for failures during a monitoring cycle."""


class ResolutionError(MonitorError):
    """Homepage unreachable or build id not found in it."""


class FetchError(MonitorError):
    """Data endpoint unreachable, non-2xx, or body is not JSON."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class DecodeError(FetchError):
    """JSON body does not have the expected product shape."""


class PersistenceError(MonitorError):
    """Document store write or export failed."""


class NotificationError(MonitorError):
    """Webhook or email could not be delivered."""


__all__ = [
    "MonitorError",
    "ResolutionError",
    "FetchError",
    "DecodeError",
    "PersistenceError",
    "NotificationError",
]

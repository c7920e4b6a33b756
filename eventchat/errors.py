"""Typed failures surfaced by the event handlers."""

from typing import Optional


class EventChatError(Exception):
    """Base class for all handler failures."""


class Unauthenticated(EventChatError):
    """A call that requires a caller identity was made without one."""


class ResourceExhausted(EventChatError):
    """The caller hit its rate limit and should try again later."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class TransientStoreFailure(EventChatError):
    """The store was unreachable or kept conflicting; retry the whole invocation."""


class NotFound(EventChatError):
    """A referenced parent document does not exist."""

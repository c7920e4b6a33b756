"""ORM models for the store's logical schema."""

from .base import Base, Document
from .chat import Chat
from .event import RSVP_GOING, Event, Rsvp
from .processed_message import ProcessedMessage
from .rate_limit import RateLimitState
from .user import User

__all__ = [
    "Base",
    "Document",
    "Chat",
    "Event",
    "ProcessedMessage",
    "RSVP_GOING",
    "RateLimitState",
    "Rsvp",
    "User",
]

"""Event and RSVP models for trending computation."""

from sqlalchemy import Float, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Document

RSVP_GOING = "going"


class Event(Document):
    """An event; ``trending_score`` is a cache written only by the trending job."""

    __tablename__ = "events"
    __table_args__ = (Index("idx_events_trending_score", "trending_score"),)

    title: Mapped[str] = mapped_column(String, nullable=False, default="")
    trending_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


class Rsvp(Document):
    """A user's answer to an event invitation."""

    __tablename__ = "rsvps"
    __table_args__ = (
        Index("idx_rsvps_event_status", "event_id", "status"),
        Index("idx_rsvps_event_user", "event_id", "user_id", unique=True),
    )

    event_id: Mapped[str] = mapped_column(
        String, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)  # 'going', 'maybe', 'declined'

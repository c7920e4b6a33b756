"""Chat model for two-party and group conversations."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Document


class Chat(Document):
    """Conversation metadata; messages arrive through the created-message trigger."""

    __tablename__ = "chats"
    __table_args__ = (Index("idx_chats_last_message_at", "last_message_at"),)

    participants: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    last_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_message_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

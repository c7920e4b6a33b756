"""ProcessedMessage model for de-duplicating message-created deliveries."""

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Document


class ProcessedMessage(Document):
    """Track handled chat messages so a redelivered trigger does not notify twice."""

    __tablename__ = "processed_messages"
    __table_args__ = (
        Index("idx_processed_messages_message_id", "message_id", unique=True),
        Index("idx_processed_messages_chat_id", "chat_id"),
        Index("idx_processed_messages_created_at", "created_at"),
    )

    chat_id: Mapped[str] = mapped_column(String, nullable=False)
    message_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    sender_id: Mapped[str] = mapped_column(String, nullable=False)
    notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

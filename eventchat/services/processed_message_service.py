"""Service for managing processed chat messages."""

from sqlalchemy import select

from ..orm.processed_message import ProcessedMessage
from .database import DatabaseService


class ProcessedMessageService:
    """Ledger of message-created deliveries that already ran to completion."""

    def __init__(self, db_service: DatabaseService):
        self.db_service = db_service

    async def is_processed(self, message_id: str) -> bool:
        """Check if a message has already been handled."""
        async with self.db_service.session() as session:
            result = await session.execute(
                select(ProcessedMessage).where(
                    ProcessedMessage.message_id == message_id,
                    ProcessedMessage.is_deleted == False,  # noqa: E712
                )
            )
            return result.scalar_one_or_none() is not None

    async def mark_processed(
        self,
        chat_id: str,
        message_id: str,
        sender_id: str,
        notified: bool,
    ) -> ProcessedMessage:
        """Mark a message as handled."""
        async with self.db_service.session() as session:
            processed = ProcessedMessage(
                chat_id=chat_id,
                message_id=message_id,
                sender_id=sender_id,
                notified=notified,
            )
            session.add(processed)
            await session.commit()
            await session.refresh(processed)
            return processed

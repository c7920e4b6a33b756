"""Handler for newly created chat messages."""

import enum
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import NotFound, TransientStoreFailure
from ..orm.chat import Chat
from ..orm.user import User
from .database import DatabaseService
from .notifier import NotificationError, Notifier
from .processed_message_service import ProcessedMessageService

logger = logging.getLogger(__name__)

ELLIPSIS = "..."


class DispatchOutcome(str, enum.Enum):
    """What happened to the notification for one message."""

    SENT = "sent"
    NOT_APPLICABLE = "not_applicable"
    NO_TOKEN = "no_token"
    CHAT_NOT_FOUND = "chat_not_found"
    DELIVERY_FAILED = "delivery_failed"
    DUPLICATE = "duplicate"


def preview_text(text: str, limit: int = 50) -> str:
    """Truncate a message body for a notification, marking the cut with an ellipsis."""
    if len(text) > limit:
        return text[:limit] + ELLIPSIS
    return text


class ChatMessageHandler:
    """Updates conversation metadata and notifies the other participant."""

    def __init__(
        self,
        db_service: DatabaseService,
        notifier: Notifier,
        processed_messages: ProcessedMessageService,
        title: str = "New Message",
        preview_length: int = 50,
    ):
        self.db_service = db_service
        self.notifier = notifier
        self.processed_messages = processed_messages
        self.title = title
        self.preview_length = preview_length

    async def handle_message_created(
        self,
        chat_id: str,
        message_id: str,
        sender_id: str,
        text: str,
    ) -> DispatchOutcome:
        """
        Process one message-created event.

        Args:
            chat_id: Parent conversation id.
            message_id: Id of the new message.
            sender_id: Author of the message.
            text: Message body.

        Returns:
            The notification outcome. Only store failures are raised.

        Raises:
            TransientStoreFailure: If the store failed; the whole event should be redelivered.
        """
        logger.info("Handling message %s in chat %s from %s", message_id, chat_id, sender_id)

        try:
            if await self.processed_messages.is_processed(message_id):
                logger.debug("Message %s already processed, skipping", message_id)
                return DispatchOutcome.DUPLICATE

            try:
                participants = await self._update_chat_metadata(chat_id, text)
            except NotFound:
                logger.warning("Chat %s not found for message %s", chat_id, message_id)
                return DispatchOutcome.CHAT_NOT_FOUND

            outcome = await self._notify_recipient(chat_id, sender_id, participants, text)
            await self._mark_processed(chat_id, message_id, sender_id, outcome)
            return outcome

        except SQLAlchemyError as e:
            raise TransientStoreFailure(f"Store failure handling message {message_id}: {e}") from e

    async def _update_chat_metadata(self, chat_id: str, text: str) -> list[str]:
        """Set lastMessage/lastMessageAt and return the chat's participants."""
        async with self.db_service.session() as session:
            chat = await session.get(Chat, chat_id)
            if chat is None or chat.is_deleted:
                raise NotFound(f"Chat {chat_id} does not exist")

            chat.last_message = text
            chat.last_message_at = func.now()
            return list(chat.participants or [])

    async def _notify_recipient(
        self,
        chat_id: str,
        sender_id: str,
        participants: list[str],
        text: str,
    ) -> DispatchOutcome:
        recipients = set(participants) - {sender_id}
        if len(recipients) != 1:
            logger.debug(
                "Chat %s is not a two-party conversation (%d recipients), no notification",
                chat_id,
                len(recipients),
            )
            return DispatchOutcome.NOT_APPLICABLE

        recipient_id = recipients.pop()
        async with self.db_service.session() as session:
            recipient = await session.get(User, recipient_id)
            token = recipient.fcm_token if recipient is not None else None

        if not token:
            logger.debug("No delivery token for user %s", recipient_id)
            return DispatchOutcome.NO_TOKEN

        try:
            await self.notifier.send(
                token,
                self.title,
                preview_text(text, self.preview_length),
                {
                    "chatId": chat_id,
                    "type": "chat_message",
                    "clickAction": "FLUTTER_NOTIFICATION_CLICK",
                },
            )
        except NotificationError as e:
            logger.warning("Failed to notify %s about chat %s: %s", recipient_id, chat_id, e)
            return DispatchOutcome.DELIVERY_FAILED
        except Exception as e:
            # Delivery is best-effort whatever the notifier raises
            logger.warning(
                "Notifier error for %s about chat %s: %s: %s",
                recipient_id, chat_id, type(e).__name__, e,
            )
            return DispatchOutcome.DELIVERY_FAILED

        logger.info("Notified %s about new message in chat %s", recipient_id, chat_id)
        return DispatchOutcome.SENT

    async def _mark_processed(
        self, chat_id: str, message_id: str, sender_id: str, outcome: DispatchOutcome
    ) -> None:
        try:
            await self.processed_messages.mark_processed(
                chat_id=chat_id,
                message_id=message_id,
                sender_id=sender_id,
                notified=outcome == DispatchOutcome.SENT,
            )
        except IntegrityError:
            # A concurrent delivery of the same message finished first
            logger.debug("Message %s was marked processed concurrently", message_id)

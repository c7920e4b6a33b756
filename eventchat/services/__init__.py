"""Service layer for the event handlers."""

from .chat_message_handler import ChatMessageHandler, DispatchOutcome
from .database import DatabaseService
from .notifier import HttpPushNotifier, LoggingNotifier, NotificationError, Notifier
from .processed_message_service import ProcessedMessageService
from .rate_limit_service import RateLimitDecision, RateLimitService
from .trending_service import ScoringPolicy, TrendingService

__all__ = [
    "ChatMessageHandler",
    "DatabaseService",
    "DispatchOutcome",
    "HttpPushNotifier",
    "LoggingNotifier",
    "NotificationError",
    "Notifier",
    "ProcessedMessageService",
    "RateLimitDecision",
    "RateLimitService",
    "ScoringPolicy",
    "TrendingService",
]

"""Service for enforcing per-user fixed-window rate limits."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ResourceExhausted, TransientStoreFailure, Unauthenticated
from ..orm.rate_limit import RateLimitState
from .database import DatabaseService, ensure_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of an allowed action."""

    allowed: bool
    count: int
    remaining: int
    window_start: datetime
    reset_at: datetime


class RateLimitService:
    """Fixed-window counter stored per identity.

    Every call is one read-modify-write transaction. A write that loses a
    race against a concurrent caller (version mismatch, or a duplicate first
    insert) is rolled back and the whole sequence is retried, so two callers
    can never both take the last slot of a window.
    """

    def __init__(
        self,
        db_service: DatabaseService,
        window_seconds: int = 60,
        max_per_window: int = 20,
        max_attempts: int = 5,
    ):
        self.db_service = db_service
        self.window = timedelta(seconds=window_seconds)
        self.max_per_window = max_per_window
        self.max_attempts = max_attempts

    async def check_and_consume(
        self, identity: Optional[str], now: Optional[datetime] = None
    ) -> RateLimitDecision:
        """Consume one slot of the caller's window.

        Args:
            identity: Authenticated caller id; None or empty is rejected.
            now: Current time, defaults to the wall clock in UTC.

        Returns:
            The decision for an allowed action.

        Raises:
            Unauthenticated: If no identity was supplied.
            ResourceExhausted: If the window is full. Nothing is written.
            TransientStoreFailure: If the store failed or conflicts persisted.
        """
        if not identity:
            raise Unauthenticated("User must be logged in")

        now = ensure_utc(now) if now else datetime.now(timezone.utc)

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._consume(identity, now)
            except (StaleDataError, IntegrityError) as e:
                logger.debug(
                    "Rate limit write conflict for %s (attempt %d/%d): %s",
                    identity,
                    attempt,
                    self.max_attempts,
                    e,
                )
            except SQLAlchemyError as e:
                raise TransientStoreFailure(f"Rate limit store unavailable: {e}") from e

        raise TransientStoreFailure(
            f"Rate limit for {identity} still conflicting after {self.max_attempts} attempts"
        )

    async def _consume(self, identity: str, now: datetime) -> RateLimitDecision:
        async with self.db_service.session() as session:
            state = await session.scalar(
                select(RateLimitState)
                .where(RateLimitState.user_id == identity)
                .with_for_update()
            )

            if state is None:
                session.add(RateLimitState(user_id=identity, count=1, last_reset=now))
                return self._decision(1, now)

            window_start = ensure_utc(state.last_reset)

            if now - window_start > self.window:
                # Hard reset: the new window starts at this call
                state.count = 1
                state.last_reset = now
                return self._decision(1, now)

            if state.count >= self.max_per_window:
                retry_after = (window_start + self.window - now).total_seconds()
                logger.info(
                    "Rate limit exceeded for %s (%d/%d), retry in %.1fs",
                    identity,
                    state.count,
                    self.max_per_window,
                    retry_after,
                )
                raise ResourceExhausted("Rate limit exceeded", retry_after=max(0.0, retry_after))

            state.count += 1
            return self._decision(state.count, window_start)

    def _decision(self, count: int, window_start: datetime) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=True,
            count=count,
            remaining=max(0, self.max_per_window - count),
            window_start=window_start,
            reset_at=window_start + self.window,
        )

    async def is_allowed(self, identity: Optional[str], now: Optional[datetime] = None) -> bool:
        """Consume a slot and report denial as False instead of raising."""
        try:
            await self.check_and_consume(identity, now)
        except ResourceExhausted:
            return False
        return True

    async def get_remaining(self, identity: str, now: Optional[datetime] = None) -> int:
        """Get remaining actions in the caller's current window without consuming one."""
        now = ensure_utc(now) if now else datetime.now(timezone.utc)

        try:
            async with self.db_service.session() as session:
                state = await session.scalar(
                    select(RateLimitState).where(RateLimitState.user_id == identity)
                )
        except SQLAlchemyError as e:
            raise TransientStoreFailure(f"Rate limit store unavailable: {e}") from e

        if state is None or now - ensure_utc(state.last_reset) > self.window:
            return self.max_per_window
        return max(0, self.max_per_window - state.count)

"""Service for recomputing event trending scores."""

import asyncio
import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from ..errors import TransientStoreFailure
from ..orm.event import RSVP_GOING, Event, Rsvp
from .database import DatabaseService

logger = logging.getLogger(__name__)


class ScoringPolicy:
    """Maps an event's 'going' count to its trending score.

    Subclass and override ``score`` to add recency factors.
    """

    def __init__(self, going_weight: float = 10):
        self.going_weight = going_weight

    def score(self, going_count: int) -> float:
        return float(going_count * self.going_weight)


class TrendingService:
    """Batch job writing ``Event.trending_score`` from RSVP counts.

    All counts are read before anything is written. Writes are split into
    batches of at most ``max_batch_size`` events; each batch is its own
    transaction, so a failure can leave earlier batches committed.
    """

    def __init__(
        self,
        db_service: DatabaseService,
        policy: ScoringPolicy | None = None,
        max_batch_size: int = 500,
        aggregation_concurrency: int = 8,
        use_aggregation: bool = True,
    ):
        self.db_service = db_service
        self.policy = policy or ScoringPolicy()
        self.max_batch_size = max_batch_size
        self.aggregation_concurrency = aggregation_concurrency
        self.use_aggregation = use_aggregation

    async def recompute_all(self) -> int:
        """Recompute every event's score.

        Returns:
            Number of events updated.

        Raises:
            TransientStoreFailure: If listing, counting or committing failed.
        """
        try:
            event_ids = await self._list_event_ids()
            counts = await self._count_going(event_ids)
        except SQLAlchemyError as e:
            raise TransientStoreFailure(f"Failed to read events for trending: {e}") from e

        updates = [
            {"id": event_id, "trending_score": self.policy.score(counts[event_id])}
            for event_id in event_ids
        ]

        committed = 0
        for start in range(0, len(updates), self.max_batch_size):
            batch = updates[start : start + self.max_batch_size]
            try:
                await self._write_batch(batch)
            except SQLAlchemyError as e:
                logger.error(
                    "Trending recompute partially applied: %d/%d events committed before failure: %s",
                    committed,
                    len(updates),
                    e,
                )
                raise TransientStoreFailure(f"Failed to commit trending batch: {e}") from e
            committed += len(batch)
            logger.debug("Committed trending batch of %d events", len(batch))

        logger.info("Trending scores updated for %d event(s)", committed)
        return committed

    async def _write_batch(self, batch: list[dict]) -> None:
        """Apply one batch of score updates in a single transaction."""
        async with self.db_service.session() as session:
            await session.execute(update(Event), batch)

    async def _list_event_ids(self) -> list[str]:
        # TODO: page through events with keyset pagination once the collection outgrows memory
        async with self.db_service.session() as session:
            result = await session.execute(
                select(Event.id)
                .where(Event.is_deleted == False)  # noqa: E712
                .order_by(Event.id)
            )
            return list(result.scalars().all())

    async def _count_going(self, event_ids: list[str]) -> dict[str, int]:
        """Count every event concurrently; one failure cancels the remaining counts."""
        semaphore = asyncio.Semaphore(self.aggregation_concurrency)

        async def count_one(event_id: str) -> int:
            async with semaphore:
                return await self.count_going(event_id)

        try:
            async with asyncio.TaskGroup() as tg:
                tasks = {event_id: tg.create_task(count_one(event_id)) for event_id in event_ids}
        except ExceptionGroup as eg:
            store_errors = eg.subgroup(SQLAlchemyError)
            if store_errors is None:
                raise
            raise store_errors.exceptions[0] from eg

        return {event_id: task.result() for event_id, task in tasks.items()}

    async def count_going(self, event_id: str) -> int:
        """Count the 'going' RSVPs of one event."""
        async with self.db_service.session() as session:
            if self.use_aggregation:
                return await session.scalar(
                    select(func.count(Rsvp.id)).where(
                        Rsvp.event_id == event_id,
                        Rsvp.status == RSVP_GOING,
                        Rsvp.is_deleted == False,  # noqa: E712
                    )
                ) or 0

            # Fallback when the store has no count aggregation
            result = await session.execute(
                select(Rsvp.status).where(
                    Rsvp.event_id == event_id,
                    Rsvp.is_deleted == False,  # noqa: E712
                )
            )
            return sum(1 for status in result.scalars() if status == RSVP_GOING)

"""Periodic runner for the trending recompute job."""

import asyncio
import logging

from .errors import TransientStoreFailure
from .services.trending_service import TrendingService

logger = logging.getLogger(__name__)


class TrendingScheduler:
    """Invokes the trending job on a fixed interval.

    A failed tick is logged and left for the next tick; runs never retry inline.
    """

    def __init__(self, trending_service: TrendingService, interval_minutes: int = 60) -> None:
        self.trending_service = trending_service
        self.interval_seconds = interval_minutes * 60

    async def run_once(self) -> bool:
        """Run a single recompute.

        Returns:
            True if the run committed every batch.
        """
        logger.debug("Starting trending recompute...")

        try:
            updated = await self.trending_service.recompute_all()
        except TransientStoreFailure as e:
            logger.error("Trending recompute failed, will retry next tick: %s", e)
            return False
        except asyncio.CancelledError:
            logger.warning("Trending recompute cancelled")
            raise

        logger.info("Trending recompute finished: %d event(s) updated", updated)
        return True

    async def run(self) -> None:
        """Run the job in a continuous loop."""
        logger.info("Starting trending scheduler")
        logger.info("Interval: %d seconds", self.interval_seconds)

        try:
            while True:
                await self.run_once()
                await asyncio.sleep(self.interval_seconds)

        except asyncio.CancelledError:
            logger.info("Trending scheduler stopped")
            raise
        except Exception as e:
            logger.error("Unexpected error in scheduler loop: %s", e, exc_info=True)
            raise

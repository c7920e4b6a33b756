"""Main entry point for the event handlers."""

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Optional

from .auth import BearerTokenIdentityProvider
from .config import Config, load_config
from .http_server import create_app
from .scheduler import TrendingScheduler
from .services import (
    ChatMessageHandler,
    DatabaseService,
    HttpPushNotifier,
    LoggingNotifier,
    ProcessedMessageService,
    RateLimitService,
    ScoringPolicy,
    TrendingService,
)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


@dataclass
class Components:
    """Services wired to one database handle."""

    db_service: DatabaseService
    rate_limit_service: RateLimitService
    trending_service: TrendingService
    message_handler: ChatMessageHandler
    identity_provider: Optional[BearerTokenIdentityProvider]


def build_components(config: Config, db_service: DatabaseService) -> Components:
    """Create every service from configuration."""
    notifications = config.notifications
    if notifications.push_url:
        notifier = HttpPushNotifier(
            push_url=str(notifications.push_url),
            api_key=notifications.api_key.get_secret_value() if notifications.api_key else None,
            timeout=notifications.timeout_seconds,
        )
    else:
        notifier = LoggingNotifier()

    identity_provider = None
    if config.server.jwt_secret:
        identity_provider = BearerTokenIdentityProvider(config.server.jwt_secret.get_secret_value())

    return Components(
        db_service=db_service,
        rate_limit_service=RateLimitService(
            db_service,
            window_seconds=config.rate_limit.window_seconds,
            max_per_window=config.rate_limit.max_per_window,
            max_attempts=config.rate_limit.max_attempts,
        ),
        trending_service=TrendingService(
            db_service,
            policy=ScoringPolicy(config.trending.going_weight),
            max_batch_size=config.trending.max_batch_size,
            aggregation_concurrency=config.trending.aggregation_concurrency,
            use_aggregation=config.trending.use_aggregation,
        ),
        message_handler=ChatMessageHandler(
            db_service,
            notifier,
            ProcessedMessageService(db_service),
            title=notifications.title,
            preview_length=notifications.preview_length,
        ),
        identity_provider=identity_provider,
    )


async def run_server(config: Config, components: Components, logger, verbose: bool) -> None:
    """Run the HTTP server."""
    import uvicorn

    logger.info("Starting HTTP server on %s:%d...", config.server.host, config.server.port)

    app = create_app(
        config,
        rate_limit_service=components.rate_limit_service,
        message_handler=components.message_handler,
        trending_service=components.trending_service,
        identity_provider=components.identity_provider,
    )

    uvicorn_config = uvicorn.Config(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level="info" if verbose else "warning",
    )
    server = uvicorn.Server(uvicorn_config)
    await server.serve()


async def async_main(args, logger) -> int:
    """Async main function."""
    db_service: Optional[DatabaseService] = None
    try:
        logger.info("Loading configuration from %s", args.config)
        config = load_config(args.config)

        logger.info("Initializing database at %s", config.database_path)
        db_service = DatabaseService(config.database_path)
        await db_service.initialize()
        logger.info("Database initialized successfully")

        components = build_components(config, db_service)
        scheduler = TrendingScheduler(
            components.trending_service, interval_minutes=config.trending.interval_minutes
        )

        if args.once:
            logger.info("Running single trending recompute...")
            return 0 if await scheduler.run_once() else 1

        if args.mode == "scheduler":
            await scheduler.run()
        elif args.mode == "server":
            await run_server(config, components, logger, args.verbose)
        else:
            logger.info("Starting combined mode (scheduler + server)")
            scheduler_task = asyncio.create_task(scheduler.run())
            server_task = asyncio.create_task(run_server(config, components, logger, args.verbose))

            # Wait for either task to complete (or fail)
            done, pending = await asyncio.wait(
                [scheduler_task, server_task],
                return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            for task in done:
                task.result()

        return 0

    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1
    finally:
        if db_service is not None:
            await db_service.close()
            logger.info("Database connection closed")


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Chat and events backend handlers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Run the trending scheduler with config.yaml
  %(prog)s -c myconfig.yaml             # Run with custom config
  %(prog)s -v                           # Run with verbose logging
  %(prog)s --once                       # Recompute trending scores once and exit
  %(prog)s --mode server                # Run the HTTP server only
  %(prog)s --mode combined              # Run scheduler and HTTP server together
        """,
    )

    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one trending recompute and exit",
    )
    parser.add_argument(
        "--mode",
        choices=["scheduler", "server", "combined"],
        default="scheduler",
        help="Run mode: scheduler (default), server only, or combined",
    )

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    return asyncio.run(async_main(args, logger))


if __name__ == "__main__":
    sys.exit(main())

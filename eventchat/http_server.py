"""FastAPI server exposing the rate-limit callable, triggers and jobs."""

import hashlib
import hmac
import logging
import math
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from .auth import BearerTokenIdentityProvider
from .config import Config
from .errors import ResourceExhausted, TransientStoreFailure, Unauthenticated
from .services.chat_message_handler import ChatMessageHandler
from .services.rate_limit_service import RateLimitService
from .services.trending_service import TrendingService

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Trigger-Signature-256"

# Kept in step with pyproject.toml
__version__ = "0.1.0"


class MessageCreated(BaseModel):
    """Snapshot of a newly created chat message."""

    chat_id: str = Field(..., min_length=1)
    message_id: str = Field(..., min_length=1)
    sender_id: str = Field(..., min_length=1)
    text: str = ""


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Verify a delivery signature using HMAC SHA-256.

    Args:
        payload: Raw request body bytes
        signature: Signature header value (format: "sha256=...")
        secret: Shared trigger secret

    Returns:
        True if signature is valid, False otherwise
    """
    if not signature.startswith("sha256="):
        logger.warning("Invalid signature format (missing sha256= prefix)")
        return False

    received_signature = signature[7:]
    expected_signature = hmac.new(
        secret.encode("utf-8"),
        payload,
        hashlib.sha256
    ).hexdigest()

    return hmac.compare_digest(expected_signature, received_signature)


def create_app(
    config: Config,
    rate_limit_service: RateLimitService,
    message_handler: ChatMessageHandler,
    trending_service: TrendingService,
    identity_provider: Optional[BearerTokenIdentityProvider] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Application configuration
        rate_limit_service: Per-user rate limiter
        message_handler: Message-created trigger handler
        trending_service: Trending recompute job
        identity_provider: Resolves callers; without one every call is unauthenticated

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="eventchat",
        description="Chat and events backend handlers",
        version=__version__,
    )

    async def verified_body(request: Request) -> bytes:
        body = await request.body()
        if not config.server.trigger_secret:
            logger.error("Trigger secret not configured")
            raise HTTPException(status_code=500, detail="Trigger secret not configured")

        signature = request.headers.get(SIGNATURE_HEADER, "")
        if not verify_signature(body, signature, config.server.trigger_secret.get_secret_value()):
            logger.warning("Invalid signature for %s", request.url.path)
            raise HTTPException(status_code=401, detail="Invalid signature")
        return body

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "eventchat"
        }

    @app.post("/rate-limit/check")
    async def check_rate_limit(request: Request) -> JSONResponse:
        """Consume one action slot for the authenticated caller."""
        identity = None
        if identity_provider is not None:
            identity = identity_provider.identify(request.headers.get("Authorization"))

        try:
            decision = await rate_limit_service.check_and_consume(identity)
        except Unauthenticated as e:
            raise HTTPException(status_code=401, detail=str(e))
        except ResourceExhausted as e:
            retry_after = math.ceil(e.retry_after or 0)
            return JSONResponse(
                {"allowed": False, "detail": "Rate limit exceeded, try again later",
                 "retry_after": retry_after},
                status_code=429,
                headers={"Retry-After": str(retry_after)},
            )
        except TransientStoreFailure as e:
            logger.error("Rate limit check failed for %s: %s", identity, e)
            raise HTTPException(status_code=503, detail="Store unavailable, retry later")

        return JSONResponse(
            {
                "allowed": True,
                "remaining": decision.remaining,
                "reset_at": decision.reset_at.isoformat(),
            }
        )

    @app.post("/triggers/chat-messages")
    async def chat_message_created(request: Request) -> JSONResponse:
        """Handle a message-created delivery.

        Runs inline so store failures answer 503 and the dispatcher redelivers.
        """
        body = await verified_body(request)

        try:
            event = MessageCreated.model_validate_json(body)
        except ValidationError as e:
            logger.error("Failed to parse message trigger payload: %s", e)
            raise HTTPException(status_code=400, detail="Invalid message payload")

        try:
            outcome = await message_handler.handle_message_created(
                chat_id=event.chat_id,
                message_id=event.message_id,
                sender_id=event.sender_id,
                text=event.text,
            )
        except TransientStoreFailure as e:
            logger.error("Message trigger %s failed: %s", event.message_id, e)
            raise HTTPException(status_code=503, detail="Store unavailable, retry later")

        return JSONResponse({"status": "processed", "outcome": outcome.value})

    @app.post("/jobs/recompute-trending")
    async def recompute_trending(request: Request) -> JSONResponse:
        """Run the trending recompute on behalf of an external scheduler."""
        await verified_body(request)

        try:
            updated = await trending_service.recompute_all()
        except TransientStoreFailure as e:
            logger.error("Trending recompute failed: %s", e)
            raise HTTPException(status_code=503, detail="Store unavailable, retry next tick")

        return JSONResponse({"status": "ok", "updated": updated})

    return app

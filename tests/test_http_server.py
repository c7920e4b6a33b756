"""Tests for the FastAPI server."""

import hashlib
import hmac
import json
import tomllib
from datetime import datetime, timedelta, timezone
from pathlib import Path

import jwt
import pytest
from fastapi.testclient import TestClient

from eventchat.auth import BearerTokenIdentityProvider
from eventchat.config import Config
from eventchat.errors import ResourceExhausted, TransientStoreFailure, Unauthenticated
from eventchat.http_server import SIGNATURE_HEADER, create_app, verify_signature
from eventchat.services.chat_message_handler import DispatchOutcome
from eventchat.services.rate_limit_service import RateLimitDecision

JWT_SECRET = "test-secret-with-at-least-thirty-two-bytes"
TRIGGER_SECRET = "trigger-secret"
T0 = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def sign(body: bytes, secret: str = TRIGGER_SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class StubRateLimitService:
    def __init__(self, error=None):
        self.error = error
        self.identities = []

    async def check_and_consume(self, identity, now=None):
        self.identities.append(identity)
        if not identity:
            raise Unauthenticated("User must be logged in")
        if self.error:
            raise self.error
        return RateLimitDecision(
            allowed=True,
            count=3,
            remaining=17,
            window_start=T0,
            reset_at=T0 + timedelta(seconds=60),
        )


class StubMessageHandler:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def handle_message_created(self, chat_id, message_id, sender_id, text):
        self.calls.append((chat_id, message_id, sender_id, text))
        if self.error:
            raise self.error
        return DispatchOutcome.SENT


class StubTrendingService:
    def __init__(self, error=None):
        self.error = error

    async def recompute_all(self):
        if self.error:
            raise self.error
        return 4


def make_client(
    rate_limit_service=None,
    message_handler=None,
    trending_service=None,
    trigger_secret=TRIGGER_SECRET,
):
    config = Config(server={"jwt_secret": JWT_SECRET, "trigger_secret": trigger_secret})
    app = create_app(
        config,
        rate_limit_service=rate_limit_service or StubRateLimitService(),
        message_handler=message_handler or StubMessageHandler(),
        trending_service=trending_service or StubTrendingService(),
        identity_provider=BearerTokenIdentityProvider(JWT_SECRET),
    )
    return TestClient(app)


def auth_header(sub="user-1"):
    return {"Authorization": "Bearer " + jwt.encode({"sub": sub}, JWT_SECRET, algorithm="HS256")}


class TestVerifySignature:
    """Test delivery signature verification."""

    def test_valid_signature(self):
        """Test a matching HMAC passes."""
        assert verify_signature(b"{}", sign(b"{}"), TRIGGER_SECRET) is True

    def test_tampered_body(self):
        """Test a signature over another body fails."""
        assert verify_signature(b'{"a":1}', sign(b"{}"), TRIGGER_SECRET) is False

    def test_missing_prefix(self):
        """Test signatures without the sha256= prefix fail."""
        assert verify_signature(b"{}", sign(b"{}")[7:], TRIGGER_SECRET) is False


class TestRateLimitEndpoint:
    """Test POST /rate-limit/check."""

    def test_health(self):
        """Test the health endpoint."""
        response = make_client().get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_app_version_matches_package(self):
        """Test the OpenAPI version is the packaged version."""
        with open(Path(__file__).parent.parent / "pyproject.toml", "rb") as f:
            package_version = tomllib.load(f)["project"]["version"]

        response = make_client().get("/openapi.json")

        assert response.json()["info"]["version"] == package_version

    def test_allowed(self):
        """Test an authenticated caller within limits is allowed."""
        service = StubRateLimitService()
        response = make_client(rate_limit_service=service).post(
            "/rate-limit/check", headers=auth_header("user-7")
        )

        assert response.status_code == 200
        assert response.json()["allowed"] is True
        assert response.json()["remaining"] == 17
        assert service.identities == ["user-7"]

    def test_unauthenticated(self):
        """Test a missing token answers 401."""
        response = make_client().post("/rate-limit/check")
        assert response.status_code == 401

    def test_rate_limited(self):
        """Test an exhausted caller gets 429 with Retry-After."""
        service = StubRateLimitService(error=ResourceExhausted(retry_after=12.2))
        response = make_client(rate_limit_service=service).post(
            "/rate-limit/check", headers=auth_header()
        )

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "13"
        assert response.json()["allowed"] is False

    def test_store_failure(self):
        """Test store failures answer 503."""
        service = StubRateLimitService(error=TransientStoreFailure("down"))
        response = make_client(rate_limit_service=service).post(
            "/rate-limit/check", headers=auth_header()
        )
        assert response.status_code == 503


class TestTriggerEndpoints:
    """Test signed trigger and job endpoints."""

    payload = json.dumps(
        {"chat_id": "c1", "message_id": "m1", "sender_id": "alice", "text": "hi"}
    ).encode()

    def test_message_trigger(self):
        """Test a signed delivery runs the handler."""
        handler = StubMessageHandler()
        response = make_client(message_handler=handler).post(
            "/triggers/chat-messages",
            content=self.payload,
            headers={SIGNATURE_HEADER: sign(self.payload)},
        )

        assert response.status_code == 200
        assert response.json()["outcome"] == "sent"
        assert handler.calls == [("c1", "m1", "alice", "hi")]

    def test_bad_signature(self):
        """Test unsigned deliveries are rejected before parsing."""
        handler = StubMessageHandler()
        response = make_client(message_handler=handler).post(
            "/triggers/chat-messages",
            content=self.payload,
            headers={SIGNATURE_HEADER: sign(self.payload, secret="wrong")},
        )

        assert response.status_code == 401
        assert handler.calls == []

    def test_secret_not_configured(self):
        """Test a missing trigger secret is a server error."""
        response = make_client(trigger_secret=None).post(
            "/triggers/chat-messages", content=self.payload
        )
        assert response.status_code == 500

    def test_invalid_payload(self):
        """Test malformed payloads answer 400."""
        body = b'{"chat_id": "c1"}'
        response = make_client().post(
            "/triggers/chat-messages", content=body, headers={SIGNATURE_HEADER: sign(body)}
        )
        assert response.status_code == 400

    @pytest.mark.parametrize(
        "path, kwargs",
        [
            ("/triggers/chat-messages", {"message_handler": StubMessageHandler(TransientStoreFailure("x"))}),
            ("/jobs/recompute-trending", {"trending_service": StubTrendingService(TransientStoreFailure("x"))}),
        ],
    )
    def test_store_failure_asks_for_redelivery(self, path, kwargs):
        """Test store failures answer 503 so the caller retries."""
        response = make_client(**kwargs).post(
            path, content=self.payload, headers={SIGNATURE_HEADER: sign(self.payload)}
        )
        assert response.status_code == 503

    def test_recompute_job(self):
        """Test the job endpoint reports updated events."""
        body = b"{}"
        response = make_client().post(
            "/jobs/recompute-trending", content=body, headers={SIGNATURE_HEADER: sign(body)}
        )

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "updated": 4}

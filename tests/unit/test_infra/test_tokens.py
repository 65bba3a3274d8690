"""Tests for JWT handshake verification."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jose import jwt
import pytest

from notification_service.core.exceptions import AuthenticationFailure
from notification_service.core.settings import AuthSettings
from notification_service.infra.auth import JWTTokenVerifier, TokenVerifier


@pytest.fixture
def verifier() -> JWTTokenVerifier:
    return JWTTokenVerifier(AuthSettings(jwt_secret="test-secret"))


@pytest.mark.unit
class TestJWTTokenVerifier:
    def test_satisfies_protocol(self, verifier):
        assert isinstance(verifier, TokenVerifier)

    @pytest.mark.asyncio
    async def test_issued_token_resolves_to_user(self, verifier):
        token = verifier.issue("user-1")

        assert await verifier.verify(token) == "user-1"

    @pytest.mark.asyncio
    async def test_custom_user_id_claim(self):
        verifier = JWTTokenVerifier(AuthSettings(jwt_secret="test-secret", user_id_claim="uid"))
        token = jwt.encode({"uid": 42}, "test-secret", algorithm="HS256")

        assert await verifier.verify(token) == "42"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("credential", ["", "not-a-jwt"])
    async def test_malformed_credentials(self, verifier, credential):
        with pytest.raises(AuthenticationFailure):
            await verifier.verify(credential)

    @pytest.mark.asyncio
    async def test_wrong_secret(self, verifier):
        token = jwt.encode({"sub": "user-1"}, "other-secret", algorithm="HS256")

        with pytest.raises(AuthenticationFailure, match="Invalid or expired"):
            await verifier.verify(token)

    @pytest.mark.asyncio
    async def test_expired_token(self, verifier):
        token = verifier.issue("user-1", exp=datetime.now(UTC) - timedelta(minutes=5))

        with pytest.raises(AuthenticationFailure):
            await verifier.verify(token)

    @pytest.mark.asyncio
    async def test_missing_claim(self, verifier):
        token = jwt.encode({"name": "Ada"}, "test-secret", algorithm="HS256")

        with pytest.raises(AuthenticationFailure, match="'sub'"):
            await verifier.verify(token)

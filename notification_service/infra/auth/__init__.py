"""Handshake credential verification."""

from notification_service.infra.auth.tokens import JWTTokenVerifier, TokenVerifier

__all__ = ["JWTTokenVerifier", "TokenVerifier"]

"""Core repositories."""

from notification_service.core.repositories.user import UserRepository, get_user_repository

__all__ = ["UserRepository", "get_user_repository"]

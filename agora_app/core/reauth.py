"""Password re-authentication for sensitive administrator actions."""

from __future__ import annotations

import logging

from django.contrib.auth.base_user import AbstractBaseUser
from django.contrib.auth.models import AnonymousUser

logger = logging.getLogger(__name__)


class AuthenticationFailed(Exception):
    """The administrator's password did not match; nothing was changed."""


INCORRECT_PASSWORD_MESSAGE = "Incorrect password provided. Resolution failed."


def reauthenticate(*, user: AbstractBaseUser | AnonymousUser | None, password: str) -> None:
    if user is None or not getattr(user, "is_authenticated", False):
        raise AuthenticationFailed("No authenticated user found. Please log in again.")

    if not password or not user.check_password(password):
        logger.warning("Re-authentication failed for user=%s", user.get_username())
        raise AuthenticationFailed(INCORRECT_PASSWORD_MESSAGE)

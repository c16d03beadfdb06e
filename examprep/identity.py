"""
Bearer-token verification delegated to Firebase Auth, plus an in-memory
double for tests and local runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from firebase_admin import auth

from examprep.errors import InvalidTokenError, TokenExpiredError

logger = logging.getLogger(__name__)


class IdentityClient(Protocol):
    def verify_id_token(self, token: str) -> dict:
        """Returns the decoded claims or raises an UnauthorizedError."""
        ...


@dataclass
class InMemoryIdentityClient:
    """Maps opaque tokens to claims; tokens listed in `expired` are rejected."""

    tokens: dict = field(default_factory=dict)
    expired: set = field(default_factory=set)

    def verify_id_token(self, token: str) -> dict:
        if token in self.expired:
            raise TokenExpiredError()
        claims = self.tokens.get(token)
        if claims is None:
            raise InvalidTokenError()
        return dict(claims)


class FirebaseIdentityClient:
    def __init__(self, app=None):
        self.app = app

    def verify_id_token(self, token: str) -> dict:
        try:
            return auth.verify_id_token(token, app=self.app)
        except auth.ExpiredIdTokenError as e:
            raise TokenExpiredError() from e
        except (auth.InvalidIdTokenError, ValueError) as e:
            logger.warning("Token verification failed: %s", e)
            raise InvalidTokenError() from e

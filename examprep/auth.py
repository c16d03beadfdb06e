"""
Access control: the authenticated user and composable capability checks.

A capability is a predicate over an AccessContext. Handlers and services
state what they need, e.g.

    authorize(ctx, any_of(is_session_owner, is_admin))

and `authorize` raises ForbiddenError when the predicate does not hold.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from examkit.helpers import is_valid_email
from examkit.types import TestSession
from examprep.db import DbClient
from examprep.errors import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class AuthenticatedUser:
    uid: str
    email: Optional[str]
    name: str
    is_admin: bool = False


@dataclass(frozen=True)
class AccessContext:
    user: AuthenticatedUser
    db: Optional[DbClient] = None
    session: Optional[TestSession] = None
    course_id: Optional[str] = None


Capability = Callable[[AccessContext], bool]


def extract_bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise UnauthorizedError("No token provided")
    token = authorization[len(BEARER_PREFIX) :].strip()
    if not token:
        raise UnauthorizedError("No token provided")
    return token


def user_from_claims(claims: dict, admin_email: Optional[str]) -> AuthenticatedUser:
    """
    Builds the request user from verified token claims. Admins are either
    the configured admin email or tokens carrying an `admin` custom claim.
    """
    email = claims.get("email")
    name = claims.get("name") or (email.split("@")[0] if email else claims["uid"])
    email_is_admin = (
        is_valid_email(admin_email)
        and email is not None
        and email.lower() == admin_email.lower()
    )
    return AuthenticatedUser(
        uid=claims["uid"],
        email=email,
        name=name,
        is_admin=email_is_admin or claims.get("admin") is True,
    )


def is_admin(ctx: AccessContext) -> bool:
    return ctx.user.is_admin


def is_session_owner(ctx: AccessContext) -> bool:
    return ctx.session is not None and ctx.session.user_id == ctx.user.uid


def is_enrolled(ctx: AccessContext) -> bool:
    if ctx.db is None or not ctx.course_id:
        return False
    return ctx.db.has_enrollment(ctx.user.uid, ctx.course_id)


def any_of(*capabilities: Capability) -> Capability:
    def check(ctx: AccessContext) -> bool:
        return any(capability(ctx) for capability in capabilities)

    return check


def all_of(*capabilities: Capability) -> Capability:
    def check(ctx: AccessContext) -> bool:
        return all(capability(ctx) for capability in capabilities)

    return check


def authorize(
    ctx: AccessContext, capability: Capability, message: str = "Access denied"
) -> None:
    if not capability(ctx):
        logger.warning("Denied %s: %s", ctx.user.uid, message)
        raise ForbiddenError(message)

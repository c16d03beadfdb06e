"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header

from examprep.auth import AuthenticatedUser, extract_bearer_token, user_from_claims
from examprep.cache import RedisUrlCache, TtlLruCache, UrlCache
from examprep.config import get_settings
from examprep.db import DbClient, FirestoreDbClient, InMemoryDbClient, PostgresDbClient
from examprep.errors import ForbiddenError
from examprep.firebase import get_firebase_app
from examprep.identity import FirebaseIdentityClient, IdentityClient, InMemoryIdentityClient
from examprep.mocktest import MockTestService, SessionPolicy
from examprep.question_source import (
    SAMPLE_QUESTIONS,
    CourseQuestionSource,
    QuestionSource,
    StaticQuestionSource,
)
from examprep.telegram import FileFetcher, InMemoryFileFetcher, TelegramFileClient

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_identity_client: IdentityClient | None = None
_url_cache: UrlCache | None = None
_file_fetcher: FileFetcher | None = None
_question_source: QuestionSource | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so session state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _db_client = InMemoryDbClient()
    elif settings.database_url:
        _db_client = PostgresDbClient(settings.database_url)
    elif settings.firebase_configured:
        get_firebase_app(settings)
        _db_client = FirestoreDbClient()
    else:
        logger.warning("No database configured; using in-memory store")
        _db_client = InMemoryDbClient()
    return _db_client


def get_identity_client() -> IdentityClient:
    global _identity_client
    if _identity_client:
        return _identity_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _identity_client = InMemoryIdentityClient()
    else:
        _identity_client = FirebaseIdentityClient(get_firebase_app(settings))
    return _identity_client


def get_url_cache() -> UrlCache:
    global _url_cache
    if _url_cache is not None:
        return _url_cache

    settings = get_settings()
    if settings.redis_url:
        _url_cache = RedisUrlCache(
            url=settings.redis_url,
            ttl_seconds=settings.file_url_cache_ttl_seconds,
        )
    else:
        _url_cache = TtlLruCache(
            max_entries=settings.file_url_cache_max_entries,
            ttl_seconds=settings.file_url_cache_ttl_seconds,
        )
    return _url_cache


def get_file_fetcher() -> FileFetcher:
    global _file_fetcher
    if _file_fetcher:
        return _file_fetcher

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.telegram_bot_token:
        _file_fetcher = InMemoryFileFetcher()
    else:
        _file_fetcher = TelegramFileClient(
            settings.telegram_bot_token, cache=get_url_cache()
        )
    return _file_fetcher


def get_question_source() -> QuestionSource:
    global _question_source
    if _question_source:
        return _question_source

    if get_settings().use_sample_questions:
        _question_source = StaticQuestionSource(list(SAMPLE_QUESTIONS))
    else:
        _question_source = CourseQuestionSource(get_db_client(), get_file_fetcher())
    return _question_source


def get_mock_test_service(
    db: DbClient = Depends(get_db_client),
    question_source: QuestionSource = Depends(get_question_source),
) -> MockTestService:
    settings = get_settings()
    policy = SessionPolicy(
        enforce_deadline=settings.enforce_test_deadline,
        answer_grace_seconds=settings.answer_grace_seconds,
        max_duration_seconds=settings.max_test_duration_seconds,
    )
    return MockTestService(db, question_source, policy)


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    identity: IdentityClient = Depends(get_identity_client),
) -> AuthenticatedUser:
    token = extract_bearer_token(authorization)
    claims = identity.verify_id_token(token)
    return user_from_claims(claims, get_settings().admin_email)


def require_admin(
    user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user

"""
Mock-test session lifecycle: start -> answer* -> submit.

A session is `in_progress` until it is submitted, then `completed` for good.
Expiry is computed from `startedAt + duration` when read. Answers arriving
after the deadline (plus a grace period for in-flight requests) are
rejected; submitting an expired session is allowed and scores whatever was
answered in time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from examkit.helpers import sanitize_input
from examkit.scoring import calculate_test_score, round_half_up
from examkit.types import MockTestTemplate, TestResult, TestSession
from examprep.auth import (
    AccessContext,
    AuthenticatedUser,
    any_of,
    authorize,
    is_admin,
    is_enrolled,
    is_session_owner,
)
from examprep.db import ALREADY_SUBMITTED, SESSION_ENDED, SESSION_NOT_FOUND, DbClient
from examprep.errors import InvalidStateError, NotFoundError, ValidationError
from examprep.question_source import QuestionSource

logger = logging.getLogger(__name__)

NOT_ENROLLED = "Not enrolled in this course"
NO_QUESTIONS = "No questions available for this course"
TIME_EXPIRED = "Test time has expired"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SessionPolicy:
    enforce_deadline: bool = True
    answer_grace_seconds: int = 30
    max_duration_seconds: int = 6 * 3600


@dataclass(frozen=True)
class SessionSnapshot:
    session: TestSession
    remaining_time: int
    is_expired: bool


@dataclass(frozen=True)
class CourseStats:
    total_tests: int
    tests_taken: int
    average_score: int
    best_score: int


@dataclass(frozen=True)
class CourseOverview:
    course_id: str
    available_tests: list[MockTestTemplate]
    previous_results: list[TestResult]
    stats: CourseStats


class MockTestService:
    def __init__(
        self,
        db: DbClient,
        question_source: QuestionSource,
        policy: SessionPolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.question_source = question_source
        self.policy = policy or SessionPolicy()
        self.clock = clock

    def start(
        self,
        user: AuthenticatedUser,
        course_id: str,
        test_type: str = "full",
        duration: int = 1800,
    ) -> TestSession:
        course_id = sanitize_input(course_id or "")
        test_type = sanitize_input(test_type or "") or "full"
        if not course_id:
            raise ValidationError("Course ID is required")
        if not 0 < duration <= self.policy.max_duration_seconds:
            raise ValidationError(
                f"Duration must be between 1 and {self.policy.max_duration_seconds} seconds"
            )

        authorize(
            AccessContext(user=user, db=self.db, course_id=course_id),
            is_enrolled,
            NOT_ENROLLED,
        )

        questions = self.question_source.load_questions(course_id, test_type)
        if not questions:
            raise NotFoundError(NO_QUESTIONS)

        session = self.db.create_test_session(
            TestSession(
                user_id=user.uid,
                course_id=course_id,
                test_type=test_type,
                questions=questions,
                duration=duration,
                started_at=self.clock(),
            )
        )
        logger.info(
            "Started session %s for user %s (course %s, %d questions)",
            session.id,
            user.uid,
            course_id,
            len(questions),
        )
        return session

    def answer(
        self,
        session_id: str,
        user: AuthenticatedUser,
        question_index: int,
        option_index: int,
    ) -> TestSession:
        session = self._load(session_id)
        authorize(AccessContext(user=user, session=session), is_session_owner)
        if not session.is_in_progress:
            raise InvalidStateError(SESSION_ENDED)

        if not 0 <= question_index < len(session.questions):
            raise ValidationError("Question index out of range")
        option_count = len(session.questions[question_index].options)
        if not 0 <= option_index < option_count:
            raise ValidationError("Answer out of range")
        if self._past_deadline(session):
            logger.warning("Late answer rejected for session %s", session_id)
            raise InvalidStateError(TIME_EXPIRED)

        return self.db.record_answer(session_id, question_index, option_index)

    def submit(self, session_id: str, user: AuthenticatedUser) -> TestResult:
        session = self._load(session_id)
        authorize(AccessContext(user=user, session=session), is_session_owner)
        if not session.is_in_progress:
            raise InvalidStateError(ALREADY_SUBMITTED)

        submitted_at = self.clock()

        def finalize(current: TestSession) -> TestResult:
            summary = calculate_test_score(current.answers, current.questions)
            return TestResult(
                id=current.id,
                user_id=current.user_id,
                course_id=current.course_id,
                test_session_id=current.id,
                test_type=current.test_type,
                score=summary.percentage,
                correct=summary.correct,
                wrong=summary.wrong,
                total=summary.total,
                obtained_marks=summary.obtained_marks,
                total_marks=summary.total_marks,
                answers=dict(current.answers),
                questions=list(current.questions),
                duration=current.duration,
                started_at=current.started_at,
                submitted_at=submitted_at,
                time_spent=current.elapsed_seconds(submitted_at),
            )

        result = self.db.complete_test_session(session_id, finalize)
        logger.info(
            "Submitted session %s: %d%% (%d/%d correct)",
            session_id,
            result.score,
            result.correct,
            result.total,
        )
        return result

    def read(self, session_id: str, user: AuthenticatedUser) -> SessionSnapshot:
        session = self._load(session_id)
        authorize(
            AccessContext(user=user, session=session),
            any_of(is_session_owner, is_admin),
        )
        now = self.clock()
        return SessionSnapshot(
            session=session,
            remaining_time=session.remaining_time(now),
            is_expired=session.is_expired(now),
        )

    def course_overview(
        self, user: AuthenticatedUser, course_id: str, limit: int = 5
    ) -> CourseOverview:
        authorize(
            AccessContext(user=user, db=self.db, course_id=course_id),
            any_of(is_enrolled, is_admin),
            NOT_ENROLLED,
        )
        templates = [t for t in self.db.list_mock_tests(course_id) if t.active]
        results = self.db.list_test_results(user.uid, course_id, limit=limit)
        scores = [result.score for result in results]
        stats = CourseStats(
            total_tests=len(templates),
            tests_taken=len(results),
            average_score=round_half_up(sum(scores) / len(scores)) if scores else 0,
            best_score=max(scores) if scores else 0,
        )
        return CourseOverview(
            course_id=course_id,
            available_tests=templates,
            previous_results=results,
            stats=stats,
        )

    def _load(self, session_id: str) -> TestSession:
        session = self.db.get_test_session(session_id)
        if session is None:
            raise NotFoundError(SESSION_NOT_FOUND)
        return session

    def _past_deadline(self, session: TestSession) -> bool:
        if not self.policy.enforce_deadline:
            return False
        limit = session.duration + self.policy.answer_grace_seconds
        return session.elapsed_seconds(self.clock()) > limit

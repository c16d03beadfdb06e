"""
Document store abstraction: Firestore, SQLAlchemy and an in-memory test
implementation.

Answer and submit writes are transactional in every implementation: the
session's status is re-checked inside the transaction, and a submit writes
the completed session and its result together or not at all.
"""

from __future__ import annotations

import copy
import threading
import time
import uuid
from dataclasses import replace
from typing import Callable, Dict, Optional, Protocol

from firebase_admin import firestore
from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_query import FieldFilter
from google.cloud.firestore_v1.field_path import FieldPath
from sqlalchemy import JSON, Column, Float, String, create_engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from examkit.types import MockTestTemplate, SessionStatus, TestResult, TestSession
from examprep.errors import InvalidStateError, NotFoundError
from examprep.firebase_constants import (
    ENROLLMENTS_COLLECTION,
    MOCK_TESTS_COLLECTION,
    TEST_RESULTS_COLLECTION,
    TEST_SESSIONS_COLLECTION,
)

SESSION_NOT_FOUND = "Test session not found"
SESSION_ENDED = "Test session has ended"
ALREADY_SUBMITTED = "Test session has already been submitted"

# Builds the result for a session; must be free of side effects because
# Firestore may run it more than once when a transaction is retried.
Finalizer = Callable[[TestSession], TestResult]


class DbClient(Protocol):
    """Interface for document store access."""

    def has_enrollment(self, user_id: str, course_id: str) -> bool:
        ...

    def create_test_session(self, session: TestSession) -> TestSession:
        ...

    def get_test_session(self, session_id: str) -> Optional[TestSession]:
        ...

    def record_answer(
        self, session_id: str, question_index: int, option_index: int
    ) -> TestSession:
        ...

    def complete_test_session(
        self, session_id: str, finalize: Finalizer
    ) -> TestResult:
        ...

    def get_test_result(self, result_id: str) -> Optional[TestResult]:
        ...

    def list_test_results(
        self, user_id: str, course_id: str, limit: int = 5
    ) -> list[TestResult]:
        ...

    def list_mock_tests(self, course_id: str) -> list[MockTestTemplate]:
        ...


def _completion_fields(result: TestResult) -> dict:
    return {
        "status": SessionStatus.COMPLETED,
        "submittedAt": result.submitted_at,
        "score": result.score,
        "correct": result.correct,
        "total": result.total,
        "obtainedMarks": result.obtained_marks,
        "totalMarks": result.total_marks,
        "timeSpent": result.time_spent,
    }


def _apply_completion(session: TestSession, result: TestResult) -> TestSession:
    return replace(
        session,
        status=SessionStatus.COMPLETED,
        submitted_at=result.submitted_at,
        score=result.score,
        correct=result.correct,
        total=result.total,
        obtained_marks=result.obtained_marks,
        total_marks=result.total_marks,
        time_spent=result.time_spent,
    )


class InMemoryDbClient:
    """Simple in-memory store for development and tests."""

    def __init__(self):
        self._lock = threading.RLock()
        self.enrollments: set[tuple[str, str]] = set()
        self.sessions: Dict[str, TestSession] = {}
        self.results: Dict[str, TestResult] = {}
        self.mock_tests: Dict[str, MockTestTemplate] = {}

    def add_enrollment(self, user_id: str, course_id: str) -> None:
        with self._lock:
            self.enrollments.add((user_id, course_id))

    def add_mock_test(self, template: MockTestTemplate) -> None:
        with self._lock:
            self.mock_tests[template.id] = template

    def has_enrollment(self, user_id: str, course_id: str) -> bool:
        return (user_id, course_id) in self.enrollments

    def create_test_session(self, session: TestSession) -> TestSession:
        with self._lock:
            stored = replace(session, id=uuid.uuid4().hex)
            self.sessions[stored.id] = copy.deepcopy(stored)
            return stored

    def get_test_session(self, session_id: str) -> Optional[TestSession]:
        with self._lock:
            session = self.sessions.get(session_id)
            return copy.deepcopy(session) if session else None

    def record_answer(
        self, session_id: str, question_index: int, option_index: int
    ) -> TestSession:
        with self._lock:
            session = self.sessions.get(session_id)
            if session is None:
                raise NotFoundError(SESSION_NOT_FOUND)
            if not session.is_in_progress:
                raise InvalidStateError(SESSION_ENDED)
            session.answers[question_index] = option_index
            session.current_question = question_index + 1
            return copy.deepcopy(session)

    def complete_test_session(
        self, session_id: str, finalize: Finalizer
    ) -> TestResult:
        with self._lock:
            session = self.sessions.get(session_id)
            if session is None:
                raise NotFoundError(SESSION_NOT_FOUND)
            if not session.is_in_progress or session_id in self.results:
                raise InvalidStateError(ALREADY_SUBMITTED)
            result = finalize(copy.deepcopy(session))
            self.sessions[session_id] = _apply_completion(session, result)
            self.results[result.id] = result
            return result

    def get_test_result(self, result_id: str) -> Optional[TestResult]:
        return self.results.get(result_id)

    def list_test_results(
        self, user_id: str, course_id: str, limit: int = 5
    ) -> list[TestResult]:
        with self._lock:
            matching = [
                result
                for result in self.results.values()
                if result.user_id == user_id and result.course_id == course_id
            ]
        matching.sort(key=lambda result: result.submitted_at, reverse=True)
        return matching[:limit]

    def list_mock_tests(self, course_id: str) -> list[MockTestTemplate]:
        with self._lock:
            return [t for t in self.mock_tests.values() if t.course_id == course_id]


class FirestoreDbClient:
    """Firestore-backed implementation using the firebase_admin client."""

    def __init__(self, client=None):
        self.db = client or firestore.client()

    def _sessions(self):
        return self.db.collection(TEST_SESSIONS_COLLECTION)

    def _results(self):
        return self.db.collection(TEST_RESULTS_COLLECTION)

    def has_enrollment(self, user_id: str, course_id: str) -> bool:
        query = (
            self.db.collection(ENROLLMENTS_COLLECTION)
            .where(filter=FieldFilter("userId", "==", user_id))
            .where(filter=FieldFilter("courseId", "==", course_id))
            .limit(1)
        )
        return any(True for _ in query.stream())

    def create_test_session(self, session: TestSession) -> TestSession:
        doc_ref = self._sessions().document()
        doc_ref.set({**session.to_document(), "updatedAt": SERVER_TIMESTAMP})
        return replace(session, id=doc_ref.id)

    def get_test_session(self, session_id: str) -> Optional[TestSession]:
        doc = self._sessions().document(session_id).get()
        if not doc.exists:
            return None
        return TestSession.from_document(doc.to_dict(), doc.id)

    def record_answer(
        self, session_id: str, question_index: int, option_index: int
    ) -> TestSession:
        transaction = self.db.transaction()
        session_ref = self._sessions().document(session_id)

        @firestore.transactional
        def _answer_transaction(transaction, doc_ref):
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError(SESSION_NOT_FOUND)
            session = TestSession.from_document(snapshot.to_dict(), snapshot.id)
            if not session.is_in_progress:
                raise InvalidStateError(SESSION_ENDED)

            # Field-level update so concurrent answers to other questions
            # are not overwritten by a stale copy of the whole map.
            answer_path = FieldPath("answers", str(question_index)).to_api_repr()
            transaction.update(
                doc_ref,
                {
                    answer_path: option_index,
                    "currentQuestion": question_index + 1,
                    "updatedAt": SERVER_TIMESTAMP,
                },
            )
            session.answers[question_index] = option_index
            session.current_question = question_index + 1
            return session

        return _answer_transaction(transaction, session_ref)

    def complete_test_session(
        self, session_id: str, finalize: Finalizer
    ) -> TestResult:
        transaction = self.db.transaction()
        session_ref = self._sessions().document(session_id)
        # Keyed by session id so a retried submit cannot create a second result.
        result_ref = self._results().document(session_id)

        @firestore.transactional
        def _submit_transaction(transaction, doc_ref):
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError(SESSION_NOT_FOUND)
            session = TestSession.from_document(snapshot.to_dict(), snapshot.id)
            if not session.is_in_progress:
                raise InvalidStateError(ALREADY_SUBMITTED)

            result = finalize(session)
            transaction.update(
                doc_ref,
                {**_completion_fields(result), "updatedAt": SERVER_TIMESTAMP},
            )
            transaction.create(result_ref, result.to_document())
            return result

        return _submit_transaction(transaction, session_ref)

    def get_test_result(self, result_id: str) -> Optional[TestResult]:
        doc = self._results().document(result_id).get()
        if not doc.exists:
            return None
        return TestResult.from_document(doc.to_dict(), doc.id)

    def list_test_results(
        self, user_id: str, course_id: str, limit: int = 5
    ) -> list[TestResult]:
        query = (
            self._results()
            .where(filter=FieldFilter("userId", "==", user_id))
            .where(filter=FieldFilter("courseId", "==", course_id))
            .order_by("submittedAt", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        return [TestResult.from_document(doc.to_dict(), doc.id) for doc in query.stream()]

    def list_mock_tests(self, course_id: str) -> list[MockTestTemplate]:
        query = self.db.collection(MOCK_TESTS_COLLECTION).where(
            filter=FieldFilter("courseId", "==", course_id)
        )
        return [
            MockTestTemplate.from_document(doc.to_dict(), doc.id)
            for doc in query.stream()
        ]


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def add_enrollment(self, user_id: str, course_id: str) -> None:
        with self.Session() as session:
            session.add(
                EnrollmentRow(id=uuid.uuid4().hex, user_id=user_id, course_id=course_id)
            )
            session.commit()

    def add_mock_test(self, template: MockTestTemplate) -> None:
        doc = template.to_summary()
        doc["questions"] = template.questions
        with self.Session() as session:
            session.merge(
                MockTestRow(id=template.id, course_id=template.course_id, data=doc)
            )
            session.commit()

    def has_enrollment(self, user_id: str, course_id: str) -> bool:
        with self.Session() as session:
            stmt = (
                select(EnrollmentRow.id)
                .where(
                    EnrollmentRow.user_id == user_id,
                    EnrollmentRow.course_id == course_id,
                )
                .limit(1)
            )
            return session.execute(stmt).first() is not None

    def create_test_session(self, session: TestSession) -> TestSession:
        stored = replace(session, id=uuid.uuid4().hex)
        with self.Session() as db_session:
            db_session.add(
                TestSessionRow(
                    id=stored.id,
                    user_id=stored.user_id,
                    course_id=stored.course_id,
                    status=stored.status.value,
                    data=stored.to_document(json_safe=True),
                    updated_at=time.time(),
                )
            )
            db_session.commit()
        return stored

    def get_test_session(self, session_id: str) -> Optional[TestSession]:
        with self.Session() as db_session:
            row = db_session.get(TestSessionRow, session_id)
            if not row:
                return None
            return TestSession.from_document(row.data, row.id)

    def record_answer(
        self, session_id: str, question_index: int, option_index: int
    ) -> TestSession:
        with self.Session() as db_session:
            row = db_session.get(TestSessionRow, session_id, with_for_update=True)
            if not row:
                raise NotFoundError(SESSION_NOT_FOUND)
            if row.status != SessionStatus.IN_PROGRESS.value:
                raise InvalidStateError(SESSION_ENDED)

            data = copy.deepcopy(row.data)
            data.setdefault("answers", {})[str(question_index)] = option_index
            data["currentQuestion"] = question_index + 1
            row.data = data
            row.updated_at = time.time()
            db_session.commit()
            return TestSession.from_document(data, row.id)

    def complete_test_session(
        self, session_id: str, finalize: Finalizer
    ) -> TestResult:
        with self.Session() as db_session:
            row = db_session.get(TestSessionRow, session_id, with_for_update=True)
            if not row:
                raise NotFoundError(SESSION_NOT_FOUND)
            if row.status != SessionStatus.IN_PROGRESS.value:
                raise InvalidStateError(ALREADY_SUBMITTED)
            if db_session.get(TestResultRow, session_id) is not None:
                raise InvalidStateError(ALREADY_SUBMITTED)

            result = finalize(TestSession.from_document(row.data, row.id))
            completed = _apply_completion(
                TestSession.from_document(row.data, row.id), result
            )
            row.status = SessionStatus.COMPLETED.value
            row.data = completed.to_document(json_safe=True)
            row.updated_at = time.time()
            db_session.add(
                TestResultRow(
                    id=result.id,
                    user_id=result.user_id,
                    course_id=result.course_id,
                    submitted_at=result.submitted_at.timestamp(),
                    data=result.to_document(json_safe=True),
                )
            )
            try:
                db_session.commit()
            except IntegrityError:
                db_session.rollback()
                raise InvalidStateError(ALREADY_SUBMITTED)
            return result

    def get_test_result(self, result_id: str) -> Optional[TestResult]:
        with self.Session() as db_session:
            row = db_session.get(TestResultRow, result_id)
            if not row:
                return None
            return TestResult.from_document(row.data, row.id)

    def list_test_results(
        self, user_id: str, course_id: str, limit: int = 5
    ) -> list[TestResult]:
        with self.Session() as db_session:
            stmt = (
                select(TestResultRow)
                .where(
                    TestResultRow.user_id == user_id,
                    TestResultRow.course_id == course_id,
                )
                .order_by(TestResultRow.submitted_at.desc())
                .limit(limit)
            )
            rows = db_session.execute(stmt).scalars().all()
            return [TestResult.from_document(row.data, row.id) for row in rows]

    def list_mock_tests(self, course_id: str) -> list[MockTestTemplate]:
        with self.Session() as db_session:
            stmt = select(MockTestRow).where(MockTestRow.course_id == course_id)
            rows = db_session.execute(stmt).scalars().all()
            return [MockTestTemplate.from_document(row.data, row.id) for row in rows]


Base = declarative_base()


class EnrollmentRow(Base):
    __tablename__ = "enrollments"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    course_id = Column(String, nullable=False, index=True)


class TestSessionRow(Base):
    __tablename__ = "test_sessions"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    course_id = Column(String, nullable=False)
    status = Column(String, nullable=False)
    data = Column("document", JSON, nullable=False)
    updated_at = Column(Float, nullable=False)


class TestResultRow(Base):
    __tablename__ = "test_results"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    course_id = Column(String, nullable=False, index=True)
    submitted_at = Column(Float, nullable=False)
    data = Column("document", JSON, nullable=False)


class MockTestRow(Base):
    __tablename__ = "mock_tests"

    id = Column(String, primary_key=True)
    course_id = Column(String, nullable=False, index=True)
    data = Column("document", JSON, nullable=False)

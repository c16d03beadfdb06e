import unittest
from datetime import datetime, timedelta, timezone

from examkit.types import MockTestTemplate, Question, SessionStatus
from examprep.auth import AuthenticatedUser
from examprep.db import InMemoryDbClient
from examprep.errors import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from examprep.mocktest import MockTestService, SessionPolicy
from examprep.question_source import StaticQuestionSource

STUDENT = AuthenticatedUser(uid="student-1", email="s1@example.com", name="s1")
OTHER = AuthenticatedUser(uid="student-2", email="s2@example.com", name="s2")
ADMIN = AuthenticatedUser(
    uid="admin-1", email="admin@example.com", name="admin", is_admin=True
)

QUESTIONS = [
    Question(text="2+2?", options=["3", "4", "5", "6"], answer_index=1,
             negative_marks=0.25),
    Question(text="3+3?", options=["5", "6", "7", "8"], answer_index=1,
             negative_marks=0.25),
]


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class MockTestServiceTest(unittest.TestCase):

    def setUp(self):
        self.db = InMemoryDbClient()
        self.db.add_enrollment(STUDENT.uid, "course-1")
        self.db.add_enrollment(OTHER.uid, "course-1")
        self.clock = FakeClock(datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc))
        self.service = MockTestService(
            self.db,
            StaticQuestionSource(list(QUESTIONS)),
            SessionPolicy(answer_grace_seconds=30),
            clock=self.clock,
        )

    def _start(self, duration=600):
        return self.service.start(STUDENT, "course-1", "full", duration)

    def test_start_creates_in_progress_session(self):
        session = self._start()

        self.assertIsNotNone(session.id)
        self.assertEqual(session.status, SessionStatus.IN_PROGRESS)
        self.assertEqual(session.answers, {})
        self.assertEqual(session.current_question, 0)
        self.assertEqual(session.started_at, self.clock.now)
        self.assertEqual(len(session.questions), 2)
        self.assertIn(session.id, self.db.sessions)

    def test_start_without_enrollment_is_forbidden(self):
        with self.assertRaises(ForbiddenError):
            self.service.start(STUDENT, "course-2")
        self.assertEqual(self.db.sessions, {})

    def test_start_validates_input(self):
        with self.assertRaises(ValidationError):
            self.service.start(STUDENT, "   ")
        with self.assertRaises(ValidationError):
            self.service.start(STUDENT, "course-1", duration=0)
        with self.assertRaises(ValidationError):
            self.service.start(STUDENT, "course-1", duration=7 * 3600)
        self.assertEqual(self.db.sessions, {})

    def test_start_without_questions_is_not_found(self):
        service = MockTestService(self.db, StaticQuestionSource([]), clock=self.clock)
        with self.assertRaises(NotFoundError):
            service.start(STUDENT, "course-1")
        self.assertEqual(self.db.sessions, {})

    def test_answer_records_latest_value(self):
        session = self._start()

        self.service.answer(session.id, STUDENT, 0, 2)
        updated = self.service.answer(session.id, STUDENT, 0, 1)

        self.assertEqual(updated.answers, {0: 1})
        self.assertEqual(updated.current_question, 1)
        self.assertEqual(self.db.get_test_session(session.id).answers, {0: 1})

    def test_answer_out_of_range(self):
        session = self._start()
        with self.assertRaises(ValidationError):
            self.service.answer(session.id, STUDENT, 2, 0)
        with self.assertRaises(ValidationError):
            self.service.answer(session.id, STUDENT, 0, 4)
        self.assertEqual(self.db.get_test_session(session.id).answers, {})

    def test_answer_by_other_user_is_forbidden(self):
        session = self._start()
        with self.assertRaises(ForbiddenError):
            self.service.answer(session.id, OTHER, 0, 1)

    def test_answer_unknown_session(self):
        with self.assertRaises(NotFoundError):
            self.service.answer("missing", STUDENT, 0, 1)

    def test_answer_on_completed_session_is_rejected(self):
        session = self._start()
        self.service.answer(session.id, STUDENT, 0, 1)
        self.service.submit(session.id, STUDENT)

        with self.assertRaises(InvalidStateError):
            self.service.answer(session.id, STUDENT, 1, 1)
        self.assertEqual(self.db.get_test_session(session.id).answers, {0: 1})

    def test_answer_after_deadline_is_rejected(self):
        session = self._start(duration=60)

        self.clock.advance(85)
        self.service.answer(session.id, STUDENT, 0, 1)

        self.clock.advance(10)
        with self.assertRaises(InvalidStateError):
            self.service.answer(session.id, STUDENT, 1, 1)

        result = self.service.submit(session.id, STUDENT)
        self.assertEqual(result.correct, 1)
        self.assertEqual(result.time_spent, 95)

    def test_deadline_not_enforced_when_disabled(self):
        service = MockTestService(
            self.db,
            StaticQuestionSource(list(QUESTIONS)),
            SessionPolicy(enforce_deadline=False),
            clock=self.clock,
        )
        session = service.start(STUDENT, "course-1", duration=60)
        self.clock.advance(3600)

        updated = service.answer(session.id, STUDENT, 1, 1)

        self.assertEqual(updated.answers, {1: 1})

    def test_submit_scores_and_completes(self):
        session = self._start()
        self.service.answer(session.id, STUDENT, 0, 1)
        self.service.answer(session.id, STUDENT, 1, 0)
        self.clock.advance(120)

        result = self.service.submit(session.id, STUDENT)

        self.assertEqual(result.id, session.id)
        self.assertEqual(result.test_session_id, session.id)
        self.assertEqual(result.correct, 1)
        self.assertEqual(result.wrong, 1)
        self.assertEqual(result.total, 2)
        self.assertAlmostEqual(result.obtained_marks, 0.75)
        self.assertEqual(result.total_marks, 2)
        self.assertEqual(result.score, 38)
        self.assertEqual(result.time_spent, 120)

        stored = self.db.get_test_session(session.id)
        self.assertEqual(stored.status, SessionStatus.COMPLETED)
        self.assertEqual(stored.score, 38)
        self.assertEqual(stored.submitted_at, self.clock.now)
        self.assertEqual(self.db.get_test_result(session.id), result)

    def test_submit_twice_creates_one_result(self):
        session = self._start()
        self.service.submit(session.id, STUDENT)

        with self.assertRaises(InvalidStateError):
            self.service.submit(session.id, STUDENT)
        self.assertEqual(len(self.db.results), 1)

    def test_submit_by_other_user_is_forbidden(self):
        session = self._start()
        with self.assertRaises(ForbiddenError):
            self.service.submit(session.id, OTHER)
        self.assertEqual(self.db.results, {})

    def test_read_reports_remaining_time(self):
        session = self._start(duration=600)
        self.clock.advance(100)

        snapshot = self.service.read(session.id, STUDENT)

        self.assertEqual(snapshot.remaining_time, 500)
        self.assertFalse(snapshot.is_expired)

        self.clock.advance(600)
        snapshot = self.service.read(session.id, STUDENT)
        self.assertEqual(snapshot.remaining_time, 0)
        self.assertTrue(snapshot.is_expired)

    def test_read_is_owner_or_admin(self):
        session = self._start()

        self.assertEqual(self.service.read(session.id, ADMIN).session.id, session.id)
        with self.assertRaises(ForbiddenError):
            self.service.read(session.id, OTHER)
        with self.assertRaises(NotFoundError):
            self.service.read("missing", STUDENT)

    def test_course_overview(self):
        self.db.add_mock_test(
            MockTestTemplate(id="tpl-1", course_id="course-1", name="Full")
        )
        self.db.add_mock_test(
            MockTestTemplate(id="tpl-2", course_id="course-1", active=False)
        )
        first = self._start()
        self.service.answer(first.id, STUDENT, 0, 1)
        self.service.answer(first.id, STUDENT, 1, 1)
        self.service.submit(first.id, STUDENT)
        self.clock.advance(60)
        second = self._start()
        self.service.answer(second.id, STUDENT, 0, 1)
        self.service.submit(second.id, STUDENT)

        overview = self.service.course_overview(STUDENT, "course-1")

        self.assertEqual([t.id for t in overview.available_tests], ["tpl-1"])
        self.assertEqual(
            [r.id for r in overview.previous_results], [second.id, first.id]
        )
        self.assertEqual(overview.stats.total_tests, 1)
        self.assertEqual(overview.stats.tests_taken, 2)
        self.assertEqual(overview.stats.best_score, 100)
        self.assertEqual(overview.stats.average_score, 75)

    def test_course_overview_requires_enrollment(self):
        with self.assertRaises(ForbiddenError):
            self.service.course_overview(STUDENT, "course-2")
        overview = self.service.course_overview(ADMIN, "course-2")
        self.assertEqual(overview.stats.tests_taken, 0)
        self.assertEqual(overview.stats.average_score, 0)


if __name__ == "__main__":
    unittest.main()

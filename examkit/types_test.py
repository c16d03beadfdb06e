# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import unittest
from datetime import datetime, timedelta, timezone

from examkit.json_utils import convert_keys
from examkit.types import (
    MockTestTemplate,
    Question,
    SessionStatus,
    TestResult,
    TestSession,
)

STARTED = datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)


def _session(**overrides):
    fields = dict(
        user_id="user-1",
        course_id="course-1",
        test_type="full",
        questions=[
            Question(text="2+2?", options=["3", "4"], answer_index=1, marks=2),
            Question(text="1+1?", options=["2", "3"], answer_index=0),
        ],
        duration=600,
        started_at=STARTED,
    )
    fields.update(overrides)
    return TestSession(**fields)


class QuestionTest(unittest.TestCase):

    def test_public_dict_hides_solution(self):
        question = Question(
            text="2+2?", options=["3", "4"], answer_index=1, explanation="math"
        )

        public = question.to_public_dict()

        self.assertNotIn("answerIndex", public)
        self.assertNotIn("explanation", public)
        self.assertEqual(public["text"], "2+2?")
        self.assertEqual(public["negativeMarks"], 0.0)

    def test_from_document_accepts_legacy_answer_key(self):
        question = Question.from_document(
            {"text": "q", "options": ["a", "b"], "answer": 1}
        )
        self.assertEqual(question.answer_index, 1)

    def test_from_document_negative_index_means_no_key(self):
        question = Question.from_document(
            {"text": "q", "options": ["a", "b"], "answerIndex": -1}
        )
        self.assertIsNone(question.answer_index)


class TestSessionTest(unittest.TestCase):

    def test_timing(self):
        session = _session()

        self.assertEqual(session.elapsed_seconds(STARTED + timedelta(seconds=90.7)), 90)
        self.assertEqual(session.remaining_time(STARTED + timedelta(seconds=90)), 510)
        self.assertFalse(session.is_expired(STARTED + timedelta(seconds=599)))
        self.assertTrue(session.is_expired(STARTED + timedelta(seconds=600)))
        self.assertEqual(session.remaining_time(STARTED + timedelta(hours=1)), 0)
        # Clock skew never yields negative elapsed time.
        self.assertEqual(session.elapsed_seconds(STARTED - timedelta(seconds=5)), 0)

    def test_completed_session_is_never_expired(self):
        session = _session(status=SessionStatus.COMPLETED)
        self.assertFalse(session.is_expired(STARTED + timedelta(hours=1)))

    def test_document_round_trip(self):
        session = _session(answers={1: 0, 0: 1}, current_question=2)

        doc = session.to_document()

        self.assertNotIn("id", doc)
        self.assertEqual(doc["answers"], {"0": 1, "1": 0})
        self.assertEqual(doc["status"], "in_progress")
        self.assertEqual(doc["questions"][0]["answerIndex"], 1)

        restored = TestSession.from_document(doc, "session-1")
        self.assertEqual(restored.id, "session-1")
        self.assertEqual(restored.answers, {0: 1, 1: 0})
        self.assertEqual(restored.status, SessionStatus.IN_PROGRESS)
        self.assertEqual(restored.questions, session.questions)
        self.assertEqual(restored.started_at, STARTED)

    def test_from_firestore_shaped_document(self):
        doc = {
            "userId": "user-1",
            "courseId": "course-1",
            "testType": "full",
            "questions": [
                {"text": "q", "options": ["a", "b"], "answerIndex": 0, "marks": 1}
            ],
            "duration": 1800,
            "startedAt": datetime(2025, 3, 1, 10, 0),
            "status": "completed",
            "answers": {"0": 0},
            "currentQuestion": 1,
            "submittedAt": "2025-03-01T10:20:00+00:00",
            "score": 100,
        }

        session = TestSession.from_document(doc, "abc")

        self.assertEqual(session.status, SessionStatus.COMPLETED)
        self.assertFalse(session.is_in_progress)
        self.assertEqual(session.started_at.tzinfo, timezone.utc)
        self.assertEqual(session.submitted_at, STARTED + timedelta(minutes=20))
        self.assertEqual(session.answers, {0: 0})
        self.assertEqual(session.score, 100)

    def test_json_safe_document(self):
        doc = _session().to_document(json_safe=True)
        self.assertEqual(doc["startedAt"], STARTED.isoformat())
        self.assertIsNone(doc["submittedAt"])


class TestResultTest(unittest.TestCase):

    def test_document_round_trip(self):
        result = TestResult(
            id="session-1",
            user_id="user-1",
            course_id="course-1",
            test_session_id="session-1",
            test_type="full",
            score=50,
            correct=1,
            wrong=1,
            total=2,
            obtained_marks=1.0,
            total_marks=2.0,
            answers={0: 0},
            questions=[Question(text="q", options=["a", "b"], answer_index=0)],
            duration=600,
            started_at=STARTED,
            submitted_at=STARTED + timedelta(minutes=5),
            time_spent=300,
        )

        doc = result.to_document(json_safe=True)
        self.assertEqual(doc["testSessionId"], "session-1")
        self.assertEqual(doc["submittedAt"], "2025-03-01T10:05:00+00:00")

        self.assertEqual(TestResult.from_document(doc, "session-1"), result)

    def test_from_document_without_wrong_or_time_spent(self):
        doc = {
            "userId": "user-1",
            "courseId": "course-1",
            "testSessionId": "session-1",
            "score": 33,
            "correct": 1,
            "total": 3,
            "obtainedMarks": 1,
            "totalMarks": 3,
            "answers": {"0": 0, "2": 1},
            "testType": "full",
            "questions": [{"text": "q", "options": ["a", "b"], "answer": 0}],
            "duration": 600,
            "startedAt": "2025-03-01T10:00:00+00:00",
            "submittedAt": "2025-03-01T10:04:10.600000+00:00",
        }

        result = TestResult.from_document(doc, "session-1")

        self.assertEqual(result.wrong, 2)
        self.assertEqual(result.time_spent, 250)
        self.assertEqual(result.answers, {0: 0, 2: 1})
        self.assertEqual(result.questions[0].answer_index, 0)
        self.assertEqual(result.submitted_at, STARTED + timedelta(seconds=250.6))

    def test_stored_wrong_and_time_spent_are_kept(self):
        doc = {
            "userId": "user-1",
            "courseId": "course-1",
            "testSessionId": "session-1",
            "score": 0,
            "correct": 0,
            "wrong": 1,
            "total": 3,
            "obtainedMarks": 0,
            "totalMarks": 3,
            "answers": {},
            "testType": "full",
            "questions": [],
            "duration": 600,
            "startedAt": STARTED,
            "submittedAt": STARTED + timedelta(minutes=2),
            "timeSpent": 90,
        }

        result = TestResult.from_document(doc, "session-1")

        self.assertEqual(result.wrong, 1)
        self.assertEqual(result.time_spent, 90)


class MockTestTemplateTest(unittest.TestCase):

    def test_from_document(self):
        template = MockTestTemplate.from_document(
            {
                "courseId": "course-1",
                "name": "Full mock",
                "isActive": False,
                "questionsFileId": "file-1",
                "questionsCount": 50,
                "questions": [{"question": "q", "options": {"A": "x", "B": "y"}}],
                "minusPerWrong": 0.5,
            },
            "tpl-1",
        )

        self.assertEqual(template.id, "tpl-1")
        self.assertFalse(template.active)
        self.assertEqual(template.questions_file_id, "file-1")
        self.assertEqual(template.questions_count, 50)
        self.assertEqual(template.minus_per_wrong, 0.5)
        # Embedded questions are kept verbatim.
        self.assertEqual(template.questions[0]["options"], {"A": "x", "B": "y"})

        summary = template.to_summary()
        self.assertNotIn("questions", summary)
        self.assertEqual(summary["courseId"], "course-1")


class ConvertKeysTest(unittest.TestCase):

    def test_convert_keys(self):
        data = {"userId": "u", "nested": [{"answerIndex": 1}], 3: "x"}

        snake = convert_keys(data, "camel_to_snake")

        self.assertEqual(snake, {"user_id": "u", "nested": [{"answer_index": 1}], 3: "x"})
        self.assertEqual(convert_keys(snake, "snake_to_camel"), data)


if __name__ == "__main__":
    unittest.main()

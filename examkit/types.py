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

import math
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Dict, List, Optional

from dacite import Config, from_dict

from examkit.json_utils import convert_keys

DEFAULT_MARKS = 1.0
DEFAULT_SECTION = "General"
DEFAULT_DIFFICULTY = "medium"

# Fields only the scorer may see while a session is running.
SOLUTION_FIELDS = ("answerIndex", "explanation")


class SessionStatus(StrEnum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def to_datetime(value: Any) -> Optional[datetime]:
    """Normalizes Firestore timestamps, datetimes and ISO strings to aware UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


_DACITE_CONFIG = Config(
    check_types=False,
    cast=[SessionStatus],
    type_hooks={datetime: to_datetime},
)


def _answers_from_document(raw: Optional[dict]) -> Dict[int, int]:
    # Firestore map keys are always strings.
    return {int(key): int(value) for key, value in (raw or {}).items()}


def _answers_to_document(answers: Dict[int, int]) -> Dict[str, int]:
    return {str(key): value for key, value in sorted(answers.items())}


def _json_safe_timestamps(doc: dict, keys: tuple) -> dict:
    for key in keys:
        if isinstance(doc.get(key), datetime):
            doc[key] = doc[key].isoformat()
    return doc


@dataclass(frozen=True)
class Question:
    """A single multiple-choice question as embedded in a session."""

    text: str
    options: List[str]
    answer_index: Optional[int] = None
    explanation: str = ""
    section: str = DEFAULT_SECTION
    marks: float = DEFAULT_MARKS
    negative_marks: float = 0.0
    difficulty: str = DEFAULT_DIFFICULTY

    def to_document(self) -> dict:
        return convert_keys(asdict(self), "snake_to_camel")

    def to_public_dict(self) -> dict:
        """Client-facing payload without the answer key or explanation."""
        doc = self.to_document()
        for name in SOLUTION_FIELDS:
            doc.pop(name, None)
        return doc

    @classmethod
    def from_document(cls, data: dict) -> "Question":
        data = dict(data)
        # Older sessions stored the key under "answer".
        if "answerIndex" not in data and "answer" in data:
            data["answerIndex"] = data.pop("answer")
        question = from_dict(
            data_class=cls,
            data=convert_keys(data, "camel_to_snake"),
            config=_DACITE_CONFIG,
        )
        if question.answer_index is not None and question.answer_index < 0:
            question = replace(question, answer_index=None)
        return question


@dataclass
class TestSession:
    """One attempt at a mock test, from start to submit."""

    __test__ = False  # keep pytest from collecting this class

    user_id: str
    course_id: str
    test_type: str
    questions: List[Question]
    duration: int
    started_at: datetime
    status: SessionStatus = SessionStatus.IN_PROGRESS
    answers: Dict[int, int] = field(default_factory=dict)
    current_question: int = 0
    id: Optional[str] = None
    submitted_at: Optional[datetime] = None
    score: Optional[int] = None
    correct: Optional[int] = None
    total: Optional[int] = None
    obtained_marks: Optional[float] = None
    total_marks: Optional[float] = None
    time_spent: Optional[int] = None

    @property
    def is_in_progress(self) -> bool:
        return self.status == SessionStatus.IN_PROGRESS

    def elapsed_seconds(self, now: datetime) -> int:
        return max(0, math.floor((now - self.started_at).total_seconds()))

    def remaining_time(self, now: datetime) -> int:
        return max(0, self.duration - self.elapsed_seconds(now))

    def is_expired(self, now: datetime) -> bool:
        return self.remaining_time(now) <= 0 and self.is_in_progress

    def to_document(self, json_safe: bool = False) -> dict:
        doc = convert_keys(asdict(self), "snake_to_camel")
        doc.pop("id")
        doc["answers"] = _answers_to_document(self.answers)
        if json_safe:
            _json_safe_timestamps(doc, ("startedAt", "submittedAt"))
        return doc

    @classmethod
    def from_document(cls, data: dict, session_id: str) -> "TestSession":
        data = dict(data)
        data["questions"] = [
            Question.from_document(q) for q in data.get("questions") or []
        ]
        answers = _answers_from_document(data.pop("answers", None))
        session = from_dict(
            data_class=cls,
            data=convert_keys(data, "camel_to_snake"),
            config=_DACITE_CONFIG,
        )
        session.id = session_id
        session.answers = answers
        return session


@dataclass(frozen=True)
class TestResult:
    """The durable, scored outcome of a completed session."""

    __test__ = False

    id: str
    user_id: str
    course_id: str
    test_session_id: str
    test_type: str
    score: int
    correct: int
    wrong: int
    total: int
    obtained_marks: float
    total_marks: float
    answers: Dict[int, int]
    questions: List[Question]
    duration: int
    started_at: datetime
    submitted_at: datetime
    time_spent: int

    def to_document(self, json_safe: bool = False) -> dict:
        doc = convert_keys(asdict(self), "snake_to_camel")
        doc.pop("id")
        doc["answers"] = _answers_to_document(self.answers)
        if json_safe:
            _json_safe_timestamps(doc, ("startedAt", "submittedAt"))
        return doc

    @classmethod
    def from_document(cls, data: dict, result_id: str) -> "TestResult":
        data = dict(data)
        data["id"] = result_id
        data["questions"] = [
            Question.from_document(q) for q in data.get("questions") or []
        ]
        data["answers"] = _answers_from_document(data.get("answers"))
        # Results written before these fields existed lack them.
        if "wrong" not in data:
            data["wrong"] = int(data.get("total") or 0) - int(data.get("correct") or 0)
        if "timeSpent" not in data:
            started = to_datetime(data.get("startedAt"))
            submitted = to_datetime(data.get("submittedAt"))
            data["timeSpent"] = (
                max(0, math.floor((submitted - started).total_seconds()))
                if started and submitted
                else 0
            )
        return from_dict(
            data_class=cls,
            data=convert_keys(data, "camel_to_snake"),
            config=_DACITE_CONFIG,
        )


@dataclass(frozen=True)
class MockTestTemplate:
    """A `mockTests` document: where a course's questions come from."""

    id: str
    course_id: str
    name: str = ""
    test_type: Optional[str] = None
    active: bool = True
    questions_file_id: str = ""
    questions: List[dict] = field(default_factory=list)
    questions_count: int = 0
    duration: Optional[int] = None
    marks_per_correct: float = DEFAULT_MARKS
    minus_marking: bool = True
    minus_per_wrong: float = 0.25

    def to_summary(self) -> dict:
        doc = convert_keys(asdict(self), "snake_to_camel")
        # Embedded questions carry answer keys.
        doc.pop("questions")
        return doc

    @classmethod
    def from_document(cls, data: dict, template_id: str) -> "MockTestTemplate":
        data = dict(data)
        data["id"] = template_id
        if "active" not in data and "isActive" in data:
            data["active"] = data.pop("isActive")
        # Embedded questions are kept verbatim; key conversion would mangle
        # the legacy {A: .., B: ..} option maps.
        questions = list(data.pop("questions", None) or [])
        template = from_dict(
            data_class=cls,
            data=convert_keys(data, "camel_to_snake"),
            config=_DACITE_CONFIG,
        )
        return replace(template, questions=questions)

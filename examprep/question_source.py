"""
Where the questions of a new test session come from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Optional, Protocol

from examkit.parser import (
    MOCK_TEST_OPTIONS,
    ParserOptions,
    parse_questions,
    question_from_dict,
)
from examkit.types import MockTestTemplate, Question
from examprep.db import DbClient
from examprep.telegram import FileFetcher

logger = logging.getLogger(__name__)


class QuestionSource(Protocol):
    def load_questions(self, course_id: str, test_type: str) -> list[Question]:
        ...


@dataclass
class StaticQuestionSource:
    """Serves the same questions for every course; used for samples and tests."""

    questions: list[Question] = field(default_factory=list)

    def load_questions(self, course_id: str, test_type: str) -> list[Question]:
        return list(self.questions)


SAMPLE_QUESTIONS = [
    Question(
        text="What is the capital of France?",
        options=["London", "Berlin", "Paris", "Madrid"],
        answer_index=2,
        explanation="Paris is the capital of France.",
        section="General Knowledge",
        marks=1,
        negative_marks=0.25,
    ),
    Question(
        text="Which planet is known as the Red Planet?",
        options=["Venus", "Mars", "Jupiter", "Saturn"],
        answer_index=1,
        explanation="Mars appears red due to iron oxide on its surface.",
        section="Science",
        marks=1,
        negative_marks=0.25,
    ),
]


def parser_options_for(template: MockTestTemplate) -> ParserOptions:
    """Template marking scheme overrides the mock-test parser defaults."""
    return replace(
        MOCK_TEST_OPTIONS,
        default_marks=template.marks_per_correct,
        default_negative_marks=(
            template.minus_per_wrong if template.minus_marking else 0.0
        ),
    )


class CourseQuestionSource:
    """
    Loads questions from the course's active `mockTests` template, either
    from the Telegram file it references or from its embedded questions.
    """

    def __init__(self, db: DbClient, file_fetcher: FileFetcher):
        self.db = db
        self.file_fetcher = file_fetcher

    def find_template(
        self, course_id: str, test_type: str
    ) -> Optional[MockTestTemplate]:
        candidates = [t for t in self.db.list_mock_tests(course_id) if t.active]
        for template in candidates:
            if template.test_type == test_type:
                return template
        for template in candidates:
            if not template.test_type:
                return template
        return None

    def load_questions(self, course_id: str, test_type: str) -> list[Question]:
        template = self.find_template(course_id, test_type)
        if template is None:
            logger.info("No active template for course %s (%s)", course_id, test_type)
            return []

        options = parser_options_for(template)
        if template.questions_file_id:
            text = self.file_fetcher.get_file_text(template.questions_file_id)
            questions = parse_questions(text, options)
        else:
            questions = [
                question
                for question in (
                    question_from_dict(item, options) for item in template.questions
                )
                if question is not None
            ]

        if template.questions_count > 0:
            questions = questions[: template.questions_count]
        logger.info(
            "Loaded %d questions for course %s from template %s",
            len(questions),
            course_id,
            template.id,
        )
        return questions

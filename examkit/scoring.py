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
from dataclasses import dataclass
from typing import Mapping, Sequence

from examkit.types import DEFAULT_MARKS, Question


@dataclass(frozen=True)
class ScoreSummary:
    correct: int
    total: int
    total_marks: float
    obtained_marks: float
    percentage: int
    # Counts unattempted questions too: total - correct.
    wrong: int
    attempted: int


def round_half_up(value: float) -> int:
    """Rounds .5 away from zero for non-negative values, unlike round()."""
    return math.floor(value + 0.5)


def calculate_percentage(obtained: float, total: float) -> int:
    if total <= 0:
        return 0
    return round_half_up(obtained / total * 100)


def calculate_test_score(
    answers: Mapping[int, int], questions: Sequence[Question]
) -> ScoreSummary:
    """
    Scores a set of answers against the questions they were given for.

    Correct answers earn the question's marks; attempted wrong answers lose
    its negative marks. Unanswered questions, and questions without an
    answer key, never deduct. The obtained marks are floored at zero.

    Args:
        answers: Question index -> chosen option index. May be sparse.
        questions: The ordered questions of the session.

    Returns:
        ScoreSummary: Counts, marks and the rounded percentage.
    """
    correct = 0
    attempted = 0
    total_marks = 0.0
    obtained_marks = 0.0

    for index, question in enumerate(questions):
        marks = question.marks if question.marks is not None else DEFAULT_MARKS
        total_marks += marks

        chosen = answers.get(index)
        if chosen is None:
            continue
        attempted += 1

        if question.answer_index is None:
            continue
        if chosen == question.answer_index:
            correct += 1
            obtained_marks += marks
        elif question.negative_marks:
            obtained_marks -= question.negative_marks

    obtained_marks = max(0.0, obtained_marks)

    return ScoreSummary(
        correct=correct,
        total=len(questions),
        total_marks=total_marks,
        obtained_marks=obtained_marks,
        percentage=calculate_percentage(obtained_marks, total_marks),
        wrong=len(questions) - correct,
        attempted=attempted,
    )

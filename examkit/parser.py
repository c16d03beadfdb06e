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

"""
Parser for the pipe-tagged plain-text question format.

Questions are separated by a line of `---` and described by tagged lines:

    |SECTION|Quantitative Aptitude
    |Q|2+2?
    |A|3
    |B|4
    |C|5
    |D|6
    |ANS|B
    |EXP|basic math
    |MARKS|2
    |NEGATIVE|0.5
    |DIFFICULTY|easy
    ---

Untagged lines are ignored.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from examkit.types import (
    DEFAULT_DIFFICULTY,
    DEFAULT_MARKS,
    DEFAULT_SECTION,
    Question,
)

BLOCK_DELIMITER = "---"
ANSWER_LETTERS = ("A", "B", "C", "D")
MIN_OPTIONS = 2

_TAG_LINE = re.compile(r"^\|([A-Z]+)\|(.*)$")
# Mirrors JavaScript's parseFloat: "2.5 marks" -> 2.5, "abc" -> no match.
_LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class ParserOptions:
    """
    Controls validation and defaults of `parse_questions`.

    Attributes:
        strict: Drop questions without a valid answer letter. When False they
            are kept with `answer_index=None`.
        default_marks: Marks for questions without a usable |MARKS| line.
        default_negative_marks: Deduction for questions without a usable
            |NEGATIVE| line.
        default_section: Section before any |SECTION| line is seen.
    """

    strict: bool = True
    default_marks: float = DEFAULT_MARKS
    default_negative_marks: float = 0.0
    default_section: str = DEFAULT_SECTION


STRICT_OPTIONS = ParserOptions()
MOCK_TEST_OPTIONS = ParserOptions(strict=False, default_negative_marks=0.25)


@dataclass(frozen=True)
class QuestionValidation:
    index: int
    is_valid: bool
    errors: List[str]


@dataclass
class _Draft:
    section: str
    marks: float
    negative_marks: float
    text: str = ""
    options: Dict[str, str] = field(default_factory=dict)
    answer_letter: str = ""
    explanation: str = ""
    difficulty: str = DEFAULT_DIFFICULTY


def parse_number(raw: Any, default: float) -> float:
    """Parses a non-negative decimal, falling back to `default`."""
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        value = float(raw)
    else:
        match = _LEADING_NUMBER.match(str(raw or ""))
        if not match:
            return default
        value = float(match.group(0))
    if not math.isfinite(value) or value < 0:
        return default
    return value


def looks_like_question_text(text: str) -> bool:
    """True when `text` has at least one |Q| line and one option line."""
    has_question = False
    has_option = False
    for line in text.splitlines():
        if line.startswith("|Q|"):
            has_question = True
        elif any(line.startswith(f"|{letter}|") for letter in ANSWER_LETTERS):
            has_option = True
    return has_question and has_option


def parse_questions(
    text: str, options: ParserOptions = STRICT_OPTIONS
) -> List[Question]:
    """
    Parses tagged question text into Question records.

    A block may hold several questions: every |Q| after the first starts a
    new one. |SECTION| applies to the question being built and to all that
    follow, across blocks. Invalid questions are dropped silently.

    Args:
        text: The raw question text.
        options: Validation and default settings.

    Returns:
        List[Question]: The valid questions, in document order.
    """
    questions: List[Question] = []
    section = options.default_section

    for block in text.split(BLOCK_DELIMITER):
        if not block.strip():
            continue
        draft: Optional[_Draft] = None

        for raw_line in block.splitlines():
            match = _TAG_LINE.match(raw_line.strip())
            if not match:
                continue
            tag, value = match.group(1), match.group(2).strip()

            if tag == "SECTION":
                section = value or options.default_section
                if draft is not None:
                    draft.section = section
                continue

            if tag == "Q" and draft is not None and draft.text:
                _append_if_valid(questions, draft, options)
                draft = None
            if draft is None:
                draft = _Draft(
                    section=section,
                    marks=options.default_marks,
                    negative_marks=options.default_negative_marks,
                )
            _apply_tag(draft, tag, value, options)

        if draft is not None:
            _append_if_valid(questions, draft, options)

    return questions


def _apply_tag(draft: _Draft, tag: str, value: str, options: ParserOptions) -> None:
    if tag == "Q":
        draft.text = value
    elif tag in ANSWER_LETTERS:
        draft.options[tag] = value
    elif tag == "ANS":
        draft.answer_letter = value.upper()
    elif tag == "EXP":
        draft.explanation = value
    elif tag == "MARKS":
        draft.marks = parse_number(value, options.default_marks)
    elif tag == "NEGATIVE":
        draft.negative_marks = parse_number(value, options.default_negative_marks)
    elif tag == "DIFFICULTY":
        draft.difficulty = value.lower() or DEFAULT_DIFFICULTY


def _append_if_valid(
    questions: List[Question], draft: _Draft, options: ParserOptions
) -> None:
    if not draft.text or len(draft.options) < MIN_OPTIONS:
        return
    # Missing letters are closed up and the answer index is positional:
    # options A and C become two entries, and answer C maps to index 1.
    letters = [letter for letter in ANSWER_LETTERS if letter in draft.options]
    answer_index = (
        letters.index(draft.answer_letter) if draft.answer_letter in letters else None
    )
    if answer_index is None and options.strict:
        return
    questions.append(
        Question(
            text=draft.text,
            options=[draft.options[letter] for letter in letters],
            answer_index=answer_index,
            explanation=draft.explanation,
            section=draft.section,
            marks=draft.marks,
            negative_marks=draft.negative_marks,
            difficulty=draft.difficulty,
        )
    )


def _option_list(raw: Any) -> tuple[List[str], List[str]]:
    """Returns (option texts, their letters) for list or {A: ..} shapes."""
    if isinstance(raw, dict):
        letters = [
            letter for letter in ANSWER_LETTERS if str(raw.get(letter) or "").strip()
        ]
        return [str(raw[letter]).strip() for letter in letters], letters
    if isinstance(raw, list):
        texts = [str(option).strip() for option in raw[: len(ANSWER_LETTERS)]]
        return texts, list(ANSWER_LETTERS[: len(texts)])
    return [], []


def _answer_of(item: dict, letters: List[str]) -> tuple[Any, Optional[int]]:
    """Returns (raw answer, resolved index or None)."""
    for key in ("answerIndex", "answer", "correctAnswer"):
        raw = item.get(key)
        if raw is None or raw == "":
            continue
        if isinstance(raw, int) and not isinstance(raw, bool):
            return raw, raw if 0 <= raw < len(letters) else None
        letter = str(raw).strip().upper()
        return raw, letters.index(letter) if letter in letters else None
    return None, None


def validate_question_dicts(items: List[dict]) -> List[QuestionValidation]:
    """
    Checks question dicts in either the legacy shape
    ({question, options: {A: ..}, correctAnswer: "B"}) or the stored shape
    ({text, options: [..], answerIndex: 1}).
    """
    results = []
    for position, item in enumerate(items, start=1):
        errors = []
        item = item if isinstance(item, dict) else {}
        text = str(item.get("text") or item.get("question") or "").strip()
        option_texts, letters = _option_list(item.get("options"))
        raw_answer, answer_index = _answer_of(item, letters)

        if not text:
            errors.append("Question text is required")
        if len(option_texts) < MIN_OPTIONS:
            errors.append("At least 2 options are required")
        if raw_answer is None:
            errors.append("Correct answer is required")
        elif answer_index is None:
            errors.append("Correct answer must be A, B, C, or D")

        results.append(
            QuestionValidation(index=position, is_valid=not errors, errors=errors)
        )
    return results


def question_from_dict(
    item: dict, options: ParserOptions = MOCK_TEST_OPTIONS
) -> Optional[Question]:
    """
    Builds a Question from an embedded question dict, applying the same
    validity rules and defaults as `parse_questions`. Returns None when the
    item would have been dropped.
    """
    text = str(item.get("text") or item.get("question") or "").strip()
    option_texts, letters = _option_list(item.get("options"))
    _, answer_index = _answer_of(item, letters)

    if not text or len(option_texts) < MIN_OPTIONS:
        return None
    if answer_index is None and options.strict:
        return None

    return Question(
        text=text,
        options=option_texts,
        answer_index=answer_index,
        explanation=str(item.get("explanation") or ""),
        section=str(item.get("section") or options.default_section),
        marks=parse_number(item.get("marks"), options.default_marks),
        negative_marks=parse_number(
            item.get("negativeMarks"), options.default_negative_marks
        ),
        difficulty=str(item.get("difficulty") or DEFAULT_DIFFICULTY).lower(),
    )

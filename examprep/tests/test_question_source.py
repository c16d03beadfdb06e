import unittest

from examkit.types import MockTestTemplate
from examprep.db import InMemoryDbClient
from examprep.question_source import (
    SAMPLE_QUESTIONS,
    CourseQuestionSource,
    StaticQuestionSource,
    parser_options_for,
)
from examprep.telegram import InMemoryFileFetcher

QUESTION_FILE = """
|SECTION|Maths
|Q|2+2?
|A|3
|B|4
|ANS|B
---
|Q|No key here
|A|yes
|B|no
---
|Q|3+3?
|A|6
|B|7
|ANS|A
|NEGATIVE|0
"""


class CourseQuestionSourceTest(unittest.TestCase):

    def setUp(self):
        self.db = InMemoryDbClient()
        self.files = InMemoryFileFetcher(files={"file-1": QUESTION_FILE})
        self.source = CourseQuestionSource(self.db, self.files)

    def test_no_template(self):
        self.assertEqual(self.source.load_questions("course-1", "full"), [])

    def test_loads_questions_from_file(self):
        self.db.add_mock_test(
            MockTestTemplate(
                id="tpl-1",
                course_id="course-1",
                questions_file_id="file-1",
                marks_per_correct=2,
                minus_per_wrong=0.5,
            )
        )

        questions = self.source.load_questions("course-1", "full")

        self.assertEqual([q.text for q in questions], ["2+2?", "No key here", "3+3?"])
        self.assertIsNone(questions[1].answer_index)
        self.assertEqual(questions[0].marks, 2)
        self.assertEqual(questions[0].negative_marks, 0.5)
        self.assertEqual(questions[2].negative_marks, 0)
        self.assertEqual({q.section for q in questions}, {"Maths"})

    def test_loads_embedded_questions_and_caps_count(self):
        self.db.add_mock_test(
            MockTestTemplate(
                id="tpl-1",
                course_id="course-1",
                questions_count=1,
                minus_marking=False,
                questions=[
                    {
                        "question": "Capital of France?",
                        "options": {"A": "London", "B": "Paris"},
                        "correctAnswer": "B",
                    },
                    {"question": "Second", "options": {"A": "x", "B": "y"}},
                ],
            )
        )

        questions = self.source.load_questions("course-1", "full")

        self.assertEqual(len(questions), 1)
        self.assertEqual(questions[0].answer_index, 1)
        self.assertEqual(questions[0].negative_marks, 0)

    def test_template_selection(self):
        self.db.add_mock_test(
            MockTestTemplate(id="inactive", course_id="course-1", test_type="full",
                             active=False)
        )
        self.db.add_mock_test(MockTestTemplate(id="generic", course_id="course-1"))
        self.db.add_mock_test(
            MockTestTemplate(id="sectional", course_id="course-1", test_type="sectional")
        )

        self.assertEqual(self.source.find_template("course-1", "sectional").id, "sectional")
        self.assertEqual(self.source.find_template("course-1", "full").id, "generic")
        self.assertIsNone(self.source.find_template("course-2", "full"))

    def test_parser_options_for_template(self):
        options = parser_options_for(
            MockTestTemplate(id="t", course_id="c", marks_per_correct=4,
                             minus_per_wrong=1)
        )
        self.assertFalse(options.strict)
        self.assertEqual(options.default_marks, 4)
        self.assertEqual(options.default_negative_marks, 1)


class StaticQuestionSourceTest(unittest.TestCase):

    def test_returns_copy(self):
        source = StaticQuestionSource(list(SAMPLE_QUESTIONS))

        questions = source.load_questions("any", "full")
        questions.clear()

        self.assertEqual(len(source.load_questions("any", "full")), 2)


if __name__ == "__main__":
    unittest.main()

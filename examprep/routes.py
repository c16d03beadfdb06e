"""
HTTP routes for the mock-test API.

Every handler answers with the `format_response` envelope. Handlers are
plain functions so FastAPI runs them in its thread pool.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from fastapi import APIRouter, Depends

from examkit.helpers import format_response
from examkit.parser import (
    MOCK_TEST_OPTIONS,
    STRICT_OPTIONS,
    parse_questions,
    validate_question_dicts,
)
from examkit.types import TestSession
from examprep.auth import AuthenticatedUser
from examprep.config import get_settings
from examprep.dependencies import (
    get_current_user,
    get_file_fetcher,
    get_mock_test_service,
    require_admin,
)
from examprep.mocktest import MockTestService
from examprep.schemas import (
    AnswerRequest,
    AnswerResponse,
    CourseStatsResponse,
    CourseTestsResponse,
    Envelope,
    HealthResponse,
    ParseQuestionsRequest,
    ParseQuestionsResponse,
    PreviousResult,
    QuestionValidationResult,
    SessionResponse,
    StartTestRequest,
    StartTestResponse,
    SubmitResponse,
    ValidateQuestionsRequest,
    ValidateQuestionsResponse,
)
from examprep.telegram import FileFetcher

logger = logging.getLogger(__name__)

router = APIRouter()


def _session_questions(session: TestSession) -> list[dict]:
    # Answer keys stay hidden until the session is completed.
    if session.is_in_progress:
        return [q.to_public_dict() for q in session.questions]
    return [q.to_document() for q in session.questions]


@router.post("/mocktest/start", response_model=Envelope[StartTestResponse])
def start_test(
    payload: StartTestRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: MockTestService = Depends(get_mock_test_service),
) -> dict:
    duration = payload.duration or get_settings().default_test_duration_seconds
    session = service.start(user, payload.courseId, payload.testType, duration)
    data = StartTestResponse(
        testId=session.id,
        questions=[q.to_public_dict() for q in session.questions],
        totalQuestions=len(session.questions),
        duration=session.duration,
        startedAt=session.started_at.isoformat(),
    )
    return format_response(True, data.model_dump())


@router.post(
    "/mocktest/{test_id}/answer", response_model=Envelope[AnswerResponse]
)
def answer_question(
    test_id: str,
    payload: AnswerRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: MockTestService = Depends(get_mock_test_service),
) -> dict:
    session = service.answer(test_id, user, payload.questionIndex, payload.answer)
    data = AnswerResponse(
        message="Answer saved",
        currentQuestion=session.current_question,
    )
    return format_response(True, data.model_dump())


@router.post(
    "/mocktest/{test_id}/submit", response_model=Envelope[SubmitResponse]
)
def submit_test(
    test_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: MockTestService = Depends(get_mock_test_service),
) -> dict:
    result = service.submit(test_id, user)
    data = SubmitResponse(
        testResultId=result.id,
        score=result.score,
        correct=result.correct,
        total=result.total,
        obtainedMarks=result.obtained_marks,
        totalMarks=result.total_marks,
        timeSpent=result.time_spent,
    )
    return format_response(True, data.model_dump())


@router.get(
    "/mocktest/course/{course_id}", response_model=Envelope[CourseTestsResponse]
)
def get_course_tests(
    course_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: MockTestService = Depends(get_mock_test_service),
) -> dict:
    overview = service.course_overview(user, course_id)
    data = CourseTestsResponse(
        courseId=overview.course_id,
        availableTests=[t.to_summary() for t in overview.available_tests],
        previousResults=[
            PreviousResult(
                id=result.id,
                score=result.score,
                date=result.submitted_at.isoformat(),
                testType=result.test_type,
            )
            for result in overview.previous_results
        ],
        stats=CourseStatsResponse(
            totalTests=overview.stats.total_tests,
            testsTaken=overview.stats.tests_taken,
            averageScore=overview.stats.average_score,
            bestScore=overview.stats.best_score,
        ),
    )
    return format_response(True, data.model_dump())


@router.get("/mocktest/{test_id}", response_model=Envelope[SessionResponse])
def get_test_session(
    test_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: MockTestService = Depends(get_mock_test_service),
) -> dict:
    snapshot = service.read(test_id, user)
    doc = snapshot.session.to_document(json_safe=True)
    doc.update(
        testId=snapshot.session.id,
        questions=_session_questions(snapshot.session),
        remainingTime=snapshot.remaining_time,
        isExpired=snapshot.is_expired,
        status=snapshot.session.status.value,
    )
    data = SessionResponse.model_validate(doc)
    return format_response(True, data.model_dump())


@router.post("/questions/parse", response_model=Envelope[ParseQuestionsResponse])
def parse_question_text(
    payload: ParseQuestionsRequest,
    admin: AuthenticatedUser = Depends(require_admin),
    file_fetcher: FileFetcher = Depends(get_file_fetcher),
) -> dict:
    text = payload.text
    if not text:
        text = file_fetcher.get_file_text(payload.fileId)

    options = STRICT_OPTIONS if payload.strict else MOCK_TEST_OPTIONS
    if payload.section:
        options = replace(options, default_section=payload.section)

    questions = parse_questions(text, options)
    if payload.limit:
        questions = questions[: payload.limit]
    logger.info("Admin %s parsed %d questions", admin.uid, len(questions))

    data = ParseQuestionsResponse(
        questions=[q.to_document() for q in questions],
        count=len(questions),
    )
    return format_response(True, data.model_dump())


@router.post(
    "/questions/validate", response_model=Envelope[ValidateQuestionsResponse]
)
def validate_questions(
    payload: ValidateQuestionsRequest,
    admin: AuthenticatedUser = Depends(require_admin),
) -> dict:
    results = validate_question_dicts(payload.questions)
    data = ValidateQuestionsResponse(
        isValid=all(result.is_valid for result in results),
        results=[
            QuestionValidationResult(
                index=result.index,
                isValid=result.is_valid,
                errors=result.errors,
            )
            for result in results
        ],
    )
    return format_response(True, data.model_dump())


@router.get("/health", response_model=Envelope[HealthResponse])
def health() -> dict:
    data = HealthResponse(status="ok", service="examprep")
    return format_response(True, data.model_dump())

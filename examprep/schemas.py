"""
Pydantic schemas for the mock-test API. Field names follow the camelCase
wire format of the web client.
"""

from __future__ import annotations

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field, model_validator

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    meta: Optional[dict] = None
    timestamp: str


class StartTestRequest(BaseModel):
    courseId: str = Field(..., min_length=1, max_length=128)
    testType: str = Field(default="full", max_length=64)
    duration: Optional[int] = Field(default=None, gt=0)


class PublicQuestion(BaseModel):
    text: str
    options: list[str]
    section: str
    marks: float
    negativeMarks: float
    difficulty: str


class ReviewQuestion(PublicQuestion):
    answerIndex: Optional[int] = None
    explanation: str = ""


class StartTestResponse(BaseModel):
    testId: str
    questions: list[PublicQuestion]
    totalQuestions: int
    duration: int
    startedAt: str


class AnswerRequest(BaseModel):
    questionIndex: int = Field(..., ge=0)
    answer: int = Field(..., ge=0)


class AnswerResponse(BaseModel):
    message: str
    currentQuestion: int


class SubmitResponse(BaseModel):
    testResultId: str
    score: int
    correct: int
    total: int
    obtainedMarks: float
    totalMarks: float
    timeSpent: int


class SessionResponse(BaseModel):
    testId: str
    userId: str
    courseId: str
    testType: str
    # Public questions while in progress, review questions once completed.
    questions: list[dict]
    duration: int
    startedAt: str
    status: str
    answers: dict[str, int]
    currentQuestion: int
    remainingTime: int
    isExpired: bool
    submittedAt: Optional[str] = None
    score: Optional[int] = None
    correct: Optional[int] = None
    total: Optional[int] = None
    obtainedMarks: Optional[float] = None
    totalMarks: Optional[float] = None
    timeSpent: Optional[int] = None


class PreviousResult(BaseModel):
    id: str
    score: int
    date: str
    testType: str


class CourseStatsResponse(BaseModel):
    totalTests: int
    testsTaken: int
    averageScore: int
    bestScore: int


class CourseTestsResponse(BaseModel):
    courseId: str
    availableTests: list[dict]
    previousResults: list[PreviousResult]
    stats: CourseStatsResponse


class ParseQuestionsRequest(BaseModel):
    text: Optional[str] = None
    fileId: Optional[str] = Field(default=None, max_length=256)
    strict: bool = True
    section: Optional[str] = None
    limit: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _require_source(self) -> "ParseQuestionsRequest":
        if not self.text and not self.fileId:
            raise ValueError("Either text or fileId is required")
        return self


class ParseQuestionsResponse(BaseModel):
    questions: list[ReviewQuestion]
    count: int


class ValidateQuestionsRequest(BaseModel):
    questions: list[dict] = Field(..., min_length=1)


class QuestionValidationResult(BaseModel):
    index: int
    isValid: bool
    errors: list[str]


class ValidateQuestionsResponse(BaseModel):
    isValid: bool
    results: list[QuestionValidationResult]


class HealthResponse(BaseModel):
    status: str
    service: str

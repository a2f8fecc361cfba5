"""Request and response schemas for the course, question and submission APIs."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import urlparse

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .models.enums import SubmissionStatus, SubmissionType

MAX_SUBMISSION_TEXT = 50000


def _check_url(v: Optional[str]) -> Optional[str]:
    if v is None or not v.strip():
        return None
    v = v.strip()
    parsed = urlparse(v)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Invalid URL format")
    return v


# Courses

class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    admin_id: Optional[str] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v


class CourseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None
    admin_id: Optional[str] = None


class CourseResponse(BaseModel):
    id: str
    title: str
    description: Optional[str]
    is_active: bool
    admin_id: str
    created_by_id: str
    question_count: int = 0
    enrollment_count: int = 0
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class EnrollmentResponse(BaseModel):
    id: str
    course_id: str
    student_id: str
    enrolled_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class EnrollStudentRequest(BaseModel):
    student_id: str


# Questions and base examples

class QuestionCreate(BaseModel):
    course_id: str
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    submission_type: SubmissionType
    criteria: Optional[str] = Field(None, max_length=1000)


class QuestionUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    submission_type: Optional[SubmissionType] = None
    criteria: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None


class QuestionResponse(BaseModel):
    id: str
    course_id: str
    title: str
    description: str
    submission_type: SubmissionType
    criteria: Optional[str]
    is_active: bool
    created_by_id: str
    has_base_example: bool = False
    submission_count: int = 0
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BaseExampleCreate(BaseModel):
    question_id: str
    content: str = Field(..., min_length=1, max_length=10000)
    type: SubmissionType
    file_url: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("file_url")
    @classmethod
    def valid_file_url(cls, v: Optional[str]) -> Optional[str]:
        return _check_url(v)


class BaseExampleUpdate(BaseModel):
    content: Optional[str] = Field(None, min_length=1, max_length=10000)
    type: Optional[SubmissionType] = None
    file_url: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("file_url")
    @classmethod
    def valid_file_url(cls, v: Optional[str]) -> Optional[str]:
        return _check_url(v)


class BaseExampleResponse(BaseModel):
    id: str
    question_id: str
    content: str
    type: SubmissionType
    file_url: Optional[str]
    metadata: Optional[Dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("example_metadata", "metadata")
    )

    model_config = ConfigDict(from_attributes=True)


# Submissions

class SubmissionPayload(BaseModel):
    """Content fields of a submission; only the one matching the question's kind may be set."""
    content: Optional[str] = Field(None, max_length=MAX_SUBMISSION_TEXT)
    file_url: Optional[str] = None
    website_url: Optional[str] = None
    github_url: Optional[str] = None

    @field_validator("file_url", "website_url", "github_url")
    @classmethod
    def valid_url(cls, v: Optional[str]) -> Optional[str]:
        return _check_url(v)

    @field_validator("github_url")
    @classmethod
    def github_host(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and urlparse(v).netloc.lower() not in ("github.com", "www.github.com"):
            raise ValueError("Must be a GitHub repository URL")
        return v


class SubmissionCreate(SubmissionPayload):
    question_id: str


class SubmissionResponse(BaseModel):
    id: str
    question_id: str
    student_id: str
    status: SubmissionStatus
    content: Optional[str]
    file_url: Optional[str]
    website_url: Optional[str]
    github_url: Optional[str]
    score: Optional[float]
    feedback: Optional[str]
    confidence: Optional[float]
    comparison_data: Optional[Dict[str, Any]]
    submitted_at: datetime
    processed_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class BatchGradeRequest(BaseModel):
    submission_ids: List[str] = Field(..., min_length=1, max_length=100)


class BatchGradeResult(BaseModel):
    queued: List[str]
    skipped: Dict[str, str]


# Results

class ResultFilter(BaseModel):
    course_id: Optional[str] = None
    question_id: Optional[str] = None
    student_id: Optional[str] = None
    status: Optional[SubmissionStatus] = None
    min_score: Optional[float] = Field(None, ge=0, le=100)
    max_score: Optional[float] = Field(None, ge=0, le=100)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = Field(50, ge=1, le=100)
    offset: int = Field(0, ge=0)


class InsightScope(BaseModel):
    course_id: Optional[str] = None
    question_id: Optional[str] = None
    student_id: Optional[str] = None


class PerformanceScope(BaseModel):
    course_id: Optional[str] = None
    student_id: Optional[str] = None
    time_frame: Literal["week", "month", "semester", "all"] = "all"


class SearchQuery(BaseModel):
    term: str
    search_in: Literal["content", "feedback", "both"] = "both"
    course_id: Optional[str] = None
    limit: int = Field(20, ge=1, le=100)

    @field_validator("term")
    @classmethod
    def long_enough(cls, v: str) -> str:
        if len(v.strip()) < 2:
            raise ValueError("Search term must be at least 2 characters long")
        return v.strip()


class ResultSummary(BaseModel):
    submission_id: str
    student_name: str
    question_title: str
    course_title: str
    score: Optional[float]
    status: SubmissionStatus
    submitted_at: datetime
    processed_at: Optional[datetime]
    confidence: Optional[float]
    has_base_example: bool


class ResultPage(BaseModel):
    results: List[ResultSummary]
    total: int
    has_more: bool


class Comparison(BaseModel):
    similarities: List[str] = []
    differences: List[str] = []
    suggestions: List[str] = []


class StudentRef(BaseModel):
    id: str
    name: Optional[str]
    email: str

    model_config = ConfigDict(from_attributes=True)


class CourseRef(BaseModel):
    id: str
    title: str

    model_config = ConfigDict(from_attributes=True)


class QuestionDetail(BaseModel):
    id: str
    title: str
    description: str
    submission_type: SubmissionType
    criteria: Optional[str]
    base_example: Optional[BaseExampleResponse] = None

    model_config = ConfigDict(from_attributes=True)


class Assessment(BaseModel):
    score: Optional[float]
    feedback: Optional[str]
    confidence: Optional[float]
    comparison_data: Optional[Dict[str, Any]]


class ResultDetail(BaseModel):
    submission: SubmissionResponse
    student: StudentRef
    question: QuestionDetail
    course: CourseRef
    assessment: Assessment
    comparison: Optional[Comparison] = None


class ComparisonHighlights(BaseModel):
    overall_score: Optional[float]
    confidence: Optional[float]
    key_strengths: List[str]
    main_differences: List[str]
    top_suggestions: List[str]
    has_base_example: bool
    submission_type: SubmissionType


class OverallPerformance(BaseModel):
    average_score: float = 0
    total_submissions: int = 0
    completed_assessments: int = 0
    pending_assessments: int = 0
    processing_assessments: int = 0
    failed_assessments: int = 0


class Trends(BaseModel):
    improvement_areas: List[str] = []
    strong_areas: List[str] = []
    common_mistakes: List[str] = []


class Insights(BaseModel):
    overall_performance: OverallPerformance
    trends: Trends
    recommendations: List[str]


class PerformanceSummary(BaseModel):
    time_frame: str
    total_submissions: int
    completed_submissions: int
    average_score: float
    highest_score: float
    lowest_score: float
    improvement_trend: Literal["improving", "declining", "stable", "insufficient_data"]
    insights: Insights
    recent_submissions: List[ResultSummary]


class SearchHit(ResultSummary):
    match_type: str
    preview: str


class SearchResults(BaseModel):
    results: List[SearchHit]
    total: int
    term: str
    search_in: str

"""Read-only reporting over graded submissions.

Every query goes through the same role scoping as submission listing:
students see their own rows, course admins the rows of courses they
administer, super admins everything.
"""

import csv
import io
import logging
from collections import Counter
from datetime import timedelta
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session, joinedload

from ..auth.access import Identity, require_any_admin, require_authenticated
from ..database import utcnow
from ..errors import Forbidden, NotFound, action
from ..models import Course, Question, Submission, SubmissionStatus
from ..queries import get_or_raise, scope_submissions
from ..schemas import (
    Assessment,
    BaseExampleResponse,
    Comparison,
    ComparisonHighlights,
    CourseRef,
    InsightScope,
    Insights,
    OverallPerformance,
    PerformanceScope,
    PerformanceSummary,
    QuestionDetail,
    ResultDetail,
    ResultFilter,
    ResultPage,
    ResultSummary,
    SearchHit,
    SearchQuery,
    SearchResults,
    StudentRef,
    SubmissionResponse,
    Trends,
)

logger = logging.getLogger(__name__)

TIME_FRAME_DAYS = {"week": 7, "month": 30, "semester": 120}
TREND_WINDOW = 5
TREND_THRESHOLD = 5
PREVIEW_CONTEXT = 50
PREVIEW_MAX_LENGTH = 150

CSV_HEADER = [
    "Submission ID",
    "Student Name",
    "Question Title",
    "Course Title",
    "Score",
    "Status",
    "Submitted At",
    "Processed At",
    "Confidence",
    "Has Base Example",
]


def _scoped(db: Session, identity: Identity) -> Query:
    return scope_submissions(db.query(Submission), identity).options(
        joinedload(Submission.student),
        joinedload(Submission.question).joinedload(Question.base_example),
        joinedload(Submission.question).joinedload(Question.course),
    )


def _filtered(db: Session, identity: Identity, filters: ResultFilter) -> Query:
    query = _scoped(db, identity)
    if filters.course_id:
        query = query.filter(Course.id == filters.course_id)
    if filters.question_id:
        query = query.filter(Submission.question_id == filters.question_id)
    if filters.student_id and not identity.is_student:
        query = query.filter(Submission.student_id == filters.student_id)
    if filters.status is not None:
        query = query.filter(Submission.status == filters.status)
    if filters.min_score is not None:
        query = query.filter(Submission.score >= filters.min_score)
    if filters.max_score is not None:
        query = query.filter(Submission.score <= filters.max_score)
    if filters.date_from is not None:
        query = query.filter(Submission.submitted_at >= filters.date_from)
    if filters.date_to is not None:
        query = query.filter(Submission.submitted_at <= filters.date_to)
    return query


def _summary(submission: Submission) -> ResultSummary:
    question = submission.question
    return ResultSummary(
        submission_id=submission.id,
        student_name=submission.student.name or "Unknown",
        question_title=question.title,
        course_title=question.course.title,
        score=submission.score,
        status=submission.status,
        submitted_at=submission.submitted_at,
        processed_at=submission.processed_at,
        confidence=submission.confidence,
        has_base_example=question.has_base_example,
    )


def _load_visible(db: Session, identity: Identity, submission_id: str) -> Submission:
    submission = get_or_raise(db, Submission, submission_id, "Submission")
    visible = (
        submission.student_id == identity.id
        or identity.is_super_admin
        or (identity.is_course_admin and submission.question.course.admin_id == identity.id)
    )
    if not visible:
        raise Forbidden("Insufficient permissions to view this result")
    return submission


@action("Failed to retrieve assessment results")
def list_results(db: Session, identity: Optional[Identity], filters=None) -> ResultPage:
    identity = require_authenticated(identity)
    filters = ResultFilter.model_validate(filters or {})
    query = _filtered(db, identity, filters)

    total = query.count()
    rows = (
        query.order_by(Submission.submitted_at.desc())
        .offset(filters.offset)
        .limit(filters.limit)
        .all()
    )
    return ResultPage(
        results=[_summary(s) for s in rows],
        total=total,
        has_more=filters.offset + filters.limit < total,
    )


@action("Failed to retrieve detailed assessment result")
def get_result_detail(db: Session, identity: Optional[Identity], submission_id: str) -> ResultDetail:
    identity = require_authenticated(identity)
    submission = _load_visible(db, identity, submission_id)
    question = submission.question

    return ResultDetail(
        submission=SubmissionResponse.model_validate(submission),
        student=StudentRef.model_validate(submission.student),
        question=QuestionDetail(
            id=question.id,
            title=question.title,
            description=question.description,
            submission_type=question.submission_type,
            criteria=question.criteria,
            base_example=(
                BaseExampleResponse.model_validate(question.base_example)
                if question.base_example is not None else None
            ),
        ),
        course=CourseRef.model_validate(question.course),
        assessment=Assessment(
            score=submission.score,
            feedback=submission.feedback,
            confidence=submission.confidence,
            comparison_data=submission.comparison_data,
        ),
        comparison=Comparison(**submission.comparison) if submission.comparison_data else None,
    )


@action("Failed to get submission comparison")
def get_comparison_highlights(db: Session, identity: Optional[Identity], submission_id: str) -> ComparisonHighlights:
    identity = require_authenticated(identity)
    submission = _load_visible(db, identity, submission_id)
    if not submission.comparison_data:
        raise NotFound("No comparison data available for this submission")

    comparison = submission.comparison
    return ComparisonHighlights(
        overall_score=submission.score,
        confidence=submission.confidence,
        key_strengths=comparison["similarities"][:3],
        main_differences=comparison["differences"][:3],
        top_suggestions=comparison["suggestions"][:3],
        has_base_example=submission.question.has_base_example,
        submission_type=submission.question.submission_type,
    )


def most_common(items: Iterable[str], limit: int) -> List[str]:
    """Most frequent entries first; ties keep first-seen order."""
    return [item for item, _ in Counter(items).most_common(limit)]


def recommendations_for(performance: OverallPerformance, trends: Trends) -> List[str]:
    recommendations = []
    if performance.average_score < 60:
        recommendations.append(
            "Overall performance needs significant improvement - consider reviewing learning materials"
        )
    elif performance.average_score < 80:
        recommendations.append("Good progress, but there is room for improvement in key areas")
    else:
        recommendations.append("Excellent performance overall - maintain current learning approach")

    if trends.improvement_areas:
        recommendations.append(f"Focus on improving: {', '.join(trends.improvement_areas[:2])}")
    if trends.strong_areas:
        recommendations.append(f"Continue leveraging strengths in: {', '.join(trends.strong_areas[:2])}")
    if performance.failed_assessments > performance.completed_assessments * 0.2:
        recommendations.append("High failure rate detected - consider reviewing submission guidelines")
    return recommendations


def _compute_insights(db: Session, identity: Identity, scope: InsightScope) -> Insights:
    query = scope_submissions(db.query(Submission), identity)
    if scope.course_id:
        query = query.filter(Course.id == scope.course_id)
    if scope.question_id:
        query = query.filter(Submission.question_id == scope.question_id)
    if scope.student_id and not identity.is_student:
        query = query.filter(Submission.student_id == scope.student_id)

    graded = query.filter(
        Submission.status == SubmissionStatus.completed,
        Submission.score.isnot(None),
    ).all()
    if not graded:
        return Insights(
            overall_performance=OverallPerformance(),
            trends=Trends(),
            recommendations=["No completed assessments available for analysis"],
        )

    counts = dict(
        query.with_entities(Submission.status, func.count(Submission.id))
        .group_by(Submission.status)
        .all()
    )
    scores = [s.score for s in graded]
    performance = OverallPerformance(
        average_score=round(sum(scores) / len(scores), 2),
        total_submissions=sum(counts.values()),
        completed_assessments=counts.get(SubmissionStatus.completed, 0),
        pending_assessments=counts.get(SubmissionStatus.pending, 0),
        processing_assessments=counts.get(SubmissionStatus.processing, 0),
        failed_assessments=counts.get(SubmissionStatus.failed, 0),
    )

    comparisons = [s.comparison for s in graded if isinstance(s.comparison_data, dict)]
    differences = [d for c in comparisons for d in c["differences"] if isinstance(d, str)]
    similarities = [d for c in comparisons for d in c["similarities"] if isinstance(d, str)]
    trends = Trends(
        improvement_areas=most_common(differences, 3),
        strong_areas=most_common(similarities, 3),
        common_mistakes=differences[:5],
    )
    return Insights(
        overall_performance=performance,
        trends=trends,
        recommendations=recommendations_for(performance, trends),
    )


@action("Failed to generate assessment insights")
def insights(db: Session, identity: Optional[Identity], scope=None) -> Insights:
    identity = require_authenticated(identity)
    return _compute_insights(db, identity, InsightScope.model_validate(scope or {}))


def improvement_trend(scored: List[Submission]) -> str:
    """Compare the later half of the last few scores with the earlier half."""
    recent = sorted(scored, key=lambda s: s.submitted_at)[-TREND_WINDOW:]
    if len(recent) < 3:
        return "insufficient_data"

    middle = len(recent) // 2
    first, second = recent[:middle], recent[middle:]
    difference = (
        sum(s.score for s in second) / len(second)
        - sum(s.score for s in first) / len(first)
    )
    if difference > TREND_THRESHOLD:
        return "improving"
    if difference < -TREND_THRESHOLD:
        return "declining"
    return "stable"


@action("Failed to get performance summary")
def performance_summary(db: Session, identity: Optional[Identity], scope=None) -> PerformanceSummary:
    identity = require_authenticated(identity)
    scope = PerformanceScope.model_validate(scope or {})

    date_from = None
    if scope.time_frame in TIME_FRAME_DAYS:
        date_from = utcnow() - timedelta(days=TIME_FRAME_DAYS[scope.time_frame])
    filters = ResultFilter(course_id=scope.course_id, student_id=scope.student_id, date_from=date_from)
    rows = _filtered(db, identity, filters).order_by(Submission.submitted_at.desc()).all()

    scored = [s for s in rows if s.status == SubmissionStatus.completed and s.score is not None]
    scores = [s.score for s in scored]
    return PerformanceSummary(
        time_frame=scope.time_frame,
        total_submissions=len(rows),
        completed_submissions=len(scored),
        average_score=sum(scores) / len(scores) if scores else 0,
        highest_score=max(scores, default=0),
        lowest_score=min(scores, default=0),
        improvement_trend=improvement_trend(scored),
        insights=_compute_insights(
            db, identity, InsightScope(course_id=scope.course_id, student_id=scope.student_id)
        ),
        recent_submissions=[_summary(s) for s in rows[:5]],
    )


def search_preview(text: str, term: str) -> Optional[str]:
    """A window of text around the first case-insensitive match of ``term``."""
    index = text.lower().find(term.lower())
    if index == -1:
        return None
    start = max(0, index - PREVIEW_CONTEXT)
    end = min(len(text), index + len(term) + PREVIEW_CONTEXT)
    preview = text[start:end]
    if start > 0:
        preview = "..." + preview
    if end < len(text):
        preview = preview + "..."
    return preview[:PREVIEW_MAX_LENGTH]


@action("Failed to search submissions")
def search_submissions(db: Session, identity: Optional[Identity], query) -> SearchResults:
    identity = require_authenticated(identity)
    query = SearchQuery.model_validate(query)

    fields = {
        "content": [Submission.content],
        "feedback": [Submission.feedback],
        "both": [Submission.content, Submission.feedback],
    }[query.search_in]
    rows = _scoped(db, identity)
    if query.course_id:
        rows = rows.filter(Course.id == query.course_id)
    conditions = [column.icontains(query.term, autoescape=True) for column in fields]
    rows = rows.filter(conditions[0] if len(conditions) == 1 else conditions[0] | conditions[1])
    rows = rows.order_by(Submission.submitted_at.desc()).limit(query.limit).all()

    hits = []
    for submission in rows:
        for column in fields:
            preview = search_preview(getattr(submission, column.key) or "", query.term)
            if preview is not None:
                hits.append(SearchHit(
                    **_summary(submission).model_dump(),
                    match_type=column.key,
                    preview=preview,
                ))
                break
    return SearchResults(results=hits, total=len(hits), term=query.term, search_in=query.search_in)


@action("Failed to export assessment results")
def export_results_csv(db: Session, identity: Optional[Identity], filters=None) -> str:
    """All results matching ``filters`` (pagination ignored) as quoted CSV."""
    identity = require_any_admin(identity)
    filters = ResultFilter.model_validate(filters or {})
    rows = _filtered(db, identity, filters).order_by(Submission.submitted_at.desc()).all()

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for submission in rows:
        summary = _summary(submission)
        writer.writerow([
            summary.submission_id,
            summary.student_name,
            summary.question_title,
            summary.course_title,
            "" if summary.score is None else summary.score,
            summary.status.value,
            summary.submitted_at.isoformat(),
            summary.processed_at.isoformat() if summary.processed_at else "",
            "" if summary.confidence is None else summary.confidence,
            str(summary.has_base_example).lower(),
        ])
    logger.info(f"Exported {len(rows)} results for {identity.id}")
    return buffer.getvalue()

"""Result reporting endpoints."""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..auth.access import Identity
from ..auth.service import get_current_identity
from ..database import get_db, utcnow
from ..errors import raise_for_result
from ..schemas import (
    ComparisonHighlights,
    InsightScope,
    Insights,
    PerformanceScope,
    PerformanceSummary,
    ResultDetail,
    ResultFilter,
    ResultPage,
    SearchQuery,
    SearchResults,
)
from . import service

router = APIRouter(prefix="/results", tags=["Results"])


@router.get("", response_model=ResultPage)
def list_results(
    filters: Annotated[ResultFilter, Query()],
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.list_results(db, identity, filters))


@router.get("/export")
def export_results(
    filters: Annotated[ResultFilter, Query()],
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Download matching results as CSV."""
    content = raise_for_result(service.export_results_csv(db, identity, filters))
    filename = f"assessment-results-{utcnow().date().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/insights", response_model=Insights)
def get_insights(
    scope: Annotated[InsightScope, Query()],
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.insights(db, identity, scope))


@router.get("/performance", response_model=PerformanceSummary)
def get_performance_summary(
    scope: Annotated[PerformanceScope, Query()],
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.performance_summary(db, identity, scope))


@router.get("/search", response_model=SearchResults)
def search_submissions(
    query: Annotated[SearchQuery, Query()],
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.search_submissions(db, identity, query))


@router.get("/{submission_id}", response_model=ResultDetail)
def get_result_detail(
    submission_id: str,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.get_result_detail(db, identity, submission_id))


@router.get("/{submission_id}/comparison", response_model=ComparisonHighlights)
def get_comparison_highlights(
    submission_id: str,
    identity: Optional[Identity] = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    return raise_for_result(service.get_comparison_highlights(db, identity, submission_id))

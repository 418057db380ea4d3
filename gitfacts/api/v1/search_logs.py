"""
URL search log API endpoints.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from gitfacts.core.database import get_db
from gitfacts.services.schemas import SearchAnalytics
from gitfacts.services.search_log_service import SearchLogService

router = APIRouter(prefix="/search-logs", tags=["search-logs"])


# Request / Response Models


class SearchLogRequest(BaseModel):
    github_url: str = Field(..., min_length=1, description="GitHub profile or repository URL")


class SearchLogUpdate(BaseModel):
    status: str = Field(..., min_length=1, description="e.g. SUCCESS, FAILED")
    processing_time_ms: Optional[int] = Field(None, ge=0)


class SearchLogResponse(BaseModel):
    id: int
    github_url: str
    search_type: str
    extracted_username: Optional[str] = None
    extracted_repo: Optional[str] = None
    response_status: str
    processing_time_ms: Optional[int] = None
    searched_at: datetime

    model_config = {"from_attributes": True}


# Endpoints


@router.post(
    "/",
    response_model=SearchLogResponse,
    status_code=201,
    summary="Log a URL search",
)
def log_search(
    body: SearchLogRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Classify the URL and record it as PENDING."""
    service = SearchLogService(db)
    entry = service.log_search(
        body.github_url,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return SearchLogResponse.model_validate(entry)


@router.patch(
    "/{log_id}",
    response_model=SearchLogResponse,
    summary="Update search outcome",
)
def update_search_status(
    log_id: int,
    body: SearchLogUpdate,
    db: Session = Depends(get_db),
):
    service = SearchLogService(db)
    entry = service.update_log_status(log_id, body.status, body.processing_time_ms)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Search log {log_id} not found")
    return SearchLogResponse.model_validate(entry)


@router.get(
    "/analytics",
    response_model=SearchAnalytics,
    summary="Search analytics",
)
def get_search_analytics(
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
):
    """Totals, daily and hourly distribution and most searched targets."""
    return SearchLogService(db).get_search_analytics(days)

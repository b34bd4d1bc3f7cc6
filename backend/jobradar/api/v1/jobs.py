"""Discovered job endpoints."""

from datetime import datetime
from typing import Literal

import structlog
from fastapi import APIRouter, HTTPException, Query as QueryParam, Request, Response
from pydantic import ValidationError

from jobradar.auth import CurrentUser
from jobradar.dependencies import get_supabase
from jobradar.models.search import AppliedUpdate, Job, JobFilters, JobStats
from jobradar.services import supabase_client as db

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("", response_model=list[Job])
async def list_jobs(
    request: Request,
    user: CurrentUser,
    search: str | None = None,
    query_id: int | None = None,
    posted_from: datetime | None = None,
    posted_to: datetime | None = None,
    applied_only: bool = False,
    show_applied: bool = True,
    sort_by: Literal["posted", "company", "title"] = "posted",
    sort_order: Literal["asc", "desc"] = "desc",
    limit: int | None = QueryParam(default=None, ge=1, le=500),
    offset: int | None = QueryParam(default=None, ge=0),
) -> list[Job]:
    try:
        filters = JobFilters(
            search=search,
            query_id=query_id,
            posted_from=posted_from,
            posted_to=posted_to,
            applied_only=applied_only,
            show_applied=show_applied,
            sort_by=sort_by,
            sort_order=sort_order,
            limit=limit,
            offset=offset,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors()[0]["msg"])

    rows = await db.list_jobs(get_supabase(request), user.id, filters)
    return [Job.model_validate(row) for row in rows]


@router.get("/stats", response_model=JobStats)
async def job_stats(request: Request, user: CurrentUser) -> JobStats:
    rows = await db.get_job_stat_rows(get_supabase(request), user.id)
    return db.compute_job_stats(rows)


@router.patch("/{job_id}/applied", response_model=Job)
async def set_applied(job_id: int, body: AppliedUpdate, request: Request, user: CurrentUser) -> Job:
    row = await db.set_job_applied(get_supabase(request), user.id, job_id, body.applied)
    if row is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return Job.model_validate(row)


@router.delete("/{job_id}", status_code=204)
async def delete_job(job_id: int, request: Request, user: CurrentUser) -> Response:
    """Soft-delete: the job disappears from listings but is kept for de-duplication."""
    deleted = await db.soft_delete_job(get_supabase(request), user.id, job_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Job not found")
    logger.info("job_deleted", user_id=user.id, job_id=job_id)
    return Response(status_code=204)

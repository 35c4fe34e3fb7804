"""Job routes - state reports for individual matrix jobs."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ci_build_api.db import get_db
from ci_build_api.exceptions import InvalidTransitionError
from ci_build_api.models import Job
from ci_build_api.schemas import JobFinish, JobResponse
from ci_build_api.services import finish_job, start_job

router = APIRouter(prefix="/jobs", tags=["jobs"])


async def _get_job(db: AsyncSession, job_id: int) -> Job:
    job = await db.get(Job, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.post("/{job_id}/start", response_model=JobResponse)
async def start(
    job_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Mark a job as started. Starts the build if it is still created."""
    job = await _get_job(db, job_id)
    try:
        await start_job(db, job)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return job


@router.post("/{job_id}/finish", response_model=JobResponse)
async def finish(
    job_id: int,
    payload: JobFinish,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Report a job's result. The last job to finish finishes the build."""
    job = await _get_job(db, job_id)
    try:
        await finish_job(db, job, payload.result)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return job

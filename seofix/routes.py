from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from seofix.config import API_PREFIX
from seofix.errors import AlreadyInProgress
from seofix.repos.redis_jobs import BaseJobRepo, get_job_repo
from seofix.schemas.job import OwnerKey
from seofix.schemas.resolution import (
    ConflictResponse,
    ResolutionRequest,
    ResolutionResponse,
)
from seofix.services.submission import Dispatcher, dispatch_resolution, submit

router = APIRouter(prefix=API_PREFIX)


def get_jobs() -> BaseJobRepo:
    return get_job_repo()


def get_dispatcher() -> Dispatcher:
    return dispatch_resolution


# --------------------------------------------------
# Queue a bulk resolution
# --------------------------------------------------
@router.post(
    "/resolutions",
    response_model=ResolutionResponse,
    responses={409: {"model": ConflictResponse}},
)
def enqueue_resolution(
    req: ResolutionRequest,
    jobs: BaseJobRepo = Depends(get_jobs),
    dispatch: Dispatcher = Depends(get_dispatcher),
):
    try:
        jobId = submit(req.ownerKey, req.items, jobs=jobs, dispatch=dispatch)
    except AlreadyInProgress as e:
        conflict = ConflictResponse(existingJobId=e.existing_job_id, message=str(e))
        return JSONResponse(status_code=409, content=conflict.model_dump())

    return ResolutionResponse(jobId=jobId)


# --------------------------------------------------
# Job history (newest first)
# --------------------------------------------------
@router.get("/jobs")
def list_jobs(
    shopId: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=100),
    jobs: BaseJobRepo = Depends(get_jobs),
):
    return [job.to_record() for job in jobs.list_for_shop(shopId, limit)]


# --------------------------------------------------
# Active job for an owner key (resume after reload)
# --------------------------------------------------
@router.get("/jobs/active")
def active_job(
    shopId: str,
    diagnosticId: str,
    issueType: str,
    jobs: BaseJobRepo = Depends(get_jobs),
):
    try:
        owner = OwnerKey(shopId=shopId, diagnosticId=diagnosticId, issueType=issueType)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    job = jobs.find_active(owner)
    if job is None:
        raise HTTPException(status_code=404, detail="No active job")

    return job.to_record()


# --------------------------------------------------
# Job Status
# --------------------------------------------------
@router.get("/jobs/{jobId}")
def job_status(jobId: str, jobs: BaseJobRepo = Depends(get_jobs)):
    job = jobs.get(jobId)

    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")

    return job.to_record()

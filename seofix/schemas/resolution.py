# seofix/schemas/resolution.py
from pydantic import BaseModel, Field
from typing import List, Optional

from seofix.schemas.job import AffectedItem, JobState, OwnerKey


class ResolutionRequest(BaseModel):
    """
    Bulk resolution request.

    ownerKey identifies the shop, diagnostic and issue category;
    items come straight from the diagnostic report.
    """

    ownerKey: OwnerKey
    items: List[AffectedItem] = Field(
        ...,
        min_length=1,
        description="Content items to correct, processed in this order"
    )


class ResolutionResponse(BaseModel):
    jobId: str
    status: JobState = JobState.queued


class ConflictResponse(BaseModel):
    error: str = "AlreadyInProgress"
    existingJobId: Optional[str] = None
    message: str

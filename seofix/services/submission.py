import logging
import threading
from typing import Callable, Optional, Sequence

from seofix import config
from seofix.repos.redis_jobs import BaseJobRepo, get_job_repo
from seofix.schemas.job import AffectedItem, OwnerKey

logger = logging.getLogger(__name__)

Dispatcher = Callable[[str, OwnerKey, Sequence[AffectedItem]], None]


def dispatch_resolution(jobId: str, owner: OwnerKey, items: Sequence[AffectedItem]):
    # Imported here so the API process does not load Celery until it is needed
    from seofix.workers.resolution_task import resolve_items

    # ✅ ALWAYS use keyword arguments (JSON-serialisable payload)
    kwargs = dict(
        jobId=jobId,
        ownerKey=owner.model_dump(mode="json"),
        items=[item.model_dump(mode="json") for item in items],
    )

    if config.USE_CELERY:
        resolve_items.delay(**kwargs)
        return

    # Local mode: the eager task runs on its own thread so submit returns
    # while the job is still queued
    threading.Thread(
        target=resolve_items.apply,
        kwargs={"kwargs": kwargs},
        name=f"resolve-{jobId}",
        daemon=True,
    ).start()


def submit(
    owner: OwnerKey,
    items: Sequence[AffectedItem],
    *,
    jobs: Optional[BaseJobRepo] = None,
    dispatch: Optional[Dispatcher] = None,
) -> str:
    """
    Creates a job for owner and starts exactly one worker for it.

    Raises AlreadyInProgress when an active job holds the same owner key;
    nothing is created in that case.
    """
    if not items:
        raise ValueError("items must not be empty")

    jobs = jobs or get_job_repo()
    dispatch = dispatch or dispatch_resolution

    job = jobs.create(owner, len(items))
    logger.info("Queued job %s for %s (%d items)", job.id, owner.key(), len(items))

    try:
        dispatch(job.id, owner, items)
    except Exception as e:
        # Otherwise the job would hold the owner key forever
        jobs.fail(job.id, f"Could not start worker: {e}")
        raise

    return job.id

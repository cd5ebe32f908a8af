import logging
import time
from typing import Callable, Dict, List, Optional

from seofix.errors import InvalidJobTransition, JobNotFound
from seofix.repos.firestore_repo import FirestoreRepo
from seofix.repos.redis_jobs import BaseJobRepo, get_job_repo
from seofix.schemas.job import AffectedItem, OutcomeKind, OwnerKey
from seofix.services import diagnostics
from seofix.services.strategies import ResolutionStrategy, build_strategy
from seofix.workers.celery import celery

logger = logging.getLogger(__name__)

PROGRESS_LOG_EVERY = 5


# --------------------------------------------------
# Core resolution loop
# --------------------------------------------------
def _resolve_logic(
    jobId: str,
    ownerKey: Dict,
    items: List[Dict],
    *,
    jobs: Optional[BaseJobRepo] = None,
    strategy: Optional[ResolutionStrategy] = None,
    store: Optional[FirestoreRepo] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[Dict]:
    """
    Processes the items of one job in order, one at a time.

    Item failures are counted on the job and never stop the batch.
    Only errors in the loop itself (job record not writable, no content
    store) fail the job.
    """
    jobs = jobs or get_job_repo()
    owner = OwnerKey.model_validate(ownerKey)
    affected = [AffectedItem.model_validate(i) for i in items]

    logger.info(
        "🚀 Resolution job %s started: %s, %d items",
        jobId, owner.key(), len(affected),
    )

    # Jobs are not resumed: a redelivered or abandoned job is left alone
    try:
        jobs.mark_running(jobId)
    except (JobNotFound, InvalidJobTransition) as e:
        logger.warning("Skipping job %s: %s", jobId, e)
        return None

    resolved_ids = []

    try:
        if strategy is None:
            store = store or FirestoreRepo()
            strategy = build_strategy(owner.issueType, owner.shopId, store)

        for index, item in enumerate(affected):
            jobs.set_current_item(jobId, item.label)

            outcome = strategy.resolve(item)

            if outcome.kind is OutcomeKind.success:
                resolved_ids.append(item.id)
            elif outcome.kind is OutcomeKind.failure:
                logger.warning("Item %s (%s) failed: %s", item.id, item.label, outcome.reason)
            else:
                logger.info("Item %s (%s) skipped: %s", item.id, item.label, outcome.reason)

            job = jobs.record_outcome(jobId, item, outcome)

            if job.processedItems % PROGRESS_LOG_EVERY == 0:
                logger.info(
                    "Progress %s: %d/%d (%d%%)",
                    jobId, job.processedItems, job.totalItems, job.progressPercent,
                )

            if strategy.item_delay_seconds > 0 and index < len(affected) - 1:
                sleep(strategy.item_delay_seconds)

        job = jobs.complete(jobId)

    except InvalidJobTransition as e:
        # The job was abandoned as stalled while this worker was still going
        logger.warning("Job %s stopped: %s", jobId, e)
        return None

    except Exception as e:
        logger.exception("❌ Resolution job %s failed", jobId)
        try:
            jobs.fail(jobId, str(e) or e.__class__.__name__)
        except Exception:
            logger.exception("Could not mark job %s as failed", jobId)
        raise

    logger.info(
        "🎉 Job %s completed: success=%d failed=%d skipped=%d",
        jobId, job.successCount, job.failedCount, job.skippedCount,
    )

    if resolved_ids:
        _update_diagnostic(store or FirestoreRepo(), owner, resolved_ids)

    return job.to_record()


def _update_diagnostic(store: FirestoreRepo, owner: OwnerKey, resolved_ids: List[str]):
    try:
        diagnostics.remove_resolved_items(store, owner, resolved_ids)
    except Exception:
        # The job result stands even if the report cannot be refreshed
        logger.exception("Failed to update diagnostic %s", owner.diagnosticId)


# --------------------------------------------------
# Celery / Local Task Wrapper
# --------------------------------------------------
@celery.task(bind=True, name="resolve_seo_issues")
def resolve_items(self, jobId: str, ownerKey: Dict, items: List[Dict]):
    """
    Runs on the worker under Celery, on a background thread in local mode.
    """
    return _resolve_logic(jobId, ownerKey, items)

# seofix/repos/redis_jobs.py
import logging
import threading
from functools import lru_cache
from typing import Callable, Dict, List, Optional

import redis
from redis.exceptions import WatchError

from seofix import config
from seofix.errors import AlreadyInProgress, JobNotFound
from seofix.schemas.job import AffectedItem, ItemOutcome, Job, OwnerKey

logger = logging.getLogger(__name__)

STALE_REASON = "Job stalled: no progress for {seconds} seconds"


def _stale_reason() -> str:
    return STALE_REASON.format(seconds=config.STALE_JOB_SECONDS)


def _holder_blocks(holder: Optional[Job]) -> bool:
    """
    A lock whose job record is missing is treated as held: the record
    is written right after the lock is claimed.
    """
    if holder is None:
        return True
    return holder.is_active and not holder.is_stale()


class BaseJobRepo:
    """
    Job record store.

    The worker owning a job is its only writer; every mutation goes
    through _mutate so counters and status move as one unit.
    """

    def create(self, owner: OwnerKey, total_items: int) -> Job:
        """Creates a queued job or raises AlreadyInProgress."""
        raise NotImplementedError

    def get(self, jobId: str) -> Optional[Job]:
        raise NotImplementedError

    def find_active(self, owner: OwnerKey) -> Optional[Job]:
        raise NotImplementedError

    def list_for_shop(self, shopId: str, limit: int = 10) -> List[Job]:
        raise NotImplementedError

    def _mutate(self, jobId: str, mutator: Callable[[Job], None]) -> Job:
        raise NotImplementedError

    def mark_running(self, jobId: str) -> Job:
        return self._mutate(jobId, lambda job: job.start())

    def set_current_item(self, jobId: str, label: str) -> Job:
        return self._mutate(jobId, lambda job: job.begin_item(label))

    def record_outcome(self, jobId: str, item: AffectedItem, outcome: ItemOutcome) -> Job:
        return self._mutate(jobId, lambda job: job.record(item, outcome))

    def complete(self, jobId: str) -> Job:
        return self._mutate(jobId, lambda job: job.complete())

    def fail(self, jobId: str, error: str) -> Job:
        return self._mutate(jobId, lambda job: job.fail(error))


# -------------------------------------------------
# In-memory fallback (LOCAL DEV)
# -------------------------------------------------
class InMemoryJobRepo(BaseJobRepo):
    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._active: Dict[str, str] = {}
        self._lock = threading.Lock()

    def create(self, owner: OwnerKey, total_items: int) -> Job:
        with self._lock:
            holder_id = self._active.get(owner.key())
            if holder_id is not None:
                holder = self._jobs.get(holder_id)
                if _holder_blocks(holder):
                    raise AlreadyInProgress(holder_id)

                if holder.is_active:
                    holder.fail(_stale_reason())
                    logger.warning("Abandoned stalled job %s", holder_id)
                del self._active[owner.key()]

            job = Job.new(owner, total_items)
            self._jobs[job.id] = job
            self._active[owner.key()] = job.id
            return job.model_copy(deep=True)

    def get(self, jobId: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(jobId)
            return job.model_copy(deep=True) if job else None

    def find_active(self, owner: OwnerKey) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(self._active.get(owner.key(), ""))
            if job is None or not job.is_active:
                return None
            return job.model_copy(deep=True)

    def list_for_shop(self, shopId: str, limit: int = 10) -> List[Job]:
        with self._lock:
            jobs = [j for j in self._jobs.values() if j.shopId == shopId]
            jobs.sort(key=lambda j: j.createdAt, reverse=True)
            return [j.model_copy(deep=True) for j in jobs[:limit]]

    def _mutate(self, jobId: str, mutator: Callable[[Job], None]) -> Job:
        with self._lock:
            current = self._jobs.get(jobId)
            if current is None:
                raise JobNotFound(jobId)

            # Mutate a copy so a rejected transition leaves the record intact
            job = current.model_copy(deep=True)
            mutator(job)
            self._jobs[jobId] = job

            key = job.owner_key.key()
            if job.is_terminal and self._active.get(key) == jobId:
                del self._active[key]

            return job.model_copy(deep=True)


# -------------------------------------------------
# Redis-backed repo (PRODUCTION)
# -------------------------------------------------
class RedisJobRepo(BaseJobRepo):
    """
    Keys:
    - {prefix}job:{jobId}            JSON job record
    - {prefix}active:{ownerKey}      id of the active job (SET NX gate)
    - {prefix}shop:{shopId}:jobs     sorted set of job ids by creation time
    """

    def __init__(self, client=None):
        if client is None:
            redis_url = config.REDIS_URL
            if not redis_url:
                raise RuntimeError("REDIS_URL is required in production")
            client = redis.from_url(redis_url, decode_responses=True)

        self.client = client

    def _job_key(self, jobId: str) -> str:
        return f"{config.REDIS_PREFIX}job:{jobId}"

    def _active_key(self, owner: OwnerKey) -> str:
        return f"{config.REDIS_PREFIX}active:{owner.key()}"

    def _shop_key(self, shopId: str) -> str:
        return f"{config.REDIS_PREFIX}shop:{shopId}:jobs"

    def create(self, owner: OwnerKey, total_items: int) -> Job:
        job = Job.new(owner, total_items)
        lock = self._active_key(owner)

        while True:
            # Claiming the owner lock is the atomic gate
            if self.client.set(lock, job.id, nx=True):
                try:
                    pipe = self.client.pipeline()
                    pipe.set(self._job_key(job.id), job.model_dump_json())
                    pipe.zadd(self._shop_key(owner.shopId), {job.id: job.createdAt.timestamp()})
                    pipe.execute()
                except Exception:
                    self.client.delete(lock)
                    raise
                return job

            holder_id = self.client.get(lock)
            if holder_id is None:
                # Released between our SET and GET
                continue

            if _holder_blocks(self.get(holder_id)):
                raise AlreadyInProgress(holder_id)

            self._release_holder(lock, holder_id)

    def _release_holder(self, lock: str, holder_id: str):
        """
        Drops a lock left by a terminal or stalled job. A stalled job is
        marked failed in the same transaction.
        """
        job_key = self._job_key(holder_id)

        with self.client.pipeline() as pipe:
            try:
                pipe.watch(lock, job_key)
                if pipe.get(lock) != holder_id:
                    return

                raw = pipe.get(job_key)
                holder = Job.model_validate_json(raw) if raw else None
                if _holder_blocks(holder):
                    return

                stalled = holder.is_active
                pipe.multi()
                if stalled:
                    holder.fail(_stale_reason())
                    pipe.set(job_key, holder.model_dump_json())
                pipe.delete(lock)
                pipe.execute()

                if stalled:
                    logger.warning("Abandoned stalled job %s", holder_id)
            except WatchError:
                # Another submitter got there first; the caller re-reads the lock
                return

    def get(self, jobId: str) -> Optional[Job]:
        raw = self.client.get(self._job_key(jobId))
        return Job.model_validate_json(raw) if raw else None

    def find_active(self, owner: OwnerKey) -> Optional[Job]:
        holder_id = self.client.get(self._active_key(owner))
        if not holder_id:
            return None

        job = self.get(holder_id)
        return job if job and job.is_active else None

    def list_for_shop(self, shopId: str, limit: int = 10) -> List[Job]:
        ids = self.client.zrevrange(self._shop_key(shopId), 0, limit - 1)
        if not ids:
            return []

        raws = self.client.mget([self._job_key(i) for i in ids])
        return [Job.model_validate_json(raw) for raw in raws if raw]

    def _mutate(self, jobId: str, mutator: Callable[[Job], None]) -> Job:
        job_key = self._job_key(jobId)

        with self.client.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(job_key)
                    raw = pipe.get(job_key)
                    if raw is None:
                        raise JobNotFound(jobId)

                    job = Job.model_validate_json(raw)
                    mutator(job)

                    release = False
                    if job.is_terminal:
                        lock = self._active_key(job.owner_key)
                        pipe.watch(lock)
                        release = pipe.get(lock) == job.id

                    pipe.multi()
                    pipe.set(job_key, job.model_dump_json())
                    if release:
                        pipe.delete(lock)
                    pipe.execute()
                    return job
                except WatchError:
                    continue


# -------------------------------------------------
# Factory
# -------------------------------------------------
@lru_cache(maxsize=1)
def get_job_repo() -> BaseJobRepo:
    if config.USE_CELERY:
        return RedisJobRepo()
    return InMemoryJobRepo()

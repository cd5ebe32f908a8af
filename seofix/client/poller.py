"""
Status poller.

Watches a job record until it reaches a terminal state. Stopping a poller
only stops observation; the worker keeps running on the server side, and
polling the same job id again later picks up its current state.
"""

import logging
import threading
from typing import Callable, Dict, Optional

import requests

from seofix.config import API_PREFIX, POLL_INTERVAL_MS
from seofix.schemas.job import Job

logger = logging.getLogger(__name__)


class JobSnapshot(Job):
    """Job record as read from the API; isStale is the server's judgement."""

    isStale: bool = False


JobCallback = Callable[[JobSnapshot], None]
ErrorCallback = Callable[[str], None]


class PollingHandle:
    def __init__(self, jobId: str):
        self.jobId = jobId
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def active(self) -> bool:
        return (
            not self._stopped.is_set()
            and self._thread is not None
            and self._thread.is_alive()
        )

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def stop(self):
        self._stopped.set()

    def wait(self, seconds: float) -> bool:
        """Sleeps until the next tick; True when stopped meanwhile."""
        return self._stopped.wait(seconds)

    def join(self, timeout: Optional[float] = None):
        if self._thread is not None:
            self._thread.join(timeout)


class JobPoller:
    """
    Polls GET /v1/jobs/{jobId}, or a custom fetch(jobId) -> dict.

    One loop per job id: starting again for the same id replaces the
    previous loop.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        fetch: Optional[Callable[[str], Dict]] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        if fetch is None and not base_url:
            raise ValueError("Either base_url or fetch is required")

        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self._fetch = fetch or self._fetch_http
        self._session = session or requests.Session()

        self._handles: Dict[str, PollingHandle] = {}
        self._lock = threading.Lock()

    def _fetch_http(self, jobId: str) -> Dict:
        resp = self._session.get(
            f"{self.base_url}{API_PREFIX}/jobs/{jobId}",
            timeout=self.timeout,
        )
        if resp.status_code == 404:
            raise LookupError(f"Job not found: {jobId}")

        resp.raise_for_status()
        return resp.json()

    def start_polling(
        self,
        jobId: str,
        *,
        on_update: Optional[JobCallback] = None,
        on_done: Optional[JobCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        interval_ms: int = POLL_INTERVAL_MS,
    ) -> PollingHandle:
        handle = PollingHandle(jobId)

        with self._lock:
            previous = self._handles.get(jobId)
            if previous is not None:
                previous.stop()
            self._handles[jobId] = handle

        handle._thread = threading.Thread(
            target=self._run,
            args=(handle, on_update, on_done, on_error, interval_ms / 1000),
            name=f"job-poller-{jobId}",
            daemon=True,
        )
        handle._thread.start()
        return handle

    def stop_polling(self, handle: PollingHandle):
        handle.stop()
        self._forget(handle)

    def active_handle(self, jobId: str) -> Optional[PollingHandle]:
        with self._lock:
            return self._handles.get(jobId)

    def _forget(self, handle: PollingHandle):
        with self._lock:
            if self._handles.get(handle.jobId) is handle:
                del self._handles[handle.jobId]

    def _run(self, handle, on_update, on_done, on_error, interval):
        try:
            while not handle.stopped:
                try:
                    job = JobSnapshot.model_validate(self._fetch(handle.jobId))
                except Exception as e:
                    # No retries: the job may no longer exist
                    logger.warning("Polling job %s failed: %s", handle.jobId, e)
                    if not handle.stopped and on_error:
                        on_error(str(e) or e.__class__.__name__)
                    return

                if handle.stopped:
                    return

                if on_update:
                    on_update(job)

                # A replacing loop may have stopped this one during on_update
                if handle.stopped:
                    return

                if job.is_terminal:
                    if on_done:
                        on_done(job)
                    return

                if handle.wait(interval):
                    return
        finally:
            handle.stop()
            self._forget(handle)

class AlreadyInProgress(Exception):
    """An active job already holds the owner key."""

    def __init__(self, existing_job_id: str):
        self.existing_job_id = existing_job_id
        super().__init__(
            f"A similar operation is already running (job {existing_job_id}). "
            "Please wait for it to finish."
        )


class JobNotFound(Exception):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class InvalidJobTransition(Exception):
    """Raised when a mutation targets a job that is not in the expected state."""


class ContentStoreUnavailable(RuntimeError):
    pass

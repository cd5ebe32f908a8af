from celery import Celery
from celery.signals import setup_logging

from seofix import config
from seofix.logger import configure_logging

# -------------------------------------------------
# LOCAL MODE (NO REDIS, NO WORKER)
# -------------------------------------------------
if not config.USE_CELERY:
    celery = Celery("seofix_local")

    # Tasks run inline; dispatch_resolution moves them off the request thread
    celery.conf.update(
        task_always_eager=True,
        task_eager_propagates=False,
    )

# -------------------------------------------------
# PRODUCTION MODE (REDIS + WORKER)
# -------------------------------------------------
else:
    celery = Celery(
        "seofix_worker",        # unique app name
        broker=config.REDIS_URL,
        backend=config.REDIS_URL,
    )

    celery.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        task_track_started=True,
        task_default_queue=config.CELERY_QUEUE,
        # One long job at a time per worker process
        worker_prefetch_multiplier=1,
    )


@setup_logging.connect
def _configure_worker_logging(**kwargs):
    configure_logging()


# -------------------------------------------------
# FORCE task registration
# -------------------------------------------------
import seofix.workers.resolution_task  # noqa: F401,E402

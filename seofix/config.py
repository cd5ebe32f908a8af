import os
from dotenv import load_dotenv

load_dotenv()

# --------------------------------------------------
# App
# --------------------------------------------------
APP_NAME = "SEO Issue Resolution API"
API_PREFIX = "/v1"

ENV = os.getenv("ENV", "local")  # local | production
IS_PROD = ENV == "production"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --------------------------------------------------
# Feature Flags
# --------------------------------------------------
USE_CELERY = os.getenv("USE_CELERY", "false").lower() == "true"

# --------------------------------------------------
# Redis / Celery
# --------------------------------------------------
REDIS_URL = os.getenv("REDIS_URL")

if USE_CELERY and not REDIS_URL:
    raise RuntimeError("REDIS_URL is required when USE_CELERY=true")

# Key prefix for job records and owner locks (change per app)
REDIS_PREFIX = os.getenv("REDIS_PREFIX", "seofix:")

CELERY_QUEUE = os.getenv("CELERY_QUEUE", "seo_resolution_queue")

# --------------------------------------------------
# Jobs
# --------------------------------------------------
# A running job with no progress for this long is treated as abandoned.
# 0 disables the check.
STALE_JOB_SECONDS = int(os.getenv("STALE_JOB_SECONDS", 60 * 60))

# Pause between items for strategies backed by a rate-limited API
AI_ITEM_DELAY_SECONDS = float(os.getenv("AI_ITEM_DELAY_SECONDS", "1.0"))

# Default polling interval used by the status poller
POLL_INTERVAL_MS = int(os.getenv("POLL_INTERVAL_MS", 3000))

# --------------------------------------------------
# OpenAI
# --------------------------------------------------
# Checked when a generation call is made, not at import
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# --------------------------------------------------
# Firestore (content store)
# --------------------------------------------------
FIRESTORE_PROJECT = os.getenv("FIRESTORE_PROJECT")

if IS_PROD and not FIRESTORE_PROJECT:
    raise RuntimeError("FIRESTORE_PROJECT is required in production")

# In local/dev → FirestoreRepo disables itself automatically

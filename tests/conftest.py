"""
Shared fixtures: job repos for both backends, a dict-backed content
store and a scripted resolution strategy.
"""

import os

# Local mode: in-memory repo, eager Celery, no Firestore
os.environ["USE_CELERY"] = "false"
os.environ.pop("FIRESTORE_PROJECT", None)
os.environ.pop("ENV", None)

import fakeredis
import pytest

from seofix.repos.redis_jobs import InMemoryJobRepo, RedisJobRepo, get_job_repo
from seofix.schemas.job import AffectedItem, ItemOutcome, OwnerKey


class FakeStore:
    """Dict-backed stand-in for FirestoreRepo."""

    def __init__(self, items=None, diagnostics=None, enabled=True):
        self.items = items or {}
        self.diagnostics = diagnostics or {}
        self.updates = []
        self._enabled = enabled

    def enabled(self):
        return self._enabled

    def get_item(self, shopId, itemType, itemId):
        doc = self.items.get((itemType, itemId))
        return dict(doc) if doc is not None else None

    def update_item(self, shopId, itemType, itemId, fields):
        self.updates.append((itemType, itemId, fields))
        self.items[(itemType, itemId)].update(fields)

    def get_diagnostic(self, shopId, diagnosticId):
        return self.diagnostics.get(diagnosticId)

    def save_diagnostic(self, shopId, diagnosticId, data):
        self.diagnostics[diagnosticId] = {**self.diagnostics.get(diagnosticId, {}), **data}


class ScriptedStrategy:
    """Returns a preset outcome per item id (success by default)."""

    def __init__(self, outcomes=None, item_delay_seconds=0.0, on_item=None):
        self.outcomes = outcomes or {}
        self.item_delay_seconds = item_delay_seconds
        self.on_item = on_item
        self.seen = []

    def resolve(self, item):
        self.seen.append(item.id)
        if self.on_item:
            self.on_item(item)
        return self.outcomes.get(item.id, ItemOutcome.success())


def make_items(*ids, type="product"):
    return [AffectedItem(id=i, type=type, label=f"Item {i}") for i in ids]


@pytest.fixture
def owner():
    return OwnerKey(shopId="S1", diagnosticId="D1", issueType="Images")


@pytest.fixture
def memory_repo():
    return InMemoryJobRepo()


@pytest.fixture
def redis_repo():
    return RedisJobRepo(client=fakeredis.FakeRedis(decode_responses=True))


@pytest.fixture(params=["memory", "redis"])
def repo(request):
    if request.param == "memory":
        return InMemoryJobRepo()
    return RedisJobRepo(client=fakeredis.FakeRedis(decode_responses=True))


@pytest.fixture
def fresh_default_repo():
    """Resets the process-wide repo used by the Celery task."""
    get_job_repo.cache_clear()
    yield get_job_repo()
    get_job_repo.cache_clear()

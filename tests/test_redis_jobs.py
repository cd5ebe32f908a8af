import threading
from datetime import timedelta

import pytest

from seofix import config
from seofix.errors import AlreadyInProgress, InvalidJobTransition, JobNotFound
from seofix.schemas.job import ItemOutcome, JobState, OwnerKey, utcnow

from conftest import make_items


def test_create_returns_queued_job(repo, owner):
    job = repo.create(owner, 3)

    stored = repo.get(job.id)
    assert stored.status is JobState.queued
    assert stored.totalItems == 3
    assert stored.owner_key == owner


def test_get_unknown_job_returns_none(repo):
    assert repo.get("job_missing") is None


def test_second_create_for_active_owner_is_rejected(repo, owner):
    first = repo.create(owner, 3)

    with pytest.raises(AlreadyInProgress) as exc:
        repo.create(owner, 5)

    assert exc.value.existing_job_id == first.id
    assert [j.id for j in repo.list_for_shop("S1")] == [first.id]


def test_running_job_still_blocks(repo, owner):
    first = repo.create(owner, 1)
    repo.mark_running(first.id)

    with pytest.raises(AlreadyInProgress):
        repo.create(owner, 1)


@pytest.mark.parametrize("finish", [
    lambda repo, jobId: repo.complete(jobId),
    lambda repo, jobId: repo.fail(jobId, "boom"),
])
def test_terminal_job_releases_owner(repo, owner, finish):
    first = repo.create(owner, 1)
    repo.mark_running(first.id)
    finish(repo, first.id)

    second = repo.create(owner, 2)

    assert second.id != first.id
    assert repo.find_active(owner).id == second.id


def test_owner_keys_do_not_collide(repo, owner):
    repo.create(owner, 1)
    repo.create(OwnerKey(shopId="S2", diagnosticId="D1", issueType="Images"), 1)
    repo.create(OwnerKey(shopId="S1", diagnosticId="D1", issueType="SEO"), 1)

    assert len(repo.list_for_shop("S1")) == 2
    assert len(repo.list_for_shop("S2")) == 1


def test_owner_ids_with_separators_do_not_collide(repo):
    first = repo.create(OwnerKey(shopId="shop:1", diagnosticId="D", issueType="SEO"), 1)
    second = repo.create(OwnerKey(shopId="shop", diagnosticId="1:D", issueType="SEO"), 1)

    assert first.id != second.id
    assert repo.find_active(first.owner_key).id == first.id
    assert repo.find_active(second.owner_key).id == second.id


def test_find_active_ignores_finished_jobs(repo, owner):
    job = repo.create(owner, 1)
    repo.mark_running(job.id)
    assert repo.find_active(owner).status is JobState.running

    repo.complete(job.id)
    assert repo.find_active(owner) is None


def test_list_for_shop_respects_limit(repo):
    for i in range(4):
        repo.create(OwnerKey(shopId="S1", diagnosticId=f"D{i}", issueType="SEO"), 1)

    assert len(repo.list_for_shop("S1", limit=3)) == 3
    assert repo.list_for_shop("other") == []


def test_record_outcome_persists_all_counters(repo, owner):
    job = repo.create(owner, 2)
    repo.mark_running(job.id)
    a, b = make_items("A", "B")

    repo.set_current_item(job.id, a.label)
    repo.record_outcome(job.id, a, ItemOutcome.success())
    repo.set_current_item(job.id, b.label)
    repo.record_outcome(job.id, b, ItemOutcome.failure("no image"))

    stored = repo.get(job.id)
    assert stored.processedItems == 2
    assert stored.successCount == 1
    assert stored.failedCount == 1
    assert stored.currentItemLabel == "Item B"
    assert stored.failures[0].reason == "no image"
    assert stored.updatedAt >= stored.createdAt


def test_rejected_mutation_leaves_record_unchanged(repo, owner):
    job = repo.create(owner, 1)

    with pytest.raises(InvalidJobTransition):
        repo.record_outcome(job.id, make_items("A")[0], ItemOutcome.success())

    assert repo.get(job.id).processedItems == 0


def test_mutating_unknown_job_raises(repo):
    with pytest.raises(JobNotFound):
        repo.mark_running("job_missing")


def test_stale_holder_is_abandoned(repo, owner, monkeypatch):
    monkeypatch.setattr(config, "STALE_JOB_SECONDS", 60)
    stuck = repo.create(owner, 5)
    repo.mark_running(stuck.id)
    old = utcnow() - timedelta(minutes=10)
    repo._mutate(stuck.id, lambda job: setattr(job, "updatedAt", old))

    fresh = repo.create(owner, 2)

    abandoned = repo.get(stuck.id)
    assert abandoned.status is JobState.failed
    assert "stalled" in abandoned.errorMessage
    assert repo.find_active(owner).id == fresh.id

    # The old worker cannot write to it any more
    with pytest.raises(InvalidJobTransition):
        repo.record_outcome(stuck.id, make_items("A")[0], ItemOutcome.success())


def test_stale_queued_holder_is_abandoned(repo, owner, monkeypatch):
    monkeypatch.setattr(config, "STALE_JOB_SECONDS", 60)
    never_started = repo.create(owner, 5)
    old = utcnow() - timedelta(minutes=10)
    repo._mutate(never_started.id, lambda job: setattr(job, "updatedAt", old))

    fresh = repo.create(owner, 2)

    abandoned = repo.get(never_started.id)
    assert abandoned.status is JobState.failed
    assert "stalled" in abandoned.errorMessage
    assert repo.find_active(owner).id == fresh.id

    # A late worker for the abandoned job does not start it
    with pytest.raises(InvalidJobTransition):
        repo.mark_running(never_started.id)


def test_concurrent_creates_admit_exactly_one(repo, owner):
    attempts = 8
    barrier = threading.Barrier(attempts)
    created, rejected = [], []
    lock = threading.Lock()

    def attempt():
        barrier.wait()
        try:
            job = repo.create(owner, 1)
        except AlreadyInProgress as e:
            with lock:
                rejected.append(e.existing_job_id)
        else:
            with lock:
                created.append(job.id)

    threads = [threading.Thread(target=attempt) for _ in range(attempts)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert len(created) == 1
    assert len(rejected) == attempts - 1
    assert set(rejected) == set(created)
    assert len(repo.list_for_shop("S1")) == 1

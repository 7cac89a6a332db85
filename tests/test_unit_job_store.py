import time

import pytest

from storesync.errors import JobNotFoundError
from storesync.jobs import JobRepository, JobStore
from storesync.models.db.enums import EntityKind, JobStatus, LogLevel, PlatformName
from storesync.models.schemas.sync import SyncResult
from storesync.services.sync_executor import creation_difference
from conftest import TestingSessionLocal

WOO = PlatformName.WOOCOMMERCE
SHOP = PlatformName.SHOPIFY


def _items(n=2):
    return [creation_difference(EntityKind.PRODUCT, str(i), WOO, SHOP) for i in range(n)]


def _result(index, success=True):
    return SyncResult(
        index=index,
        matching_key=str(index),
        success=success,
        destination_id="d" if success else None,
        error_message=None if success else "rejected",
        error_kind=None if success else "permanent",
        attempts=1,
        platform=SHOP,
    )


def test_job_lifecycle_counts_and_snapshots():
    store = JobStore()
    job = store.create(_items(3), EntityKind.PRODUCT, WOO, SHOP)
    assert job.status == JobStatus.PENDING
    assert job.total == 3 and job.processed == 0

    claimed = store.claim(job.id)
    assert claimed.status == JobStatus.RUNNING
    assert claimed.started_at is not None

    store.record_result(job.id, _result(2))
    store.record_result(job.id, _result(0, success=False))
    store.record_result(job.id, _result(1))
    done = store.complete(job.id)
    assert done.status == JobStatus.COMPLETED
    assert done.processed == 3
    assert done.succeeded == 2 and done.failed_items == 1
    assert [r.index for r in done.results] == [0, 1, 2]


def test_claim_happens_at_most_once():
    store = JobStore()
    job = store.create(_items(), EntityKind.PRODUCT, WOO, SHOP)
    assert store.claim(job.id) is not None
    assert store.claim(job.id) is None


def test_results_are_rejected_unless_running_or_when_duplicated():
    store = JobStore()
    job = store.create(_items(), EntityKind.PRODUCT, WOO, SHOP)
    with pytest.raises(RuntimeError):
        store.record_result(job.id, _result(0))
    store.claim(job.id)
    store.record_result(job.id, _result(0))
    with pytest.raises(RuntimeError):
        store.record_result(job.id, _result(0))


def test_snapshots_are_independent_copies():
    store = JobStore()
    job = store.create(_items(), EntityKind.PRODUCT, WOO, SHOP)
    store.claim(job.id)
    store.record_result(job.id, _result(0))
    first = store.snapshot(job.id)
    first.results[0].error_message = "tampered"
    assert store.snapshot(job.id).results[0].error_message is None


def test_unknown_job_raises():
    with pytest.raises(JobNotFoundError):
        JobStore().snapshot("missing")


def test_fail_records_error():
    store = JobStore()
    job = store.create(_items(), EntityKind.PRODUCT, WOO, SHOP)
    store.claim(job.id)
    failed = store.fail(job.id, "shopify is not connected")
    assert failed.status == JobStatus.FAILED
    assert failed.error == "shopify is not connected"


def test_list_is_newest_first_and_counts_by_status():
    store = JobStore()
    older = store.create(_items(), EntityKind.PRODUCT, WOO, SHOP)
    time.sleep(0.01)
    newer = store.create(_items(), EntityKind.PRODUCT, WOO, SHOP)
    store.claim(newer.id)
    assert [s.id for s in store.list_snapshots()] == [newer.id, older.id]
    assert store.counts() == {"pending": 1, "running": 1, "completed": 0, "failed": 0}


def test_persisted_jobs_survive_a_new_store():
    repository = JobRepository(TestingSessionLocal)
    store = JobStore(repository)
    job = store.create(_items(), EntityKind.PRODUCT, WOO, SHOP, priority="high")
    store.claim(job.id)
    store.record_result(job.id, _result(0))
    store.record_result(job.id, _result(1, success=False))
    store.complete(job.id)

    fresh = JobStore(repository)
    reloaded = fresh.snapshot(job.id)
    assert reloaded.status == JobStatus.COMPLETED
    assert reloaded.priority == "high"
    assert reloaded.succeeded == 1 and reloaded.failed_items == 1
    assert [r.index for r in reloaded.results] == [0, 1]
    assert [s.id for s in fresh.list_snapshots()] == [job.id]

    levels = [entry.level for entry in repository.logs(job.id)]
    assert levels == [LogLevel.INFO, LogLevel.INFO, LogLevel.WARNING, LogLevel.INFO]


def test_recording_a_result_adds_one_row_without_rewriting_the_job(monkeypatch):
    repository = JobRepository(TestingSessionLocal)
    store = JobStore(repository)
    job = store.create(_items(3), EntityKind.PRODUCT, WOO, SHOP)
    store.claim(job.id)

    snapshot_writes = []
    monkeypatch.setattr(repository, "save", snapshot_writes.append)
    store.record_result(job.id, _result(0))
    store.record_result(job.id, _result(2, success=False))
    assert snapshot_writes == []

    persisted = repository.load(job.id)
    assert (persisted.processed, persisted.succeeded, persisted.failed_items) == (2, 1, 1)
    assert [r.index for r in persisted.results] == [0, 2]
    assert persisted.results[1].error_message == "rejected"


def test_failed_job_claims_no_partial_results():
    repository = JobRepository(TestingSessionLocal)
    store = JobStore(repository)
    job = store.create(_items(3), EntityKind.PRODUCT, WOO, SHOP)
    store.claim(job.id)
    store.record_result(job.id, _result(0))
    store.record_result(job.id, _result(1, success=False))

    failed = store.fail(job.id, "Executor error: boom")
    assert failed.status == JobStatus.FAILED
    assert failed.results == []
    assert (failed.processed, failed.succeeded, failed.failed_items) == (0, 0, 0)

    reloaded = JobStore(repository).snapshot(job.id)
    assert reloaded.results == []
    assert (reloaded.processed, reloaded.succeeded, reloaded.failed_items) == (0, 0, 0)

    discarded = [e for e in repository.logs(job.id) if e.message.startswith("Discarded")]
    assert discarded[0].details == {"written": [{"index": 0, "matching_key": "0", "destination_id": "d"}]}

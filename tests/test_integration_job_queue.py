import asyncio
import threading
import time

import pytest

from storesync.errors import JobSetupError, PermanentError, ValidationError
from storesync.integrations.memory import MemoryPlatformClient
from storesync.integrations.platforms import ConnectionClientResolver
from storesync.integrations.woocommerce import WooCommerceClient
from storesync.jobs import JobQueue
from storesync.models.db.enums import EntityKind, JobStatus, PlatformName
from storesync.services.difference_detector import matching_key
from storesync.services.sync_executor import SyncExecutor, creation_difference

WOO = PlatformName.WOOCOMMERCE
SHOP = PlatformName.SHOPIFY


def _differences(ids, source=WOO, destination=SHOP, kind=EntityKind.PRODUCT):
    return [creation_difference(kind, i, source, destination) for i in ids]


@pytest.mark.parametrize(
    "items, kind, source, destination, priority",
    [
        ([], "product", "woocommerce", "shopify", "normal"),
        (None, "widget", "woocommerce", "shopify", "normal"),
        (None, "product", "magento", "shopify", "normal"),
        (None, "product", "woocommerce", "woocommerce", "normal"),
        (None, "product", "woocommerce", "shopify", "urgent"),
        (None, "collection", "woocommerce", "shopify", "normal"),
    ],
)
def test_enqueue_rejects_bad_batches(job_queue, items, kind, source, destination, priority):
    items = _differences(["1"]) if items is None else items
    with pytest.raises(ValidationError):
        job_queue.enqueue(items, kind, source, destination, priority=priority)
    assert job_queue.list_jobs() == []


def test_process_next_runs_job_to_completion(job_queue, woo, shop, product_factory):
    ids = woo.seed(EntityKind.PRODUCT, [product_factory(), product_factory(title=""), product_factory()])
    job_id = job_queue.enqueue(_differences(ids), EntityKind.PRODUCT, WOO, SHOP)

    assert job_queue.get_job(job_id).status == JobStatus.PENDING
    assert job_queue.process_next() == job_id

    job = job_queue.get_job(job_id)
    assert job.status == JobStatus.COMPLETED
    assert (job.total, job.processed, job.succeeded, job.failed_items) == (3, 3, 2, 1)
    assert [r.index for r in job.results] == [0, 1, 2]
    assert job.results[1].error_kind == "validation"
    assert len(shop.records(EntityKind.PRODUCT)) == 2
    assert job_queue.process_next() is None


def test_unresolvable_platform_fails_job(job_store, woo, fetcher):
    def resolver(platform):
        if platform == WOO:
            return woo
        raise JobSetupError("shopify is not connected")

    queue = JobQueue(job_store, resolver, executor_factory=lambda: SyncExecutor(fetcher=fetcher))
    job_id = queue.enqueue(_differences(["1"]), EntityKind.PRODUCT, WOO, SHOP)
    queue.process_next()

    job = queue.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.error == "shopify is not connected"
    assert job.processed == 0


def test_job_is_claimed_once(job_queue, woo, product_factory):
    ids = woo.seed(EntityKind.PRODUCT, [product_factory()])
    job_id = job_queue.enqueue(_differences(ids), EntityKind.PRODUCT, WOO, SHOP)
    job_queue.run_job(job_id)
    job_queue.run_job(job_id)
    assert job_queue.get_job(job_id).processed == 1


def test_overflow_discards_registered_job(job_store, resolver, monkeypatch):
    from storesync.config import QUEUE_SETTINGS

    monkeypatch.setitem(QUEUE_SETTINGS, "max_in_memory", 1)
    job_queue = JobQueue(job_store, resolver)
    job_queue.enqueue(_differences(["1"]), EntityKind.PRODUCT, WOO, SHOP)
    with pytest.raises(OverflowError):
        job_queue.enqueue(_differences(["2"]), EntityKind.PRODUCT, WOO, SHOP)
    assert job_queue.store.counts()["pending"] == 1


def test_workers_drain_queue(job_queue, woo, shop, product_factory):
    ids = woo.seed(EntityKind.PRODUCT, [product_factory(), product_factory()])
    job_queue.start(1)
    assert len(job_queue.workers) == 1

    job_id = job_queue.enqueue(_differences(ids), EntityKind.PRODUCT, WOO, SHOP, priority="high")
    deadline = time.time() + 5
    while job_queue.get_job(job_id).status != JobStatus.COMPLETED and time.time() < deadline:
        time.sleep(0.05)

    job = job_queue.get_job(job_id)
    assert job.status == JobStatus.COMPLETED
    assert job.succeeded == 2
    assert job_queue.snapshot()["workers"] == 1


def test_connection_resolver(connection_store):
    sandbox = MemoryPlatformClient()
    resolver = ConnectionClientResolver(connection_store, sandbox=sandbox)

    assert resolver(PlatformName.MEMORY) is sandbox
    with pytest.raises(JobSetupError):
        resolver(WOO)

    connection_store.save(WOO, {"store_url": "https://shop.example"}, is_connected=True)
    with pytest.raises(JobSetupError):
        resolver(WOO)

    connection_store.save(
        WOO,
        {"store_url": "https://shop.example", "consumer_key": "ck", "consumer_secret": "cs"},
        is_connected=False,
    )
    with pytest.raises(JobSetupError):
        resolver(WOO)

    connection_store.mark_tested(WOO, True)
    assert isinstance(resolver(WOO), WooCommerceClient)


def test_rejected_create_is_isolated_and_created_ids_round_trip(job_queue, woo, shop, product_factory):
    ids = woo.seed(EntityKind.PRODUCT, [product_factory(), product_factory(), product_factory()])
    shop.fail_next("create_one", None, PermanentError("Invalid payload", platform="shopify", status_code=422))
    job_id = job_queue.enqueue(_differences(ids), EntityKind.PRODUCT, WOO, SHOP)
    job_queue.process_next()

    job = job_queue.get_job(job_id)
    assert job.status == JobStatus.COMPLETED
    assert [r.success for r in job.results] == [True, False, True]
    assert job.results[1].error_kind == "permanent"
    assert job.results[1].error_message == "Invalid payload"

    for result, source_id in zip(job.results, ids):
        if not result.success:
            continue
        created = asyncio.run(shop.get_one(EntityKind.PRODUCT, result.destination_id))
        original = asyncio.run(woo.get_one(EntityKind.PRODUCT, source_id))
        assert matching_key(created) == matching_key(original)


class ClosingClient(MemoryPlatformClient):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.closed = 0

    async def close(self):
        self.closed += 1


class CrashingExecutor(SyncExecutor):
    """Writes the first item, then dies before the batch is finished."""

    async def run(self, differences, source_client, destination_client, on_result=None):
        result = await self.sync_one(0, differences[0], source_client, destination_client)
        await on_result(result)
        raise RuntimeError("executor lost its loop")


def test_crashed_job_is_failed_without_partial_results(job_store, fetcher, product_factory):
    source, destination = ClosingClient(WOO), ClosingClient(SHOP)
    ids = source.seed(EntityKind.PRODUCT, [product_factory(), product_factory()])
    queue = JobQueue(
        job_store,
        {WOO: source, SHOP: destination}.__getitem__,
        executor_factory=lambda: CrashingExecutor(fetcher=fetcher),
    )
    job_id = queue.enqueue(_differences(ids), EntityKind.PRODUCT, WOO, SHOP)
    queue.process_next()

    job = queue.get_job(job_id)
    assert job.status == JobStatus.FAILED
    assert job.error == "Executor error: executor lost its loop"
    assert job.results == []
    assert (job.processed, job.succeeded, job.failed_items) == (0, 0, 0)
    assert len(destination.records(EntityKind.PRODUCT)) == 1
    assert (source.closed, destination.closed) == (1, 1)


def test_results_are_recorded_off_the_event_loop_and_clients_closed(job_store, fetcher, product_factory, monkeypatch):
    source, destination = ClosingClient(WOO), ClosingClient(SHOP)
    ids = source.seed(EntityKind.PRODUCT, [product_factory(), product_factory(), product_factory()])
    queue = JobQueue(
        job_store,
        {WOO: source, SHOP: destination}.__getitem__,
        executor_factory=lambda: SyncExecutor(fetcher=fetcher, item_concurrency=3),
    )
    recording_threads = []
    original = job_store.record_result

    def record_result(job_id, result):
        recording_threads.append(threading.get_ident())
        original(job_id, result)

    monkeypatch.setattr(job_store, "record_result", record_result)
    job_id = queue.enqueue(_differences(ids), EntityKind.PRODUCT, WOO, SHOP)
    queue.process_next()

    assert queue.get_job(job_id).succeeded == 3
    # process_next runs the job's event loop on this thread
    assert len(recording_threads) == 3
    assert threading.get_ident() not in recording_threads
    assert (source.closed, destination.closed) == (1, 1)

"""Pytest fixtures and factories.

The production app builds its services in the lifespan hook. Tests bypass the
lifespan (TestClient is not used as a context manager) and install their own
services on app.state: memory clients posing as WooCommerce and Shopify, a
fetcher that never sleeps, and a job queue whose jobs are run explicitly with
``process_next`` unless a test starts workers itself.
"""
import os
import sys
import time
from pathlib import Path
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Ensure project root on sys.path so 'storesync' resolves without an install
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from storesync.main import app  # type: ignore
from storesync.database import Base  # type: ignore
from storesync.api import deps  # type: ignore
import storesync.models.db  # noqa: E402,F401  register tables before create_all
from storesync.errors import JobSetupError  # noqa: E402
from storesync.integrations.memory import MemoryPlatformClient  # noqa: E402
from storesync.jobs import JobQueue, JobRepository, JobStore  # noqa: E402
from storesync.models.db.enums import EntityKind, PlatformName  # noqa: E402
from storesync.services.connection_store import ConnectionStore  # noqa: E402
from storesync.services.platform_fetcher import PlatformFetcher  # noqa: E402
from storesync.services.sync_executor import SyncExecutor  # noqa: E402
from storesync.utils.circuit_breaker import GLOBAL_CIRCUIT_BREAKER  # noqa: E402

# File-based SQLite so worker threads and the test thread each get their own connection.
SQLALCHEMY_TEST_URL = "sqlite+pysqlite:///./test_storesync.db"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture(scope="session", autouse=True)
def _remove_test_db_file():
    yield
    engine.dispose()
    try:
        os.remove("test_storesync.db")
    except OSError:
        pass


@pytest.fixture(autouse=True)
def test_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _reset_breaker():
    """Circuit breaker state is process-wide; keep failures from spilling between tests."""
    GLOBAL_CIRCUIT_BREAKER.reset()
    yield
    GLOBAL_CIRCUIT_BREAKER.reset()


@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


# Override dependency
def _override_get_db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

app.dependency_overrides[deps.get_db] = _override_get_db


# ---------- Platform fixtures ----------

@pytest.fixture()
def woo():
    return MemoryPlatformClient(PlatformName.WOOCOMMERCE)


@pytest.fixture()
def shop():
    return MemoryPlatformClient(PlatformName.SHOPIFY, pagination="cursor")


@pytest.fixture()
def sandbox():
    return MemoryPlatformClient()


@pytest.fixture()
def platform_clients(woo, shop, sandbox):
    return {
        PlatformName.WOOCOMMERCE: woo,
        PlatformName.SHOPIFY: shop,
        PlatformName.MEMORY: sandbox,
    }


@pytest.fixture()
def resolver(platform_clients):
    def _resolve(platform):
        client = platform_clients.get(PlatformName(platform))
        if client is None:
            raise JobSetupError(f"{platform} is not connected")
        return client
    return _resolve


@pytest.fixture()
def fetcher():
    return PlatformFetcher(sleep=no_sleep)


@pytest.fixture()
def job_store():
    return JobStore(JobRepository(TestingSessionLocal))


@pytest.fixture()
def job_queue(job_store, resolver, fetcher):
    queue = JobQueue(job_store, resolver, executor_factory=lambda: SyncExecutor(fetcher=fetcher))
    yield queue
    queue.shutdown(timeout=2.0)


@pytest.fixture()
def connection_store():
    return ConnectionStore(TestingSessionLocal)


@pytest.fixture()
def client(job_queue, connection_store, resolver, fetcher):
    app.state.job_queue = job_queue
    app.state.connection_store = connection_store
    app.state.client_resolver = resolver
    app.state.fetcher = fetcher
    yield TestClient(app)
    for name in ("job_queue", "connection_store", "client_resolver", "fetcher"):
        setattr(app.state, name, None)


# ---------- Data factory helpers ----------

@pytest.fixture()
def product_factory():
    counter = {"n": 0}

    def _create(**overrides):
        counter["n"] += 1
        n = counter["n"]
        data = {
            "title": f"Product {n}",
            "slug": f"product-{n}",
            "sku": f"SKU-{n}",
            "price": "10.00",
            "status": "published",
        }
        data.update(overrides)
        return data
    return _create


@pytest.fixture()
def seed(platform_clients):
    def _seed(platform: PlatformName, kind: EntityKind, items):
        return platform_clients[platform].seed(kind, items)
    return _seed


@pytest.fixture()
def wait_for_job(client):
    """Poll the status endpoint until the job reaches a terminal state."""
    def _wait(job_id: str, timeout: float = 5.0) -> dict:
        deadline = time.time() + timeout
        while True:
            job = client.get(f"/api/v1/migrate/status/{job_id}").json()["data"]["job"]
            if job["status"] in ("completed", "failed") or time.time() >= deadline:
                return job
            time.sleep(0.05)
    return _wait

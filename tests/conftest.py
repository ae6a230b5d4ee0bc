"""
Shared test fixtures.

These replace real infrastructure with lightweight in-memory alternatives:
- PostgreSQL → SQLite in a per-test temp file (via aiosqlite)
- Redis → fakeredis (pure Python Redis mock)
- HTTP server → httpx.AsyncClient with ASGI transport (no network)
- LLM providers → StubProvider registered under "stub" (model "m1")

This means tests:
- Run without Docker or API keys
- Run in milliseconds (no network, no disk, no back-off sleeps)
- Are fully isolated (each test gets a fresh database and fresh registries)
"""

import asyncio
from typing import Optional

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

import providers.resilience
from api.main import create_app, init_services
from metrics.builtin import register_builtin_metrics
from metrics.evaluator import MetricsEvaluator
from metrics.registry import MetricRegistry
from models.base import Base
from models.repository import JobRepository
from providers.base import AbstractProvider, CompletionResult, ProviderOptions, StreamChunk
from providers.registry import reset_providers, set_provider
from streaming.bus import JobEventBus
from streaming.cancellation import CancellationRegistry
from worker.executor import JobExecutor


class StubProvider(AbstractProvider):
    """
    Scriptable provider.

    chunks: streamed one by one, then a final empty chunk
    error:  raised on every call (before any chunk)
    gate:   if set, every call waits on this event first
    """

    def __init__(
        self,
        chunks=("Hel", "lo"),
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
        streaming: bool = True,
        models=("m1",),
    ):
        self.chunks = list(chunks)
        self.error = error
        self.gate = gate
        self.supports_streaming = streaming
        self._models = list(models)
        self.calls = 0
        self.prompts: list[str] = []

    @property
    def name(self) -> str:
        return "stub"

    @property
    def models(self) -> list[str]:
        return self._models

    async def _begin(self, prompt: str) -> None:
        self.calls += 1
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def complete(self, prompt: str, options: ProviderOptions) -> CompletionResult:
        await self._begin(prompt)
        return CompletionResult(output="".join(self.chunks), tokens=7, cost=0.0)

    async def stream(self, prompt: str, options: ProviderOptions):
        await self._begin(prompt)
        for chunk in self.chunks:
            yield StreamChunk(content=chunk)
        yield StreamChunk(content="", is_final=True)


@pytest.fixture(autouse=True)
def no_backoff_sleep(monkeypatch):
    """Resilience retries happen instantly in tests."""
    async def _no_sleep(seconds):
        return None

    monkeypatch.setattr(providers.resilience, "_sleep", _no_sleep)


@pytest.fixture(autouse=True)
def restore_providers():
    yield
    reset_providers()


@pytest.fixture
def stub_provider():
    provider = StubProvider()
    set_provider("stub", provider)
    return provider


@pytest.fixture
def use_stub():
    """Register a customised StubProvider: use_stub(error=..., gate=...)."""
    def _register(**kwargs) -> StubProvider:
        provider = StubProvider(**kwargs)
        set_provider("stub", provider)
        return provider

    return _register


@pytest_asyncio.fixture
async def async_engine(tmp_path):
    """Create a fresh database for each test."""
    # A temp-file database with the default pool: concurrent sessions get
    # their own connections, so one session's rollback can't undo another's write
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path}/test.db",
        echo=False,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
def repository(session_factory):
    return JobRepository(session_factory)


@pytest_asyncio.fixture
async def fake_redis():
    """Create a fake Redis instance (in-memory, no real Redis needed)."""
    r = FakeRedis()
    yield r
    await r.flushall()


@pytest.fixture
def bus():
    return JobEventBus()


@pytest.fixture
def cancellations():
    return CancellationRegistry()


@pytest.fixture
def metric_registry():
    return register_builtin_metrics(MetricRegistry())


@pytest.fixture
def evaluator(metric_registry):
    return MetricsEvaluator(metric_registry)


@pytest.fixture
def executor(repository, bus, cancellations, evaluator, fake_redis):
    return JobExecutor(repository, bus, cancellations, evaluator, fake_redis, timeout_ms=2000, max_retries=3)


@pytest.fixture
def recorded(bus):
    """Every event published on the bus, per job id, in publish order."""
    events: dict[str, list] = {}

    class _Recorder:
        def watch(self, job_id: str) -> list:
            bucket = events.setdefault(job_id, [])
            bus.subscribe(job_id, bucket.append)
            return bucket

    return _Recorder()


@pytest_asyncio.fixture
async def app(session_factory, fake_redis):
    """
    The FastAPI app with its services built over the test database and
    fakeredis. ASGITransport does not run the lifespan, so no worker pool
    is started: tests drive execution through app.state.executor.
    """
    application = create_app()
    init_services(application, session_factory, fake_redis)
    return application


@pytest_asyncio.fixture
async def client(app):
    """
    Create a test HTTP client that talks directly to the FastAPI app.

    ASGITransport means requests go directly to the app in-process,
    no HTTP server or network involved.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

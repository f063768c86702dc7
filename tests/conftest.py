"""pytest fixtures for photoai backend tests.

Provides:
- engine: Function-scoped file-backed SQLite database (aiosqlite) with all tables
- uow_factory: Function-scoped UnitOfWork factory over that database
- gateway: In-memory provider gateway recording every call
- orchestrator: GenerationOrchestrator wired to the above
- client: httpx AsyncClient bound to the FastAPI app
- make_model / make_pack / fund: Seed helpers (each commits in its own UnitOfWork)

Transactions start with BEGIN IMMEDIATE, so concurrent units of work serialize on
the database write lock the way they would on PostgreSQL row locks.
"""

import asyncio
import base64
import itertools
import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"photoai-test-signing-key").decode("ascii")

# Must be set before photoai.app is imported (create_app reads Settings)
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./photoai-test.db"
os.environ["REPLICATE_WEBHOOK_SECRET"] = WEBHOOK_SECRET
os.environ["IMAGE_GENERATION_CREDITS"] = "1"
os.environ["RECONCILE_ENABLED"] = "false"

import photoai.models  # noqa: E402,F401
from photoai.core.config import Settings  # noqa: E402
from photoai.models.pack import Pack, PackPrompt  # noqa: E402
from photoai.models.status import JobStatus  # noqa: E402
from photoai.models.trained_model import EyeColor, Ethnicity, ModelType, TrainedModel  # noqa: E402
from photoai.services.exceptions import ProviderUnavailable  # noqa: E402
from photoai.services.generation import GenerationOrchestrator  # noqa: E402
from photoai.services.provider.gateway import JobHandle, JobKind  # noqa: E402
from photoai.uow import create_uow_factory  # noqa: E402


class FakeGateway:
    """In-memory ProviderGateway.

    Handles are "pred-N" / "train-N". Behaviour per test:
    - fail_prompts: prompt -> exception raised on submission
    - blank_prompts: prompts answered with an empty handle
    - training_error: exception raised by submit_training
    - outcomes: request_id -> outcome returned by fetch_outcome
    - fetch_errors: request_id -> exception raised by fetch_outcome
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self.image_submissions: list[tuple[str, str, str]] = []
        self.training_submissions: list[tuple[str, str, str]] = []
        self.cancelled: list[tuple[str, JobKind]] = []
        self.fetched: list[tuple[str, JobKind]] = []
        self.fail_prompts: dict[str, Exception] = {}
        self.blank_prompts: set[str] = set()
        self.training_error: Exception | None = None
        self.outcomes: dict = {}
        self.fetch_errors: dict[str, Exception] = {}

    @property
    def calls(self) -> int:
        return len(self.image_submissions) + len(self.training_submissions)

    async def submit_training(self, asset_url, model_name, attributes) -> JobHandle:
        await asyncio.sleep(0)
        if self.training_error is not None:
            raise self.training_error
        request_id = f"train-{next(self._ids)}"
        self.training_submissions.append((asset_url, model_name, request_id))
        return JobHandle(request_id=request_id)

    async def submit_image_generation(self, prompt, model_artifact_path) -> JobHandle:
        await asyncio.sleep(0)
        if prompt in self.fail_prompts:
            raise self.fail_prompts[prompt]
        if prompt in self.blank_prompts:
            return JobHandle(request_id="")
        request_id = f"pred-{next(self._ids)}"
        self.image_submissions.append((prompt, model_artifact_path, request_id))
        return JobHandle(request_id=request_id)

    async def cancel(self, request_id, kind) -> None:
        self.cancelled.append((request_id, kind))

    async def fetch_outcome(self, request_id, kind):
        self.fetched.append((request_id, kind))
        if request_id in self.fetch_errors:
            raise self.fetch_errors[request_id]
        return self.outcomes.get(request_id)


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Provide a fresh SQLite database file with all tables created."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'photoai.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def uow_factory(engine: AsyncEngine):
    """Provide function-scoped UnitOfWork factory."""
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    return create_uow_factory(session_factory)


@pytest.fixture
def settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def orchestrator(uow_factory, gateway, settings) -> GenerationOrchestrator:
    return GenerationOrchestrator(uow_factory, gateway, settings)


@pytest_asyncio.fixture
async def client(uow_factory, gateway):
    """Provide an HTTP client for the app (lifespan is not run; state is set here)."""
    from httpx import ASGITransport, AsyncClient

    from photoai.app import app

    app.state.uow_factory = uow_factory
    app.state.gateway = gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def fund(uow_factory):
    """Grant credits to an account."""

    async def _fund(user_id: str, amount: int) -> int:
        async with await uow_factory() as uow:
            return await uow.credits.credit(user_id, amount)

    return _fund


@pytest.fixture
def make_model(uow_factory):
    """Create a TrainedModel; trained (complete with weights) unless told otherwise."""
    counter = itertools.count(1)

    async def _make_model(
        user_id: str = "user-1",
        trained: bool = True,
        status: JobStatus | None = None,
    ) -> TrainedModel:
        n = next(counter)
        model = TrainedModel(
            user_id=user_id,
            name=f"Model {n}",
            type=ModelType.WOMAN,
            age=29,
            ethnicity=Ethnicity.HISPANIC,
            eye_color=EyeColor.HAZEL,
            bald=False,
            zip_url=f"https://assets.example.com/photos-{n}.zip",
            provider_request_id=f"seed-train-{n}",
        )
        if trained:
            model.mark_complete(f"https://replicate.delivery/weights-{n}.tar")
        elif status == JobStatus.FAILED:
            model.mark_failed("training crashed")

        async with await uow_factory() as uow:
            await uow.models.add(model)
        return model

    return _make_model


@pytest.fixture
def make_pack(uow_factory):
    """Create a Pack with the given prompts."""

    async def _make_pack(prompts: list[str], name: str = "Studio") -> Pack:
        pack = Pack(name=name, description=f"{name} portraits")
        async with await uow_factory() as uow:
            uow.session.add(pack)
            await uow.session.flush()
            for prompt in prompts:
                uow.session.add(PackPrompt(pack_id=pack.id, prompt=prompt))
        return pack

    return _make_pack


@pytest.fixture
def provider_down() -> ProviderUnavailable:
    return ProviderUnavailable("Network timeout: read timed out")

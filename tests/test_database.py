"""Engine, units of work and configuration."""

import pytest
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from elearning import config
from elearning.db.database import drop_models, get_async_session, init_models, make_engine, session_scope
from elearning.errors import NotFoundError, StoreUnavailableError, UniquenessConflict
from elearning.services.repositories import categories, users


@pytest.mark.asyncio
async def test_unreachable_store_raises_store_unavailable(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'elearning.db'}")
    try:
        with pytest.raises(StoreUnavailableError):
            await init_models(engine)
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_session_scope_commits(session_factory):
    async with session_scope(session_factory) as session:
        category = await categories.create(session, title="Data", thumbnail="data.png")

    async with session_factory() as fresh:
        assert (await categories.get(fresh, category.id)).title == "Data"


@pytest.mark.asyncio
async def test_session_scope_rolls_back_on_error(session_factory):
    with pytest.raises(RuntimeError):
        async with session_scope(session_factory) as session:
            category = await categories.create(session, title="Data", thumbnail="data.png")
            raise RuntimeError("abort")

    async with session_factory() as fresh:
        with pytest.raises(NotFoundError):
            await categories.get(fresh, category.id)


@pytest.mark.asyncio
async def test_rejected_write_keeps_earlier_writes(session_factory):
    async with session_scope(session_factory) as session:
        ada = await users.create(
            session, first_name="Ada", last_name="Lovelace", password="hash", email="ada@learnhub.io"
        )
        with pytest.raises(UniquenessConflict):
            await users.create(
                session, first_name="Ada", last_name="Byron", password="hash", email="ada@learnhub.io"
            )

    async with session_factory() as fresh:
        assert (await users.get(fresh, ada.id)).last_name == "Lovelace"


@pytest.mark.asyncio
async def test_init_models_is_idempotent(engine):
    await init_models(engine)

    async with engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    assert {"users", "courses", "modules", "lessons", "watches"} <= set(tables)


@pytest.mark.asyncio
async def test_drop_models_removes_tables(engine):
    await drop_models(engine)

    async with engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    assert tables == []


@pytest.mark.asyncio
async def test_get_async_session_yields_a_session():
    sessions = get_async_session()
    session = await sessions.__anext__()
    try:
        assert isinstance(session, AsyncSession)
    finally:
        await sessions.aclose()


class TestDatabaseUrl:
    def test_explicit_url_wins(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///local.db")
        monkeypatch.setattr(config, "DB_USER", "app")

        assert config.get_database_url() == "sqlite+aiosqlite:///local.db"

    def test_url_built_from_parts(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setattr(config, "DB_USER", "app")
        monkeypatch.setattr(config, "DB_PASS", "secret")
        monkeypatch.setattr(config, "DB_HOST", "db")
        monkeypatch.setattr(config, "DB_PORT", None)
        monkeypatch.setattr(config, "DB_NAME", "courses")

        assert config.get_database_url() == "postgresql+asyncpg://app:secret@db:5432/courses"

    def test_default_url(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setattr(config, "DB_USER", None)

        assert config.get_database_url() == config.DEFAULT_DATABASE_URL

    def test_env_flag(self, monkeypatch):
        monkeypatch.setenv("DB_ECHO", "Yes")
        assert config._env_flag("DB_ECHO") is True
        monkeypatch.setenv("DB_ECHO", "0")
        assert config._env_flag("DB_ECHO") is False
        monkeypatch.delenv("DB_ECHO")
        assert config._env_flag("DB_ECHO", default=True) is True

import asyncio
import logging
from contextlib import asynccontextmanager, contextmanager

from sqlalchemy import event
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from elearning import config
from elearning.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def make_engine(url=None, echo=None):
    """Create the async engine for a connection string.

    Without arguments the engine points at ``config.DATABASE_URL``.
    """
    url = url or config.DATABASE_URL
    options = {"echo": config.DB_ECHO if echo is None else echo, "future": True}
    if not url.startswith("sqlite"):
        options["pool_timeout"] = config.DB_POOL_TIMEOUT
    if url.startswith("postgresql+asyncpg"):
        options["connect_args"] = {"command_timeout": config.DB_COMMAND_TIMEOUT}

    engine = create_async_engine(url, **options)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def make_sessionmaker(bind):
    return sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = make_engine()

AsyncSessionLocal = make_sessionmaker(engine)


@contextmanager
def store_errors():
    """Translate connection-level failures into StoreUnavailableError."""
    try:
        yield
    except (OperationalError, InterfaceError, PoolTimeoutError) as exc:
        logger.error(f"Store unavailable: {exc}")
        raise StoreUnavailableError(str(exc)) from exc
    except (OSError, asyncio.TimeoutError) as exc:
        logger.error(f"Store unavailable: {exc!r}")
        raise StoreUnavailableError(str(exc) or exc.__class__.__name__) from exc


@asynccontextmanager
async def session_scope(session_factory=None):
    """Unit of work: commit everything flushed inside, or roll it all back."""
    factory = session_factory or AsyncSessionLocal
    async with factory() as session:
        try:
            yield session
            with store_errors():
                await session.commit()
        except Exception:
            await session.rollback()
            raise


# Session dependency for an access layer
async def get_async_session():
    async with AsyncSessionLocal() as session:
        yield session


async def init_models(bind=None):
    """Create every table that does not exist yet."""
    from elearning.db import models  # noqa: F401

    bind = bind or engine
    with store_errors():
        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables created")


async def drop_models(bind=None):
    from elearning.db import models  # noqa: F401

    bind = bind or engine
    with store_errors():
        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    logger.info("Tables dropped")

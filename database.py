from typing import AsyncGenerator, Optional
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool
import structlog
from config import get_settings
from models import Base
logger = structlog.get_logger()
_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
def _create_engine(database_url: str) -> AsyncEngine:
    settings = get_settings()
    if database_url.startswith("sqlite"):
        # File-backed SQLite; each session opens its own connection
        engine = create_async_engine(database_url, echo=False, poolclass=NullPool)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_async_engine(
        database_url,
        echo=False,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=True,
        connect_args={"server_settings": {"jit": "off"}} if database_url.startswith("postgresql+asyncpg") else {},
    )
def configure_database(database_url: Optional[str] = None) -> AsyncEngine:
    """(Re)bind the module-level engine and session factory to ``database_url``."""
    global _engine, _session_factory
    _engine = _create_engine(database_url or get_settings().database_url)
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return _engine
def get_engine() -> AsyncEngine:
    if _engine is None:
        configure_database()
    return _engine
def session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        configure_database()
    return _session_factory
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()
async def init_db():
    try:
        async with get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_ready", url=get_engine().url.render_as_string(hide_password=True))
    except Exception:
        logger.exception("database_init_failed")
        raise
async def dispose_db():
    if _engine is not None:
        await _engine.dispose()

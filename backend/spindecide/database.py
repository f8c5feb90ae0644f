from fastapi import Depends
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from spindecide.config import settings
from spindecide.utils.logging_config import database_logger


class Base(DeclarativeBase):
    pass


def enable_sqlite_locking(engine: AsyncEngine) -> None:
    """
    SQLite: turn on foreign keys (needed for ON DELETE CASCADE) and open every
    transaction with BEGIN IMMEDIATE, so concurrent writers to the same file
    queue up instead of reading stale rows. Plays the role SELECT ... FOR
    UPDATE plays on PostgreSQL.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Stop the driver from issuing its own BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str) -> AsyncEngine:
    engine_kwargs = {"echo": settings.DB_ECHO}

    if database_url.startswith("sqlite"):
        # Wait up to 30s for the write lock held by another transaction
        engine_kwargs["connect_args"] = {"timeout": 30}
        engine = create_async_engine(database_url, **engine_kwargs)
        enable_sqlite_locking(engine)
        return engine

    engine_kwargs.update(
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=settings.DB_POOL_PRE_PING,
        # Room rows are locked explicitly; each statement must see the latest commit
        isolation_level="READ COMMITTED",
    )
    return create_async_engine(database_url, **engine_kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL)
async_session = build_session_factory(engine)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session


async def get_db(session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory)):
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_schema(target: AsyncEngine) -> None:
    # Register all tables on Base.metadata
    from spindecide import models  # noqa: F401

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_database(target: AsyncEngine) -> bool:
    try:
        async with target.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        database_logger.error(f"Database readiness check failed: {type(e).__name__}")
        return False


async def init_db():
    database_logger.info("Initializing database...")
    await create_schema(engine)
    database_logger.success("Database schema created/updated")


async def close_db():
    await engine.dispose()
    database_logger.info("Database connections closed")

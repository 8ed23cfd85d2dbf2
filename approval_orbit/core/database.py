"""Database connection and session management.

Transaction Guarantees:
- Each request gets its own session
- All operations within a request are atomic
- On any exception, the entire transaction is rolled back
- Sessions are properly closed after each request
"""

import logging
import os
import ssl
from collections.abc import AsyncGenerator
from typing import Any
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

connect_args: dict[str, Any] = {}
db_url_async = settings.database_url_async

# Hosted Postgres (Supabase, Neon) needs SSL and sits behind pgbouncer
if os.getenv("ENVIRONMENT") == "production" or any(
    host in db_url_async for host in ("supabase", "neon", "pooler")
):
    ssl_context = ssl.create_default_context()
    ssl_context.check_hostname = False
    ssl_context.verify_mode = ssl.CERT_NONE
    connect_args["ssl"] = ssl_context
    # pgbouncer in transaction mode cannot use prepared statements
    connect_args["prepared_statement_cache_size"] = 0
    connect_args["statement_cache_size"] = 0
    logger.info("Using SSL for database connection with pgbouncer compatibility")

engine = create_async_engine(
    db_url_async,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    echo=settings.database_echo,
    pool_pre_ping=True,
    pool_recycle=300,
    pool_timeout=30,
    connect_args=connect_args,
)

# Session factory - creates new sessions for each request
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a transactional database session.

    Transaction Behavior:
    - Session starts in a transaction automatically
    - On successful completion: COMMIT
    - On any exception: ROLLBACK
    - Session is always closed properly
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
            logger.debug("Transaction committed successfully")
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Database error, transaction rolled back: {e}")
            raise
        except Exception as e:
            await session.rollback()
            logger.warning(f"Error during request, transaction rolled back: {e}")
            raise
        finally:
            await session.close()


async def set_tenant_context(
    session: AsyncSession,
    organization_id: UUID,
    user_id: UUID | None = None,
) -> None:
    """Set RLS context variables for the current transaction.

    Only PostgreSQL understands ``SET LOCAL``; other dialects are skipped.
    SET does not take bind parameters, so the values are formatted in.
    Both are UUID instances validated upstream.
    """
    if session.get_bind().dialect.name != "postgresql":
        return

    await session.execute(
        text(f"SET LOCAL app.current_organization_id = '{organization_id}'")
    )
    if user_id:
        await session.execute(
            text(f"SET LOCAL app.current_user_id = '{user_id}'")
        )


async def init_db() -> None:
    """Initialize database (create tables if needed)."""
    from ..models import Base

    async with engine.begin() as conn:
        # In production, use migrations instead
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession, async_sessionmaker,
                                    create_async_engine)

from seatbot.core.config import make_async_db_url

log = logging.getLogger(__name__)

# One engine per process, shared by every SqlTableStore built without its own sessionmaker.
_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def init_engine(database_url: str) -> None:
    """Create the process engine for STORE_BACKEND=sql. Later calls keep the first engine."""
    global _engine, _sessionmaker
    if _engine is not None:
        log.debug("sql_engine_reused dialect=%s", _engine.dialect.name)
        return
    _engine = create_async_engine(make_async_db_url(database_url), pool_pre_ping=True)
    _sessionmaker = async_sessionmaker(_engine, expire_on_commit=False)
    log.info("sql_engine_ready dialect=%s", _engine.dialect.name)


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    if _sessionmaker is None:
        raise RuntimeError("SQL table store used before init_engine(); is STORE_BACKEND=sql configured?")
    return _sessionmaker


async def dispose_engine() -> None:
    global _engine, _sessionmaker
    if _engine is None:
        return
    dialect = _engine.dialect.name
    await _engine.dispose()
    _engine = None
    _sessionmaker = None
    log.info("sql_engine_disposed dialect=%s", dialect)

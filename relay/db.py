# Async SQLAlchemy engine used by the /db probe
import logging
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger(__name__)


def make_engine(url: str) -> AsyncEngine:
    return create_async_engine(url, future=True, echo=False)


async def list_tables(engine: AsyncEngine) -> List[str]:
    """Names of the tables visible through ``engine``."""
    async with engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())


async def describe_tables(engine: AsyncEngine) -> str:
    """Comma-joined table names, or an empty string if the database is unreachable."""
    try:
        tables = await list_tables(engine)
    except Exception:
        logger.exception("Database probe failed: url=%s", engine.url.render_as_string(hide_password=True))
        return ""
    return ",".join(tables)

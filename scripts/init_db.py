"""Ping the configured database and create any missing tables."""

import asyncio
import pathlib
import sys

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from sqlalchemy import inspect, text  # noqa: E402

from storefront.core.config import settings  # noqa: E402
from storefront.core.db import SessionLocal, create_all, engine  # noqa: E402


async def main():
    print("ENV:", settings.ENV)
    async with SessionLocal() as s:
        one = await s.execute(text("SELECT 1"))
        print("db-ping:", one.scalar())

    await create_all()
    async with engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    print("tables:", ", ".join(sorted(tables)))


if __name__ == "__main__":
    asyncio.run(main())

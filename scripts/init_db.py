#!/usr/bin/env python3
"""Create the crawl tables in the configured database."""

import asyncio

from crawler_api.db.base import create_tables, engine


async def init_db() -> None:
    await create_tables()
    await engine.dispose()
    print(f"Database initialized at {engine.url.render_as_string(hide_password=True)}")


if __name__ == "__main__":
    asyncio.run(init_db())

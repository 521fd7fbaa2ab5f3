#!/usr/bin/env python3
"""Seed the database with sample crawl sites."""

import asyncio

from sqlalchemy import select

from crawler_api.db.base import async_session_maker
from crawler_api.db.models import CrawlSite, LinkType
from crawler_api.services.sites import CrawlSiteService


SAMPLE_SITES = [
    {
        "link_type": LinkType.URL,
        "title": "Example Website",
        "crawl_link": "https://example.com",
    },
    {
        "link_type": LinkType.URL,
        "title": "Books to Scrape",
        "crawl_link": "https://books.toscrape.com",
    },
    {
        "link_type": LinkType.API,
        "title": "JSONPlaceholder Posts",
        "crawl_link": "https://jsonplaceholder.typicode.com/posts",
    },
]


async def seed_sites() -> None:
    """Seed the database with sample crawl sites."""
    async with async_session_maker() as session:
        service = CrawlSiteService(session)

        for site_data in SAMPLE_SITES:
            # Titles are not unique, so match on the link instead
            result = await session.execute(
                select(CrawlSite).where(CrawlSite.crawl_link == site_data["crawl_link"])
            )
            existing = result.scalar_one_or_none()

            if existing:
                print(f"Site '{site_data['crawl_link']}' already exists, skipping...")
                continue

            site = await service.initialize_crawl(**site_data)
            print(f"Created site: {site.title} ({site.id}, {site.slug})")

        await session.commit()
        print("\nSeeding complete!")


if __name__ == "__main__":
    asyncio.run(seed_sites())

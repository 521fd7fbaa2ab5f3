"""Crawl task registry: snowflake ids, unique slugs and category scraping."""

__version__ = "0.1.0"

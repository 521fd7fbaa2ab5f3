"""Database module."""

from crawler_api.db.base import get_db
from crawler_api.db.models import Category, CrawlSite, CrawlStatus, LinkType

__all__ = ["get_db", "Category", "CrawlSite", "CrawlStatus", "LinkType"]

"""Business logic services."""

from crawler_api.services.category_scraper import (
    ScrapedElement,
    ScrapeError,
    scrape_category_titles,
    scrape_first_category_title,
)
from crawler_api.services.sites import (
    CategoryNotFoundError,
    CategoryOwnershipError,
    CrawlSiteService,
    CrawlValidationError,
    SiteNotFoundError,
    SitesPage,
)

__all__ = [
    # Category scraper
    "ScrapedElement",
    "ScrapeError",
    "scrape_category_titles",
    "scrape_first_category_title",
    # Crawl sites
    "CategoryNotFoundError",
    "CategoryOwnershipError",
    "CrawlSiteService",
    "CrawlValidationError",
    "SiteNotFoundError",
    "SitesPage",
]

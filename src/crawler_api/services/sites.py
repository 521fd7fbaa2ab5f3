"""Crawl site service - creates, modifies and deletes crawl tasks and their categories.

Every new record gets a snowflake id and a slug resolved against the
database. The pre-check can race with concurrent writers, so a unique
constraint violation at flush time is reported as ``SlugConflictError``.

Usage:
    service = CrawlSiteService(db_session)
    site = await service.initialize_crawl(LinkType.URL, "Example Site", "https://example.com")
    categories = await service.crawl_categories(site.id, "nav a", "nav a")
"""

import logging
from dataclasses import dataclass, field
from urllib.parse import urlparse

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from crawler_api.config import Settings, get_settings
from crawler_api.db.models import Category, CrawlSite, CrawlStatus, LinkType
from crawler_api.db.slug_lookup import SITE_SCOPE, SqlSlugLookup, category_scope
from crawler_api.identity.errors import SlugConflictError, SlugExhaustedError
from crawler_api.identity.slugs import ExistsInScope, SlugScope, UniqueSlugResolver
from crawler_api.identity.snowflake import SnowflakeGenerator, get_generator
from crawler_api.services.category_scraper import (
    ElementFetcher,
    fetch_elements,
    scrape_category_titles,
    scrape_first_category_title,
)

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 255


class CrawlValidationError(Exception):
    """Raised when crawl task input is invalid."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class SiteNotFoundError(Exception):
    """Raised when a crawl site does not exist."""

    def __init__(self, key: str):
        self.key = key
        self.message = "Crawl site not found"
        super().__init__(self.message)


class CategoryNotFoundError(Exception):
    """Raised when a category does not exist."""

    def __init__(self, category_id: str):
        self.category_id = category_id
        self.message = "Category not found"
        super().__init__(self.message)


class CategoryOwnershipError(Exception):
    """Raised when a category is addressed through a site it does not belong to."""

    def __init__(self, category_id: str, site_id: str):
        self.category_id = category_id
        self.site_id = site_id
        self.message = "Category does not belong to this site"
        super().__init__(self.message)


@dataclass
class SitesPage:
    """One page of crawl sites."""

    items: list[CrawlSite] = field(default_factory=list)
    page: int = 1
    limit: int = 10
    total: int = 0


def validate_title(title: str | None) -> str:
    """Return the stripped title or raise ``CrawlValidationError``."""
    if title is None or not title.strip():
        raise CrawlValidationError("Title is required and must be a non-empty string.")
    title = title.strip()
    if len(title) > TITLE_MAX_LENGTH:
        raise CrawlValidationError(f"Title must not exceed {TITLE_MAX_LENGTH} characters.")
    return title


def validate_crawl_link(crawl_link: str | None, link_type: LinkType) -> str:
    """Return the stripped link if it is an absolute http(s) URL."""
    if crawl_link is None or not crawl_link.strip():
        raise CrawlValidationError("Crawl link is required and must be a non-empty string.")
    crawl_link = crawl_link.strip()

    parsed = urlparse(crawl_link)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise CrawlValidationError(
            f"Invalid {link_type.value} format. Please provide a valid URL."
        )
    return crawl_link


def validate_selector(value: str | None, name: str) -> str:
    if value is None or not value.strip():
        raise CrawlValidationError(f"{name} is required")
    return value.strip()


def _is_slug_violation(error: IntegrityError) -> bool:
    return "slug" in str(error.orig).lower()


class CrawlSiteService:
    """Service for crawl site and category lifecycle.

    Usage:
        service = CrawlSiteService(db_session)
        page = await service.get_sites(page=1, limit=10, link_type="URL")
    """

    def __init__(
        self,
        db_session: AsyncSession,
        generator: SnowflakeGenerator | None = None,
        fetch: ElementFetcher = fetch_elements,
        settings: Settings | None = None,
    ):
        """Initialize crawl site service.

        Args:
            db_session: Async database session.
            generator: Id generator (defaults to the process-wide one).
            fetch: Headless-browser element fetcher used for category crawls.
            settings: Application settings (defaults to cached settings).
        """
        self.session = db_session
        self.generator = generator or get_generator()
        self.fetch = fetch
        self.settings = settings or get_settings()
        self.slug_lookup = SqlSlugLookup(db_session)

    def _resolver(self, exists: ExistsInScope | None = None) -> UniqueSlugResolver:
        return UniqueSlugResolver(
            exists or self.slug_lookup,
            max_attempts=self.settings.slug_max_attempts,
            timeout=self.settings.slug_timeout_seconds,
        )

    async def _resolve_slug(
        self,
        text: str,
        scope: SlugScope,
        exclude_id: str | None = None,
    ) -> str:
        return await self._resolver().resolve(text, scope, exclude_id)

    async def _flush(self, slug: str) -> None:
        """Flush pending writes, translating a slug unique violation."""
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            if _is_slug_violation(e):
                logger.warning(f"Slug '{slug}' lost a race at commit time")
                raise SlugConflictError(slug) from e
            raise

    # --- Crawl sites ---

    async def initialize_crawl(
        self,
        link_type: LinkType,
        title: str,
        crawl_link: str,
    ) -> CrawlSite:
        """Create a crawl task with status INIT.

        Raises:
            CrawlValidationError: If title or link is invalid.
            SlugExhaustedError: If no free slug was found.
            SlugConflictError: If a concurrent write claimed the slug.
            ClockRegressedError: If the system clock moved backwards.
        """
        title = validate_title(title)
        crawl_link = validate_crawl_link(crawl_link, link_type)

        site_id = self.generator.next_id()
        slug = await self._resolve_slug(title, SITE_SCOPE)

        site = CrawlSite(
            id=site_id,
            link_type=link_type,
            title=title,
            crawl_link=crawl_link,
            slug=slug,
            status=CrawlStatus.INIT,
            categories=None,
            sub_categories=None,
        )
        self.session.add(site)
        await self._flush(slug)
        await self.session.refresh(site)

        logger.info(f"Initialized crawl {site.id} ({site.slug})")
        return site

    async def get_crawl_by_id(self, site_id: str) -> CrawlSite:
        result = await self.session.execute(select(CrawlSite).where(CrawlSite.id == site_id))
        site = result.scalar_one_or_none()
        if not site:
            raise SiteNotFoundError(site_id)
        return site

    async def get_crawl_by_slug(self, slug: str) -> CrawlSite:
        result = await self.session.execute(select(CrawlSite).where(CrawlSite.slug == slug))
        site = result.scalar_one_or_none()
        if not site:
            raise SiteNotFoundError(slug)
        return site

    async def list_crawls(self, page: int = 1, page_size: int = 10) -> SitesPage:
        """Crawl tasks of every link type, newest first, with clamped paging."""
        return await self.get_sites(page=page, limit=page_size)

    async def get_sites(
        self,
        page: int = 1,
        limit: int = 10,
        link_type: str | None = None,
    ) -> SitesPage:
        """Paginated sites, optionally filtered by link type ('URL' or 'API').

        Page is clamped to >= 1 and limit to 1..sites_page_size_max.
        """
        page = max(1, page)
        limit = min(max(1, limit), self.settings.sites_page_size_max)

        query = select(CrawlSite)
        count_query = select(func.count()).select_from(CrawlSite)
        if link_type:
            try:
                link_type_filter = LinkType(link_type)
            except ValueError:
                raise CrawlValidationError(
                    'Invalid filter value. Must be either "URL" or "API".'
                )
            query = query.where(CrawlSite.link_type == link_type_filter)
            count_query = count_query.where(CrawlSite.link_type == link_type_filter)

        total = (await self.session.execute(count_query)).scalar() or 0
        result = await self.session.execute(
            query.order_by(CrawlSite.created_at.desc(), CrawlSite.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )

        return SitesPage(
            items=list(result.scalars().all()),
            page=page,
            limit=limit,
            total=total,
        )

    async def get_site_detail(self, slug: str) -> tuple[CrawlSite, list[Category]]:
        """Site by slug plus its categories."""
        site = await self.get_crawl_by_slug(slug)
        result = await self.session.execute(
            select(Category)
            .where(Category.site_id == site.id)
            .order_by(Category.created_at, Category.id)
        )
        return site, list(result.scalars().all())

    async def update_crawl_status(self, site_id: str, status: CrawlStatus) -> CrawlSite:
        site = await self.get_crawl_by_id(site_id)
        site.status = status
        await self.session.flush()
        await self.session.refresh(site)
        logger.info(f"Crawl {site_id} status -> {status.value}")
        return site

    async def modify_crawl(
        self,
        site_id: str,
        link_type: LinkType | None = None,
        title: str | None = None,
        crawl_link: str | None = None,
    ) -> CrawlSite:
        """Partially update a crawl task, keeping its id.

        A new title gets a freshly resolved slug (the site's own record does not
        count as a collision). Any modification resets status to INIT and clears
        scraped category data.
        """
        site = await self.get_crawl_by_id(site_id)

        new_link_type = link_type or site.link_type
        new_crawl_link = validate_crawl_link(
            crawl_link if crawl_link is not None else site.crawl_link,
            new_link_type,
        )

        if title is not None:
            site.title = validate_title(title)
            site.slug = await self._resolve_slug(site.title, SITE_SCOPE, exclude_id=site_id)

        site.link_type = new_link_type
        site.crawl_link = new_crawl_link
        site.status = CrawlStatus.INIT
        site.categories = None
        site.sub_categories = None

        await self._flush(site.slug)
        await self.session.refresh(site)

        logger.info(f"Modified crawl {site.id} ({site.slug})")
        return site

    async def purge_crawl(self, site_id: str) -> str:
        """Delete a crawl task and its categories. Returns the deleted id."""
        site = await self.get_crawl_by_id(site_id)

        await self.session.execute(delete(Category).where(Category.site_id == site_id))
        await self.session.delete(site)
        await self.session.flush()

        logger.info(f"Purged crawl {site_id}")
        return site_id

    # --- Categories ---

    async def crawl_categories(
        self,
        site_id: str,
        title_selector: str,
        link_selector: str,
    ) -> list[Category]:
        """Scrape every category title on the site's page and store them.

        Titles whose slug cannot be resolved are skipped with a warning.

        Raises:
            ScrapeError: If the page yields no usable category.
            SlugExhaustedError: If no category could be given a slug.
        """
        site = await self.get_crawl_by_id(site_id)
        title_selector = validate_selector(title_selector, "title_selector")
        link_selector = validate_selector(link_selector, "link_selector")

        titles = await scrape_category_titles(site.crawl_link, title_selector, fetch=self.fetch)

        # Slugs claimed earlier in this batch are not in the database yet
        claimed: set[str] = set()

        async def exists(scope: SlugScope, slug: str, exclude_id: str | None = None) -> bool:
            return slug in claimed or await self.slug_lookup(scope, slug, exclude_id)

        resolver = self._resolver(exists)
        scope = category_scope(site_id)
        categories = []
        for title in titles:
            try:
                slug = await resolver.resolve(title, scope)
            except SlugExhaustedError:
                logger.warning(f"Failed to generate unique slug for '{title}'. Skipping...")
                continue
            claimed.add(slug)

            categories.append(
                Category(
                    id=self.generator.next_id(),
                    site_id=site_id,
                    title=title[:TITLE_MAX_LENGTH],
                    slug=slug,
                    title_selector=title_selector,
                    link_selector=link_selector,
                )
            )

        if not categories:
            raise SlugExhaustedError(site.title, resolver.max_attempts)

        self.session.add_all(categories)
        await self._flush(", ".join(c.slug for c in categories))
        for category in categories:
            await self.session.refresh(category)

        logger.info(f"Created {len(categories)} categories for crawl {site_id}")
        return categories

    async def update_category(
        self,
        site_id: str,
        category_id: str,
        title_selector: str,
        link_selector: str,
    ) -> Category:
        """Re-scrape one category with new selectors and update it in place."""
        site = await self.get_crawl_by_id(site_id)

        result = await self.session.execute(select(Category).where(Category.id == category_id))
        category = result.scalar_one_or_none()
        if not category:
            raise CategoryNotFoundError(category_id)
        if category.site_id != site_id:
            raise CategoryOwnershipError(category_id, site_id)

        title_selector = validate_selector(title_selector, "title_selector")
        link_selector = validate_selector(link_selector, "link_selector")

        title = await scrape_first_category_title(
            site.crawl_link, title_selector, fetch=self.fetch
        )
        slug = await self._resolve_slug(title, category_scope(site_id), exclude_id=category_id)

        category.title = title[:TITLE_MAX_LENGTH]
        category.slug = slug
        category.title_selector = title_selector
        category.link_selector = link_selector

        await self._flush(slug)
        await self.session.refresh(category)

        logger.info(f"Updated category {category_id} of crawl {site_id} ({slug})")
        return category

"""Tests for CrawlSiteService.

Tests cover:
- Crawl task creation, lookup, modification and deletion
- Input validation
- Sites listing with filter and pagination clamping
- Category scraping and re-scraping with a fake browser
- Slug exhaustion and commit-time slug conflicts
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from crawler_api.db.models import Category, CrawlSite, CrawlStatus, LinkType
from crawler_api.identity.errors import SlugConflictError, SlugExhaustedError
from crawler_api.identity.slugs import UniqueSlugResolver
from crawler_api.identity.snowflake import SnowflakeGenerator, decode
from crawler_api.services.category_scraper import ScrapedElement, ScrapeError
from crawler_api.services.sites import (
    CategoryNotFoundError,
    CategoryOwnershipError,
    CrawlSiteService,
    CrawlValidationError,
    SiteNotFoundError,
)


@pytest.fixture
def service(test_db, fake_fetch):
    return CrawlSiteService(
        test_db,
        generator=SnowflakeGenerator(datacenter_id=4, worker_id=5),
        fetch=fake_fetch,
    )


async def create_site(service, title="Example Site", link="https://example.com", link_type=LinkType.URL):
    return await service.initialize_crawl(link_type, title, link)


class TestInitializeCrawl:
    @pytest.mark.asyncio
    async def test_creates_site(self, service):
        site = await create_site(service)

        assert site.id.isdigit()
        assert site.slug.startswith("example-site-")
        assert site.status == CrawlStatus.INIT
        assert site.categories is None
        assert site.created_at is not None

    @pytest.mark.asyncio
    async def test_id_carries_node_identity(self, service):
        site = await create_site(service)

        parts = decode(site.id)
        assert parts.datacenter_id == 4
        assert parts.worker_id == 5

    @pytest.mark.asyncio
    async def test_same_title_gets_distinct_slugs(self, service):
        first = await create_site(service)
        second = await create_site(service)

        assert first.slug != second.slug
        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_title_is_stripped(self, service):
        site = await create_site(service, title="  Padded  ")

        assert site.title == "Padded"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title", ["", "   ", "x" * 256])
    async def test_invalid_title(self, service, title):
        with pytest.raises(CrawlValidationError):
            await create_site(service, title=title)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("link", ["", "example.com", "ftp://example.com", "https://"])
    async def test_invalid_link(self, service, link):
        with pytest.raises(CrawlValidationError, match="Invalid URL format|required"):
            await create_site(service, link=link)

    @pytest.mark.asyncio
    async def test_invalid_api_link_names_type(self, service):
        with pytest.raises(CrawlValidationError, match="Invalid API format"):
            await create_site(service, link="not a url", link_type=LinkType.API)

    @pytest.mark.asyncio
    async def test_slug_exhausted(self, service):
        """Every candidate colliding surfaces as exhaustion."""
        service.slug_lookup = AsyncMock(return_value=True)

        with pytest.raises(SlugExhaustedError) as exc_info:
            await create_site(service)

        assert exc_info.value.attempts == 5
        assert service.slug_lookup.await_count == 5

    @pytest.mark.asyncio
    async def test_commit_time_conflict(self, service, monkeypatch):
        """A slug taken between the check and the write is reported as a conflict."""
        taken_slug = (await create_site(service)).slug

        async def stale_resolve(text, scope, exclude_id=None):
            return taken_slug

        monkeypatch.setattr(service, "_resolve_slug", stale_resolve)

        with pytest.raises(SlugConflictError) as exc_info:
            await create_site(service, title="Another")

        assert exc_info.value.slug == taken_slug


class TestLookup:
    @pytest.mark.asyncio
    async def test_by_id_and_slug(self, service):
        site = await create_site(service)

        assert (await service.get_crawl_by_id(site.id)).slug == site.slug
        assert (await service.get_crawl_by_slug(site.slug)).id == site.id

    @pytest.mark.asyncio
    async def test_not_found(self, service):
        with pytest.raises(SiteNotFoundError):
            await service.get_crawl_by_id("123")
        with pytest.raises(SiteNotFoundError):
            await service.get_crawl_by_slug("missing")

    @pytest.mark.asyncio
    async def test_list_crawls(self, service):
        for i in range(3):
            await create_site(service, title=f"Site {i}")

        first = await service.list_crawls(page=1, page_size=2)
        assert len(first.items) == 2
        assert first.total == 3

        rest = await service.list_crawls(page=2, page_size=2)
        assert len(rest.items) == 1
        assert {s.id for s in first.items}.isdisjoint({s.id for s in rest.items})

    @pytest.mark.asyncio
    async def test_list_crawls_clamps_paging(self, service):
        await create_site(service)

        result = await service.list_crawls(page=-3, page_size=1000)

        assert (result.page, result.limit, result.total) == (1, 100, 1)

    @pytest.mark.asyncio
    async def test_get_sites_filter(self, service):
        await create_site(service, title="Web", link_type=LinkType.URL)
        await create_site(service, title="Api", link="https://api.example.com", link_type=LinkType.API)

        page = await service.get_sites(link_type="API")

        assert page.total == 1
        assert [s.title for s in page.items] == ["Api"]

    @pytest.mark.asyncio
    async def test_get_sites_invalid_filter(self, service):
        with pytest.raises(CrawlValidationError, match='"URL" or "API"'):
            await service.get_sites(link_type="FTP")

    @pytest.mark.asyncio
    async def test_get_sites_clamps_paging(self, service):
        await create_site(service)

        page = await service.get_sites(page=0, limit=1000)

        assert page.page == 1
        assert page.limit == 100
        assert page.total == 1


class TestModifyCrawl:
    @pytest.mark.asyncio
    async def test_new_title_new_slug(self, service):
        site = await create_site(service)
        await service.update_crawl_status(site.id, CrawlStatus.DONE)

        modified = await service.modify_crawl(site.id, title="Renamed Site")

        assert modified.id == site.id
        assert modified.slug.startswith("renamed-site-")
        assert modified.status == CrawlStatus.INIT

    @pytest.mark.asyncio
    async def test_link_only_keeps_slug(self, service):
        site = await create_site(service)
        slug = site.slug

        modified = await service.modify_crawl(site.id, crawl_link="https://example.org")

        assert modified.slug == slug
        assert modified.crawl_link == "https://example.org"

    @pytest.mark.asyncio
    async def test_invalid_link_rejected(self, service):
        site = await create_site(service)

        with pytest.raises(CrawlValidationError):
            await service.modify_crawl(site.id, crawl_link="nope")

    @pytest.mark.asyncio
    async def test_missing_site(self, service):
        with pytest.raises(SiteNotFoundError):
            await service.modify_crawl("999", title="Anything")


class TestPurgeCrawl:
    @pytest.mark.asyncio
    async def test_deletes_site_and_categories(self, service, test_db):
        site = await create_site(service)
        await service.crawl_categories(site.id, "nav a", "nav a")

        deleted_id = await service.purge_crawl(site.id)

        assert deleted_id == site.id
        remaining = await test_db.execute(select(Category).where(Category.site_id == site.id))
        assert remaining.scalars().all() == []
        assert (await test_db.execute(select(CrawlSite))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_missing_site(self, service):
        with pytest.raises(SiteNotFoundError):
            await service.purge_crawl("999")


class TestCrawlCategories:
    @pytest.mark.asyncio
    async def test_creates_valid_categories(self, service, fake_fetch):
        site = await create_site(service)

        categories = await service.crawl_categories(site.id, "nav a", "nav a.link")

        assert [c.title for c in categories] == ["Books", "Music & Audio"]
        assert categories[0].slug.startswith("books-")
        assert categories[1].slug.startswith("music-audio-")
        assert all(c.site_id == site.id for c in categories)
        assert categories[0].link_selector == "nav a.link"
        assert fake_fetch.calls == [("https://example.com", "nav a")]

    @pytest.mark.asyncio
    async def test_duplicate_titles_in_one_batch(self, test_db):
        """Titles repeated on one page still get distinct slugs."""
        async def fetch(url, selector):
            return [ScrapedElement("Books", "/a"), ScrapedElement("Books", "/b")]

        service = CrawlSiteService(test_db, fetch=fetch)
        site = await create_site(service)

        categories = await service.crawl_categories(site.id, "nav a", "nav a")

        assert len(categories) == 2
        assert categories[0].slug != categories[1].slug

    @pytest.mark.asyncio
    async def test_only_home_links(self, test_db):
        async def fetch(url, selector):
            return [ScrapedElement("Home", "/")]

        service = CrawlSiteService(test_db, fetch=fetch)
        site = await create_site(service)

        with pytest.raises(ScrapeError):
            await service.crawl_categories(site.id, "nav a", "nav a")

    @pytest.mark.asyncio
    async def test_all_slugs_exhausted(self, service):
        site = await create_site(service)
        service.slug_lookup = AsyncMock(return_value=True)

        with pytest.raises(SlugExhaustedError):
            await service.crawl_categories(site.id, "nav a", "nav a")

    @pytest.mark.asyncio
    async def test_blank_selector(self, service):
        site = await create_site(service)

        with pytest.raises(CrawlValidationError, match="title_selector"):
            await service.crawl_categories(site.id, "  ", "nav a")

    @pytest.mark.asyncio
    async def test_site_detail_lists_categories(self, service):
        site = await create_site(service)
        await service.crawl_categories(site.id, "nav a", "nav a")

        detail, categories = await service.get_site_detail(site.slug)

        assert detail.id == site.id
        assert {c.title for c in categories} == {"Books", "Music & Audio"}


class TestUpdateCategory:
    @pytest.mark.asyncio
    async def test_rescrapes_first_title(self, service):
        site = await create_site(service)
        categories = await service.crawl_categories(site.id, "nav a", "nav a")
        target = categories[1]

        updated = await service.update_category(site.id, target.id, ".menu a", ".menu a[href]")

        assert updated.id == target.id
        assert updated.title == "Books"
        assert updated.slug.startswith("books-")
        assert updated.title_selector == ".menu a"
        assert updated.link_selector == ".menu a[href]"

    @pytest.mark.asyncio
    async def test_category_not_found(self, service):
        site = await create_site(service)

        with pytest.raises(CategoryNotFoundError):
            await service.update_category(site.id, "404", "nav a", "nav a")

    @pytest.mark.asyncio
    async def test_category_of_other_site(self, service):
        owner = await create_site(service, title="Owner")
        other = await create_site(service, title="Other")
        categories = await service.crawl_categories(owner.id, "nav a", "nav a")

        with pytest.raises(CategoryOwnershipError):
            await service.update_category(other.id, categories[0].id, "nav a", "nav a")


class TestCategoryConflicts:
    """Commit-time slug conflicts within one site's categories."""

    @pytest.mark.asyncio
    async def test_batch_conflict(self, test_db, monkeypatch):
        async def fetch(url, selector):
            return [ScrapedElement("Books", "/a"), ScrapedElement("Books", "/b")]

        service = CrawlSiteService(test_db, fetch=fetch)
        site = await create_site(service)

        # A stale store view that hands out the same slug twice
        monkeypatch.setattr(
            service,
            "_resolver",
            lambda exists=None: UniqueSlugResolver(
                AsyncMock(return_value=False), disambiguator=lambda: "x"
            ),
        )

        with pytest.raises(SlugConflictError):
            await service.crawl_categories(site.id, "nav a", "nav a")

    @pytest.mark.asyncio
    async def test_update_category_conflict(self, service, monkeypatch):
        site = await create_site(service)
        categories = await service.crawl_categories(site.id, "nav a", "nav a")
        taken_slug = categories[0].slug
        target_id = categories[1].id

        async def stale_resolve(text, scope, exclude_id=None):
            return taken_slug

        monkeypatch.setattr(service, "_resolve_slug", stale_resolve)

        with pytest.raises(SlugConflictError) as exc_info:
            await service.update_category(site.id, target_id, ".menu a", ".menu a")

        assert exc_info.value.slug == taken_slug

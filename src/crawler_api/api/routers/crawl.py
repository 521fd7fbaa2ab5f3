"""Crawl task API endpoints.

Creates, modifies and deletes crawl sites, and scrapes category listings
from their pages. Ids are snowflake ids serialized as strings; slugs are
derived from titles and unique per scope.

Endpoints:
- POST /initialize-crawl - Create a crawl task
- GET /crawl/{id} - Get crawl task by id
- GET /crawl/slug/{slug} - Get crawl task by slug
- GET /crawls - List crawl tasks
- GET /sites - List sites with link type filter and pagination
- GET /site/{slug} - Site detail with categories
- PATCH /modify-crawl/{site_id} - Modify a crawl task
- PATCH /crawl/{site_id}/status - Update crawl task status
- DELETE /purge-crawl/{site_id} - Delete a crawl task
- POST /crawl/{site_id}/category - Scrape and store categories
- PATCH /crawl/{site_id}/{category_id} - Re-scrape a category with new selectors
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from crawler_api.db.base import get_db
from crawler_api.db.models import Category, CrawlStatus, LinkType
from crawler_api.services.sites import CrawlSiteService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["crawl"])


# --- Request/Response Models ---


class InitializeCrawlRequest(BaseModel):
    """Request to create a crawl task."""

    link_type: LinkType = Field(..., description="Type of crawl link: URL or API")
    title: str = Field(..., min_length=1, max_length=255, description="Title of the crawl task")
    crawl_link: str = Field(..., min_length=1, description="URL or API endpoint to crawl")


class ModifyCrawlRequest(BaseModel):
    """Partial update of a crawl task. Only provided fields change."""

    link_type: LinkType | None = None
    title: str | None = Field(None, min_length=1, max_length=255)
    crawl_link: str | None = Field(None, min_length=1)


class UpdateStatusRequest(BaseModel):
    """Request to change a crawl task's status."""

    status: CrawlStatus


class CategorySelectorsRequest(BaseModel):
    """CSS selectors used to scrape categories."""

    title_selector: str = Field(..., min_length=1, max_length=500)
    link_selector: str = Field(..., min_length=1, max_length=500)


class CrawlSiteData(BaseModel):
    """Crawl task fields returned by the API."""

    id: str
    link_type: LinkType
    title: str
    crawl_link: str
    slug: str
    status: CrawlStatus
    created_at: datetime

    class Config:
        from_attributes = True


class CrawlTaskResponse(BaseModel):
    """Response for create/modify of a crawl task."""

    success: bool = True
    task_id: str
    message: str
    data: CrawlSiteData


class CrawlDetailResponse(BaseModel):
    """Response for a single crawl task."""

    success: bool = True
    data: CrawlSiteData


class CrawlListPagination(BaseModel):
    page: int
    page_size: int
    total: int


class CrawlListResponse(BaseModel):
    """Response for listing crawl tasks."""

    success: bool = True
    data: list[CrawlSiteData]
    pagination: CrawlListPagination


class SiteListItem(BaseModel):
    """Site summary in the sites list."""

    id: str
    title: str
    slug: str
    link_type: LinkType
    status: CrawlStatus
    created_at: datetime

    class Config:
        from_attributes = True


class SitesPagination(BaseModel):
    page: int
    limit: int
    total: int


class SitesResponse(BaseModel):
    """Response for listing sites."""

    data: list[SiteListItem]
    pagination: SitesPagination


class CategoryData(BaseModel):
    """Category fields returned by the API."""

    id: str
    title: str
    slug: str
    title_selector: str
    link_selector: str

    class Config:
        from_attributes = True


class SiteDetailResponse(BaseModel):
    """Site detail with its categories."""

    id: str
    title: str
    slug: str
    link_type: LinkType
    status: CrawlStatus
    categories: list[CategoryData]


class PurgeCrawlResponse(BaseModel):
    success: bool = True
    deleted_id: str


class CreateCategoriesResponse(BaseModel):
    """Categories created by a crawl."""

    site_id: str
    total_created: int
    categories: list[CategoryData]


class UpdateCategoryResponse(BaseModel):
    site_id: str
    category: CategoryData


# --- Dependencies ---


async def get_site_service(db: AsyncSession = Depends(get_db)) -> CrawlSiteService:
    """Crawl site service bound to the request's session."""
    return CrawlSiteService(db)


# --- Endpoints ---


@router.post(
    "/initialize-crawl",
    response_model=CrawlTaskResponse,
    status_code=status.HTTP_201_CREATED,
)
async def initialize_crawl(
    request: InitializeCrawlRequest,
    service: CrawlSiteService = Depends(get_site_service),
) -> CrawlTaskResponse:
    """Create a crawl task with status INIT."""
    site = await service.initialize_crawl(
        link_type=request.link_type,
        title=request.title,
        crawl_link=request.crawl_link,
    )
    return CrawlTaskResponse(
        task_id=site.id,
        message="Crawl task initialized successfully",
        data=CrawlSiteData.model_validate(site),
    )


@router.get("/crawl/slug/{slug}", response_model=CrawlDetailResponse)
async def get_crawl_by_slug(
    slug: str,
    service: CrawlSiteService = Depends(get_site_service),
) -> CrawlDetailResponse:
    """Get a crawl task by slug."""
    site = await service.get_crawl_by_slug(slug)
    return CrawlDetailResponse(data=CrawlSiteData.model_validate(site))


@router.get("/crawl/{site_id}", response_model=CrawlDetailResponse)
async def get_crawl(
    site_id: str,
    service: CrawlSiteService = Depends(get_site_service),
) -> CrawlDetailResponse:
    """Get a crawl task by id."""
    site = await service.get_crawl_by_id(site_id)
    return CrawlDetailResponse(data=CrawlSiteData.model_validate(site))


@router.get("/crawls", response_model=CrawlListResponse)
async def list_crawls(
    page: int = Query(1, description="Page number (1-indexed)"),
    page_size: int = Query(10, description="Items per page"),
    service: CrawlSiteService = Depends(get_site_service),
) -> CrawlListResponse:
    """List crawl tasks, newest first."""
    result = await service.list_crawls(page=page, page_size=page_size)
    return CrawlListResponse(
        data=[CrawlSiteData.model_validate(s) for s in result.items],
        pagination=CrawlListPagination(
            page=result.page, page_size=result.limit, total=result.total
        ),
    )


@router.get("/sites", response_model=SitesResponse)
async def list_sites(
    page: int = Query(1, description="Page number (default: 1)"),
    limit: int = Query(10, description="Items per page (default: 10, max: 100)"),
    filter: str | None = Query(None, description="Filter by link_type ('URL' or 'API')"),
    service: CrawlSiteService = Depends(get_site_service),
) -> SitesResponse:
    """List sites with optional link type filter."""
    result = await service.get_sites(page=page, limit=limit, link_type=filter)
    return SitesResponse(
        data=[SiteListItem.model_validate(s) for s in result.items],
        pagination=SitesPagination(page=result.page, limit=result.limit, total=result.total),
    )


@router.get("/site/{slug}", response_model=SiteDetailResponse)
async def get_site_detail(
    slug: str,
    service: CrawlSiteService = Depends(get_site_service),
) -> SiteDetailResponse:
    """Site detail with all its categories."""
    site, categories = await service.get_site_detail(slug)
    return SiteDetailResponse(
        id=site.id,
        title=site.title,
        slug=site.slug,
        link_type=site.link_type,
        status=site.status,
        categories=[CategoryData.model_validate(c) for c in categories],
    )


@router.patch("/modify-crawl/{site_id}", response_model=CrawlTaskResponse)
async def modify_crawl(
    site_id: str,
    request: ModifyCrawlRequest,
    service: CrawlSiteService = Depends(get_site_service),
) -> CrawlTaskResponse:
    """Modify a crawl task. Status resets to INIT and scraped data is cleared."""
    site = await service.modify_crawl(
        site_id,
        link_type=request.link_type,
        title=request.title,
        crawl_link=request.crawl_link,
    )
    return CrawlTaskResponse(
        task_id=site.id,
        message="Crawl task modified successfully",
        data=CrawlSiteData.model_validate(site),
    )


@router.patch("/crawl/{site_id}/status", response_model=CrawlDetailResponse)
async def update_crawl_status(
    site_id: str,
    request: UpdateStatusRequest,
    service: CrawlSiteService = Depends(get_site_service),
) -> CrawlDetailResponse:
    """Update a crawl task's status."""
    site = await service.update_crawl_status(site_id, request.status)
    return CrawlDetailResponse(data=CrawlSiteData.model_validate(site))


@router.delete("/purge-crawl/{site_id}", response_model=PurgeCrawlResponse)
async def purge_crawl(
    site_id: str,
    service: CrawlSiteService = Depends(get_site_service),
) -> PurgeCrawlResponse:
    """Delete a crawl task together with its categories."""
    deleted_id = await service.purge_crawl(site_id)
    return PurgeCrawlResponse(deleted_id=deleted_id)


@router.post(
    "/crawl/{site_id}/category",
    response_model=CreateCategoriesResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_categories(
    site_id: str,
    request: CategorySelectorsRequest,
    service: CrawlSiteService = Depends(get_site_service),
) -> CreateCategoriesResponse:
    """Scrape the site's page and store every category found."""
    categories: list[Category] = await service.crawl_categories(
        site_id,
        title_selector=request.title_selector,
        link_selector=request.link_selector,
    )
    return CreateCategoriesResponse(
        site_id=site_id,
        total_created=len(categories),
        categories=[CategoryData.model_validate(c) for c in categories],
    )


@router.patch("/crawl/{site_id}/{category_id}", response_model=UpdateCategoryResponse)
async def update_category(
    site_id: str,
    category_id: str,
    request: CategorySelectorsRequest,
    service: CrawlSiteService = Depends(get_site_service),
) -> UpdateCategoryResponse:
    """Re-scrape a category with new selectors."""
    category = await service.update_category(
        site_id,
        category_id,
        title_selector=request.title_selector,
        link_selector=request.link_selector,
    )
    return UpdateCategoryResponse(
        site_id=site_id,
        category=CategoryData.model_validate(category),
    )

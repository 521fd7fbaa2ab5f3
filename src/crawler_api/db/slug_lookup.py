"""Slug existence checks against the database.

Implements the ``ExistsInScope`` lookup used by ``UniqueSlugResolver``.
Sites share one global namespace; categories are scoped to their site.
"""

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from crawler_api.db.models import Category, CrawlSite
from crawler_api.identity.slugs import SlugScope

SITE_SCOPE = SlugScope("site")


def category_scope(site_id: str) -> SlugScope:
    """Slug namespace for the categories of one site."""
    return SlugScope("category", parent_id=site_id)


class SqlSlugLookup:
    """Check slug existence using an open session.

    Reads committed state plus whatever the session has flushed; the unique
    constraints on both tables remain the real gate at commit time.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def __call__(
        self,
        scope: SlugScope,
        slug: str,
        exclude_id: str | None = None,
    ) -> bool:
        if scope.entity == "site":
            model = CrawlSite
            conditions = [CrawlSite.slug == slug]
        elif scope.entity == "category":
            if scope.parent_id is None:
                raise ValueError("Category slug scope requires a site id")
            model = Category
            conditions = [Category.slug == slug, Category.site_id == scope.parent_id]
        else:
            raise ValueError(f"Unknown slug scope: {scope.entity}")

        if exclude_id is not None:
            conditions.append(model.id != exclude_id)

        result = await self.session.execute(select(exists().where(*conditions)))
        return bool(result.scalar())

"""Database models for crawl sites and their categories."""

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from crawler_api.db.base import Base

# Snowflake ids are at most 20 decimal digits
ID_LENGTH = 20


class LinkType(str, enum.Enum):
    """Kind of target a crawl task points at."""

    URL = "URL"
    API = "API"


class CrawlStatus(str, enum.Enum):
    """Crawl task status enumeration."""

    INIT = "INIT"
    RUNNING = "RUNNING"
    DONE = "DONE"
    ERROR = "ERROR"


class CrawlSite(Base):
    """A crawl task: one target page plus the categories scraped from it."""

    __tablename__ = "crawl_site"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    link_type: Mapped[LinkType] = mapped_column(Enum(LinkType), index=True)
    title: Mapped[str] = mapped_column(String(255))
    crawl_link: Mapped[str] = mapped_column(Text)
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True)

    # Status
    status: Mapped[CrawlStatus] = mapped_column(
        Enum(CrawlStatus),
        default=CrawlStatus.INIT,
        index=True,
    )

    # Raw category data, populated by later crawl stages
    categories: Mapped[list[Any] | None] = mapped_column(JSON, nullable=True)
    sub_categories: Mapped[list[Any] | None] = mapped_column(JSON, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    category_items: Mapped[list["Category"]] = relationship(
        back_populates="site",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Category.created_at",
    )

    def __repr__(self) -> str:
        return f"<CrawlSite {self.slug}: {self.status.value}>"


class Category(Base):
    """Category scraped from a crawl site. Slugs are unique per site."""

    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("site_id", "slug", name="unique_slug_per_site"),)

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    site_id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("crawl_site.id", ondelete="CASCADE"),
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(255), index=True)
    title_selector: Mapped[str] = mapped_column(String(500))
    link_selector: Mapped[str] = mapped_column(String(500))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    site: Mapped["CrawlSite"] = relationship(back_populates="category_items")

    def __repr__(self) -> str:
        return f"<Category {self.slug} (site {self.site_id})>"

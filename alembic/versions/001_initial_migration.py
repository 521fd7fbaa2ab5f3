"""Initial migration - crawl sites and categories.

Revision ID: 001
Revises:
Create Date: 2025-11-03

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create crawl_site table
    op.create_table(
        "crawl_site",
        # Snowflake id, at most 20 decimal digits
        sa.Column("id", sa.String(20), primary_key=True),
        sa.Column("link_type", sa.Enum("URL", "API", name="linktype"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("crawl_link", sa.Text(), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column(
            "status",
            sa.Enum("INIT", "RUNNING", "DONE", "ERROR", name="crawlstatus"),
            nullable=False,
            server_default="INIT",
        ),
        # Populated by later crawl stages
        sa.Column("categories", sa.JSON(), nullable=True),
        sa.Column("sub_categories", sa.JSON(), nullable=True),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_crawl_site_slug", "crawl_site", ["slug"], unique=True)
    op.create_index("ix_crawl_site_status", "crawl_site", ["status"])
    op.create_index("ix_crawl_site_link_type", "crawl_site", ["link_type"])
    op.create_index("ix_crawl_site_created_at", "crawl_site", ["created_at"])

    # Create categories table
    op.create_table(
        "categories",
        sa.Column("id", sa.String(20), primary_key=True),
        sa.Column(
            "site_id",
            sa.String(20),
            sa.ForeignKey("crawl_site.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("title_selector", sa.String(500), nullable=False),
        sa.Column("link_selector", sa.String(500), nullable=False),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        # Slugs are unique per site
        sa.UniqueConstraint("site_id", "slug", name="unique_slug_per_site"),
    )
    op.create_index("ix_categories_site_id", "categories", ["site_id"])
    op.create_index("ix_categories_slug", "categories", ["slug"])


def downgrade() -> None:
    op.drop_table("categories")
    op.drop_table("crawl_site")
    sa.Enum(name="crawlstatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="linktype").drop(op.get_bind(), checkfirst=True)

# ruff: noqa: I001
"""Inventory catalog tables and default categories.

Revision ID: 0001_inv_catalog
Revises: None
Create Date: 2025-10-02
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_inv_catalog"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # inv_categories
    op.create_table(
        "inv_categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "uniq_inv_categories_name_lower",
        "inv_categories",
        [sa.text("lower(name)")],
        unique=True,
    )

    # inv_items
    op.create_table(
        "inv_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("inv_categories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("unit", sa.String(16), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "uniq_inv_items_category_name_lower",
        "inv_items",
        ["category_id", sa.text("lower(name)")],
        unique=True,
    )

    # Seed the starter catalog the branches counted against at launch.
    starter: tuple[tuple[str, tuple[tuple[str, str], ...]], ...] = (
        ("Dairy", (("Milk", "ml"), ("Low Fat Butter", "gm"), ("Cream", "ml"))),
        ("Poultry", (("Eggs", "pc"), ("Fish", "kg"), ("Chicken Breast", "kg"))),
        ("Fruit", (("Apple (Imp.)", "kg"), ("Banana", "pc"), ("Pomegranate", "kg"))),
    )
    categories = sa.table(
        "inv_categories",
        sa.column("id", sa.Integer()),
        sa.column("name", sa.String()),
        sa.column("sort_order", sa.Integer()),
    )
    items = sa.table(
        "inv_items",
        sa.column("category_id", sa.Integer()),
        sa.column("name", sa.String()),
        sa.column("unit", sa.String()),
        sa.column("sort_order", sa.Integer()),
    )
    op.bulk_insert(
        categories,
        [{"id": i + 1, "name": name, "sort_order": i} for i, (name, _) in enumerate(starter)],
    )
    op.bulk_insert(
        items,
        [
            {"category_id": i + 1, "name": item, "unit": unit, "sort_order": j}
            for i, (_, entries) in enumerate(starter)
            for j, (item, unit) in enumerate(entries)
        ],
    )
    # Explicit ids above bypass the sequence; move it past the seeded rows.
    if op.get_bind().dialect.name == "postgresql":
        op.execute(
            "SELECT setval(pg_get_serial_sequence('inv_categories', 'id'), "
            "(SELECT MAX(id) FROM inv_categories))"
        )


def downgrade() -> None:
    op.drop_index("uniq_inv_items_category_name_lower", table_name="inv_items")
    op.drop_table("inv_items")
    op.drop_index("uniq_inv_categories_name_lower", table_name="inv_categories")
    op.drop_table("inv_categories")

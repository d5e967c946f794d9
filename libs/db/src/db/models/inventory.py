from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


# ---------------------------
# Catalog: inv_categories
# ---------------------------


class InvCategory(Base):
    __tablename__ = "inv_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Uniqueness is case-insensitive via the lower(name) index below; the
    # stored value keeps the casing operators typed.
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    items: Mapped[list[InvItem]] = relationship(
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="InvItem.sort_order",
    )


# ---------------------------
# Catalog: inv_items
# ---------------------------


class InvItem(Base):
    __tablename__ = "inv_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("inv_categories.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    unit: Mapped[str] = mapped_column(String(16), nullable=False)
    # Position within the category; ledger rows follow this order.
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    category: Mapped[InvCategory] = relationship(back_populates="items")


# Case-insensitive uniqueness: category names globally, item names per category.
Index("uniq_inv_categories_name_lower", func.lower(InvCategory.name), unique=True)
Index(
    "uniq_inv_items_category_name_lower",
    InvItem.category_id,
    func.lower(InvItem.name),
    unique=True,
)


__all__ = [
    "Base",
    "InvCategory",
    "InvItem",
]

"""
Category model - self-referential tree (parent_id NULL = root).
"""

from datetime import datetime

from sqlalchemy import String, Text, DateTime, ForeignKey, Index, func, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression

from reader_api.db.base import Base


class Category(Base):
    """Category entity. Name and slug are unique among active rows only."""

    __tablename__ = "categories"
    __table_args__ = (
        Index(
            "uq_categories_name_active",
            "name",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
        Index(
            "uq_categories_slug_active",
            "slug",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    slug: Mapped[str] = mapped_column(String(120), nullable=False)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("categories.id"), nullable=True, index=True
    )
    sort_order: Mapped[int] = mapped_column(default=0, server_default="0", nullable=False)
    is_active: Mapped[bool] = mapped_column(
        default=True, server_default=expression.true(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, slug={self.slug})>"

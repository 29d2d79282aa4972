"""
Tag model - flat labels attached to articles through article_tags.
"""

from datetime import datetime

from sqlalchemy import String, Text, DateTime, Index, func, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression

from reader_api.db.base import Base


class Tag(Base):
    """Tag entity. A tag with no article_tags rows is "unused"."""

    __tablename__ = "tags"
    __table_args__ = (
        Index(
            "uq_tags_name_active",
            "name",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
        Index(
            "uq_tags_slug_active",
            "slug",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    slug: Mapped[str] = mapped_column(String(60), nullable=False)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(
        default=True, server_default=expression.true(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name={self.name})>"

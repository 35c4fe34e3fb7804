"""Commit model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ci_build_api.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from ci_build_api.models.repository import Repository


class Commit(Base, TimestampMixin):
    """The commit a request (and so a build) was triggered for."""

    __tablename__ = "commits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    repository_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("repositories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    commit: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    branch: Mapped[str | None] = mapped_column(String(255), index=True)
    message: Mapped[str | None] = mapped_column(Text)
    committed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    repository: Mapped[Repository] = relationship(back_populates="commits")

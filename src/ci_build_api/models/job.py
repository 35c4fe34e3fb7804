"""Job model: one cell of a build's matrix."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ci_build_api.models.base import Base, TimestampMixin
from ci_build_api.models.enums import BuildState

if TYPE_CHECKING:
    from ci_build_api.models.build import Build


class Job(Base, TimestampMixin):
    """A single test job expanded from a build's configuration."""

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    build_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("builds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    repository_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("repositories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # "<build number>.<position>"
    number: Mapped[str] = mapped_column(String(64), nullable=False)
    state: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=BuildState.CREATED.value,
        index=True,
    )
    config: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    allow_failure: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    result: Mapped[int | None] = mapped_column(Integer)
    queued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    build: Mapped[Build] = relationship(back_populates="matrix")

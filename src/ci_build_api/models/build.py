"""Build model: one execution attempt of a repository's CI configuration."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ci_build_api.models.base import Base, TimestampMixin
from ci_build_api.models.enums import BuildState, EventType
from ci_build_api.models.owner import OwnedMixin

if TYPE_CHECKING:
    from ci_build_api.models.commit import Commit
    from ci_build_api.models.job import Job
    from ci_build_api.models.repository import Repository
    from ci_build_api.models.request import Request


class Build(Base, TimestampMixin, OwnedMixin):
    """Groups a matrix of jobs and belongs to a request, commit and repository.

    The model only holds state. Numbering, config normalization, the state
    machine and queries live in ci_build_api.services.
    """

    __tablename__ = "builds"
    __table_args__ = (
        UniqueConstraint("repository_id", "number", name="uq_build_repository_number"),
        Index("ix_builds_repository_state", "repository_id", "state"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    repository_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("repositories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    commit_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("commits.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    request_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    owner_type: Mapped[str | None] = mapped_column(String(32))
    owner_id: Mapped[int | None] = mapped_column(Integer)

    # Per-repository sequence number, stored as a string
    number: Mapped[str] = mapped_column(String(32), nullable=False)
    state: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=BuildState.CREATED.value,
        index=True,
    )
    # Snapshot of the last finished state on the branch at creation time
    previous_state: Mapped[str | None] = mapped_column(String(32))
    event_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=EventType.PUSH.value,
        index=True,
    )
    config: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    result: Mapped[int | None] = mapped_column(Integer)
    previous_result: Mapped[int | None] = mapped_column(Integer)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # Seconds between started_at and finished_at
    duration: Mapped[int | None] = mapped_column(Integer)

    # Relationships
    repository: Mapped[Repository] = relationship(back_populates="builds")
    commit: Mapped[Commit] = relationship()
    request: Mapped[Request] = relationship()
    matrix: Mapped[list[Job]] = relationship(
        back_populates="build",
        cascade="all, delete-orphan",
        order_by="Job.id",
    )

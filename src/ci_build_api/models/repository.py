"""Repository model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ci_build_api.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from ci_build_api.models.build import Build
    from ci_build_api.models.commit import Commit


class Repository(Base, TimestampMixin):
    """A source repository that builds are run for.

    The last_build_* columns are denormalized from the most recently
    started or finished build so listings don't need to join builds.
    """

    __tablename__ = "repositories"
    __table_args__ = (
        UniqueConstraint("owner_name", "name", name="uq_repository_owner_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_name: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    last_build_id: Mapped[int | None] = mapped_column(Integer)
    last_build_number: Mapped[str | None] = mapped_column(String(32))
    last_build_state: Mapped[str | None] = mapped_column(String(32))
    last_build_result: Mapped[int | None] = mapped_column(Integer)
    last_build_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    last_build_finished_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    last_build_duration: Mapped[int | None] = mapped_column(Integer)

    # Relationships
    builds: Mapped[list[Build]] = relationship(
        back_populates="repository",
        cascade="all, delete-orphan",
    )
    commits: Mapped[list[Commit]] = relationship(
        back_populates="repository",
        cascade="all, delete-orphan",
    )

    @property
    def slug(self) -> str:
        return f"{self.owner_name}/{self.name}"

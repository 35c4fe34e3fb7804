"""Request model: an accepted repository event."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import JSON, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ci_build_api.models.base import Base, TimestampMixin
from ci_build_api.models.enums import EventType
from ci_build_api.models.owner import OwnedMixin

if TYPE_CHECKING:
    from ci_build_api.models.commit import Commit
    from ci_build_api.models.repository import Repository


class Request(Base, TimestampMixin, OwnedMixin):
    """A repository event (push or pull request) that was accepted for building.

    Payload parsing happens upstream; only the fields the build
    creation path needs are kept here.
    """

    __tablename__ = "requests"

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
    event_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=EventType.PUSH.value,
    )
    # Where the event came from (e.g. "github")
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="github")
    # Raw configuration as fetched for this request
    config: Mapped[dict | None] = mapped_column(JSON)

    owner_type: Mapped[str | None] = mapped_column(String(32))
    owner_id: Mapped[int | None] = mapped_column(Integer)

    # Relationships
    repository: Mapped[Repository] = relationship()
    commit: Mapped[Commit] = relationship()

    @property
    def is_pull_request(self) -> bool:
        return self.event_type == EventType.PULL_REQUEST.value

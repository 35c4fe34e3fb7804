"""Composable build queries.

BuildQuery wraps a SQLAlchemy select. Every filter returns a new query,
so scopes can be shared and extended freely. Conditions always combine
as a conjunction. Unless an order is set explicitly, results come back
newest first (descending id).
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import Integer, Select, cast, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ci_build_api.config import settings
from ci_build_api.models import FINISHED_STATES, Build, BuildState, Commit, EventType


def normalize_branches(branch: str | Iterable[str | None] | None) -> list[str]:
    """Turn a comma delimited string or a sequence into a list of branch names.

    Empty entries are dropped and duplicates removed, keeping first-seen order.
    """
    if branch is None:
        return []
    items = [branch] if isinstance(branch, str) else list(branch)
    names: list[str] = []
    for item in items:
        if item is None:
            continue
        for name in str(item).split(","):
            name = name.strip()
            if name and name not in names:
                names.append(name)
    return names


def _state_values(state: str | BuildState | Iterable[str | BuildState]) -> list[str]:
    items = [state] if isinstance(state, str) else list(state)
    return [BuildState(item).value for item in items]


class BuildQuery:
    """A chainable, immutable query over builds."""

    def __init__(
        self,
        statement: Select | None = None,
        per_page: int | None = None,
        ordered: bool = False,
    ):
        self.statement = statement if statement is not None else select(Build)
        self.per_page = per_page or settings.per_page
        self._ordered = ordered

    @classmethod
    def for_repository(cls, repository_id: int, per_page: int | None = None) -> BuildQuery:
        return cls(select(Build).where(Build.repository_id == repository_id), per_page)

    def _replace(self, statement: Select, ordered: bool | None = None) -> BuildQuery:
        return BuildQuery(
            statement,
            self.per_page,
            self._ordered if ordered is None else ordered,
        )

    def where(self, *criteria) -> BuildQuery:
        return self._replace(self.statement.where(*criteria))

    # --- Filters ---

    def finished(self) -> BuildQuery:
        return self.where(Build.state.in_([state.value for state in FINISHED_STATES]))

    def was_started(self) -> BuildQuery:
        return self.where(Build.state != BuildState.CREATED.value)

    def on_state(self, state) -> BuildQuery:
        if not state:
            return self
        return self.where(Build.state.in_(_state_values(state)))

    def pushes(self) -> BuildQuery:
        return self.where(Build.event_type == EventType.PUSH.value)

    def pull_requests(self) -> BuildQuery:
        return self.where(Build.event_type == EventType.PULL_REQUEST.value)

    def by_event_type(self, event_type: str | None) -> BuildQuery:
        if event_type == EventType.PULL_REQUEST.value:
            return self.pull_requests()
        return self.pushes()

    def on_branch(self, branch) -> BuildQuery:
        """Push builds whose commit is on one of the given branches."""
        query = self.pushes()
        names = normalize_branches(branch)
        if not names:
            return query
        return query.where(Build.commit.has(Commit.branch.in_(names)))

    # --- Ordering and paging ---

    def descending(self) -> BuildQuery:
        return self._replace(self.statement.order_by(Build.id.desc()), ordered=True)

    def paged(self, page: int | str | None = None) -> BuildQuery:
        page = int(page or 1)
        return self._replace(
            self.statement.limit(self.per_page).offset(self.per_page * (page - 1))
        )

    def recent(self, page: int | str | None = None) -> BuildQuery:
        return self.descending().paged(page)

    def older_than(self, build: Build | int | str | None = None) -> BuildQuery:
        query = self.recent()
        if build is None:
            return query
        number = build.number if isinstance(build, Build) else build
        return query.where(cast(Build.number, Integer) < int(number))

    # --- Execution ---

    def _final(self) -> Select:
        if self._ordered:
            return self.statement
        return self.statement.order_by(Build.id.desc())

    async def all(self, db: AsyncSession) -> list[Build]:
        result = await db.execute(self._final())
        return list(result.scalars().all())

    async def first(self, db: AsyncSession) -> Build | None:
        result = await db.execute(self._final().limit(1))
        return result.scalars().first()

    async def count(self, db: AsyncSession) -> int:
        subquery = self.statement.order_by(None).limit(None).offset(None).subquery()
        result = await db.execute(select(func.count()).select_from(subquery))
        return result.scalar() or 0

    async def previous(self, db: AsyncSession, build: Build) -> Build | None:
        """The most recent finished build in the same repository before ``build``."""
        return await (
            self.where(
                Build.repository_id == build.repository_id,
                Build.id < build.id,
            )
            .finished()
            .descending()
            .first(db)
        )

    async def last_state_on(
        self,
        db: AsyncSession,
        state=None,
        branch=None,
    ) -> BuildState | None:
        """State of the newest finished build matching state and branch, if any."""
        query = self.finished().descending()
        if state:
            query = query.on_state(state)
        if branch:
            query = query.on_branch(branch)
        build = await query.first(db)
        return BuildState(build.state) if build is not None else None

"""Per-repository build numbering.

Numbers are assigned as one plus the highest existing number. Two
creations for the same repository must not interleave between reading
the maximum and inserting the new build, so callers hold the
repository's lock for the whole creation:

- within a process, an asyncio lock per repository (RepositoryLocks)
- across processes, a row lock on the repository (SELECT ... FOR UPDATE,
  a no-op on SQLite)

The unique constraint on (repository_id, number) backs both up.
"""

import asyncio
import weakref

from sqlalchemy import Integer, cast, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ci_build_api.models import Build, Repository


class RepositoryLocks:
    """Hands out one asyncio.Lock per repository id.

    Locks are held weakly, so a repository's lock goes away once nobody
    is holding or waiting on it.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock(self, repository_id: int) -> asyncio.Lock:
        lock = self._locks.get(repository_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[repository_id] = lock
        return lock


repository_locks = RepositoryLocks()


async def lock_repository_row(db: AsyncSession, repository_id: int) -> Repository | None:
    """Take a row lock on the repository for the rest of the transaction."""
    result = await db.execute(
        select(Repository).where(Repository.id == repository_id).with_for_update()
    )
    return result.scalar_one_or_none()


async def next_build_number(db: AsyncSession, repository_id: int) -> int:
    """Next build number for a repository, 1 if it has no builds yet.

    Numbers are stored as strings but compared numerically.
    """
    result = await db.execute(
        select(func.max(cast(Build.number, Integer))).where(
            Build.repository_id == repository_id
        )
    )
    return (result.scalar() or 0) + 1

"""Build creation."""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ci_build_api.models import Build, BuildState, Commit, Repository, Request
from ci_build_api.services.config import normalize_config
from ci_build_api.services.matrix import DefaultMatrixExpander, MatrixExpander
from ci_build_api.services.numbering import (
    RepositoryLocks,
    lock_repository_row,
    next_build_number,
    repository_locks,
)
from ci_build_api.services.previous import last_finished_build, resolve_previous_state

logger = logging.getLogger(__name__)


async def create_build(
    db: AsyncSession,
    repository: Repository,
    commit: Commit,
    request: Request,
    raw_config: Any = None,
    *,
    expander: MatrixExpander | None = None,
    locks: RepositoryLocks | None = None,
) -> Build:
    """Create a numbered build for an accepted request and expand its matrix.

    The config is normalized before anything is written, so a bad config
    never leaves a half-created build behind. Numbering, previous state
    lookup, insert and matrix expansion all happen while holding the
    repository's lock and are committed together.

    Args:
        db: Database session
        repository: Repository the build belongs to
        commit: Commit being built; its branch scopes the previous state
        request: Accepted request; supplies event type and owner
        raw_config: Decoded config or config text (defaults to the request's)
        expander: Creates the job matrix (defaults to DefaultMatrixExpander)
        locks: Per-repository lock registry (defaults to the process-wide one)

    Returns:
        The build, in created state

    Raises:
        ConfigError: If the config cannot be normalized or expanded
    """
    config = normalize_config(raw_config if raw_config is not None else request.config)
    expander = expander or DefaultMatrixExpander()
    locks = locks or repository_locks

    async with locks.lock(repository.id):
        await lock_repository_row(db, repository.id)
        number = await next_build_number(db, repository.id)
        previous_state = await resolve_previous_state(db, repository.id, commit.branch)
        previous = await last_finished_build(db, repository.id, commit.branch)

        build = Build(
            repository_id=repository.id,
            commit_id=commit.id,
            request_id=request.id,
            owner=request.owner,
            number=str(number),
            state=BuildState.CREATED.value,
            previous_state=previous_state.value if previous_state else None,
            previous_result=previous.result if previous is not None else None,
            event_type=request.event_type,
            config=config,
        )
        db.add(build)
        try:
            await db.flush()
            await expander.expand(db, build, config)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    logger.info(
        "Created build %s #%s for %s (%s)",
        build.id,
        build.number,
        repository.slug,
        build.event_type,
    )
    return build

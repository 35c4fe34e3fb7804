"""Regression context: how a build compares to earlier builds on its branch."""

from sqlalchemy.ext.asyncio import AsyncSession

from ci_build_api.models import Build, BuildState, Commit
from ci_build_api.services.queries import BuildQuery


async def resolve_previous_state(
    db: AsyncSession, repository_id: int, branch: str | None
) -> BuildState | None:
    """State of the most recent finished build on the branch.

    Must run before the new build is added to the session, otherwise the
    build could resolve itself as its own predecessor.
    """
    return await BuildQuery.for_repository(repository_id).finished().last_state_on(
        db, branch=branch
    )


async def last_finished_build(
    db: AsyncSession, repository_id: int, branch: str | None
) -> Build | None:
    """Newest finished push build on the branch, any branch when it is None."""
    return await (
        BuildQuery.for_repository(repository_id)
        .on_branch(branch)
        .finished()
        .descending()
        .first(db)
    )


async def get_previous_result(db: AsyncSession, build: Build) -> int | None:
    """Result of the previous finished build on the same branch.

    Uses the value cached on the build at creation time. Builds created
    without one fall back to a query; the cached value is never
    refreshed, so it describes the branch as it was when the build was
    created.
    """
    if build.previous_result is not None:
        return build.previous_result

    commit = await db.get(Commit, build.commit_id)
    branch = commit.branch if commit is not None else None
    previous = await BuildQuery.for_repository(build.repository_id).on_branch(
        branch
    ).previous(db, build)
    return previous.result if previous is not None else None


async def previous_passed(db: AsyncSession, build: Build) -> bool:
    return await get_previous_result(db, build) == 0


def result_message(result: int | None, previous_result: int | None) -> str:
    """Human readable result, e.g. "Fixed" or "Still Failing"."""
    if result is None:
        return "Pending"
    if previous_result is None:
        return "Passed" if result == 0 else "Failed"
    if previous_result == 0:
        return "Passed" if result == 0 else "Broken"
    return "Fixed" if result == 0 else "Still Failing"

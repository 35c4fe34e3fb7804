"""Build and job state machine.

States move forward only:

    created -> started -> finished | passed | failed | errored | canceled
    created -> canceled

Finished states are terminal. The only way out is requeue, which puts a
build and its jobs back to created.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ci_build_api.exceptions import BuildNotRequeueableError, InvalidTransitionError
from ci_build_api.models import (
    FINISHED_STATES,
    Build,
    BuildState,
    EventType,
    Job,
    Repository,
)
from ci_build_api.models.base import utc_now
from ci_build_api.services.matrix import matrix_finished, matrix_result

logger = logging.getLogger(__name__)

TRANSITIONS: dict[BuildState, frozenset[BuildState]] = {
    BuildState.CREATED: frozenset({BuildState.STARTED, BuildState.CANCELED}),
    BuildState.STARTED: FINISHED_STATES,
}

# Result recorded for each outcome state
RESULTS: dict[BuildState, int] = {
    BuildState.PASSED: 0,
    BuildState.FAILED: 1,
    BuildState.ERRORED: 1,
}


def can_transition(current: str | BuildState, target: str | BuildState) -> bool:
    return BuildState(target) in TRANSITIONS.get(BuildState(current), frozenset())


def _transition(record: Build | Job, target: BuildState) -> None:
    if not can_transition(record.state, target):
        raise InvalidTransitionError(record.state, target.value, type(record).__name__)
    record.state = target.value


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _duration(started_at: datetime | None, finished_at: datetime | None) -> int | None:
    if started_at is None or finished_at is None:
        return None
    return int((_aware(finished_at) - _aware(started_at)).total_seconds())


# --- Predicates ---


def is_finished(record: Build | Job) -> bool:
    return BuildState(record.state) in FINISHED_STATES


def is_requeueable(build: Build) -> bool:
    return is_finished(build)


def is_pull_request(build: Build) -> bool:
    return build.event_type == EventType.PULL_REQUEST.value


async def load_matrix(db: AsyncSession, build: Build) -> list[Job]:
    result = await db.execute(
        select(Job).where(Job.build_id == build.id).order_by(Job.id)
    )
    return list(result.scalars().all())


async def is_cancelable(db: AsyncSession, build: Build) -> bool:
    """True once every job in the matrix has finished.

    The build's own state is not considered, so a build that already
    reached a terminal state can report True here.
    """
    return matrix_finished(await load_matrix(db, build))


# --- Denormalization ---


async def denormalize(db: AsyncSession, build: Build) -> None:
    """Copy the build's progress onto its repository's last_build_* columns."""
    repository = await db.get(Repository, build.repository_id)
    if repository is None:
        return
    repository.last_build_id = build.id
    repository.last_build_number = build.number
    repository.last_build_state = build.state
    repository.last_build_result = build.result
    repository.last_build_started_at = build.started_at
    repository.last_build_finished_at = build.finished_at
    repository.last_build_duration = build.duration


# --- Build events ---


async def _start_build(
    db: AsyncSession, build: Build, started_at: datetime | None = None
) -> None:
    _transition(build, BuildState.STARTED)
    build.started_at = started_at or utc_now()
    await denormalize(db, build)


async def _finish_build(
    db: AsyncSession,
    build: Build,
    state: str | BuildState | None = None,
    finished_at: datetime | None = None,
) -> None:
    if state is None:
        result = matrix_result(await load_matrix(db, build))
        if result is None:
            raise InvalidTransitionError(build.state, BuildState.FINISHED.value)
        target = BuildState.PASSED if result == 0 else BuildState.FAILED
    else:
        target = BuildState(state)
        result = RESULTS.get(target)

    _transition(build, target)
    build.result = result
    build.finished_at = finished_at or utc_now()
    build.duration = _duration(build.started_at, build.finished_at)
    await denormalize(db, build)


async def start_build(
    db: AsyncSession, build: Build, started_at: datetime | None = None
) -> Build:
    await _start_build(db, build, started_at)
    await db.commit()
    logger.info("Build %s #%s started", build.id, build.number)
    return build


async def finish_build(
    db: AsyncSession,
    build: Build,
    state: str | BuildState | None = None,
    finished_at: datetime | None = None,
) -> Build:
    """Move a started build to a terminal state.

    Without an explicit state, the outcome is derived from the matrix:
    passed when every required job passed, failed otherwise.

    Raises:
        InvalidTransitionError: If the build is not started, or no state
            was given and the matrix has not finished yet.
    """
    await _finish_build(db, build, state, finished_at)
    await db.commit()
    logger.info("Build %s #%s finished as %s", build.id, build.number, build.state)
    return build


async def cancel_build(db: AsyncSession, build: Build) -> Build:
    """Cancel a build along with every job that has not finished."""
    _transition(build, BuildState.CANCELED)
    now = utc_now()
    build.finished_at = now
    build.duration = _duration(build.started_at, now)
    for job in await load_matrix(db, build):
        if not is_finished(job):
            job.state = BuildState.CANCELED.value
            job.finished_at = now
    await denormalize(db, build)
    await db.commit()
    logger.info("Build %s #%s canceled", build.id, build.number)
    return build


# --- Requeue ---


def requeue_job(job: Job) -> None:
    job.state = BuildState.CREATED.value
    job.result = None
    job.queued_at = None
    job.started_at = None
    job.finished_at = None


async def requeue(db: AsyncSession, build: Build) -> list[Job]:
    """Restart a finished build and every job in its matrix.

    The build's reset is committed before any job is touched. Each job is
    then requeued and committed on its own; a failure part way through
    leaves the jobs before it requeued.

    Raises:
        BuildNotRequeueableError: If the build has not finished.
    """
    if not is_requeueable(build):
        raise BuildNotRequeueableError(build.id, build.state)

    build.state = BuildState.CREATED.value
    build.result = None
    build.duration = None
    build.finished_at = None
    await db.commit()

    jobs = await load_matrix(db, build)
    for job in jobs:
        requeue_job(job)
        await db.commit()

    logger.info("Build %s #%s requeued with %d jobs", build.id, build.number, len(jobs))
    return jobs


# --- Job events ---


async def start_job(
    db: AsyncSession, job: Job, started_at: datetime | None = None
) -> Job:
    """Start a job, starting its build too if it has not started yet."""
    _transition(job, BuildState.STARTED)
    job.started_at = started_at or utc_now()

    build = await db.get(Build, job.build_id)
    if build is not None and build.state == BuildState.CREATED.value:
        await _start_build(db, build, job.started_at)
    await db.commit()
    return job


async def finish_job(
    db: AsyncSession,
    job: Job,
    result: int,
    finished_at: datetime | None = None,
) -> Job:
    """Finish a job; the last job to finish also finishes the build."""
    target = BuildState.PASSED if result == 0 else BuildState.FAILED
    _transition(job, target)
    job.result = result
    job.finished_at = finished_at or utc_now()

    build = await db.get(Build, job.build_id)
    if build is not None and build.state == BuildState.STARTED.value:
        await db.flush()
        if matrix_finished(await load_matrix(db, build)):
            await _finish_build(db, build, finished_at=job.finished_at)
    await db.commit()
    return job

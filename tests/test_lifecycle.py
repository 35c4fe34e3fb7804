"""Tests for build creation, the state machine and requeue."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from ci_build_api.exceptions import (
    BuildNotRequeueableError,
    ConfigError,
    InvalidTransitionError,
)
from ci_build_api.models import (
    Build,
    BuildState,
    EventType,
    OwnerKind,
    OwnerRef,
    Repository,
)
from ci_build_api.services import (
    cancel_build,
    create_build,
    finish_build,
    finish_job,
    is_cancelable,
    is_pull_request,
    is_requeueable,
    requeue,
    start_build,
    start_job,
)
from ci_build_api.services import lifecycle
from ci_build_api.services.lifecycle import load_matrix
from ci_build_api.services.numbering import RepositoryLocks


@pytest.mark.asyncio
async def test_create_build(async_session: AsyncSession, repository, new_request):
    commit, request = await new_request(event_type=EventType.PULL_REQUEST)
    request.owner = OwnerRef(kind=OwnerKind.ORGANIZATION, id=7)

    build = await create_build(
        async_session,
        repository,
        commit,
        request,
        {"rvm": ["2.6", "2.7"], "env": {"global": "FOO=1", "matrix": ["A=1", "A=2"]}},
        locks=RepositoryLocks(),
    )

    assert build.number == "1"
    assert build.state == BuildState.CREATED.value
    assert build.event_type == "pull_request"
    assert build.previous_state is None
    assert build.owner == OwnerRef(kind=OwnerKind.ORGANIZATION, id=7)
    assert build.config["env"] == [["A=1", "FOO=1"], ["A=2", "FOO=1"]]
    assert is_pull_request(build)

    jobs = await load_matrix(async_session, build)
    assert [job.number for job in jobs] == ["1.1", "1.2", "1.3", "1.4"]
    assert all(job.state == BuildState.CREATED.value for job in jobs)


@pytest.mark.asyncio
async def test_create_build_defaults_to_request_config(
    async_session: AsyncSession, repository, new_request
):
    commit, request = await new_request(config={"env": {"FOO": "bar"}})
    build = await create_build(
        async_session, repository, commit, request, locks=RepositoryLocks()
    )
    assert build.config == {"env": "FOO=bar"}


@pytest.mark.asyncio
async def test_create_build_without_config_has_empty_mapping(
    async_session: AsyncSession, repository, new_request
):
    commit, request = await new_request()
    build = await create_build(
        async_session, repository, commit, request, locks=RepositoryLocks()
    )
    assert build.config == {}
    assert len(await load_matrix(async_session, build)) == 1


@pytest.mark.asyncio
async def test_bad_config_blocks_creation(
    async_session: AsyncSession, repository, new_request, make_build
):
    existing = await make_build()
    commit, request = await new_request()

    with pytest.raises(ConfigError):
        await create_build(
            async_session,
            repository,
            commit,
            request,
            {"env": {"global": [["nested"]]}},
            locks=RepositoryLocks(),
        )

    assert existing.number == "1"
    assert (await make_build()).number == "2"


@pytest.mark.asyncio
async def test_previous_state_is_snapshotted_at_creation(make_build):
    await make_build(state="failed", result=1, branch="master")
    await make_build(state="passed", result=0, branch="develop")

    build = await make_build(branch="master")
    assert build.previous_state == BuildState.FAILED.value
    assert build.previous_result == 1


def test_requeueable_exactly_when_finished():
    for state in BuildState:
        build = Build(state=state.value)
        expected = state not in (BuildState.CREATED, BuildState.STARTED)
        assert is_requeueable(build) is expected


@pytest.mark.asyncio
async def test_requeue_resets_build_and_requeues_each_job_once(
    async_session: AsyncSession, make_build, monkeypatch
):
    build = await make_build(config={"rvm": ["2.6", "2.7", "3.0"]})
    await start_build(async_session, build)
    for job in await load_matrix(async_session, build):
        await start_job(async_session, job)
        await finish_job(async_session, job, result=1)
    assert build.state == BuildState.FAILED.value
    assert build.duration is not None

    requeued = []
    original = lifecycle.requeue_job

    def counting_requeue_job(job):
        requeued.append(job.id)
        original(job)

    monkeypatch.setattr(lifecycle, "requeue_job", counting_requeue_job)

    jobs = await requeue(async_session, build)

    assert build.state == BuildState.CREATED.value
    assert build.result is None
    assert build.duration is None
    assert build.finished_at is None
    assert sorted(requeued) == sorted(job.id for job in jobs)
    assert len(requeued) == len(set(requeued)) == 3
    assert all(job.state == BuildState.CREATED.value for job in jobs)
    assert all(job.result is None for job in jobs)


@pytest.mark.asyncio
async def test_requeue_rejects_unfinished_build(async_session: AsyncSession, make_build):
    build = await make_build(state="started")
    with pytest.raises(BuildNotRequeueableError):
        await requeue(async_session, build)
    assert build.state == BuildState.STARTED.value


@pytest.mark.asyncio
async def test_transitions_only_move_forward(async_session: AsyncSession, make_build):
    build = await make_build()

    with pytest.raises(InvalidTransitionError):
        await finish_build(async_session, build, BuildState.PASSED)

    await start_build(async_session, build)
    with pytest.raises(InvalidTransitionError):
        await start_build(async_session, build)

    await finish_build(async_session, build, BuildState.ERRORED)
    assert build.result == 1
    with pytest.raises(InvalidTransitionError):
        await finish_build(async_session, build, BuildState.PASSED)


@pytest.mark.asyncio
async def test_finish_without_state_needs_finished_matrix(
    async_session: AsyncSession, make_build
):
    build = await make_build()
    await start_build(async_session, build)
    with pytest.raises(InvalidTransitionError):
        await finish_build(async_session, build)


@pytest.mark.asyncio
async def test_last_job_finishes_build(async_session: AsyncSession, make_build):
    build = await make_build(
        config={
            "rvm": ["2.7", "ruby-head"],
            "matrix": {"allow_failures": [{"rvm": "ruby-head"}]},
        }
    )
    stable, head = await load_matrix(async_session, build)

    await start_job(async_session, stable)
    assert build.state == BuildState.STARTED.value

    await finish_job(async_session, stable, result=0)
    assert build.state == BuildState.STARTED.value

    await start_job(async_session, head)
    await finish_job(async_session, head, result=1)
    assert build.state == BuildState.PASSED.value
    assert build.result == 0


@pytest.mark.asyncio
async def test_cancelable_once_all_jobs_finished(
    async_session: AsyncSession, make_build
):
    build = await make_build(config={"rvm": ["2.6", "2.7"]})
    first, second = await load_matrix(async_session, build)
    assert not await is_cancelable(async_session, build)

    await start_job(async_session, first)
    await finish_job(async_session, first, result=0)
    assert not await is_cancelable(async_session, build)

    await start_job(async_session, second)
    await finish_job(async_session, second, result=0)
    # reported regardless of the build having reached a terminal state
    assert build.state == BuildState.PASSED.value
    assert await is_cancelable(async_session, build)


@pytest.mark.asyncio
async def test_cancel_build_cancels_unfinished_jobs(
    async_session: AsyncSession, make_build
):
    build = await make_build(config={"rvm": ["2.6", "2.7"]})
    first, second = await load_matrix(async_session, build)
    await start_job(async_session, first)
    await finish_job(async_session, first, result=0)

    await cancel_build(async_session, build)

    assert build.state == BuildState.CANCELED.value
    assert first.state == BuildState.PASSED.value
    assert second.state == BuildState.CANCELED.value
    assert is_requeueable(build)


@pytest.mark.asyncio
async def test_progress_is_denormalized_to_repository(
    async_session: AsyncSession, repository: Repository, make_build
):
    build = await make_build()
    await start_build(async_session, build)
    assert repository.last_build_id == build.id
    assert repository.last_build_state == BuildState.STARTED.value

    await finish_build(async_session, build, BuildState.PASSED)
    assert repository.last_build_number == build.number
    assert repository.last_build_state == BuildState.PASSED.value
    assert repository.last_build_result == 0
    assert repository.last_build_finished_at is not None

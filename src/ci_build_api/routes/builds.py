"""Build routes: creation, listing, state changes and requeue."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ci_build_api.config import settings
from ci_build_api.db import get_db
from ci_build_api.exceptions import (
    BuildNotRequeueableError,
    ConfigError,
    InvalidTransitionError,
)
from ci_build_api.models import (
    Build,
    BuildState,
    Commit,
    EventType,
    OwnerRef,
    Repository,
    Request,
)
from ci_build_api.schemas import (
    BuildCreate,
    BuildFinish,
    BuildListResponse,
    BuildResponse,
    JobResponse,
)
from ci_build_api.services import (
    BuildQuery,
    cancel_build,
    create_build,
    finish_build,
    get_previous_result,
    is_pull_request,
    is_requeueable,
    load_stored_config,
    obfuscate_config,
    requeue,
    result_message,
    start_build,
)
from ci_build_api.services.lifecycle import load_matrix

router = APIRouter(tags=["builds"])


async def build_response(db: AsyncSession, build: Build) -> BuildResponse:
    """Build response with obfuscated config and regression context."""
    config = obfuscate_config(load_stored_config(build.config))
    commit = await db.get(Commit, build.commit_id)
    previous_result = await get_previous_result(db, build)

    return BuildResponse(
        id=build.id,
        repository_id=build.repository_id,
        commit_id=build.commit_id,
        request_id=build.request_id,
        number=build.number,
        state=build.state,
        previous_state=build.previous_state,
        event_type=build.event_type,
        config=config,
        result=build.result,
        started_at=build.started_at,
        finished_at=build.finished_at,
        duration=build.duration,
        created_at=build.created_at,
        branch=commit.branch if commit else None,
        previous_result=previous_result,
        result_message=result_message(build.result, previous_result),
        pull_request=is_pull_request(build),
        requeueable=is_requeueable(build),
    )


async def _get_build(db: AsyncSession, build_id: int) -> Build:
    build = await db.get(Build, build_id)
    if not build:
        raise HTTPException(status_code=404, detail="Build not found")
    return build


# --- Build CRUD ---


@router.post(
    "/repositories/{repository_id}/builds",
    response_model=BuildResponse,
    status_code=201,
)
async def create_repository_build(
    repository_id: int,
    payload: BuildCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a build for an accepted event.

    Records the commit and request, then numbers the build, resolves its
    previous state and expands its job matrix.
    """
    repository = await db.get(Repository, repository_id)
    if not repository:
        raise HTTPException(status_code=404, detail="Repository not found")

    commit = Commit(
        repository_id=repository.id,
        commit=payload.commit,
        branch=payload.branch,
        message=payload.message,
    )
    db.add(commit)
    await db.flush()

    request = Request(
        repository_id=repository.id,
        commit_id=commit.id,
        event_type=payload.event_type.value,
        source=payload.source,
        config=payload.config if isinstance(payload.config, dict) else None,
        owner=(
            OwnerRef(kind=payload.owner.kind, id=payload.owner.id)
            if payload.owner
            else None
        ),
    )
    db.add(request)
    await db.flush()

    try:
        build = await create_build(db, repository, commit, request, payload.config)
    except ConfigError as e:
        await db.rollback()
        raise HTTPException(status_code=422, detail=str(e)) from e

    return await build_response(db, build)


@router.get("/repositories/{repository_id}/builds", response_model=BuildListResponse)
async def list_repository_builds(
    repository_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    state: Annotated[list[BuildState] | None, Query()] = None,
    branch: str | None = None,
    event_type: EventType | None = None,
):
    """List a repository's builds, newest first.

    ``branch`` accepts a comma separated list and only matches push builds.
    """
    query = BuildQuery.for_repository(repository_id, per_page=settings.per_page)
    if state:
        query = query.on_state(state)
    if branch:
        query = query.on_branch(branch)
    if event_type:
        query = query.by_event_type(event_type.value)

    total = await query.count(db)
    builds = await query.recent(page).all(db)

    return BuildListResponse(
        builds=[await build_response(db, build) for build in builds],
        total=total,
        page=page,
        page_size=query.per_page,
    )


@router.get("/builds/{build_id}", response_model=BuildResponse)
async def get_build(
    build_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Get a build by ID. Secure env values in its config are masked."""
    build = await _get_build(db, build_id)
    return await build_response(db, build)


@router.get("/builds/{build_id}/previous", response_model=BuildResponse | None)
async def get_previous_build(
    build_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """The most recent finished build before this one, or null."""
    build = await _get_build(db, build_id)
    previous = await BuildQuery().previous(db, build)
    if previous is None:
        return None
    return await build_response(db, previous)


@router.get("/builds/{build_id}/jobs", response_model=list[JobResponse])
async def list_build_jobs(
    build_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """List the jobs in a build's matrix."""
    build = await _get_build(db, build_id)
    return await load_matrix(db, build)


# --- State changes ---


@router.post("/builds/{build_id}/start", response_model=BuildResponse)
async def start(
    build_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Mark a build as started."""
    build = await _get_build(db, build_id)
    try:
        await start_build(db, build)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return await build_response(db, build)


@router.post("/builds/{build_id}/finish", response_model=BuildResponse)
async def finish(
    build_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    payload: BuildFinish | None = None,
):
    """Mark a build as finished, with an explicit state or derived from its jobs."""
    build = await _get_build(db, build_id)
    state = payload.state if payload else None
    try:
        await finish_build(db, build, state)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return await build_response(db, build)


@router.post("/builds/{build_id}/cancel", response_model=BuildResponse)
async def cancel(
    build_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Cancel a build and its unfinished jobs."""
    build = await _get_build(db, build_id)
    try:
        await cancel_build(db, build)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return await build_response(db, build)


@router.post("/builds/{build_id}/requeue", response_model=BuildResponse)
async def requeue_build(
    build_id: int,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Restart a finished build and all of its jobs."""
    build = await _get_build(db, build_id)
    try:
        await requeue(db, build)
    except BuildNotRequeueableError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return await build_response(db, build)

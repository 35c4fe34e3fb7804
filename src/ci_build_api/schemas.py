"""Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from ci_build_api.models.enums import BuildState, EventType, OwnerKind


# --- Repository Schemas ---


class RepositoryCreate(BaseModel):
    """Schema for registering a repository."""

    owner_name: str
    name: str


class RepositoryResponse(BaseModel):
    """Schema for repository response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_name: str
    name: str
    slug: str
    created_at: datetime
    last_build_id: int | None
    last_build_number: str | None
    last_build_state: BuildState | None
    last_build_started_at: datetime | None
    last_build_finished_at: datetime | None
    last_build_duration: int | None


# --- Build Schemas ---


class OwnerSchema(BaseModel):
    """Account that triggered a request."""

    kind: OwnerKind
    id: int


class BuildCreate(BaseModel):
    """Schema for creating a build from an accepted request.

    ``config`` may be decoded data or the raw configuration text.
    """

    commit: str
    branch: str | None = None
    message: str | None = None
    event_type: EventType = EventType.PUSH
    source: str = "github"
    owner: OwnerSchema | None = None
    config: dict[str, Any] | str | None = None


class BuildResponse(BaseModel):
    """Schema for build response.

    ``config`` is the obfuscated config; secure env values are masked.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    repository_id: int
    commit_id: int
    request_id: int
    number: str
    state: BuildState
    previous_state: BuildState | None
    event_type: EventType
    config: dict[str, Any]
    result: int | None
    started_at: datetime | None
    finished_at: datetime | None
    duration: int | None
    created_at: datetime
    # Derived fields (not from model directly)
    branch: str | None = None
    previous_result: int | None = None
    result_message: str | None = None
    pull_request: bool = False
    requeueable: bool = False


class BuildListResponse(BaseModel):
    """Schema for paginated build list."""

    builds: list[BuildResponse]
    total: int
    page: int
    page_size: int


class BuildFinish(BaseModel):
    """Schema for finishing a build. Without a state it is derived from jobs."""

    state: BuildState | None = None


# --- Job Schemas ---


class JobResponse(BaseModel):
    """Schema for job response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    build_id: int
    number: str
    state: BuildState
    config: dict[str, Any]
    allow_failure: bool
    result: int | None
    started_at: datetime | None
    finished_at: datetime | None


class JobFinish(BaseModel):
    """Schema for finishing a job."""

    result: int

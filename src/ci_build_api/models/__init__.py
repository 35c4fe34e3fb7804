"""Database models."""

from ci_build_api.models.base import Base, TimestampMixin
from ci_build_api.models.build import Build
from ci_build_api.models.commit import Commit
from ci_build_api.models.enums import (
    FINISHED_STATES,
    BuildState,
    EventType,
    OwnerKind,
)
from ci_build_api.models.job import Job
from ci_build_api.models.owner import OwnerRef
from ci_build_api.models.repository import Repository
from ci_build_api.models.request import Request

__all__ = [
    "Base",
    "Build",
    "BuildState",
    "Commit",
    "EventType",
    "FINISHED_STATES",
    "Job",
    "OwnerKind",
    "OwnerRef",
    "Repository",
    "Request",
    "TimestampMixin",
]

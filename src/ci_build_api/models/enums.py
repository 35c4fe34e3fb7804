"""Enumeration types for database models."""

import enum


class BuildState(str, enum.Enum):
    """State of a build (and of its jobs)."""

    CREATED = "created"
    STARTED = "started"
    # Umbrella completion marker; the rest are outcome classifications
    FINISHED = "finished"
    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"
    CANCELED = "canceled"


FINISHED_STATES = frozenset(
    {
        BuildState.FINISHED,
        BuildState.PASSED,
        BuildState.FAILED,
        BuildState.ERRORED,
        BuildState.CANCELED,
    }
)


class EventType(str, enum.Enum):
    """Kind of repository event that triggered a build."""

    PUSH = "push"
    PULL_REQUEST = "pull_request"


class OwnerKind(str, enum.Enum):
    """Kind of account a build or request belongs to."""

    USER = "user"
    ORGANIZATION = "organization"

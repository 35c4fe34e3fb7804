"""Build core exceptions.

Errors raised by the service layer. Routes translate them into HTTP
responses; everything else lets them propagate.
"""


class CIBuildError(Exception):
    """Base exception for all build core errors."""

    pass


class ConfigError(CIBuildError):
    """Configuration could not be normalized.

    Raised when a config (or its env section) has a shape that cannot be
    coerced into canonical form.
    """

    pass


class InvalidTransitionError(CIBuildError):
    """A build or job was asked to move to a state it cannot reach.

    Attributes:
        current: State the record is in
        target: State that was requested
    """

    def __init__(self, current: str, target: str, kind: str = "Build"):
        self.current = current
        self.target = target
        super().__init__(f"{kind} cannot transition from {current!r} to {target!r}")


class BuildNotRequeueableError(CIBuildError):
    """Requeue was requested for a build that has not finished."""

    def __init__(self, build_id: int, state: str):
        self.build_id = build_id
        self.state = state
        super().__init__(
            f"Build {build_id} is in state {state!r} and cannot be requeued"
        )

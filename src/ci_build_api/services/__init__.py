"""Build core services."""

from ci_build_api.services.builds import create_build
from ci_build_api.services.config import (
    load_stored_config,
    normalize_config,
    obfuscate_config,
)
from ci_build_api.services.lifecycle import (
    cancel_build,
    finish_build,
    finish_job,
    is_cancelable,
    is_pull_request,
    is_requeueable,
    requeue,
    start_build,
    start_job,
)
from ci_build_api.services.numbering import next_build_number, repository_locks
from ci_build_api.services.previous import (
    get_previous_result,
    resolve_previous_state,
    result_message,
)
from ci_build_api.services.queries import BuildQuery

__all__ = [
    "BuildQuery",
    "cancel_build",
    "create_build",
    "finish_build",
    "finish_job",
    "get_previous_result",
    "is_cancelable",
    "is_pull_request",
    "is_requeueable",
    "load_stored_config",
    "next_build_number",
    "normalize_config",
    "obfuscate_config",
    "repository_locks",
    "requeue",
    "resolve_previous_state",
    "result_message",
    "start_build",
    "start_job",
]

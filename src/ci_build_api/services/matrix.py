"""Build matrix expansion and evaluation."""

import itertools
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from ci_build_api.exceptions import ConfigError
from ci_build_api.models import FINISHED_STATES, Build, BuildState, Job
from ci_build_api.services.config import render_env_cell

# Config keys that span the matrix, in expansion order
MATRIX_KEYS = (
    "rvm",
    "gemfile",
    "env",
    "jdk",
    "python",
    "node_js",
    "php",
    "perl",
    "scala",
    "go",
    "otp_release",
    "ghc",
    "compiler",
    "os",
)


class MatrixExpander(Protocol):
    """Creates the jobs for a freshly numbered build."""

    async def expand(
        self, db: AsyncSession, build: Build, config: dict
    ) -> list[Job]: ...


def _axis_values(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple)) else [value]


def _comparable(key: str, value: Any) -> Any:
    if key == "env":
        return render_env_cell(value)
    return value


def _matches(row: Mapping, entry: Mapping) -> bool:
    return all(
        key in row and _comparable(key, row[key]) == _comparable(key, value)
        for key, value in entry.items()
    )


def _matrix_settings(config: Mapping) -> dict[str, list]:
    settings = config.get("matrix") or {}
    if not isinstance(settings, Mapping):
        raise ConfigError(
            f"matrix must be a mapping of include/exclude/allow_failures, "
            f"got {type(settings).__name__}"
        )
    result = {}
    for key in ("include", "exclude", "allow_failures"):
        entries = settings.get(key) or []
        if isinstance(entries, Mapping):
            entries = [entries]
        if not all(isinstance(entry, Mapping) for entry in entries):
            raise ConfigError(f"matrix.{key} entries must be mappings")
        result[key] = list(entries)
    return result


def expand_matrix_rows(config: Mapping) -> list[tuple[dict, bool]]:
    """Expand a normalized config into (job config, allow_failure) rows.

    Every matrix axis present in the config is combined with every other
    one. ``matrix.exclude`` drops rows, ``matrix.include`` appends rows and
    ``matrix.allow_failures`` flags the rows it matches.
    """
    axes = [key for key in MATRIX_KEYS if config.get(key) not in (None, [])]
    rows = [
        dict(zip(axes, combination))
        for combination in itertools.product(
            *(_axis_values(config[key]) for key in axes)
        )
    ]

    settings = _matrix_settings(config)
    rows = [
        row
        for row in rows
        if not any(_matches(row, entry) for entry in settings["exclude"])
    ]
    rows.extend(dict(entry) for entry in settings["include"])

    base = {key: value for key, value in config.items() if key != "matrix"}
    return [
        (
            {**base, **row},
            any(_matches(row, entry) for entry in settings["allow_failures"]),
        )
        for row in rows
    ]


class DefaultMatrixExpander:
    """Creates one Job row per expanded matrix row."""

    async def expand(self, db: AsyncSession, build: Build, config: dict) -> list[Job]:
        jobs = [
            Job(
                build_id=build.id,
                repository_id=build.repository_id,
                number=f"{build.number}.{position}",
                state=BuildState.CREATED.value,
                config=job_config,
                allow_failure=allow_failure,
            )
            for position, (job_config, allow_failure) in enumerate(
                expand_matrix_rows(config), start=1
            )
        ]
        db.add_all(jobs)
        await db.flush()
        return jobs


def matrix_finished(jobs: Sequence[Job]) -> bool:
    """True when every job is finished. An empty matrix counts as finished."""
    return all(BuildState(job.state) in FINISHED_STATES for job in jobs)


def matrix_result(jobs: Sequence[Job]) -> int | None:
    """0 when every required job passed, 1 otherwise, None while unfinished."""
    if not matrix_finished(jobs):
        return None
    required = [job for job in jobs if not job.allow_failure]
    return 0 if all(job.result == 0 for job in required) else 1

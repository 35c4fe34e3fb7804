"""Configuration normalization, env expansion and obfuscation.

Everything in this module is pure: no database access and no shared
state, so it is safe to call from any number of tasks or threads.
"""

import logging
import re
from collections.abc import Callable, Mapping
from datetime import date, time
from typing import Any

import yaml

from ci_build_api.exceptions import ConfigError

logger = logging.getLogger(__name__)

SECURE_KEY = "secure"
SECURE_PLACEHOLDER = "[secure]"

_ENV_ASSIGNMENT = re.compile(r"(\S+?)=(\S+)")


# --- Keys ---


def _canonical_key(key: Any) -> Any:
    if isinstance(key, bytes):
        return key.decode("utf-8")
    if isinstance(key, (date, time)):
        return key.isoformat()
    return key


def canonicalize_keys(value: Any) -> Any:
    """Deep-copy a decoded config, converting keys to their canonical form.

    Mappings become plain dicts and tuples become lists. Dates and times,
    which YAML decodes from unquoted timestamps, become ISO 8601 strings,
    so the result round-trips through JSON unchanged.
    """
    if isinstance(value, Mapping):
        return {_canonical_key(k): canonicalize_keys(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [canonicalize_keys(v) for v in value]
    if isinstance(value, (date, time)):
        return value.isoformat()
    return value


# --- Env ---


def _to_list(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple)) else [value]


def _is_secure(fragment: Any) -> bool:
    return isinstance(fragment, Mapping) and SECURE_KEY in fragment


def _render_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _check_fragment(fragment: Any, where: str) -> Any:
    if isinstance(fragment, (list, tuple)):
        raise ConfigError(
            f"env {where} entries must be strings or mappings, got a nested list: "
            f"{fragment!r}"
        )
    return fragment


def render_env_fragment(fragment: Any) -> Any:
    """Render a mapping fragment as space separated KEY=value pairs.

    Secure fragments and anything that is not a mapping come back as is.
    """
    if not isinstance(fragment, Mapping) or SECURE_KEY in fragment:
        return fragment
    return " ".join(f"{key}={_render_value(value)}" for key, value in fragment.items())


def _render_cell(cell: Any) -> Any:
    if isinstance(cell, (list, tuple)):
        return [render_env_fragment(_check_fragment(f, "matrix")) for f in cell]
    return render_env_fragment(cell)


def expand_env(value: Any) -> Any:
    """Normalize an env declaration into its per-cell form.

    A mapping with a ``global`` or ``matrix`` key is split into shared and
    per-cell fragments. The shared fragments are appended to every cell
    (a broadcast, not a Cartesian product). Scalars are coerced to
    single-element lists first and None entries are dropped.

    Once split, the result is always a list of cells. Other values pass
    through, only mapping fragments get rendered to ``KEY=value`` strings.
    """
    shared = None
    cells = value
    if isinstance(value, Mapping) and ("global" in value or "matrix" in value):
        shared = value.get("global")
        cells = value.get("matrix")
        if shared is None:
            cells = [] if cells is None else _to_list(cells)

    if shared is not None:
        shared = [_check_fragment(f, "global") for f in _to_list(shared)]
        cells = [
            [f for f in _to_list(cell) + shared if f is not None]
            for cell in _to_list(cells)
        ]

    if isinstance(cells, (list, tuple)):
        return [_render_cell(cell) for cell in cells]
    return _render_cell(cells)


def obfuscate_env_vars(line: str) -> str:
    """Mask the values of KEY=value assignments in a decrypted env line."""
    if "=" not in line:
        return SECURE_PLACEHOLDER
    return _ENV_ASSIGNMENT.sub(lambda m: f"{m.group(1)}={SECURE_PLACEHOLDER}", line)


def _display_fragment(fragment: Any, decrypt: Callable[[str], str] | None) -> str:
    if _is_secure(fragment):
        if decrypt is None:
            return SECURE_PLACEHOLDER
        return obfuscate_env_vars(decrypt(fragment[SECURE_KEY]))
    return _render_value(render_env_fragment(fragment))


def render_env_cell(cell: Any, decrypt: Callable[[str], str] | None = None) -> str:
    """Join one env cell into a single display string, hiding secure values."""
    fragments = _render_cell(cell)
    if not isinstance(fragments, list):
        fragments = [fragments]
    return " ".join(
        _display_fragment(fragment, decrypt)
        for fragment in fragments
        if fragment is not None
    )


def render_env(value: Any, decrypt: Callable[[str], str] | None = None) -> list[str]:
    """Render a normalized env declaration as one display string per cell."""
    return [render_env_cell(cell, decrypt) for cell in _to_list(value)]


# --- Config ---


def parse_config_text(text: str | bytes) -> Any:
    """Parse configuration text. YAML is a superset of JSON, so both work."""
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Config is not valid YAML: {e}") from e


def normalize_config(raw: Any) -> dict:
    """Transform a decoded (or raw text) config into canonical form.

    None becomes an empty mapping. The result is a new dict; the input is
    never mutated. Normalizing an already normalized config is a no-op.

    Raises:
        ConfigError: If the config is not a mapping or its env section
            has a shape that cannot be coerced.
    """
    if raw is None:
        return {}
    if isinstance(raw, (str, bytes)):
        raw = parse_config_text(raw)
        if raw is None:
            return {}
    if not isinstance(raw, Mapping):
        raise ConfigError(f"Config must be a mapping, got {type(raw).__name__}")

    config = canonicalize_keys(raw)
    if config.get("env") is not None:
        config["env"] = expand_env(config["env"])
    return config


def load_stored_config(value: Any, warnings: list[str] | None = None) -> dict:
    """Read a persisted config, recovering from values stored as plain text.

    A stored config should always come back as structured data. When it
    surfaces as a string it is parsed again and a warning is logged and
    appended to ``warnings``. This never raises.
    """
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return dict(value)

    def warn(message: str, *args: Any) -> None:
        logger.warning(message, *args)
        if warnings is not None:
            warnings.append(message % args)

    if not isinstance(value, (str, bytes)):
        warn(
            "Stored config has unexpected type %s, using an empty config",
            type(value).__name__,
        )
        return {}

    warn("Stored config is not structured data, re-parsing %d characters", len(value))
    try:
        parsed = parse_config_text(value)
    except ConfigError as e:
        warn("Could not re-parse stored config: %s", e)
        return {}
    if parsed is None:
        return {}
    if not isinstance(parsed, Mapping):
        warn("Re-parsed stored config is a %s, not a mapping", type(parsed).__name__)
        return {}

    try:
        return normalize_config(parsed)
    except ConfigError as e:
        warn("Re-parsed stored config could not be normalized: %s", e)
        return canonicalize_keys(parsed)


def obfuscate_config(
    config: Mapping, decrypt: Callable[[str], str] | None = None
) -> dict:
    """Copy of a normalized config that is safe to display.

    Each env cell is joined into a single string with secure values
    replaced by ``[secure]``. When ``decrypt`` is given, secure payloads
    are decrypted and shown as ``KEY=[secure]``.
    """
    config = dict(config)
    if config.get("env") is None:
        return config
    config["env"] = render_env(config["env"], decrypt)
    return config

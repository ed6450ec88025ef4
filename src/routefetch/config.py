"""Configuration resolution for client transport settings.

:func:`resolve_init` merges the sources that can shape a
:class:`~routefetch.models.RequestInit`, highest precedence first:

1. Fields explicitly set on the ``RequestInit`` passed by the caller
2. Environment variables (``ROUTEFETCH_TIMEOUT``,
   ``ROUTEFETCH_VERIFY_SSL``, ``ROUTEFETCH_FOLLOW_REDIRECTS``)
3. Project config (``./routefetch.json``, key ``"init"``)
4. Model defaults
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from routefetch.exceptions import ConfigError
from routefetch.models import RequestInit

_PROJECT_CONFIG_FILENAME = "routefetch.json"

_ENV_FIELDS = {
    "ROUTEFETCH_TIMEOUT": "timeout",
    "ROUTEFETCH_VERIFY_SSL": "verify_ssl",
    "ROUTEFETCH_FOLLOW_REDIRECTS": "follow_redirects",
}

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def env_flag(name: str, default: bool = False) -> bool:
    """Read a boolean flag from the environment.

    Raises:
        ConfigError: If the variable is set to something that is not a
            recognised boolean spelling.
    """
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigError(f"Invalid boolean for {name}: {raw!r}")


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./routefetch.json``.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for var, field in _ENV_FIELDS.items():
        raw = os.environ.get(var)
        if raw is None or raw == "":
            continue
        if field == "timeout":
            overrides[field] = None if raw.lower() == "none" else raw
        else:
            overrides[field] = env_flag(var)
    return overrides


def resolve_init(explicit: Optional[RequestInit] = None) -> RequestInit:
    """Resolve the effective :class:`RequestInit` through the precedence chain.

    Args:
        explicit: Settings supplied by the caller.  Only fields in its
            ``model_fields_set`` take precedence; untouched defaults are
            filled from lower layers.

    Raises:
        ConfigError: If the project file or an environment value fails
            validation.
    """
    merged: dict[str, Any] = {}

    project = load_project_config()
    if project is not None:
        project_init = project.get("init") or {}
        if not isinstance(project_init, dict):
            raise ConfigError("Project config key 'init' must be an object")
        merged.update(project_init)

    merged.update(_env_overrides())

    if explicit is not None:
        merged.update(
            {name: getattr(explicit, name) for name in explicit.model_fields_set}
        )

    try:
        return RequestInit.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid request settings: {exc}") from exc

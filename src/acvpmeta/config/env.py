"""Read settings from the process environment."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import ConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence


def optional_env_var(name: str, default: str | None = None) -> str | None:
    """Stripped value of ``name``; blank counts as unset."""

    value = (os.getenv(name) or "").strip()
    return value or default


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    found = {name: optional_env_var(name) for name in names}
    missing = sorted(name for name, value in found.items() if value is None)
    if missing:
        raise MissingConfigurationError(f"Missing configuration for: {', '.join(missing)}")
    return {name: value for name, value in found.items() if value is not None}


def env_choice(name: str, choices: Sequence[str], *, default: str) -> str:
    value = (optional_env_var(name) or default).lower()
    if value not in choices:
        raise ConfigurationError(
            f"{name} must be one of {', '.join(choices)}, got {value!r}"
        )
    return value

"""Loading of the bot's YAML configuration with ``${ENV}`` expansion."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_ENV_REFERENCE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigError(ValueError):
    """Raised when the configuration cannot be used to start the bot."""


def unresolved_env_vars(text: str) -> list[str]:
    """Names of ``${VAR}`` references left in ``text`` after expansion."""

    return sorted(set(_ENV_REFERENCE.findall(text)))


def load_config(
    path: str | os.PathLike[str], *, env_file: str | os.PathLike[str] | None = ".env"
) -> dict[str, Any]:
    """Load a YAML configuration file and expand environment variables.

    ``env_file`` is read first with python-dotenv so that secrets such as
    ``TELEGRAM_BOT_TOKEN`` can live outside the YAML file. Variables already
    present in the process environment win.

    Raises:
        ConfigError: the file is missing, is not valid YAML, or its root is
            not a mapping.
    """

    if env_file is not None:
        load_dotenv(env_file, override=False)

    config_path = Path(path)
    try:
        raw_text = config_path.read_text()
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {config_path}") from None

    expanded = os.path.expandvars(raw_text)
    missing = unresolved_env_vars(expanded)
    if missing:
        logger.warning("Unset environment variables in %s: %s", config_path, ", ".join(missing))

    try:
        data = yaml.safe_load(expanded) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from None
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config root must be a mapping, got {type(data)!r}")
    return dict(data)


__all__ = ["ConfigError", "load_config", "unresolved_env_vars"]

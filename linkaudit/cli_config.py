"""Configuration loading helpers for CLI entrypoints."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Mapping, Optional

LOGGER = logging.getLogger(__name__)

ENV_FILE_VARIABLE = "LINKAUDIT_ENV_FILE"


def user_config_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """``$XDG_CONFIG_HOME/linkaudit``, else ``~/.config/linkaudit``."""
    environ = os.environ if environ is None else environ
    base = environ.get("XDG_CONFIG_HOME")
    root = Path(base).expanduser() if base else Path.home() / ".config"
    return root / "linkaudit"


CONFIG_DIR = user_config_dir()
CONFIG_ENV_FILE = CONFIG_DIR / ".env"


def load_config(
    *,
    config_dir: Path,
    config_env_file: Path,
    cwd: Path,
    load_env: Callable[[Path], bool],
    copy_file: Callable[[Path, Path], str],
    env_file: Optional[str] = None,
) -> Optional[Path]:
    """Load .env configuration with fallback to user config directory.

    Search order:
    1. ``env_file`` (the CLI passes ``$LINKAUDIT_ENV_FILE``)
    2. .env in current working directory
    3. the user config directory (``$XDG_CONFIG_HOME/linkaudit/.env``)

    If none exists, the packaged .env.example is copied to the user config
    directory as a starting point. An ``env_file`` that does not exist is
    reported and skipped.

    Returns:
        The file that was loaded, or None.
    """
    if env_file:
        explicit = Path(env_file).expanduser()
        if explicit.is_file():
            load_env(explicit)
            return explicit
        LOGGER.warning("%s=%s does not exist; using the default search order.", ENV_FILE_VARIABLE, env_file)

    local_env = cwd / ".env"
    if local_env.is_file():
        load_env(local_env)
        return local_env

    if config_env_file.is_file():
        load_env(config_env_file)
        return config_env_file

    package_dir = Path(__file__).parent.parent
    example_file = package_dir / ".env.example"
    if not example_file.is_file():
        return None

    try:
        config_dir.mkdir(parents=True, exist_ok=True)
        copy_file(example_file, config_env_file)
    except OSError as exc:
        LOGGER.debug("Could not create %s: %s", config_env_file, exc)
        return None
    LOGGER.info(
        "Created config file at %s from .env.example. "
        "Edit it to change crawl defaults and the data directory.",
        config_env_file,
    )
    load_env(config_env_file)
    return config_env_file

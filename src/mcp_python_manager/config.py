"""Settings and well-known locations."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import appdirs

APP_NAME = "mcp-python-manager"
ENV_PREFIX = "MCP_PYTHON_MANAGER_"

DEFAULT_PYTHON_VERSION = "3.9.1"
PYENV_REPO_URL = "https://github.com/pyenv/pyenv.git"
PYENV_WIN_INSTALLER_URL = (
    "https://raw.githubusercontent.com/pyenv-win/pyenv-win/master/"
    "pyenv-win/install-pyenv-win.ps1"
)
DEFAULT_KILL_GRACE = 5.0

# Printed by the interpreter to report where it lives
SELF_REPORT_CODE = "import sys; print(sys.executable)"


@dataclass(frozen=True)
class Settings:
    """Resolved configuration"""

    default_version: str
    pyenv_root: Path
    pyenv_repo: str
    pyenv_win_installer: str
    pyenv_win_home: Path
    kill_grace: float
    log_level: str


def _float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be a number, got {raw!r}") from e
    if value < 0:
        raise ValueError(f"{key} must not be negative, got {raw!r}")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from environment variables, falling back to defaults."""
    environ = os.environ if environ is None else environ

    pyenv_root = environ.get("PYENV_ROOT") or str(
        Path(appdirs.user_data_dir(APP_NAME)) / "pyenv"
    )
    pyenv_win_home = environ.get("PYENV_HOME") or str(
        Path.home() / ".pyenv" / "pyenv-win"
    )

    return Settings(
        default_version=environ.get(f"{ENV_PREFIX}DEFAULT_VERSION")
        or DEFAULT_PYTHON_VERSION,
        pyenv_root=Path(pyenv_root).expanduser(),
        pyenv_repo=environ.get(f"{ENV_PREFIX}PYENV_REPO") or PYENV_REPO_URL,
        pyenv_win_installer=environ.get(f"{ENV_PREFIX}PYENV_WIN_INSTALLER")
        or PYENV_WIN_INSTALLER_URL,
        pyenv_win_home=Path(pyenv_win_home).expanduser(),
        kill_grace=_float(environ, f"{ENV_PREFIX}KILL_GRACE", DEFAULT_KILL_GRACE),
        log_level=(environ.get(f"{ENV_PREFIX}LOG_LEVEL") or "INFO").upper(),
    )

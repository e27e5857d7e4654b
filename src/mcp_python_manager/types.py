"""Core type definitions"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional, Sequence

Platform = Enum("Platform", ["POSIX", "WINDOWS"])


class InstallStep(Enum):
    """States of the toolchain installer."""

    START = "start"
    PROBE_MANAGER = "probe_manager"
    INSTALL_MANAGER = "install_manager"
    RESOLVE_EXISTING = "resolve_existing"
    INSTALL_VERSION = "install_version"
    ACTIVATE_VERSION = "activate_version"
    LOCATE_PATH = "locate_path"
    FOUND = "found"
    INSTALLED = "installed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (InstallStep.FOUND, InstallStep.INSTALLED, InstallStep.FAILED)


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one external process run.

    ``exit_code`` is -1 when no exit code was observed. When ``aborted`` is
    true the run ended because of cancellation and ``exit_code`` is not a
    status reported by the process.
    """

    stdout: str
    stderr: str
    exit_code: int
    aborted: bool = False

    @property
    def ok(self) -> bool:
        return not self.aborted and self.exit_code == 0


@dataclass(frozen=True)
class RunSpec:
    """Input for one command execution"""

    executable: str
    args: Sequence[str] = ()
    stream: bool = False
    cancel: Optional[asyncio.Event] = None
    cwd: Optional[Path] = None
    env: Optional[Mapping[str, str]] = None

    @property
    def argv(self) -> list[str]:
        return [str(self.executable), *(str(a) for a in self.args)]


@dataclass
class ToolchainState:
    """State carried across a single ensure-installed attempt"""

    version: str
    platform: Optional[Platform] = None
    manager_present: bool = False
    venv_hint: Optional[Path] = None
    python_path: Optional[Path] = None
    env: Optional[dict[str, str]] = None
    history: list[InstallStep] = field(default_factory=list)


@dataclass(frozen=True)
class InstallOutcome:
    """Terminal result of the toolchain installer (FOUND or INSTALLED)"""

    step: InstallStep
    python_path: Path
    version: str
    history: tuple[InstallStep, ...] = ()

    @property
    def installed(self) -> bool:
        return self.step == InstallStep.INSTALLED


@dataclass(frozen=True)
class Session:
    """Interpreter selection threaded through facade calls"""

    python_path: str = "python"
    python_version: Optional[str] = None
    venv_path: Optional[Path] = None
    venv_python_path: Optional[Path] = None

    def python_for(self, override: Optional[str] = None) -> str:
        """Pick the interpreter: explicit override, then venv, then base."""
        if override:
            return str(override)
        if self.venv_python_path:
            return str(self.venv_python_path)
        return self.python_path

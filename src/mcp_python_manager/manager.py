"""Facade over the installer, runner, venv and pip collaborators.

State is explicit: calls that change which interpreter should be used return
a new :class:`Session`, and every other call takes the session to use.
"""

import asyncio
import dataclasses
import os
from pathlib import Path
from typing import Iterable, Optional, Sequence

from mcp_python_manager.config import Settings, load_settings
from mcp_python_manager.environments.packages import PipManager
from mcp_python_manager.environments.venv import VenvManager
from mcp_python_manager.execution.runner import Runner, run_command
from mcp_python_manager.logging import get_logger
from mcp_python_manager.platforms import PlatformStrategy, get_platform_strategy
from mcp_python_manager.toolchain.installer import ToolchainInstaller
from mcp_python_manager.toolchain.pyenv import Pyenv
from mcp_python_manager.types import ExecutionResult, RunSpec, Session

logger = get_logger(__name__)


class PythonManager:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        strategy: Optional[PlatformStrategy] = None,
        runner: Optional[Runner] = None,
        cwd: Optional[Path] = None,
    ):
        self.settings = settings or load_settings()
        # None selects the host strategy on first use
        self.strategy = strategy
        self.runner = runner or self._default_runner
        self.cwd = cwd
        self.installer = ToolchainInstaller(self.settings, strategy, self.runner, cwd)
        self.venvs = VenvManager(self.runner, strategy)
        self.pip = PipManager(self.runner)
        self._pyenv = Pyenv(self.runner, cwd=cwd)

    @property
    def platform_strategy(self) -> PlatformStrategy:
        if self.strategy is None:
            self.strategy = get_platform_strategy()
        return self.strategy

    @property
    def pyenv(self) -> Pyenv:
        """pyenv wrapper, pointed at a version manager this package bootstrapped if any."""
        strategy = self.platform_strategy
        if strategy.manager_home(self.settings).exists():
            return self._pyenv.with_env(strategy.manager_env(self.settings, os.environ))
        return self._pyenv

    async def _default_runner(self, spec: RunSpec) -> ExecutionResult:
        return await run_command(spec, kill_grace=self.settings.kill_grace)

    async def ensure_installed(
        self,
        version: Optional[str] = None,
        venv_hint: Optional[Path] = None,
        session: Optional[Session] = None,
    ) -> Session:
        """Make a Python version available; the returned session uses it."""
        outcome = await self.installer.ensure_installed(version, venv_hint)
        return dataclasses.replace(
            session or Session(),
            python_path=str(outcome.python_path),
            python_version=outcome.version,
        )

    async def create_venv(
        self,
        venv_path: Path,
        session: Optional[Session] = None,
        python_override: Optional[str] = None,
    ) -> Session:
        """Create a virtual environment from the session's base interpreter."""
        session = session or Session()
        python = python_override or session.python_path
        venv_python = await self.venvs.create(Path(venv_path), python)
        return dataclasses.replace(
            session, venv_path=Path(venv_path), venv_python_path=venv_python
        )

    def delete_venv(self, venv_path: Path, session: Optional[Session] = None) -> Session:
        session = session or Session()
        self.venvs.delete(Path(venv_path))
        if session.venv_path is not None and Path(session.venv_path) != Path(venv_path):
            return session
        return dataclasses.replace(session, venv_path=None, venv_python_path=None)

    def venv_exists(self, venv_path: Path) -> bool:
        return self.venvs.exists(Path(venv_path))

    async def run_script(
        self,
        session: Session,
        file_path: Path,
        args: Sequence[str] = (),
        stream: bool = False,
        cancel: Optional[asyncio.Event] = None,
        python_override: Optional[str] = None,
    ) -> ExecutionResult:
        """Run a script file; non-zero exits are returned, not raised."""
        python = session.python_for(python_override)
        logger.info({"event": "run_script", "script": str(file_path), "python": python})
        return await self.runner(
            RunSpec(python, [str(file_path), *args], stream=stream, cancel=cancel, cwd=self.cwd)
        )

    async def run_code(
        self,
        session: Session,
        code: str,
        stream: bool = False,
        cancel: Optional[asyncio.Event] = None,
        python_override: Optional[str] = None,
    ) -> ExecutionResult:
        python = session.python_for(python_override)
        logger.info({"event": "run_code", "python": python})
        return await self.runner(
            RunSpec(python, ["-c", code], stream=stream, cancel=cancel, cwd=self.cwd)
        )

    async def install_package(
        self, session: Session, package: str, python_override: Optional[str] = None
    ) -> None:
        await self.pip.install(session.python_for(python_override), package)

    async def install_packages(
        self, session: Session, packages: Iterable[str], python_override: Optional[str] = None
    ) -> None:
        await self.pip.install(session.python_for(python_override), *packages)

    async def install_requirements(
        self, session: Session, requirements_file: Path, python_override: Optional[str] = None
    ) -> None:
        await self.pip.install_requirements(
            session.python_for(python_override), requirements_file
        )

    async def uninstall_package(
        self, session: Session, package: str, python_override: Optional[str] = None
    ) -> None:
        await self.pip.uninstall(session.python_for(python_override), package)

    async def list_installed_packages(
        self, session: Session, python_override: Optional[str] = None
    ) -> list[str]:
        return await self.pip.list_installed(session.python_for(python_override))

    async def is_package_installed(
        self, session: Session, package: str, python_override: Optional[str] = None
    ) -> bool:
        return await self.pip.is_installed(session.python_for(python_override), package)

    async def are_packages_installed(
        self, session: Session, packages: Iterable[str], python_override: Optional[str] = None
    ) -> bool:
        return await self.pip.are_installed(session.python_for(python_override), packages)

    async def install_version(self, version: str) -> None:
        await self.pyenv.install_version(version)

    async def uninstall_version(self, version: str) -> None:
        await self.pyenv.uninstall_version(version)

    async def list_installed_versions(self) -> list[str]:
        return await self.pyenv.list_installed_versions()

    async def set_local_version(self, version: str) -> None:
        await self.pyenv.set_local_version(version)

    async def get_local_version(self) -> str:
        return await self.pyenv.get_local_version()

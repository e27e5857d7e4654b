"""Installer for the Python runtime; drives pyenv (or pyenv-win).

``ensure_installed`` walks a small state machine::

    START -> PROBE_MANAGER -> [INSTALL_MANAGER] -> RESOLVE_EXISTING
          -> FOUND
          -> INSTALL_VERSION -> ACTIVATE_VERSION -> LOCATE_PATH -> INSTALLED

An existing interpreter is always looked for before anything is installed.
Any failing step aborts the whole call with the step's error.
"""

import os
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional

from mcp_python_manager.config import SELF_REPORT_CODE, Settings, load_settings
from mcp_python_manager.errors import CommandFailedError, InconsistentStateError
from mcp_python_manager.execution.probe import command_exists
from mcp_python_manager.execution.runner import Runner, run_command
from mcp_python_manager.logging import get_logger
from mcp_python_manager.platforms import PlatformStrategy, get_platform_strategy
from mcp_python_manager.toolchain.pyenv import PYENV, Pyenv
from mcp_python_manager.toolchain.resolver import VersionResolver
from mcp_python_manager.types import (
    InstallOutcome,
    InstallStep,
    RunSpec,
    ToolchainState,
)

logger = get_logger(__name__)

Handler = Callable[[ToolchainState], Awaitable[InstallStep]]


class ToolchainInstaller:
    """Locates or installs a Python version and reports its executable."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        strategy: Optional[PlatformStrategy] = None,
        runner: Runner = run_command,
        cwd: Optional[Path] = None,
    ):
        self.settings = settings or load_settings()
        self.strategy = strategy
        self.runner = runner
        self.cwd = cwd
        self._handlers: Dict[InstallStep, Handler] = {
            InstallStep.START: self._start,
            InstallStep.PROBE_MANAGER: self._probe_manager,
            InstallStep.INSTALL_MANAGER: self._install_manager,
            InstallStep.RESOLVE_EXISTING: self._resolve_existing,
            InstallStep.INSTALL_VERSION: self._install_version,
            InstallStep.ACTIVATE_VERSION: self._activate_version,
            InstallStep.LOCATE_PATH: self._locate_path,
        }

    async def ensure_installed(
        self, version: Optional[str] = None, venv_hint: Optional[Path] = None
    ) -> InstallOutcome:
        """Make ``version`` available and return where its interpreter lives."""
        state = ToolchainState(
            version=version or self.settings.default_version,
            venv_hint=Path(venv_hint) if venv_hint is not None else None,
        )
        step = InstallStep.START

        while not step.is_terminal:
            state.history.append(step)
            logger.debug({"event": "installer_step", "step": step.value, "version": state.version})
            try:
                step = await self._handlers[step](state)
            except Exception as e:
                state.history.append(InstallStep.FAILED)
                logger.error(
                    {
                        "event": "python_install_failed",
                        "version": state.version,
                        "step": state.history[-2].value,
                        "error": str(e),
                    }
                )
                raise

        state.history.append(step)
        logger.info(
            {
                "event": "python_ready",
                "version": state.version,
                "outcome": step.value,
                "python": str(state.python_path),
            }
        )
        return InstallOutcome(
            step=step,
            python_path=state.python_path,
            version=state.version,
            history=tuple(state.history),
        )

    def pyenv(self, state: ToolchainState) -> Pyenv:
        return Pyenv(self.runner, state.env, self.cwd)

    async def locate_path(self, pyenv: Pyenv, version: str) -> Path:
        """Ask the active interpreter where it lives and check that it exists."""
        argv = pyenv.exec_argv("python", "-c", SELF_REPORT_CODE)
        result = await self.runner(
            RunSpec(argv[0], argv[1:], cwd=pyenv.cwd, env=pyenv.env)
        )
        if result.exit_code != 0:
            raise CommandFailedError(argv, result.exit_code, result.stdout, result.stderr)

        python = Path(result.stdout.strip())
        if not result.stdout.strip() or not python.exists():
            raise InconsistentStateError(
                f"Python executable not found for version {version}",
                details={"version": version, "reported_path": str(python)},
            )
        return python

    async def _start(self, state: ToolchainState) -> InstallStep:
        if self.strategy is None:
            self.strategy = get_platform_strategy()
        state.platform = self.strategy.platform
        if self.strategy.manager_home(self.settings).exists():
            # Bootstrapped by an earlier call; expose it before probing
            state.env = self.strategy.manager_env(self.settings, os.environ)
        else:
            state.env = dict(os.environ)
        return InstallStep.PROBE_MANAGER

    async def _probe_manager(self, state: ToolchainState) -> InstallStep:
        state.manager_present = await command_exists(
            PYENV, self.strategy, state.env, self.runner
        )
        if state.manager_present:
            return InstallStep.RESOLVE_EXISTING
        return InstallStep.INSTALL_MANAGER

    async def _install_manager(self, state: ToolchainState) -> InstallStep:
        state.env = await self.strategy.install_management_tool(
            self.settings, state.env, self.runner
        )
        state.manager_present = True
        return InstallStep.RESOLVE_EXISTING

    async def _resolve_existing(self, state: ToolchainState) -> InstallStep:
        resolver = VersionResolver(self.strategy, self.locate_path)
        python = await resolver.resolve_existing(
            state.version, self.pyenv(state), state.venv_hint
        )
        if python is None:
            logger.info({"event": "python_missing", "version": state.version})
            return InstallStep.INSTALL_VERSION

        logger.info({"event": "python_found", "version": state.version, "python": str(python)})
        state.python_path = python
        return InstallStep.FOUND

    async def _install_version(self, state: ToolchainState) -> InstallStep:
        await self.pyenv(state).install_version(state.version)
        return InstallStep.ACTIVATE_VERSION

    async def _activate_version(self, state: ToolchainState) -> InstallStep:
        await self.pyenv(state).set_local_version(state.version, stream=True)
        return InstallStep.LOCATE_PATH

    async def _locate_path(self, state: ToolchainState) -> InstallStep:
        state.python_path = await self.locate_path(self.pyenv(state), state.version)
        return InstallStep.INSTALLED

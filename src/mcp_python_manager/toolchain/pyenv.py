"""Wrapper around the pyenv / pyenv-win command line."""

import re
from pathlib import Path
from typing import Mapping, Optional

from mcp_python_manager.errors import CommandFailedError
from mcp_python_manager.execution.runner import Runner, run_command
from mcp_python_manager.logging import get_logger
from mcp_python_manager.types import ExecutionResult, RunSpec

logger = get_logger(__name__)

PYENV = "pyenv"

_SET_BY = re.compile(r"\s+\(set by .*\)$")


def parse_versions_output(output: str) -> list[str]:
    """Turn ``pyenv versions`` output into bare version names.

    The active version is marked with ``*`` and annotated with where it was
    set, e.g. ``* 3.9.1 (set by /home/me/.python-version)``.
    """
    versions = []
    for line in output.splitlines():
        line = line.strip().lstrip("*").strip()
        line = _SET_BY.sub("", line)
        if line:
            versions.append(line)
    return versions


class Pyenv:
    """Runs pyenv subcommands in a fixed working directory and environment."""

    def __init__(
        self,
        runner: Runner = run_command,
        env: Optional[Mapping[str, str]] = None,
        cwd: Optional[Path] = None,
    ):
        self.runner = runner
        self.env = dict(env) if env is not None else None
        self.cwd = cwd

    def with_env(self, env: Mapping[str, str]) -> "Pyenv":
        return Pyenv(self.runner, env, self.cwd)

    def exec_argv(self, *args: str) -> list[str]:
        """Command line that runs ``args`` under the active Python version."""
        return [PYENV, "exec", *args]

    async def run(self, *args: str, stream: bool = False) -> ExecutionResult:
        return await self.runner(
            RunSpec(PYENV, args, stream=stream, cwd=self.cwd, env=self.env)
        )

    async def _check(self, *args: str, stream: bool = False) -> ExecutionResult:
        result = await self.run(*args, stream=stream)
        if result.exit_code != 0:
            raise CommandFailedError(
                [PYENV, *args], result.exit_code, result.stdout, result.stderr
            )
        return result

    async def install_version(self, version: str) -> None:
        """Install a Python version."""
        logger.info({"event": "pyenv_install", "version": version})
        await self._check("install", version, stream=True)
        logger.info({"event": "pyenv_installed", "version": version})

    async def uninstall_version(self, version: str) -> None:
        """Uninstall a Python version."""
        logger.info({"event": "pyenv_uninstall", "version": version})
        await self._check("uninstall", "-f", version, stream=True)
        logger.info({"event": "pyenv_uninstalled", "version": version})

    async def list_installed_versions(self) -> list[str]:
        result = await self._check("versions")
        return parse_versions_output(result.stdout)

    async def set_local_version(self, version: str, stream: bool = False) -> None:
        await self._check("local", version, stream=stream)
        logger.info({"event": "pyenv_local_set", "version": version})

    async def get_local_version(self) -> str:
        """Version pinned for the working directory; empty if none reported."""
        result = await self._check("local")
        return result.stdout.strip()

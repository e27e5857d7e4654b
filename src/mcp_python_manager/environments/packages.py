"""Package management through ``python -m pip``."""

import re
from pathlib import Path
from typing import Iterable

from mcp_python_manager.errors import CommandFailedError
from mcp_python_manager.execution.runner import Runner, run_command
from mcp_python_manager.logging import get_logger
from mcp_python_manager.types import ExecutionResult, RunSpec

logger = get_logger(__name__)


def normalize_name(name: str) -> str:
    """PEP 503 normalised project name."""
    return re.sub(r"[-_.]+", "-", name).lower()


def record_name(record: str) -> str:
    """Project name of a freeze record (``name==1.0`` or ``name @ url``)."""
    return re.split(r"==|\s@\s", record, maxsplit=1)[0].strip()


def parse_freeze_output(output: str) -> set[str]:
    return {line.strip() for line in output.splitlines() if line.strip()}


def package_in(records: Iterable[str], name: str) -> bool:
    wanted = normalize_name(name)
    return any(normalize_name(record_name(r)) == wanted for r in records)


class PipManager:
    def __init__(self, runner: Runner = run_command):
        self.runner = runner

    async def _pip(self, python: str, *args: str, stream: bool = True) -> ExecutionResult:
        argv = ["-m", "pip", *args]
        logger.info({"event": "pip_command", "python": python, "args": list(args)})
        result = await self.runner(RunSpec(python, argv, stream=stream))
        if result.exit_code != 0:
            raise CommandFailedError([python, *argv], result.exit_code, result.stdout, result.stderr)
        return result

    async def install(self, python: str, *packages: str) -> None:
        if not packages:
            raise ValueError("At least one package is required")
        await self._pip(python, "install", *packages)

    async def install_requirements(self, python: str, requirements_file: Path) -> None:
        await self._pip(python, "install", "-r", str(requirements_file))

    async def uninstall(self, python: str, *packages: str) -> None:
        if not packages:
            raise ValueError("At least one package is required")
        await self._pip(python, "uninstall", "-y", *packages)

    async def list_installed(self, python: str) -> list[str]:
        """Installed packages as sorted ``pip freeze`` records."""
        result = await self._pip(python, "freeze", stream=False)
        return sorted(parse_freeze_output(result.stdout))

    async def is_installed(self, python: str, name: str) -> bool:
        return package_in(await self.list_installed(python), name)

    async def are_installed(self, python: str, names: Iterable[str]) -> bool:
        records = await self.list_installed(python)
        return all(package_in(records, name) for name in names)

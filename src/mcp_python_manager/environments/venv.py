"""Virtual environment lifecycle."""

import shutil
from pathlib import Path
from typing import Optional

from mcp_python_manager.errors import CommandFailedError, InconsistentStateError
from mcp_python_manager.execution.runner import Runner, run_command
from mcp_python_manager.logging import get_logger
from mcp_python_manager.platforms import PlatformStrategy, get_platform_strategy
from mcp_python_manager.types import RunSpec

logger = get_logger(__name__)


class VenvManager:
    def __init__(
        self,
        runner: Runner = run_command,
        strategy: Optional[PlatformStrategy] = None,
    ):
        self.runner = runner
        self._strategy = strategy

    @property
    def strategy(self) -> PlatformStrategy:
        if self._strategy is None:
            self._strategy = get_platform_strategy()
        return self._strategy

    def exists(self, venv_path: Path) -> bool:
        """Whether anything exists at ``venv_path``; activation is not checked."""
        return Path(venv_path).exists()

    async def create(self, venv_path: Path, python: str = "python") -> Path:
        """Create a virtual environment and return its interpreter path.

        An existing directory is reused as-is.
        """
        venv_path = Path(venv_path)
        interior = self.strategy.interior_executable(venv_path)

        if self.exists(venv_path):
            logger.info({"event": "venv_exists", "venv": str(venv_path)})
            return interior

        logger.info({"event": "venv_create", "venv": str(venv_path), "python": python})
        args = ["-m", "venv", str(venv_path)]
        result = await self.runner(RunSpec(python, args, stream=True))
        if result.exit_code != 0:
            raise CommandFailedError([python, *args], result.exit_code, result.stdout, result.stderr)

        if not interior.exists():
            raise InconsistentStateError(
                f"Virtual environment at {venv_path} has no interpreter",
                details={"venv": str(venv_path), "expected": str(interior)},
            )

        logger.info({"event": "venv_created", "venv": str(venv_path)})
        return interior

    def delete(self, venv_path: Path) -> None:
        """Remove a virtual environment directory; missing paths are ignored."""
        venv_path = Path(venv_path)
        logger.info({"event": "venv_delete", "venv": str(venv_path)})
        if venv_path.is_dir() and not venv_path.is_symlink():
            shutil.rmtree(venv_path)
        elif venv_path.exists() or venv_path.is_symlink():
            venv_path.unlink()
        logger.info({"event": "venv_deleted", "venv": str(venv_path)})

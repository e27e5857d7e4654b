"""Lookup of an already usable Python interpreter."""

from pathlib import Path
from typing import Awaitable, Callable, Optional

from mcp_python_manager.errors import CommandFailedError, LaunchError
from mcp_python_manager.logging import get_logger
from mcp_python_manager.platforms import PlatformStrategy
from mcp_python_manager.toolchain.pyenv import Pyenv

logger = get_logger(__name__)

Locator = Callable[[Pyenv, str], Awaitable[Path]]


class VersionResolver:
    """Finds an existing interpreter for a version without installing anything."""

    def __init__(self, strategy: PlatformStrategy, locate: Locator):
        self.strategy = strategy
        self.locate = locate

    def from_venv(self, venv_hint: Path) -> Optional[Path]:
        """Interpreter inside an existing virtual environment, if laid out as expected.

        The hint is trusted as-is: the version it was built with is not checked.
        """
        python = self.strategy.interior_executable(venv_hint)
        if python.exists():
            logger.debug({"event": "venv_hint_match", "python": str(python)})
            return python

        logger.info(
            {
                "event": "venv_hint_unusable",
                "venv": str(venv_hint),
                "expected": str(python),
            }
        )
        return None

    async def resolve_existing(
        self, version: str, pyenv: Pyenv, venv_hint: Optional[Path] = None
    ) -> Optional[Path]:
        """Path to a usable interpreter for ``version``, or None if it must be installed."""
        if venv_hint is not None and Path(venv_hint).exists():
            # An existing hint is final; a broken layout does not fall through
            return self.from_venv(Path(venv_hint))

        try:
            # Succeeds exactly when the version is installed, and activates it
            await pyenv.set_local_version(version)
        except (CommandFailedError, LaunchError) as e:
            logger.info(
                {"event": "python_not_found", "version": version, "reason": str(e)}
            )
            return None

        return await self.locate(pyenv, version)

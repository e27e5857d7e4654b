"""Checks for tools reachable on the host PATH."""

from typing import Mapping, Optional

from mcp_python_manager.errors import LaunchError
from mcp_python_manager.execution.runner import Runner, run_command
from mcp_python_manager.logging import get_logger
from mcp_python_manager.platforms import PlatformStrategy, get_platform_strategy
from mcp_python_manager.types import RunSpec

logger = get_logger(__name__)


async def command_exists(
    name: str,
    strategy: Optional[PlatformStrategy] = None,
    env: Optional[Mapping[str, str]] = None,
    runner: Runner = run_command,
) -> bool:
    """Checks to see if a command is available on PATH"""
    strategy = strategy or get_platform_strategy()
    lookup = strategy.lookup_command(name)

    try:
        result = await runner(RunSpec(lookup[0], lookup[1:], env=env))
    except LaunchError as e:
        logger.debug({"event": "probe_launch_failed", "tool": name, "error": str(e)})
        return False

    found = result.exit_code == 0
    logger.debug({"event": "probe_complete", "tool": name, "found": found})
    return found

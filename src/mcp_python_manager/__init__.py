"""Provision pyenv-managed Python interpreters and run workloads in them."""

__version__ = "0.1.0"

from mcp_python_manager.types import (
    ExecutionResult,
    InstallOutcome,
    InstallStep,
    Platform,
    RunSpec,
    Session,
    ToolchainState,
)
from mcp_python_manager.errors import (
    PythonManagerError,
    LaunchError,
    CommandFailedError,
    UnsupportedPlatformError,
    InconsistentStateError,
    BootstrapError,
    InvalidSessionError,
)
from mcp_python_manager.execution.runner import run_command
from mcp_python_manager.execution.probe import command_exists
from mcp_python_manager.toolchain.installer import ToolchainInstaller
from mcp_python_manager.manager import PythonManager

__all__ = [
    # Types
    "ExecutionResult",
    "InstallOutcome",
    "InstallStep",
    "Platform",
    "RunSpec",
    "Session",
    "ToolchainState",

    # Functions and classes
    "run_command",
    "command_exists",
    "ToolchainInstaller",
    "PythonManager",

    # Error types
    "PythonManagerError",
    "LaunchError",
    "CommandFailedError",
    "UnsupportedPlatformError",
    "InconsistentStateError",
    "BootstrapError",
    "InvalidSessionError",
]

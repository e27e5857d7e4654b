"""Error handling for the Python manager."""
import logging
from typing import Any, Dict, Optional, Sequence
from mcp.types import (
    ErrorData,
    INVALID_REQUEST,
    INVALID_PARAMS,
    INTERNAL_ERROR
)

logger = logging.getLogger(__name__)

def log_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None
) -> None:
    """Log an error with context."""
    logger = logger or logging.getLogger(__name__)

    error_info = {
        "error_type": error.__class__.__name__,
        "error_message": str(error)
    }
    if context:
        error_info["context"] = context
    if isinstance(error, PythonManagerError):
        error_info["code"] = error.code
        error_info["details"] = error.details

    logger.error("Python manager error occurred", extra={"data": error_info})


class PythonManagerError(Exception):
    """Base error class for the Python manager."""
    def __init__(
        self,
        message: str,
        code: int = INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.code = code
        self.details = details or {}

    def to_error_data(self) -> ErrorData:
        """Convert to ErrorData format."""
        return ErrorData(
            code=self.code,
            message=str(self),
            data=self.details
        )


class LaunchError(PythonManagerError):
    """The OS could not start an external process."""
    def __init__(self, executable: str, reason: str):
        super().__init__(
            f"Failed to launch {executable}: {reason}",
            code=INVALID_REQUEST,
            details={"executable": executable, "reason": reason}
        )
        self.executable = executable


class CommandFailedError(PythonManagerError):
    """An installer or collaborator command exited with a failure code."""
    def __init__(
        self,
        command: Sequence[str],
        exit_code: int,
        stdout: str = "",
        stderr: str = ""
    ):
        name = " ".join(str(c) for c in command[:2])
        super().__init__(
            f"{name} exited with code {exit_code}",
            code=INTERNAL_ERROR,
            details={
                "command": [str(c) for c in command],
                "exit_code": exit_code,
                "stderr": stderr
            }
        )
        self.command = list(command)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


class UnsupportedPlatformError(PythonManagerError):
    """No installation strategy exists for the host platform."""
    def __init__(self, system: str):
        super().__init__(
            f"Unsupported platform for automatic Python installation: {system}",
            code=INVALID_REQUEST,
            details={"system": system}
        )


class InconsistentStateError(PythonManagerError):
    """A step reported success but its artifact does not exist."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=INTERNAL_ERROR, details=details)


class BootstrapError(PythonManagerError):
    """The version-management tool could not be installed."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=INTERNAL_ERROR, details=details)


class InvalidSessionError(PythonManagerError):
    """Error for invalid/missing session."""
    def __init__(self, session_id: str):
        super().__init__(
            f"Session {session_id} not found",
            code=INVALID_PARAMS,
            details={"session_id": session_id}
        )

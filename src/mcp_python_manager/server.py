"""MCP server implementation."""
import asyncio
import contextlib
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import mcp.types as types
from fuuid import b58_fuuid
from mcp.server.lowlevel import Server
from mcp.server.models import InitializationOptions
from mcp.server import stdio

from mcp_python_manager import __version__
from mcp_python_manager.config import load_settings
from mcp_python_manager.errors import InvalidSessionError, PythonManagerError, log_error
from mcp_python_manager.logging import configure_logging, get_logger
from mcp_python_manager.manager import PythonManager
from mcp_python_manager.types import ExecutionResult, Session

logger = get_logger("server")

# In-memory session store
_SESSIONS: Dict[str, Session] = {}
# Cancel events of in-flight runs, by session id
_RUNNING: Dict[str, asyncio.Event] = {}

_SESSION_ID = {"type": "string", "description": "Session identifier"}

tools = [
    types.Tool(
        name="python_ensure_installed",
        description="Locate or install a Python version and open a session that uses it",
        inputSchema={
            "type": "object",
            "properties": {
                "version": {"type": "string", "description": "Python version, e.g. 3.10.1"},
                "venv_hint": {"type": "string", "description": "Existing virtual environment to reuse"},
            },
        },
    ),
    types.Tool(
        name="python_create_venv",
        description="Create a virtual environment and use it for the session",
        inputSchema={
            "type": "object",
            "properties": {
                "session_id": _SESSION_ID,
                "path": {"type": "string", "description": "Virtual environment directory"},
            },
            "required": ["session_id", "path"],
        },
    ),
    types.Tool(
        name="python_delete_venv",
        description="Delete a virtual environment",
        inputSchema={
            "type": "object",
            "properties": {
                "session_id": _SESSION_ID,
                "path": {"type": "string", "description": "Virtual environment directory"},
            },
            "required": ["session_id", "path"],
        },
    ),
    types.Tool(
        name="python_install_packages",
        description="Install packages with pip into the session's interpreter",
        inputSchema={
            "type": "object",
            "properties": {
                "session_id": _SESSION_ID,
                "packages": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["session_id", "packages"],
        },
    ),
    types.Tool(
        name="python_list_packages",
        description="List installed packages (pip freeze)",
        inputSchema={
            "type": "object",
            "properties": {"session_id": _SESSION_ID},
            "required": ["session_id"],
        },
    ),
    types.Tool(
        name="python_run_script",
        description="Run a Python script and capture its output",
        inputSchema={
            "type": "object",
            "properties": {
                "session_id": _SESSION_ID,
                "path": {"type": "string", "description": "Script path"},
                "args": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["session_id", "path"],
        },
    ),
    types.Tool(
        name="python_run_code",
        description="Run a snippet of Python code and capture its output",
        inputSchema={
            "type": "object",
            "properties": {
                "session_id": _SESSION_ID,
                "code": {"type": "string", "description": "Python source"},
            },
            "required": ["session_id", "code"],
        },
    ),
    types.Tool(
        name="python_cancel",
        description="Cancel the script or code currently running in a session",
        inputSchema={
            "type": "object",
            "properties": {"session_id": _SESSION_ID},
            "required": ["session_id"],
        },
    ),
    types.Tool(
        name="python_list_versions",
        description="List Python versions installed through pyenv",
        inputSchema={"type": "object", "properties": {}},
    ),
]

TOOL_NAMES = {t.name for t in tools}


def _reply(payload: Dict[str, Any]) -> list[types.TextContent]:
    return [types.TextContent(type="text", text=json.dumps(payload, default=str))]


def _ok(data: Any) -> list[types.TextContent]:
    return _reply({"success": True, "data": data})


def _fail(error: str) -> list[types.TextContent]:
    return _reply({"success": False, "error": error})


def _session_data(session_id: str, session: Session) -> Dict[str, Any]:
    return {"id": session_id, **dataclasses.asdict(session)}


def get_session(session_id: str) -> Session:
    session = _SESSIONS.get(session_id)
    if session is None:
        raise InvalidSessionError(session_id)
    return session


async def _run(session_id: str, coro_factory) -> ExecutionResult:
    """Run a workload for a session, registering its cancel event."""
    if session_id in _RUNNING:
        raise PythonManagerError(f"Session {session_id} already has a run in progress")
    cancel = asyncio.Event()
    _RUNNING[session_id] = cancel
    try:
        return await coro_factory(cancel)
    finally:
        _RUNNING.pop(session_id, None)


async def handle_tool(
    manager: PythonManager, name: str, arguments: Dict[str, Any]
) -> list[types.TextContent]:
    if name not in TOOL_NAMES:
        return _fail(f"Unknown tool: {name}")

    if name == "python_ensure_installed":
        hint = arguments.get("venv_hint")
        session = await manager.ensure_installed(
            arguments.get("version"), Path(hint) if hint else None
        )
        session_id = b58_fuuid()
        _SESSIONS[session_id] = session
        return _ok(_session_data(session_id, session))

    if name == "python_list_versions":
        return _ok({"versions": await manager.list_installed_versions()})

    session_id = arguments.get("session_id", "")
    session = get_session(session_id)

    if name == "python_create_venv":
        session = await manager.create_venv(Path(arguments["path"]), session)
        _SESSIONS[session_id] = session
        return _ok(_session_data(session_id, session))

    if name == "python_delete_venv":
        session = manager.delete_venv(Path(arguments["path"]), session)
        _SESSIONS[session_id] = session
        return _ok(_session_data(session_id, session))

    if name == "python_install_packages":
        await manager.install_packages(session, arguments["packages"])
        return _ok({"installed": list(arguments["packages"])})

    if name == "python_list_packages":
        return _ok({"packages": await manager.list_installed_packages(session)})

    if name == "python_run_script":
        result = await _run(
            session_id,
            lambda cancel: manager.run_script(
                session, Path(arguments["path"]), arguments.get("args", []), cancel=cancel
            ),
        )
        return _ok(dataclasses.asdict(result))

    if name == "python_run_code":
        result = await _run(
            session_id,
            lambda cancel: manager.run_code(session, arguments["code"], cancel=cancel),
        )
        return _ok(dataclasses.asdict(result))

    if name == "python_cancel":
        cancel = _RUNNING.get(session_id)
        if cancel is None:
            return _ok({"cancelled": False})
        cancel.set()
        return _ok({"cancelled": True})

    return _fail(f"Unknown tool: {name}")


async def init_server(manager: Optional[PythonManager] = None) -> Server:
    manager = manager or PythonManager()
    logger.info(f"Registered tools: {', '.join(t.name for t in tools)}")

    server = Server("mcp-python-manager")

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        logger.debug("Tools requested")
        return tools

    @server.call_tool()
    async def call_tool(
        name: str, arguments: Dict[str, Any]
    ) -> list[types.TextContent | types.ImageContent | types.EmbeddedResource]:
        logger.debug(f"Tool call received: {name} with arguments {arguments}")
        try:
            return await handle_tool(manager, name, arguments or {})
        except PythonManagerError as e:
            log_error(e, {"tool": name})
            return _reply({"success": False, "error": str(e), "details": e.details})
        except (KeyError, ValueError, OSError) as e:
            log_error(e, {"tool": name})
            return _fail(str(e))

    return server


async def serve() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    logger.info("Starting MCP Python manager server")
    server = await init_server(PythonManager(settings))
    async with stdio.stdio_server() as (read_stream, write_stream):
        init_options = InitializationOptions(
            server_name="mcp-python-manager",
            server_version=__version__,
            capabilities=types.ServerCapabilities(
                tools=types.ToolsCapability(listChanged=False),
                logging=types.LoggingCapability(),
            ),
        )
        # stdout now carries protocol frames; streamed installer output goes to stderr
        with contextlib.redirect_stdout(sys.stderr):
            await server.run(read_stream, write_stream, init_options)


def main() -> None:
    """Run the MCP server."""
    asyncio.run(serve())

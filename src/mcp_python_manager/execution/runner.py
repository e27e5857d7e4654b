"""Command execution with live streaming, output capture and cancellation."""

import asyncio
import codecs
import contextlib
import os
import shutil
import sys
from typing import Awaitable, Callable, Mapping, Optional

from mcp_python_manager.config import DEFAULT_KILL_GRACE
from mcp_python_manager.errors import LaunchError
from mcp_python_manager.logging import get_logger
from mcp_python_manager.types import ExecutionResult, RunSpec

logger = get_logger(__name__)

CHUNK_SIZE = 4096
NO_EXIT_CODE = -1

Runner = Callable[[RunSpec], Awaitable[ExecutionResult]]

# Keeps reaper tasks alive after a cancelled run has already returned
_REAPERS: set[asyncio.Task] = set()


def _env_path(env: Optional[Mapping[str, str]]) -> Optional[str]:
    env = os.environ if env is None else env
    for key, value in env.items():
        if key.upper() == "PATH":
            return value
    return None


def resolve_executable(executable: str, env: Optional[Mapping[str, str]] = None) -> str:
    """Resolve a bare command name against the PATH the child will see."""
    if os.path.dirname(executable):
        return executable
    return shutil.which(executable, path=_env_path(env)) or executable


def _exit_code(returncode: Optional[int]) -> int:
    # Negative return codes mean the child was killed by a signal
    if returncode is None or returncode < 0:
        return NO_EXIT_CODE
    return returncode


async def _drain(
    stream: asyncio.StreamReader, buffer: list[str], sink: Optional[str]
) -> None:
    """Read a pipe to EOF, buffering every chunk and optionally echoing it."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        chunk = await stream.read(CHUNK_SIZE)
        text = decoder.decode(chunk, final=not chunk)
        if text:
            buffer.append(text)
            if sink:
                out = getattr(sys, sink)
                out.write(text)
                out.flush()
        if not chunk:
            return


async def _wait_for_exit(
    process: asyncio.subprocess.Process, readers: list[asyncio.Task]
) -> Optional[int]:
    await asyncio.gather(*readers)
    return await process.wait()


async def _reap(process: asyncio.subprocess.Process, grace: float) -> None:
    try:
        await asyncio.wait_for(process.wait(), grace)
    except asyncio.TimeoutError:
        logger.warning({"event": "process_kill", "pid": process.pid, "grace": grace})
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
    logger.debug(
        {"event": "process_reaped", "pid": process.pid, "returncode": process.returncode}
    )


def _terminate(process: asyncio.subprocess.Process, grace: float) -> None:
    """Ask the child to stop and reap it in the background."""
    if process.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
    task = asyncio.get_running_loop().create_task(_reap(process, grace))
    _REAPERS.add(task)
    task.add_done_callback(_REAPERS.discard)


async def wait_for_reapers() -> None:
    """Wait until every cancelled child has been reaped."""
    while _REAPERS:
        await asyncio.gather(*list(_REAPERS), return_exceptions=True)


async def run_command(
    spec: RunSpec, kill_grace: float = DEFAULT_KILL_GRACE
) -> ExecutionResult:
    """Run a command to completion or until ``spec.cancel`` is set.

    A non-zero exit is reported in the result, never raised. Only a failure
    to start the process raises (LaunchError).

    Process exit (both pipes drained and the exit status collected) and the
    cancel event are awaited together; whichever completes first decides the
    result. If both complete within the same loop iteration the exit is
    reported, because a real exit status was observed. Callers cancelling
    near the natural end of a run can therefore get either outcome.

    On cancellation the result carries whatever output was buffered so far,
    ``aborted=True`` and exit code -1. The child is sent a termination
    signal and reaped in the background (killed after ``kill_grace``
    seconds); it may still be running when this returns.
    """
    argv = spec.argv
    if spec.cancel is not None and spec.cancel.is_set():
        logger.debug({"event": "command_cancelled_before_start", "argv": argv})
        return ExecutionResult(stdout="", stderr="", exit_code=NO_EXIT_CODE, aborted=True)

    executable = resolve_executable(argv[0], spec.env)
    logger.debug(
        {
            "event": "command_exec",
            "argv": argv,
            "executable": executable,
            "cwd": str(spec.cwd) if spec.cwd else None,
            "stream": spec.stream,
        }
    )

    try:
        process = await asyncio.create_subprocess_exec(
            executable,
            *argv[1:],
            cwd=spec.cwd,
            env=dict(spec.env) if spec.env is not None else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (OSError, ValueError) as e:
        logger.error({"event": "command_launch_failed", "argv": argv, "error": str(e)})
        raise LaunchError(argv[0], str(e)) from e

    stdout: list[str] = []
    stderr: list[str] = []
    readers = [
        asyncio.create_task(_drain(process.stdout, stdout, "stdout" if spec.stream else None)),
        asyncio.create_task(_drain(process.stderr, stderr, "stderr" if spec.stream else None)),
    ]
    exited = asyncio.create_task(_wait_for_exit(process, readers))
    waiters = {exited}
    cancel_requested = None
    if spec.cancel is not None:
        cancel_requested = asyncio.create_task(spec.cancel.wait())
        waiters.add(cancel_requested)

    try:
        done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        for task in (exited, cancel_requested, *readers):
            if task is not None:
                task.cancel()
        _terminate(process, kill_grace)
        raise

    if exited in done:
        if cancel_requested is not None:
            cancel_requested.cancel()
        returncode = exited.result()
        if returncode is not None and returncode < 0:
            logger.info(
                {"event": "command_signalled", "argv": argv, "signal": -returncode}
            )
        result = ExecutionResult(
            stdout="".join(stdout),
            stderr="".join(stderr),
            exit_code=_exit_code(returncode),
        )
        logger.debug(
            {"event": "command_complete", "argv": argv, "exit_code": result.exit_code}
        )
        return result

    exited.cancel()
    for reader in readers:
        reader.cancel()
    _terminate(process, kill_grace)

    logger.info({"event": "command_aborted", "argv": argv, "pid": process.pid})
    return ExecutionResult(
        stdout="".join(stdout),
        stderr="".join(stderr),
        exit_code=NO_EXIT_CODE,
        aborted=True,
    )

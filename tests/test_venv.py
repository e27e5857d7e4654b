from pathlib import Path

import pytest

from mcp_python_manager.environments.venv import VenvManager
from mcp_python_manager.errors import CommandFailedError, InconsistentStateError
from mcp_python_manager.platforms import POSIX, WINDOWS
from conftest import failed


def build_venv(layout):
    """Effect that lays out an interpreter the way ``-m venv`` would."""
    def effect(spec):
        interior = Path(spec.argv[-1]).joinpath(*layout)
        interior.parent.mkdir(parents=True)
        interior.touch()

    return effect


@pytest.mark.asyncio
async def test_create_runs_venv_module(fake_runner, tmp_path):
    fake_runner.on("/opt/python", "-m", "venv", effect=build_venv(("bin", "python")))
    venv = tmp_path / "venv"

    python = await VenvManager(fake_runner, POSIX).create(venv, "/opt/python")

    assert python == venv / "bin" / "python"
    assert fake_runner.argvs == [["/opt/python", "-m", "venv", str(venv)]]
    assert fake_runner.calls[0].stream


@pytest.mark.asyncio
async def test_create_windows_layout(fake_runner, tmp_path):
    fake_runner.on("python", "-m", "venv", effect=build_venv(("Scripts", "python.exe")))

    python = await VenvManager(fake_runner, WINDOWS).create(tmp_path / "venv")

    assert python == tmp_path / "venv" / "Scripts" / "python.exe"


@pytest.mark.asyncio
async def test_create_reuses_existing_directory(fake_runner, tmp_path):
    venv = tmp_path / "venv"
    venv.mkdir()

    python = await VenvManager(fake_runner, POSIX).create(venv)

    assert python == venv / "bin" / "python"
    assert fake_runner.calls == []


@pytest.mark.asyncio
async def test_create_failure(fake_runner, tmp_path):
    fake_runner.on("python", "-m", "venv", result=failed(1, "No module named venv"))

    with pytest.raises(CommandFailedError) as exc:
        await VenvManager(fake_runner, POSIX).create(tmp_path / "venv")

    assert exc.value.exit_code == 1
    assert "No module named venv" in exc.value.details["stderr"]


@pytest.mark.asyncio
async def test_create_without_interpreter_is_inconsistent(fake_runner, tmp_path):
    fake_runner.on("python", "-m", "venv")

    with pytest.raises(InconsistentStateError):
        await VenvManager(fake_runner, POSIX).create(tmp_path / "venv")


def test_delete_removes_tree(tmp_path):
    venv = tmp_path / "venv"
    (venv / "lib" / "site-packages").mkdir(parents=True)
    (venv / "pyvenv.cfg").write_text("home = /usr/bin\n")
    manager = VenvManager(strategy=POSIX)

    manager.delete(venv)

    assert not venv.exists()
    assert not manager.exists(venv)


def test_delete_missing_path_is_ignored(tmp_path):
    VenvManager(strategy=POSIX).delete(tmp_path / "missing")


def test_delete_plain_file(tmp_path):
    target = tmp_path / "venv"
    target.write_text("not a venv")

    VenvManager(strategy=POSIX).delete(target)

    assert not target.exists()


def test_exists_does_not_check_activation(tmp_path):
    (tmp_path / "empty").mkdir()

    assert VenvManager(strategy=POSIX).exists(tmp_path / "empty")

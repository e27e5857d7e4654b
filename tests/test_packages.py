"""Tests for pip-based package management."""
import pytest

from mcp_python_manager.environments.packages import (
    PipManager,
    normalize_name,
    package_in,
    parse_freeze_output,
    record_name,
)
from mcp_python_manager.errors import CommandFailedError
from conftest import failed, ok

FREEZE = "numpy==1.24.0\npandas==2.0.0\n"


def test_parse_freeze_output():
    records = parse_freeze_output(FREEZE)

    assert records == {"numpy==1.24.0", "pandas==2.0.0"}
    assert package_in(records, "numpy")
    assert not package_in(records, "scipy")


@pytest.mark.parametrize(
    "record,name",
    [
        ("numpy==1.24.0", "numpy"),
        ("my-pkg @ file:///tmp/my_pkg", "my-pkg"),
        ("requests", "requests"),
    ],
)
def test_record_name(record, name):
    assert record_name(record) == name


def test_normalized_names_match():
    assert normalize_name("Typing_Extensions") == "typing-extensions"
    assert package_in({"typing_extensions==4.8.0"}, "Typing-Extensions")


@pytest.mark.asyncio
async def test_install_packages(fake_runner):
    fake_runner.on("/venv/bin/python", "-m", "pip", "install")

    await PipManager(fake_runner).install("/venv/bin/python", "numpy", "pandas==2.0.0")

    assert fake_runner.argvs == [
        ["/venv/bin/python", "-m", "pip", "install", "numpy", "pandas==2.0.0"]
    ]
    assert fake_runner.calls[0].stream


@pytest.mark.asyncio
async def test_install_requires_packages(fake_runner):
    with pytest.raises(ValueError):
        await PipManager(fake_runner).install("python")

    assert fake_runner.calls == []


@pytest.mark.asyncio
async def test_install_failure(fake_runner):
    fake_runner.on("python", "-m", "pip", "install", result=failed(1, "No matching distribution"))

    with pytest.raises(CommandFailedError, match="python -m exited with code 1"):
        await PipManager(fake_runner).install("python", "nonexistent-pkg")


@pytest.mark.asyncio
async def test_install_requirements(fake_runner, tmp_path):
    requirements = tmp_path / "requirements.txt"
    fake_runner.on("python", "-m", "pip", "install")

    await PipManager(fake_runner).install_requirements("python", requirements)

    assert fake_runner.argvs == [["python", "-m", "pip", "install", "-r", str(requirements)]]


@pytest.mark.asyncio
async def test_uninstall_does_not_prompt(fake_runner):
    fake_runner.on("python", "-m", "pip", "uninstall")

    await PipManager(fake_runner).uninstall("python", "numpy")

    assert fake_runner.argvs == [["python", "-m", "pip", "uninstall", "-y", "numpy"]]


@pytest.mark.asyncio
async def test_list_installed(fake_runner):
    fake_runner.on("python", "-m", "pip", "freeze", result=ok("pandas==2.0.0\nnumpy==1.24.0\n\n"))
    pip = PipManager(fake_runner)

    assert await pip.list_installed("python") == ["numpy==1.24.0", "pandas==2.0.0"]
    assert not fake_runner.calls[0].stream


@pytest.mark.asyncio
async def test_installed_checks(fake_runner):
    fake_runner.on("python", "-m", "pip", "freeze", result=ok(FREEZE))
    pip = PipManager(fake_runner)

    assert await pip.is_installed("python", "numpy")
    assert not await pip.is_installed("python", "scipy")
    assert await pip.are_installed("python", ["numpy", "pandas"])
    assert not await pip.are_installed("python", ["numpy", "scipy"])


@pytest.mark.asyncio
async def test_freeze_failure(fake_runner):
    fake_runner.on("python", "-m", "pip", "freeze", result=failed(2))

    with pytest.raises(CommandFailedError):
        await PipManager(fake_runner).list_installed("python")

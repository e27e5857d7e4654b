import re
from pathlib import Path
from typing import Callable, Mapping, Optional

import pytest

from mcp_python_manager.config import Settings, load_settings
from mcp_python_manager.errors import LaunchError
from mcp_python_manager.types import ExecutionResult, RunSpec


def ok(stdout: str = "") -> ExecutionResult:
    return ExecutionResult(stdout=stdout, stderr="", exit_code=0)


def failed(exit_code: int = 1, stderr: str = "") -> ExecutionResult:
    return ExecutionResult(stdout="", stderr=stderr, exit_code=exit_code)


class FakeRunner:
    """Records every RunSpec and answers from scripted rules.

    Rules match on an argv prefix; the most recently added match wins.
    Unmatched commands fail to launch, like a missing binary would.
    """

    def __init__(self):
        self.calls: list[RunSpec] = []
        self._rules: list[tuple[tuple[str, ...], bool, Callable]] = []

    def on(
        self,
        *argv: str,
        result: Optional[ExecutionResult] = None,
        exact: bool = False,
        effect: Optional[Callable[[RunSpec], None]] = None,
        launch_error: bool = False,
    ) -> "FakeRunner":
        def respond(spec: RunSpec) -> ExecutionResult:
            if effect is not None:
                effect(spec)
            if launch_error:
                raise LaunchError(spec.argv[0], "No such file or directory")
            return result or ok()

        self._rules.append((tuple(argv), exact, respond))
        return self

    async def __call__(self, spec: RunSpec) -> ExecutionResult:
        self.calls.append(spec)
        argv = tuple(spec.argv)
        for prefix, exact, respond in reversed(self._rules):
            if argv == prefix or (not exact and argv[: len(prefix)] == prefix):
                return respond(spec)
        raise LaunchError(argv[0], "not scripted")

    @property
    def argvs(self) -> list[list[str]]:
        return [spec.argv for spec in self.calls]

    def count(self, *prefix: str) -> int:
        return sum(1 for argv in self.argvs if tuple(argv[: len(prefix)]) == prefix)


class PyenvHost:
    """Stand-in for a host with pyenv, answering the commands the installer sends.

    Installed interpreters are real (empty) files under ``root`` so path
    existence checks behave as on a real machine.
    """

    def __init__(
        self,
        root: Path,
        pyenv_on_path: bool = True,
        pyenv_win_home: Optional[Path] = None,
    ):
        self.root = root
        self.pyenv_on_path = pyenv_on_path
        self.pyenv_win_home = pyenv_win_home
        self.manager_bins: set[Path] = set()
        self.installed: set[str] = set()
        self.local: Optional[str] = None
        self.report_missing_path = False
        self.failures: dict[tuple[str, ...], ExecutionResult] = {}
        self.calls: list[RunSpec] = []

    def python_for(self, version: str) -> Path:
        return self.root / "versions" / version / "bin" / "python"

    def preinstall(self, version: str) -> Path:
        python = self.python_for(version)
        python.parent.mkdir(parents=True, exist_ok=True)
        python.touch()
        self.installed.add(version)
        return python

    def fail(self, *prefix: str, exit_code: int = 1, stderr: str = "boom") -> None:
        self.failures[prefix] = failed(exit_code, stderr)

    async def __call__(self, spec: RunSpec) -> ExecutionResult:
        self.calls.append(spec)
        argv = spec.argv

        for prefix, result in self.failures.items():
            if tuple(argv[: len(prefix)]) == prefix:
                return result

        match argv:
            case ["sh", "-c", _, "sh", name] | ["where", name]:
                found = self._lookup(name, spec.env)
                return ok(f"{found}\n") if found else failed(1)
            case ["git", "clone", *_, target]:
                self._lay_out_manager(Path(target), "pyenv")
                return ok()
            case ["powershell.exe", *_]:
                if self.pyenv_win_home is not None:
                    self._lay_out_manager(self.pyenv_win_home, "pyenv.bat")
                return ok("pyenv-win is successfully installed.\n")
            case ["pyenv", *rest]:
                return self._pyenv(rest)
        raise LaunchError(argv[0], "No such file or directory")

    def _lay_out_manager(self, home: Path, launcher: str) -> None:
        bin_dir = home / "bin"
        bin_dir.mkdir(parents=True, exist_ok=True)
        (bin_dir / launcher).touch()
        self.manager_bins.add(bin_dir)

    def _lookup(self, name: str, env: Optional[Mapping[str, str]]) -> Optional[str]:
        if name == "pyenv" and self.pyenv_on_path:
            return f"/usr/bin/{name}"
        path = next((v for k, v in (env or {}).items() if k.upper() == "PATH"), "")
        # Only launchers this host laid out count; the real PATH is not consulted
        for entry in re.split(r"[;:]", path):
            if not entry or Path(entry) not in self.manager_bins:
                continue
            for candidate in (Path(entry) / name, Path(entry) / f"{name}.bat"):
                if candidate.is_file():
                    return str(candidate)
        return None

    def _pyenv(self, args: list[str]) -> ExecutionResult:
        match args:
            case ["install", version]:
                if version in self.installed:
                    return failed(1, f"pyenv: {self.python_for(version).parents[1]} already exists")
                self.preinstall(version)
                return ok(f"Installed Python-{version}\n")
            case ["uninstall", "-f", version]:
                self.installed.discard(version)
                return ok()
            case ["versions"]:
                lines = [
                    f"* {v} (set by {self.root}/.python-version)" if v == self.local else f"  {v}"
                    for v in ["system", *sorted(self.installed)]
                ]
                return ok("\n".join(lines) + "\n")
            case ["local"]:
                if self.local is None:
                    return failed(1, "pyenv: no local version configured for this directory")
                return ok(f"{self.local}\n")
            case ["local", version]:
                if version not in self.installed:
                    return failed(1, f"pyenv: version `{version}' not installed")
                self.local = version
                return ok()
            case ["exec", "python", "-c", _]:
                if self.local is None:
                    return failed(127, "pyenv: python: command not found")
                if self.report_missing_path:
                    return ok(str(self.root / "nowhere" / "python") + "\n")
                return ok(f"{self.python_for(self.local)}\n")
        return failed(1, f"pyenv: no such command `{args[0]}'")

    def argvs(self) -> list[list[str]]:
        return [spec.argv for spec in self.calls]

    def count(self, *prefix: str) -> int:
        return sum(1 for argv in self.argvs() if tuple(argv[: len(prefix)]) == prefix)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return load_settings(
        {
            "PYENV_ROOT": str(tmp_path / "pyenv-root"),
            "PYENV_HOME": str(tmp_path / "pyenv-win"),
            "MCP_PYTHON_MANAGER_KILL_GRACE": "1",
        }
    )


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def pyenv_host(tmp_path: Path) -> PyenvHost:
    return PyenvHost(tmp_path / "host")

"""Platform detection and per-platform behaviour."""
import platform
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Mapping, Optional

from mcp_python_manager.config import Settings
from mcp_python_manager.errors import BootstrapError, UnsupportedPlatformError
from mcp_python_manager.execution.runner import Runner
from mcp_python_manager.logging import get_logger
from mcp_python_manager.types import Platform, RunSpec
from mcp_python_manager.utils.fetching import download_url

logger = get_logger(__name__)

Bootstrap = Callable[
    ["PlatformStrategy", Settings, dict[str, str], Runner], Awaitable[dict[str, str]]
]


@dataclass(frozen=True)
class PlatformStrategy:
    """Everything that differs between Windows-class and posix-class hosts."""
    platform: Platform
    lookup_prefix: tuple[str, ...]
    executable_layout: tuple[str, ...]
    path_separator: str
    bootstrap: Bootstrap

    def lookup_command(self, name: str) -> list[str]:
        return [*self.lookup_prefix, name]

    def interior_executable(self, venv_path: Path) -> Path:
        """Interpreter location inside a virtual environment."""
        return Path(venv_path).joinpath(*self.executable_layout)

    def manager_home(self, settings: Settings) -> Path:
        if self.platform == Platform.WINDOWS:
            return settings.pyenv_win_home
        return settings.pyenv_root

    def manager_paths(self, settings: Settings) -> list[Path]:
        home = self.manager_home(settings)
        return [home / "bin", home / "shims"]

    def manager_env(self, settings: Settings, env: Mapping[str, str]) -> dict[str, str]:
        """Copy of ``env`` that exposes a bootstrapped version manager."""
        updated = dict(env)
        home = str(self.manager_home(settings))
        updated["PYENV_ROOT"] = home
        if self.platform == Platform.WINDOWS:
            updated["PYENV"] = home
            updated["PYENV_HOME"] = home

        path_key = next((k for k in updated if k.upper() == "PATH"), "PATH")
        prefix = self.path_separator.join(str(p) for p in self.manager_paths(settings))
        current = updated.get(path_key)
        updated[path_key] = f"{prefix}{self.path_separator}{current}" if current else prefix
        return updated

    async def install_management_tool(
        self, settings: Settings, env: Mapping[str, str], runner: Runner
    ) -> dict[str, str]:
        """Install the version manager; returns the env to run it with."""
        return await self.bootstrap(self, settings, dict(env), runner)


async def _bootstrap_pyenv(
    strategy: PlatformStrategy, settings: Settings, env: dict[str, str], runner: Runner
) -> dict[str, str]:
    root = settings.pyenv_root
    if root.exists():
        logger.info({"event": "pyenv_already_present", "root": str(root)})
    else:
        logger.info({"event": "installing_pyenv", "root": str(root)})
        root.parent.mkdir(parents=True, exist_ok=True)
        argv = ["git", "clone", "--depth", "1", settings.pyenv_repo, str(root)]
        result = await runner(RunSpec(argv[0], argv[1:], stream=True, env=env))
        if result.exit_code != 0:
            raise BootstrapError(
                f"Failed to clone pyenv (exit code {result.exit_code})",
                details={"repo": settings.pyenv_repo, "root": str(root)},
            )
        logger.info({"event": "pyenv_installed", "root": str(root)})

    return strategy.manager_env(settings, env)


async def _bootstrap_pyenv_win(
    strategy: PlatformStrategy, settings: Settings, env: dict[str, str], runner: Runner
) -> dict[str, str]:
    logger.info({"event": "installing_pyenv_win", "url": settings.pyenv_win_installer})

    with tempfile.TemporaryDirectory(prefix="pyenv-win-") as tmp:
        script = Path(tmp) / "install-pyenv-win.ps1"
        try:
            await download_url(settings.pyenv_win_installer, script)
        except RuntimeError as e:
            raise BootstrapError(
                f"Failed to download pyenv-win installer: {e}",
                details={"url": settings.pyenv_win_installer},
            ) from e

        argv = [
            "powershell.exe",
            "-NoProfile",
            "-ExecutionPolicy",
            "Bypass",
            "-File",
            str(script),
        ]
        result = await runner(
            RunSpec(argv[0], argv[1:], stream=True, cwd=Path(tmp), env=env)
        )
        if result.exit_code != 0:
            raise BootstrapError(
                f"pyenv-win installation exited with code {result.exit_code}",
                details={"url": settings.pyenv_win_installer},
            )

    logger.info({"event": "pyenv_win_installed", "home": str(settings.pyenv_win_home)})
    return strategy.manager_env(settings, env)


POSIX = PlatformStrategy(
    platform=Platform.POSIX,
    # `command -v` is a shell builtin, so it needs a shell to run in
    lookup_prefix=("sh", "-c", 'command -v "$1"', "sh"),
    executable_layout=("bin", "python"),
    path_separator=":",
    bootstrap=_bootstrap_pyenv,
)

WINDOWS = PlatformStrategy(
    platform=Platform.WINDOWS,
    lookup_prefix=("where",),
    executable_layout=("Scripts", "python.exe"),
    path_separator=";",
    bootstrap=_bootstrap_pyenv_win,
)

PLATFORM_STRATEGIES = {
    "Linux": POSIX,
    "Darwin": POSIX,
    "Windows": WINDOWS,
}


def get_platform_strategy(system: Optional[str] = None) -> PlatformStrategy:
    """Select the strategy for ``system`` (defaults to the current host)."""
    if system is None:
        system = platform.system()

    if system not in PLATFORM_STRATEGIES:
        raise UnsupportedPlatformError(system)

    return PLATFORM_STRATEGIES[system]


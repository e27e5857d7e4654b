import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from mcp_python_manager.utils.fetching import download_url

SCRIPT = b"Write-Host 'installing pyenv-win'\n" * 1000


async def installer(request):
    return web.Response(body=SCRIPT)


def make_app():
    app = web.Application()
    app.router.add_get("/install-pyenv-win.ps1", installer)
    return app


@pytest.mark.asyncio
async def test_download_writes_file(tmp_path):
    dest = tmp_path / "install.ps1"

    async with TestServer(make_app()) as server:
        await download_url(str(server.make_url("/install-pyenv-win.ps1")), dest)

    assert dest.read_bytes() == SCRIPT


@pytest.mark.asyncio
async def test_download_error_status(tmp_path):
    dest = tmp_path / "install.ps1"

    async with TestServer(make_app()) as server:
        with pytest.raises(RuntimeError, match="404"):
            await download_url(str(server.make_url("/missing.ps1")), dest)

    assert not dest.exists()

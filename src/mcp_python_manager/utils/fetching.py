import aiohttp
from pathlib import Path
from mcp_python_manager.logging import get_logger

logger = get_logger(__name__)


async def download_url(url: str, dest: Path) -> None:
    """Download a file, removing any partial result on failure."""
    logger.debug({"event": "download_url", "url": url, "dest": str(dest)})
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(url) as response:
                if response.status != 200:
                    raise RuntimeError(f"Download failed with status {response.status}")

                with open(dest, "wb") as f:
                    while chunk := await response.content.read(8192):
                        f.write(chunk)

    except Exception as e:
        if dest.exists():
            dest.unlink()
        raise RuntimeError(f"Failed to download url: {e}") from e

    logger.info({"event": "download_complete", "url": url, "dest": str(dest)})

"""Manifest templates shipped with the operator."""

from pathlib import Path

import aiofiles

from snapshot_operator.exceptions import AssetException

__all__ = ["read_file", "ASSETS_DIR"]

ASSETS_DIR = Path(__file__).parent


async def read_file(name: str) -> bytes:
    """Read the raw contents of a packaged asset."""
    path = ASSETS_DIR / name
    try:
        async with aiofiles.open(str(path), mode="rb") as asset_file:
            return await asset_file.read()
    except OSError as err:
        raise AssetException(f"Unable to read asset {name}: {err}") from err

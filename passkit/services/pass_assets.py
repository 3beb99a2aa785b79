"""
Static pass assets (icons), looked up by archive entry name.

A missing asset is never fatal: ``snapshot_assets`` logs and skips it, and
the manifest and archive are built from the same snapshot so they always
agree on which images the pass contains.
"""
import logging
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Tuple

from passkit.core.errors import AssetMissingError

logger = logging.getLogger(__name__)

PASS_ASSET_NAMES: Tuple[str, ...] = ("icon.png", "icon@2x.png", "icon@3x.png")


class AssetSource:
    """Resolves an asset name to its bytes or raises AssetMissingError."""

    def resolve(self, name: str) -> bytes:
        raise NotImplementedError


class DirectoryAssetSource(AssetSource):
    """Assets stored as files in one directory"""

    def __init__(self, root):
        self.root = Path(root)

    def resolve(self, name: str) -> bytes:
        path = self.root / name
        if not path.is_file():
            raise AssetMissingError(name, f"{path} does not exist")
        try:
            return path.read_bytes()
        except OSError as e:
            raise AssetMissingError(name, str(e)) from e

    def __repr__(self):
        return f"DirectoryAssetSource({str(self.root)!r})"


class StaticAssetSource(AssetSource):
    """In-memory assets, for embedding and tests"""

    def __init__(self, assets: Optional[Mapping[str, bytes]] = None):
        self.assets: Dict[str, bytes] = dict(assets or {})

    def resolve(self, name: str) -> bytes:
        try:
            return self.assets[name]
        except KeyError:
            raise AssetMissingError(name, "not registered") from None


def snapshot_assets(source: AssetSource, names: Iterable[str] = PASS_ASSET_NAMES) -> Dict[str, bytes]:
    """Resolve every resolvable asset once. Missing ones are logged and left out."""
    assets: Dict[str, bytes] = {}
    for name in names:
        try:
            assets[name] = source.resolve(name)
        except AssetMissingError as e:
            logger.warning(f"Skipping pass asset: {e.message}")
    return assets

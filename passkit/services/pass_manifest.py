"""
manifest.json: SHA1 digest of every file in the pass archive except the
manifest and signature themselves.
"""
import hashlib
import json
import logging
from typing import Dict, Iterable, Mapping, Optional

from passkit.core.errors import DigestError
from passkit.services.pass_assets import PASS_ASSET_NAMES, AssetSource, snapshot_assets

logger = logging.getLogger(__name__)

PASS_JSON = "pass.json"
MANIFEST_JSON = "manifest.json"
SIGNATURE = "signature"


def file_digest(content: bytes) -> str:
    """Lower-case hex SHA1. Wallet only accepts SHA1 in manifest.json."""
    return hashlib.sha1(content).hexdigest()


def create_manifest(pass_json: bytes, assets: Mapping[str, bytes]) -> Dict[str, str]:
    """
    Create the manifest from pass.json bytes and already resolved assets.

    Raises:
        DigestError: pass.json bytes are missing
    """
    if pass_json is None or not isinstance(pass_json, (bytes, bytearray)):
        raise DigestError(f"Cannot digest {PASS_JSON}: document bytes are missing")

    manifest = {PASS_JSON: file_digest(bytes(pass_json))}
    for name, content in assets.items():
        manifest[name] = file_digest(content)
    return manifest


def build_manifest(
    pass_json: bytes,
    asset_source: AssetSource,
    asset_names: Optional[Iterable[str]] = None,
) -> Dict[str, str]:
    """Resolve assets from a source and create the manifest. Unresolvable assets are skipped."""
    names = PASS_ASSET_NAMES if asset_names is None else asset_names
    return create_manifest(pass_json, snapshot_assets(asset_source, names))


def serialize_manifest(manifest: Mapping[str, str]) -> bytes:
    # These exact bytes are both signed and written to the archive
    return json.dumps(dict(manifest), indent=2, sort_keys=True).encode("utf-8")

"""
.pkpass archive assembly (a zip file).
"""
import logging
import zipfile
from io import BytesIO
from typing import Mapping

from passkit.services.pass_manifest import MANIFEST_JSON, PASS_JSON, SIGNATURE

logger = logging.getLogger(__name__)

PKPASS_MEDIA_TYPE = "application/vnd.apple.pkpass"


def assemble_pkpass(
    pass_json: bytes,
    manifest_json: bytes,
    signature: bytes,
    assets: Mapping[str, bytes],
) -> bytes:
    """
    Zip pass.json, manifest.json and signature, then every asset.

    ``assets`` must be the same snapshot the manifest was built from.
    """
    bundle = BytesIO()
    with zipfile.ZipFile(bundle, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(PASS_JSON, pass_json)
        zf.writestr(MANIFEST_JSON, manifest_json)
        zf.writestr(SIGNATURE, signature)
        for name, content in assets.items():
            zf.writestr(name, content)

    bundle_bytes = bundle.getvalue()
    logger.info(f"Assembled pkpass with {len(assets)} asset(s), size={len(bundle_bytes)} bytes")
    return bundle_bytes

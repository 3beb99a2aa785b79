"""
Detached PKCS#7 signature over manifest.json.

The signer is the Pass Type ID certificate and the WWDR intermediate is
added to the certificate set, leaf first. The manifest bytes are signed by
reference only (detached), using SHA256 with the RSA key.
"""
import logging

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs7

from passkit.core.errors import SigningError
from passkit.services.pass_trust_store import SigningMaterial

logger = logging.getLogger(__name__)


def sign_manifest(manifest_bytes: bytes, material: SigningMaterial) -> bytes:
    """
    Create the DER-encoded detached signature for the archive.

    Raises:
        SigningError: wrapping whatever the cryptography backend raised
    """
    try:
        signature = (
            pkcs7.PKCS7SignatureBuilder()
            .set_data(manifest_bytes)
            .add_signer(material.certificate, material.private_key, hashes.SHA256())
            .add_certificate(material.intermediate)
            .sign(
                serialization.Encoding.DER,
                [pkcs7.PKCS7Options.DetachedSignature, pkcs7.PKCS7Options.Binary],
            )
        )
    except Exception as e:
        logger.error(f"Failed to sign pass manifest: {e}", exc_info=True)
        raise SigningError(f"Failed to sign pass manifest: {e}", cause=e) from e

    logger.debug(f"Created detached PKCS#7 signature ({len(signature)} bytes)")
    return signature

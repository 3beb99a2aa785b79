"""
Certificate Trust Store

Loads the Pass Type ID private key, the Pass Type ID certificate and the
Apple WWDR intermediate certificate once, validates them, and caches the
result for the life of the process.

A failed load caches nothing: the next signing request tries again, so
corrected files are picked up without a restart.
"""
import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.x509.oid import NameOID

from passkit.config import Settings, settings as default_settings
from passkit.core.errors import (
    CertificateError,
    CertificateExpiredError,
    CertificateNotFoundError,
    InvalidCertificateFormatError,
    InvalidKeyFormatError,
    KeyCertificateMismatchError,
    PlaceholderCertificateError,
)

logger = logging.getLogger(__name__)

# Subject fragments of self-made certificates that Wallet will never accept
PLACEHOLDER_SUBJECT_MARKERS = ("Test Certificate", "Test Organization", "test")

_KEY_CHECK_PAYLOAD = b"test"


@dataclass(frozen=True)
class SigningMaterial:
    """Validated key and certificate chain, ready for signing."""
    private_key: rsa.RSAPrivateKey
    certificate: x509.Certificate
    intermediate: x509.Certificate
    key_path: str
    cert_path: str
    wwdr_path: str


def candidate_paths(configured_path: str) -> List[str]:
    """
    Locations tried for a configured file, in order: the path itself, the
    path relative to the parent and grandparent directory, then certs/<name>
    and ../certs/<name>.
    """
    name = os.path.basename(configured_path)
    candidates = [
        configured_path,
        os.path.join("..", configured_path),
        os.path.join("..", "..", configured_path),
        os.path.join("certs", name),
        os.path.join("..", "certs", name),
    ]
    unique: List[str] = []
    for path in candidates:
        if path not in unique:
            unique.append(path)
    return unique


def resolve_path(description: str, configured_path: str) -> str:
    """First candidate that is a regular file, or CertificateNotFoundError listing all of them."""
    tried = candidate_paths(configured_path)
    for path in tried:
        if os.path.isfile(path):
            if path != configured_path:
                logger.info(f"{description} found at fallback location {path}")
            return path
    raise CertificateNotFoundError(description, configured_path, tried)


def _read(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def load_private_key(path: str, password: Optional[str] = None) -> rsa.RSAPrivateKey:
    data = _read(path)
    secret = password.encode() if password else None
    try:
        try:
            key = serialization.load_pem_private_key(data, password=secret)
        except ValueError:
            # Try DER format
            key = serialization.load_der_private_key(data, password=secret)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InvalidKeyFormatError(path, str(e)) from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise InvalidKeyFormatError(path, f"expected an RSA key, got {type(key).__name__}")
    return key


def load_certificate(path: str) -> x509.Certificate:
    data = _read(path)
    try:
        try:
            return x509.load_pem_x509_certificate(data)
        except ValueError:
            # Try DER format
            return x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise InvalidCertificateFormatError(path, str(e)) from e


def _subject_attribute(cert: x509.Certificate, oid) -> str:
    values = cert.subject.get_attributes_for_oid(oid)
    return str(values[0].value) if values else ""


def check_not_placeholder(cert: x509.Certificate, path: str) -> None:
    subject = cert.subject.rfc4514_string()
    if any(marker in subject for marker in PLACEHOLDER_SUBJECT_MARKERS):
        raise PlaceholderCertificateError(path, subject)


def check_validity(cert: x509.Certificate, path: str, now: Optional[datetime] = None) -> None:
    now = now or datetime.now(timezone.utc)
    not_before = cert.not_valid_before_utc
    not_after = cert.not_valid_after_utc
    if now < not_before:
        raise CertificateExpiredError(path, f"not valid before {not_before.isoformat()}")
    if now > not_after:
        raise CertificateExpiredError(path, f"expired at {not_after.isoformat()}")


def check_key_matches(private_key: rsa.RSAPrivateKey, cert: x509.Certificate, key_path: str, cert_path: str) -> None:
    """Sign a probe with the key and verify it with the certificate's public key."""
    probe = private_key.sign(_KEY_CHECK_PAYLOAD, padding.PKCS1v15(), hashes.SHA256())
    public_key = cert.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise KeyCertificateMismatchError(key_path, cert_path)
    try:
        public_key.verify(probe, _KEY_CHECK_PAYLOAD, padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature as e:
        raise KeyCertificateMismatchError(key_path, cert_path) from e


def log_subject_advisories(cert: x509.Certificate, intermediate: x509.Certificate, settings: Settings) -> None:
    """Subject mismatches Apple rejects at install time. Logged only."""
    common_name = _subject_attribute(cert, NameOID.COMMON_NAME)
    if settings.PASSKIT_PASS_TYPE_IDENTIFIER not in common_name:
        logger.warning(
            f"Pass certificate CN '{common_name}' does not mention pass type identifier "
            f"'{settings.PASSKIT_PASS_TYPE_IDENTIFIER}'"
        )

    unit = _subject_attribute(cert, NameOID.ORGANIZATIONAL_UNIT_NAME)
    if unit != settings.PASSKIT_TEAM_IDENTIFIER:
        logger.warning(
            f"Pass certificate OU '{unit}' does not match team identifier "
            f"'{settings.PASSKIT_TEAM_IDENTIFIER}'"
        )

    wwdr_subject = intermediate.subject.rfc4514_string()
    if "Apple" not in wwdr_subject and "Worldwide Developer Relations" not in wwdr_subject:
        logger.warning(f"WWDR certificate subject '{wwdr_subject}' does not look like Apple WWDR")


class PassCertificateTrustStore:
    """
    Lazily loaded, process-wide signing material.

    ``get_material()`` is safe under concurrent first use: one thread loads,
    the others wait and reuse the result.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self._material: Optional[SigningMaterial] = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._material is not None

    def get_material(self) -> SigningMaterial:
        material = self._material
        if material is not None:
            return material

        with self._lock:
            if self._material is None:
                try:
                    self._material = self._load()
                except CertificateError as e:
                    logger.error(f"Failed to load pass signing certificates: {e.message}", exc_info=True)
                    raise
            return self._material

    def reset(self) -> None:
        """Drop cached material; the next signing request reloads from disk."""
        with self._lock:
            self._material = None

    def _load(self) -> SigningMaterial:
        s = self.settings
        key_path = resolve_path("Private key", s.PASSKIT_KEY_PATH)
        cert_path = resolve_path("Pass certificate", s.PASSKIT_CERT_PATH)
        wwdr_path = resolve_path("WWDR certificate", s.PASSKIT_WWDR_PATH)

        private_key = load_private_key(key_path, s.PASSKIT_KEY_PASSWORD)
        certificate = load_certificate(cert_path)
        intermediate = load_certificate(wwdr_path)

        check_not_placeholder(certificate, cert_path)
        check_validity(certificate, cert_path)
        check_validity(intermediate, wwdr_path)
        check_key_matches(private_key, certificate, key_path, cert_path)
        log_subject_advisories(certificate, intermediate, s)

        logger.info(
            f"Loaded pass signing material: cert={cert_path} "
            f"(subject '{certificate.subject.rfc4514_string()}', expires {certificate.not_valid_after_utc.date()})"
        )
        return SigningMaterial(
            private_key=private_key,
            certificate=certificate,
            intermediate=intermediate,
            key_path=key_path,
            cert_path=cert_path,
            wwdr_path=wwdr_path,
        )

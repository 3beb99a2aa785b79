"""
Pass pipeline error taxonomy.

Every error carries a machine-readable ``error_code`` and a message that names
the offending serial number or certificate path. ``retryable`` is False for all
of them: certificate and signing problems are configuration faults, and
NotFound/Revoked are properties of the request itself.
"""
from typing import Iterable, List, Optional


class PassKitError(Exception):
    """Base exception for the pass build and signing pipeline"""
    error_code = "PASSKIT_ERROR"
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PassNotFoundError(PassKitError):
    """No pass record exists for the serial number"""
    error_code = "PASS_NOT_FOUND"

    def __init__(self, serial_number: str):
        super().__init__(f"Pass not found: {serial_number}")
        self.serial_number = serial_number


class PassRevokedError(PassKitError):
    """Mutation attempted on a revoked (terminal) pass record"""
    error_code = "PASS_REVOKED"

    def __init__(self, serial_number: str):
        super().__init__(f"Pass {serial_number} is revoked and cannot be updated")
        self.serial_number = serial_number


class SerialNumberTakenError(PassKitError):
    """Create-only insert hit an existing record with the same serial number"""
    error_code = "SERIAL_NUMBER_TAKEN"

    def __init__(self, serial_number: str):
        super().__init__(f"Pass {serial_number} already exists")
        self.serial_number = serial_number


class InvalidStatusError(PassKitError):
    """Unknown status value supplied in a field update"""
    error_code = "INVALID_STATUS"

    def __init__(self, serial_number: str, value: str):
        super().__init__(
            f"Invalid status '{value}' for pass {serial_number}; "
            "expected one of: active, expired, inactive, revoked"
        )
        self.serial_number = serial_number
        self.value = value


class CertificateError(PassKitError):
    """Base class for trust store load failures"""
    error_code = "CERTIFICATE_ERROR"


class CertificateNotFoundError(CertificateError):
    """None of the candidate locations holds the requested file"""
    error_code = "CERTIFICATE_NOT_FOUND"

    def __init__(self, description: str, configured_path: str, tried_paths: Iterable[str]):
        self.description = description
        self.configured_path = configured_path
        self.tried_paths: List[str] = list(tried_paths)
        tried = "".join(f"\n  - {path}" for path in self.tried_paths)
        super().__init__(f"{description} not found at: {configured_path}\nTried paths:{tried}")


class InvalidKeyFormatError(CertificateError):
    """The private key file does not decode to an RSA private key"""
    error_code = "INVALID_KEY_FORMAT"

    def __init__(self, path: str, reason: str):
        super().__init__(f"Private key file {path} does not contain a valid private key: {reason}")
        self.path = path


class InvalidCertificateFormatError(CertificateError):
    """The certificate file is neither PEM nor DER X.509"""
    error_code = "INVALID_CERTIFICATE_FORMAT"

    def __init__(self, path: str, reason: str):
        super().__init__(f"Certificate file {path} is not a valid X.509 certificate: {reason}")
        self.path = path


class PlaceholderCertificateError(CertificateError):
    """The pass certificate subject looks like a self-made test certificate"""
    error_code = "PLACEHOLDER_CERTIFICATE"

    def __init__(self, path: str, subject: str):
        super().__init__(
            f"Test certificate detected at {path} (subject '{subject}'). "
            "Apple Wallet requires a real Pass Type ID certificate from the Apple Developer Portal."
        )
        self.path = path
        self.subject = subject


class CertificateExpiredError(CertificateError):
    """A certificate in the chain is expired or not yet valid"""
    error_code = "CERTIFICATE_EXPIRED"

    def __init__(self, path: str, detail: str):
        super().__init__(f"Certificate {path} is expired or not yet valid: {detail}")
        self.path = path


class KeyCertificateMismatchError(CertificateError):
    """The private key does not belong to the pass certificate"""
    error_code = "KEY_CERTIFICATE_MISMATCH"

    def __init__(self, key_path: str, cert_path: str):
        super().__init__(f"Private key {key_path} does not match the pass certificate {cert_path}")
        self.key_path = key_path
        self.cert_path = cert_path


class SigningError(PassKitError):
    """Creating the detached manifest signature failed"""
    error_code = "SIGNING_FAILED"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class AssetMissingError(PassKitError):
    """A static pass asset could not be resolved (non-fatal)"""
    error_code = "ASSET_MISSING"

    def __init__(self, name: str, reason: str):
        super().__init__(f"Could not load {name}: {reason}")
        self.name = name


class DigestError(PassKitError):
    """The mandatory pass.json entry could not be digested"""
    error_code = "DIGEST_FAILED"

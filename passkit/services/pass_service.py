"""
Pass Service - build, sign and package Apple Wallet passes

Composes the document builder, record store, manifest, signer and archive
assembler into the operations exposed over HTTP:

    generate              build a new document (new or explicit serial) and persist it
    refresh               re-sign the stored document unchanged
    update_with_document  rebuild the document of an existing pass
    update_with_fields    patch field values of the stored document
    revoke / expire       status-only transitions

The record is written before signing. If signing fails afterwards the record
keeps its new version and the caller can fetch the archive again with
``refresh``.
"""
import logging
import secrets
from dataclasses import dataclass
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from passkit.config import Settings, settings as default_settings
from passkit.core.errors import PassNotFoundError, PassRevokedError, SerialNumberTakenError
from passkit.models.pass_record import PassRecord, PassStatus
from passkit.schemas.pass_document import PassDocument
from passkit.schemas.pass_request import PassRequest
from passkit.services.pass_archive import assemble_pkpass
from passkit.services.pass_assets import AssetSource, DirectoryAssetSource, snapshot_assets
from passkit.services.pass_document_builder import build_pass_document
from passkit.services.pass_manifest import create_manifest, serialize_manifest
from passkit.services.pass_push import PassUpdateNotifier, build_notifier
from passkit.services.pass_record_store import PassRecordStore
from passkit.services.pass_signer import sign_manifest
from passkit.services.pass_trust_store import PassCertificateTrustStore

logger = logging.getLogger(__name__)

SERIAL_NUMBER_DIGITS = 5


@dataclass
class PassGenerationResult:
    data: bytes
    serial_number: str
    version: int


class PassService:
    """Pipeline orchestrator. Holds no pass state between calls."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        trust_store: Optional[PassCertificateTrustStore] = None,
        asset_source: Optional[AssetSource] = None,
        notifier: Optional[PassUpdateNotifier] = None,
        record_store: Optional[PassRecordStore] = None,
    ):
        self.settings = settings or default_settings
        self.trust_store = trust_store or PassCertificateTrustStore(self.settings)
        self.asset_source = asset_source or DirectoryAssetSource(self.settings.PASSKIT_ASSETS_DIR)
        self.notifier = notifier or build_notifier(self.settings)
        self.record_store = record_store or PassRecordStore()

    def generate(
        self,
        db: Session,
        serial_number: Optional[str] = None,
        request: Optional[PassRequest] = None,
    ) -> PassGenerationResult:
        """
        Build, persist and package a pass.

        Without a serial number a random unused 5-digit one is allocated. An
        existing serial number is regenerated (version + 1) unless revoked.
        """
        if serial_number:
            record = self._store_document(db, build_pass_document(serial_number, request, self.settings))
        else:
            record = self._create_with_new_serial(db, request)
        logger.info(f"Generated pass {record.serial_number} (version {record.version})")
        return self._package(record)

    def refresh(self, db: Session, serial_number: str) -> PassGenerationResult:
        """Re-sign and re-package the stored document without rebuilding it."""
        record = self.record_store.get(db, serial_number)
        if record.is_revoked:
            raise PassRevokedError(serial_number)
        return self._package(record)

    def refresh_or_generate(
        self,
        db: Session,
        serial_number: str,
        request: Optional[PassRequest] = None,
    ) -> PassGenerationResult:
        """Refresh a known pass; generate one under this serial number otherwise."""
        try:
            return self.refresh(db, serial_number)
        except PassNotFoundError:
            logger.info(f"Pass {serial_number} not found, generating it")
            return self.generate(db, serial_number, request)

    def update_with_document(
        self,
        db: Session,
        serial_number: str,
        request: Optional[PassRequest] = None,
    ) -> PassGenerationResult:
        """Rebuild the document of an existing pass from a request."""
        if not self.record_store.exists(db, serial_number):
            raise PassNotFoundError(serial_number)

        record = self._store_document(db, build_pass_document(serial_number, request, self.settings))
        result = self._package(record)
        self._notify(record)
        return result

    def update_with_fields(
        self,
        db: Session,
        serial_number: str,
        updates: Mapping[str, str],
    ) -> PassGenerationResult:
        """Patch field values by key (see PassRecordStore.apply_field_updates) and re-package."""
        record = self.record_store.apply_field_updates(db, serial_number, updates)
        result = self._package(record)
        self._notify(record)
        return result

    def revoke(self, db: Session, serial_number: str) -> PassRecord:
        record = self.record_store.set_status(db, serial_number, PassStatus.REVOKED)
        logger.info(f"Pass revoked: {serial_number}")
        self._notify(record)
        return record

    def expire(self, db: Session, serial_number: str) -> PassRecord:
        record = self.record_store.set_status(db, serial_number, PassStatus.EXPIRED)
        logger.info(f"Pass expired: {serial_number}")
        self._notify(record)
        return record

    def _allocate_serial(self, db: Session) -> str:
        """Random 5-digit serial number not currently in use (may still lose a race)."""
        while True:
            candidate = f"{secrets.randbelow(10 ** SERIAL_NUMBER_DIGITS):0{SERIAL_NUMBER_DIGITS}d}"
            if not self.record_store.exists(db, candidate):
                return candidate
            logger.debug(f"Serial number {candidate} already taken, drawing again")

    def _create_with_new_serial(self, db: Session, request: Optional[PassRequest]) -> PassRecord:
        # Insert is create-only, so a serial claimed concurrently is redrawn instead of overwritten
        while True:
            document = build_pass_document(self._allocate_serial(db), request, self.settings)
            try:
                return self.record_store.create(
                    db,
                    document.serial_number,
                    document.pass_type_identifier,
                    document.to_json(),
                )
            except SerialNumberTakenError:
                logger.info(f"Serial number {document.serial_number} was claimed concurrently, drawing again")

    def _store_document(self, db: Session, document: PassDocument) -> PassRecord:
        return self.record_store.create_or_update(
            db,
            document.serial_number,
            document.pass_type_identifier,
            document.to_json(),
        )

    def _package(self, record: PassRecord) -> PassGenerationResult:
        """Manifest, signature and zip for the stored document bytes."""
        pass_json = record.pass_data.encode("utf-8")
        assets = snapshot_assets(self.asset_source)

        manifest_json = serialize_manifest(create_manifest(pass_json, assets))
        signature = sign_manifest(manifest_json, self.trust_store.get_material())
        data = assemble_pkpass(pass_json, manifest_json, signature, assets)

        return PassGenerationResult(data=data, serial_number=record.serial_number, version=record.version)

    def _notify(self, record: PassRecord) -> None:
        try:
            self.notifier.notify(record.pass_type_identifier, record.serial_number)
        except Exception as e:
            # Notification must never fail the operation that triggered it
            logger.error(f"Pass update notification failed for {record.serial_number}: {e}", exc_info=True)

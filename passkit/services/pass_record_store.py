"""
Pass Record Store

Durable, versioned pass records keyed by serial number. Every
read-modify-write on one serial number runs under an in-process lock and a
``SELECT ... FOR UPDATE`` row lock, so version increments are never lost and a
revoked check cannot race a concurrent revoke.
"""
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from passkit.core.errors import (
    InvalidStatusError,
    PassNotFoundError,
    PassRevokedError,
    SerialNumberTakenError,
)
from passkit.models.pass_record import PassRecord, PassStatus
from passkit.schemas.pass_document import PassDocument

logger = logging.getLogger(__name__)

STATUS_PARAM = "status"

# Accepted values of the "status" update parameter (case-insensitive)
STATUS_PARAM_VALUES: Dict[str, PassStatus] = {
    "active": PassStatus.ACTIVE,
    "expired": PassStatus.EXPIRED,
    "inactive": PassStatus.REVOKED,
    "revoked": PassStatus.REVOKED,
}


def parse_status_param(serial_number: str, value: str) -> PassStatus:
    """Translate a status update parameter to a PassStatus, or raise InvalidStatusError."""
    status = STATUS_PARAM_VALUES.get((value or "").strip().lower())
    if status is None:
        raise InvalidStatusError(serial_number, value)
    return status


class PassRecordRepository:
    """Thin query layer over pass_records. ``save`` commits."""

    def __init__(self, db: Session):
        self.db = db

    def find(self, serial_number: str) -> Optional[PassRecord]:
        return self.db.query(PassRecord).filter(PassRecord.serial_number == serial_number).first()

    def find_for_update(self, serial_number: str) -> Optional[PassRecord]:
        # Row lock on PostgreSQL; SQLite ignores FOR UPDATE and relies on the in-process lock
        return (
            self.db.query(PassRecord)
            .filter(PassRecord.serial_number == serial_number)
            .with_for_update()
            .first()
        )

    def exists(self, serial_number: str) -> bool:
        return (
            self.db.query(PassRecord.serial_number)
            .filter(PassRecord.serial_number == serial_number)
            .first()
            is not None
        )

    def save(self, record: PassRecord) -> PassRecord:
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record


class SerialLockRegistry:
    """
    One lock per serial number, created on first use and dropped once no
    thread holds or waits for it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, List] = {}  # serial -> [lock, holders]

    @contextmanager
    def hold(self, serial_number: str):
        with self._guard:
            entry = self._locks.get(serial_number)
            if entry is None:
                entry = self._locks[serial_number] = [threading.Lock(), 0]
            entry[1] += 1

        lock = entry[0]
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[serial_number]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class PassRecordStore:
    """Lifecycle operations on pass records. Owns the per-serial locking."""

    def __init__(self, locks: Optional[SerialLockRegistry] = None):
        self.locks = locks if locks is not None else SerialLockRegistry()

    def exists(self, db: Session, serial_number: str) -> bool:
        return PassRecordRepository(db).exists(serial_number)

    def get(self, db: Session, serial_number: str) -> PassRecord:
        record = PassRecordRepository(db).find(serial_number)
        if record is None:
            raise PassNotFoundError(serial_number)
        return record

    def create(
        self,
        db: Session,
        serial_number: str,
        pass_type_identifier: str,
        document_json: str,
    ) -> PassRecord:
        """
        Insert a new record at version 1 (Active), never touching an existing one.

        Raises SerialNumberTakenError when the serial number is already in
        use, including an insert that loses a race with another process.
        """
        repo = PassRecordRepository(db)
        with self.locks.hold(serial_number):
            if repo.find_for_update(serial_number) is not None:
                self._release(repo)
                raise SerialNumberTakenError(serial_number)
            try:
                return repo.save(self._new_record(serial_number, pass_type_identifier, document_json))
            except IntegrityError:
                db.rollback()
                raise SerialNumberTakenError(serial_number)

    def create_or_update(
        self,
        db: Session,
        serial_number: str,
        pass_type_identifier: str,
        document_json: str,
    ) -> PassRecord:
        """
        Store a freshly built document.

        Creates the record at version 1 (Active) or overwrites the stored
        document and increments the version. Raises PassRevokedError for a
        revoked record.
        """
        repo = PassRecordRepository(db)
        with self.locks.hold(serial_number):
            try:
                return self._write_document(repo, serial_number, pass_type_identifier, document_json)
            except IntegrityError:
                # Another process inserted the same serial first; it now exists, so update it
                db.rollback()
                logger.info(f"Pass {serial_number} was created concurrently, retrying as update")
                return self._write_document(repo, serial_number, pass_type_identifier, document_json)

    def set_status(
        self,
        db: Session,
        serial_number: str,
        status: PassStatus,
        timestamp: Optional[datetime] = None,
    ) -> PassRecord:
        """
        Transition a record's status and stamp expires_at / revoked_at.

        The version is always incremented: devices use it to notice the change.
        """
        repo = PassRecordRepository(db)
        with self.locks.hold(serial_number):
            record = self._locked_record(repo, serial_number)
            self._transition(repo, record, status, timestamp or datetime.utcnow())
            record.version += 1
            record.updated_at = datetime.utcnow()
            record = repo.save(record)

        logger.info(f"Pass {serial_number} status -> {status.value} (version {record.version})")
        return record

    def apply_field_updates(
        self,
        db: Session,
        serial_number: str,
        updates: Mapping[str, str],
    ) -> PassRecord:
        """
        Patch field values of the stored document by key.

        Every field in any group whose key is in ``updates`` gets the new
        value; unknown keys are ignored. A ``status`` entry is translated to
        the status label (e.g. EXPIRED) before it is written into fields keyed
        ``status``, and also moves the record to that status. Status change
        and document rewrite are committed together with one version bump.

        Raises:
            PassNotFoundError: no record for the serial number
            PassRevokedError: the record is revoked, or this update revokes it
            InvalidStatusError: unknown status value
        """
        repo = PassRecordRepository(db)
        values = dict(updates)

        with self.locks.hold(serial_number):
            record = self._locked_record(repo, serial_number)
            if record.is_revoked:
                self._release(repo)
                raise PassRevokedError(serial_number)

            new_status = None
            if STATUS_PARAM in values:
                try:
                    new_status = parse_status_param(serial_number, values[STATUS_PARAM])
                except InvalidStatusError:
                    self._release(repo)
                    raise
                values[STATUS_PARAM] = new_status.value

            now = datetime.utcnow()
            if new_status is not None:
                self._transition(repo, record, new_status, now)

            if record.is_revoked:
                # The revocation itself persists; the content update does not
                record.version += 1
                record.updated_at = now
                repo.save(record)
                logger.info(f"Pass {serial_number} revoked through field update")
                raise PassRevokedError(serial_number)

            document = PassDocument.from_json(record.pass_data)
            changed = patch_fields(document, values)
            record.pass_data = document.to_json()
            record.version += 1
            record.updated_at = now
            record = repo.save(record)

        logger.info(f"Updated {len(changed)} field(s) on pass {serial_number} (version {record.version})")
        return record

    # Internal helpers (callers hold the serial lock)

    def _write_document(
        self,
        repo: PassRecordRepository,
        serial_number: str,
        pass_type_identifier: str,
        document_json: str,
    ) -> PassRecord:
        record = repo.find_for_update(serial_number)
        if record is None:
            record = self._new_record(serial_number, pass_type_identifier, document_json)
        elif record.is_revoked:
            self._release(repo)
            raise PassRevokedError(serial_number)
        else:
            record.pass_type_identifier = pass_type_identifier
            record.pass_data = document_json
            record.version += 1
            record.updated_at = datetime.utcnow()
        return repo.save(record)

    @staticmethod
    def _new_record(serial_number: str, pass_type_identifier: str, document_json: str) -> PassRecord:
        now = datetime.utcnow()
        return PassRecord(
            serial_number=serial_number,
            pass_type_identifier=pass_type_identifier,
            pass_data=document_json,
            version=1,
            status=PassStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )

    def _locked_record(self, repo: PassRecordRepository, serial_number: str) -> PassRecord:
        record = repo.find_for_update(serial_number)
        if record is None:
            self._release(repo)
            raise PassNotFoundError(serial_number)
        return record

    def _transition(
        self,
        repo: PassRecordRepository,
        record: PassRecord,
        status: PassStatus,
        when: datetime,
    ) -> None:
        # Revoked is absorbing: re-revoking is allowed, leaving it is not
        if record.is_revoked and status != PassStatus.REVOKED:
            self._release(repo)
            raise PassRevokedError(record.serial_number)

        record.status = status
        if status == PassStatus.EXPIRED:
            record.expires_at = when
        elif status == PassStatus.REVOKED:
            record.revoked_at = when
        else:
            record.expires_at = None

    @staticmethod
    def _release(repo: PassRecordRepository) -> None:
        """End the transaction so the row lock is not held while the error propagates."""
        repo.db.rollback()


def patch_fields(document: PassDocument, values: Mapping[str, str]) -> List[Tuple[str, str]]:
    """
    Replace the value of every field whose key is in ``values``.

    Returns (group, key) pairs that were changed.
    """
    changed: List[Tuple[str, str]] = []
    structure = document.structure
    for group, _ in structure.iter_groups():
        for key, value in values.items():
            field = structure.find_field_by_key(group, key)
            if field is not None:
                field.value = "" if value is None else str(value)
                changed.append((group.value, key))
    return changed

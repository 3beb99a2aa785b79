"""
Unit tests for the pass record lifecycle
"""
import json
from datetime import datetime

import pytest
from sqlalchemy.orm import Session

from passkit.core.errors import (
    InvalidStatusError,
    PassNotFoundError,
    PassRevokedError,
    SerialNumberTakenError,
)
from passkit.models.pass_record import PassRecord, PassStatus
from passkit.schemas import FieldGroup, PassDocument, PassRequest
from passkit.services.pass_document_builder import build_pass_document
from passkit.services.pass_record_store import (
    PassRecordRepository,
    PassRecordStore,
    SerialLockRegistry,
    parse_status_param,
)

PASS_TYPE_ID = "pass.com.example.passkit"


def document_json(serial_number: str, code: str = "ep") -> str:
    return build_pass_document(serial_number, PassRequest.for_type_code(code)).to_json()


@pytest.fixture
def store():
    return PassRecordStore()


@pytest.fixture
def stored(db: Session, store):
    """An Active event ticket record at version 1"""
    return store.create_or_update(db, "10001", PASS_TYPE_ID, document_json("10001"))


def stored_field(record: PassRecord, group: FieldGroup, key: str):
    document = PassDocument.from_json(record.pass_data)
    return document.structure.find_field_by_key(group, key)


class TestCreateOrUpdate:
    def test_first_write_creates_active_version_one(self, db: Session, store):
        record = store.create_or_update(db, "10001", PASS_TYPE_ID, document_json("10001"))

        assert record.version == 1
        assert record.status == PassStatus.ACTIVE
        assert record.pass_type_identifier == PASS_TYPE_ID
        assert record.created_at is not None
        assert record.expires_at is None
        assert record.revoked_at is None

    def test_rewrite_increments_version_and_replaces_document(self, db: Session, store, stored):
        new_json = document_json("10001", code="cp")
        record = store.create_or_update(db, "10001", PASS_TYPE_ID, new_json)

        assert record.version == 2
        assert record.pass_data == new_json
        assert db.query(PassRecord).count() == 1

    def test_rewrite_of_revoked_record_fails(self, db: Session, store, stored):
        store.set_status(db, "10001", PassStatus.REVOKED)

        with pytest.raises(PassRevokedError) as exc_info:
            store.create_or_update(db, "10001", PASS_TYPE_ID, document_json("10001"))

        assert "10001" in exc_info.value.message
        record = store.get(db, "10001")
        assert record.version == 2
        assert record.status == PassStatus.REVOKED


class TestCreate:
    def test_inserts_active_version_one(self, db: Session, store):
        record = store.create(db, "10002", PASS_TYPE_ID, document_json("10002"))

        assert record.version == 1
        assert record.status == PassStatus.ACTIVE
        assert len(store.locks) == 0

    def test_existing_serial_is_left_untouched(self, db: Session, store, stored):
        original = stored.pass_data

        with pytest.raises(SerialNumberTakenError) as exc_info:
            store.create(db, "10001", PASS_TYPE_ID, document_json("10001", code="cp"))

        assert exc_info.value.serial_number == "10001"
        record = store.get(db, "10001")
        assert record.version == 1
        assert record.pass_data == original

    def test_existing_revoked_serial_is_taken(self, db: Session, store, stored):
        store.set_status(db, "10001", PassStatus.REVOKED)

        with pytest.raises(SerialNumberTakenError):
            store.create(db, "10001", PASS_TYPE_ID, document_json("10001"))


class TestGet:
    def test_get_unknown_serial_raises_not_found(self, db: Session, store):
        with pytest.raises(PassNotFoundError) as exc_info:
            store.get(db, "99999")
        assert exc_info.value.serial_number == "99999"
        assert "99999" in str(exc_info.value)

    def test_exists(self, db: Session, store, stored):
        assert store.exists(db, "10001")
        assert not store.exists(db, "10002")


class TestSetStatus:
    def test_expire_stamps_expires_at_and_bumps_version(self, db: Session, store, stored):
        when = datetime(2026, 3, 1, 12, 0, 0)
        record = store.set_status(db, "10001", PassStatus.EXPIRED, when)

        assert record.status == PassStatus.EXPIRED
        assert record.expires_at.replace(tzinfo=None) == when
        assert record.version == 2
        # Document body is untouched
        assert record.pass_data == stored.pass_data

    def test_revoke_stamps_revoked_at(self, db: Session, store, stored):
        record = store.set_status(db, "10001", PassStatus.REVOKED)

        assert record.status == PassStatus.REVOKED
        assert record.revoked_at is not None
        assert record.version == 2

    def test_revoked_is_terminal(self, db: Session, store, stored):
        store.set_status(db, "10001", PassStatus.REVOKED)

        with pytest.raises(PassRevokedError):
            store.set_status(db, "10001", PassStatus.ACTIVE)
        with pytest.raises(PassRevokedError):
            store.set_status(db, "10001", PassStatus.EXPIRED)

        assert store.get(db, "10001").status == PassStatus.REVOKED

    def test_revoking_twice_is_allowed(self, db: Session, store, stored):
        store.set_status(db, "10001", PassStatus.REVOKED)
        record = store.set_status(db, "10001", PassStatus.REVOKED)

        assert record.status == PassStatus.REVOKED
        assert record.version == 3

    def test_unknown_serial(self, db: Session, store):
        with pytest.raises(PassNotFoundError):
            store.set_status(db, "55555", PassStatus.EXPIRED)


class TestApplyFieldUpdates:
    def test_matching_keys_are_replaced(self, db: Session, store, stored):
        record = store.apply_field_updates(db, "10001", {"seat": "B-7", "event": "Jazz Night"})

        assert stored_field(record, FieldGroup.AUXILIARY, "seat").value == "B-7"
        assert stored_field(record, FieldGroup.PRIMARY, "event").value == "Jazz Night"
        assert record.version == 2

    def test_unmatched_keys_are_ignored(self, db: Session, store, stored):
        before = json.loads(stored.pass_data)
        record = store.apply_field_updates(db, "10001", {"no_such_field": "x"})

        assert json.loads(record.pass_data) == before
        assert record.version == 2

    def test_status_expired_updates_record_and_status_field(self, db: Session, store, stored):
        record = store.apply_field_updates(db, "10001", {"status": "expired"})

        assert record.status == PassStatus.EXPIRED
        assert record.expires_at is not None
        assert stored_field(record, FieldGroup.AUXILIARY, "status").value == "EXPIRED"
        # One atomic change, one version
        assert record.version == 2

    def test_expired_pass_can_be_reactivated(self, db: Session, store, stored):
        store.apply_field_updates(db, "10001", {"status": "EXPIRED"})
        record = store.apply_field_updates(db, "10001", {"status": "Active"})

        assert record.status == PassStatus.ACTIVE
        assert record.expires_at is None
        assert stored_field(record, FieldGroup.AUXILIARY, "status").value == "ACTIVE"

    @pytest.mark.parametrize("value", ["revoked", "inactive", "INACTIVE"])
    def test_revoking_status_persists_then_refuses_content_update(self, db: Session, store, stored, value):
        with pytest.raises(PassRevokedError):
            store.apply_field_updates(db, "10001", {"status": value, "seat": "Z-1"})

        db.expire_all()
        record = store.get(db, "10001")
        assert record.status == PassStatus.REVOKED
        assert record.revoked_at is not None
        assert record.version == 2
        # Content untouched
        assert stored_field(record, FieldGroup.AUXILIARY, "seat").value == "A-12"

    def test_revoked_record_rejects_updates_without_change(self, db: Session, store, stored):
        store.set_status(db, "10001", PassStatus.REVOKED)

        with pytest.raises(PassRevokedError):
            store.apply_field_updates(db, "10001", {"seat": "B-7"})

        assert store.get(db, "10001").version == 2

    def test_invalid_status_value(self, db: Session, store, stored):
        with pytest.raises(InvalidStatusError) as exc_info:
            store.apply_field_updates(db, "10001", {"status": "paused", "seat": "B-7"})

        assert exc_info.value.value == "paused"
        record = store.get(db, "10001")
        assert record.version == 1
        assert record.status == PassStatus.ACTIVE

    def test_unknown_serial(self, db: Session, store):
        with pytest.raises(PassNotFoundError):
            store.apply_field_updates(db, "55555", {"seat": "B-7"})


@pytest.mark.parametrize("value,expected", [
    ("active", PassStatus.ACTIVE),
    ("EXPIRED", PassStatus.EXPIRED),
    ("Inactive", PassStatus.REVOKED),
    (" revoked ", PassStatus.REVOKED),
])
def test_parse_status_param(value, expected):
    assert parse_status_param("1", value) == expected


def test_parse_status_param_rejects_unknown():
    with pytest.raises(InvalidStatusError):
        parse_status_param("1", "archived")


def test_repository_save_and_find(db: Session):
    repo = PassRecordRepository(db)
    record = repo.save(PassRecord(
        serial_number="20001",
        pass_type_identifier=PASS_TYPE_ID,
        pass_data="{}",
        version=1,
        status=PassStatus.ACTIVE,
    ))

    assert repo.find("20001") is record
    assert repo.find_for_update("20001") is record
    assert repo.exists("20001")
    assert repo.find("20002") is None


def test_lock_registry_drops_idle_locks():
    registry = SerialLockRegistry()

    with registry.hold("1"):
        with registry.hold("2"):
            assert len(registry) == 2
    assert len(registry) == 0


def test_lock_registry_released_on_error():
    registry = SerialLockRegistry()

    with pytest.raises(RuntimeError):
        with registry.hold("1"):
            raise RuntimeError("boom")

    with registry.hold("1"):
        assert len(registry) == 1

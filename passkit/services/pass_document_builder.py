"""
Pass Document Builder

Maps a pass request (or nothing) onto a complete pass.json document.
Pure: no I/O and no failure modes, every missing input falls back to the
default template of the requested pass type.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional

from passkit.config import Settings, settings as default_settings
from passkit.schemas.pass_document import (
    Barcode,
    BarcodeFormat,
    FieldEntry,
    FieldGroup,
    PassDocument,
    PassStructure,
    PassType,
)
from passkit.schemas.pass_request import PassRequest
from passkit.services.pass_templates import DEFAULT_TRANSIT_TYPE, get_template

SERIAL_NUMBER_FIELD_KEY = "serialNumber"
STATUS_FIELD_KEY = "status"
INITIAL_STATUS_LABEL = "ACTIVE"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Wallet wants W3C timestamps with an offset; naive values are taken as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _dedupe_keys(fields: List[FieldEntry]) -> List[FieldEntry]:
    """Keep one entry per key: the last one wins, at the first one's position."""
    by_key: Dict[str, FieldEntry] = {}
    for entry in fields:
        by_key[entry.key] = entry
    return list(by_key.values())


def _with_status_fields(fields: Optional[List[FieldEntry]], serial_number: str) -> List[FieldEntry]:
    """
    Append the serial number and status to the auxiliary fields so both are
    visible on the front of the pass without a full refresh.
    """
    reserved = (SERIAL_NUMBER_FIELD_KEY, STATUS_FIELD_KEY)
    auxiliary = [entry for entry in (fields or []) if entry.key not in reserved]
    auxiliary.append(FieldEntry(key=SERIAL_NUMBER_FIELD_KEY, label="Serial Number", value=serial_number))
    auxiliary.append(FieldEntry(key=STATUS_FIELD_KEY, label="Status", value=INITIAL_STATUS_LABEL))
    return auxiliary


def build_structure(request: PassRequest, serial_number: str) -> PassStructure:
    """Field groups for the requested type. A supplied group replaces the default wholesale."""
    template = get_template(request.type)
    structure = PassStructure()

    for group in FieldGroup:
        requested = request.fields_for(group)
        if requested is not None:
            fields = _dedupe_keys([entry.model_copy() for entry in requested])
        else:
            fields = template.fields(group)

        if group == FieldGroup.AUXILIARY:
            fields = _with_status_fields(fields, serial_number)

        structure.set_group(group, fields)

    if request.type == PassType.BOARDING_PASS:
        structure.transit_type = request.transit_type or template.transit_type or DEFAULT_TRANSIT_TYPE

    return structure


def build_pass_document(
    serial_number: str,
    request: Optional[PassRequest] = None,
    settings: Optional[Settings] = None,
) -> PassDocument:
    """
    Build the pass.json document for a serial number.

    Args:
        serial_number: Serial number written into the document
        request: Type plus overrides; None means the Generic default template
        settings: Identity configuration (pass type id, team id, org name, web service)

    Returns:
        PassDocument with exactly one structure matching request.type
    """
    settings = settings or default_settings
    if request is None:
        request = PassRequest()

    template = get_template(request.type)
    structure = build_structure(request, serial_number)

    barcode = Barcode(
        format=request.barcode_format or BarcodeFormat.QR,
        message=request.barcode_message or template.barcode_message,
        message_encoding="iso-8859-1",
    )

    web_service_url = None
    authentication_token = None
    if settings.web_service_enabled:
        web_service_url = settings.PASSKIT_WEB_SERVICE_URL
        authentication_token = settings.PASSKIT_AUTH_TOKEN

    return PassDocument.with_structure(
        request.type,
        structure,
        format_version=1,
        pass_type_identifier=settings.PASSKIT_PASS_TYPE_IDENTIFIER,
        serial_number=serial_number,
        team_identifier=settings.PASSKIT_TEAM_IDENTIFIER,
        organization_name=request.organization_name or settings.PASSKIT_ORGANIZATION_NAME,
        description=request.description or template.description,
        web_service_url=web_service_url,
        authentication_token=authentication_token,
        barcodes=[barcode],
        background_color=request.background_color or template.background_color,
        foreground_color=request.foreground_color or template.foreground_color,
        label_color=request.label_color or template.label_color,
        expiration_date=_as_utc(request.expiration_date),
        relevant_date=_as_utc(request.relevant_date),
        locations=request.locations or None,
    )

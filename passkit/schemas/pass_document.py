"""
Typed pass.json model.

A PassDocument carries the common pass keys plus exactly one style structure
(generic, boardingPass, coupon, eventTicket or storeCard). Aliases are the
pass.json key names, so ``to_json()`` yields the document Wallet reads.
"""
import enum
import json
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PassType(str, enum.Enum):
    """Closed set of pass styles; the value is the pass.json structure key."""
    GENERIC = "generic"
    BOARDING_PASS = "boardingPass"
    COUPON = "coupon"
    EVENT_TICKET = "eventTicket"
    STORE_CARD = "storeCard"

    @property
    def structure_key(self) -> str:
        return self.value

    @classmethod
    def from_code(cls, code: Optional[str]) -> "PassType":
        """
        Resolve a short type code (bp, cp, ep, sp, gp), an enum name or a
        structure key. Anything unrecognised resolves to GENERIC.
        """
        if isinstance(code, PassType):
            return code
        if not code:
            return cls.GENERIC
        return _TYPE_CODES.get(code.strip().upper(), cls.GENERIC)


_TYPE_CODES: Dict[str, PassType] = {
    "BP": PassType.BOARDING_PASS,
    "BOARDING": PassType.BOARDING_PASS,
    "BOARDING_PASS": PassType.BOARDING_PASS,
    "BOARDINGPASS": PassType.BOARDING_PASS,
    "CP": PassType.COUPON,
    "COUPON": PassType.COUPON,
    "EP": PassType.EVENT_TICKET,
    "EVENT": PassType.EVENT_TICKET,
    "EVENT_TICKET": PassType.EVENT_TICKET,
    "EVENTTICKET": PassType.EVENT_TICKET,
    "SP": PassType.STORE_CARD,
    "STORE": PassType.STORE_CARD,
    "STORE_CARD": PassType.STORE_CARD,
    "STORECARD": PassType.STORE_CARD,
    "GP": PassType.GENERIC,
    "GENERIC": PassType.GENERIC,
}

_STRUCTURE_ATTRS = {
    PassType.GENERIC: "generic",
    PassType.BOARDING_PASS: "boarding_pass",
    PassType.COUPON: "coupon",
    PassType.EVENT_TICKET: "event_ticket",
    PassType.STORE_CARD: "store_card",
}


class _PrefixedEnum(str, enum.Enum):
    """Enum whose members may also be looked up without their PassKit prefix."""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            wanted = value.strip().lower()
            for member in cls:
                if member.value.lower() == wanted or member.name.lower() == wanted:
                    return member
        return None


class TransitType(_PrefixedEnum):
    AIR = "PKTransitTypeAir"
    BOAT = "PKTransitTypeBoat"
    BUS = "PKTransitTypeBus"
    GENERIC = "PKTransitTypeGeneric"
    TRAIN = "PKTransitTypeTrain"


class BarcodeFormat(_PrefixedEnum):
    QR = "PKBarcodeFormatQR"
    PDF417 = "PKBarcodeFormatPDF417"
    AZTEC = "PKBarcodeFormatAztec"
    CODE128 = "PKBarcodeFormatCode128"


class TextAlignment(_PrefixedEnum):
    LEFT = "PKTextAlignmentLeft"
    CENTER = "PKTextAlignmentCenter"
    RIGHT = "PKTextAlignmentRight"
    NATURAL = "PKTextAlignmentNatural"


class FieldGroup(str, enum.Enum):
    """The four ordered field groups of a pass structure"""
    PRIMARY = "primaryFields"
    SECONDARY = "secondaryFields"
    AUXILIARY = "auxiliaryFields"
    BACK = "backFields"


_GROUP_ATTRS = {
    FieldGroup.PRIMARY: "primary_fields",
    FieldGroup.SECONDARY: "secondary_fields",
    FieldGroup.AUXILIARY: "auxiliary_fields",
    FieldGroup.BACK: "back_fields",
}


class FieldEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str
    label: Optional[str] = None
    value: str
    text_alignment: Optional[TextAlignment] = Field(default=None, alias="textAlignment")
    change_message: Optional[str] = Field(default=None, alias="changeMessage")

    @field_validator("value", mode="before")
    @classmethod
    def stringify_value(cls, v):
        if v is None:
            return ""
        if isinstance(v, (int, float, bool)):
            return str(v)
        return v


class Barcode(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    format: BarcodeFormat = BarcodeFormat.QR
    message: str
    message_encoding: str = Field(default="iso-8859-1", alias="messageEncoding")


class Location(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    latitude: float
    longitude: float
    altitude: Optional[float] = None
    relevant_text: Optional[str] = Field(default=None, alias="relevantText")


class PassStructure(BaseModel):
    """Field groups for one pass style. A group left as None is omitted from pass.json."""
    model_config = ConfigDict(populate_by_name=True)

    transit_type: Optional[TransitType] = Field(default=None, alias="transitType")
    primary_fields: Optional[List[FieldEntry]] = Field(default=None, alias="primaryFields")
    secondary_fields: Optional[List[FieldEntry]] = Field(default=None, alias="secondaryFields")
    auxiliary_fields: Optional[List[FieldEntry]] = Field(default=None, alias="auxiliaryFields")
    back_fields: Optional[List[FieldEntry]] = Field(default=None, alias="backFields")

    def group(self, group: FieldGroup) -> List[FieldEntry]:
        return getattr(self, _GROUP_ATTRS[group]) or []

    def set_group(self, group: FieldGroup, fields: Optional[List[FieldEntry]]) -> None:
        setattr(self, _GROUP_ATTRS[group], fields)

    def iter_groups(self) -> Iterator[Tuple[FieldGroup, List[FieldEntry]]]:
        for group in FieldGroup:
            yield group, self.group(group)

    def find_field_by_key(self, group: FieldGroup, key: str) -> Optional[FieldEntry]:
        for field in self.group(group):
            if field.key == key:
                return field
        return None


class PassDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    format_version: int = Field(default=1, alias="formatVersion")
    pass_type_identifier: str = Field(alias="passTypeIdentifier")
    serial_number: str = Field(alias="serialNumber")
    team_identifier: str = Field(alias="teamIdentifier")
    organization_name: str = Field(alias="organizationName")
    description: str
    web_service_url: Optional[str] = Field(default=None, alias="webServiceURL")
    authentication_token: Optional[str] = Field(default=None, alias="authenticationToken")
    barcodes: List[Barcode] = Field(default_factory=list)
    background_color: Optional[str] = Field(default=None, alias="backgroundColor")
    foreground_color: Optional[str] = Field(default=None, alias="foregroundColor")
    label_color: Optional[str] = Field(default=None, alias="labelColor")
    expiration_date: Optional[datetime] = Field(default=None, alias="expirationDate")
    relevant_date: Optional[datetime] = Field(default=None, alias="relevantDate")
    locations: Optional[List[Location]] = None

    generic: Optional[PassStructure] = None
    boarding_pass: Optional[PassStructure] = Field(default=None, alias="boardingPass")
    coupon: Optional[PassStructure] = None
    event_ticket: Optional[PassStructure] = Field(default=None, alias="eventTicket")
    store_card: Optional[PassStructure] = Field(default=None, alias="storeCard")

    @model_validator(mode="after")
    def check_single_structure(self):
        present = [t for t, attr in _STRUCTURE_ATTRS.items() if getattr(self, attr) is not None]
        if len(present) != 1:
            raise ValueError(
                f"pass document must contain exactly one pass structure, found {len(present)}"
            )
        if present[0] == PassType.BOARDING_PASS and self.boarding_pass.transit_type is None:
            raise ValueError("boardingPass requires transitType")
        return self

    @property
    def pass_type(self) -> PassType:
        for pass_type, attr in _STRUCTURE_ATTRS.items():
            if getattr(self, attr) is not None:
                return pass_type
        raise ValueError("pass document has no pass structure")

    @property
    def structure(self) -> PassStructure:
        return getattr(self, _STRUCTURE_ATTRS[self.pass_type])

    @classmethod
    def with_structure(cls, pass_type: PassType, structure: PassStructure, **fields) -> "PassDocument":
        fields[_STRUCTURE_ATTRS[pass_type]] = structure
        return cls(**fields)

    def to_json(self) -> str:
        """Pretty-printed pass.json text. Stored verbatim and hashed into the manifest."""
        return json.dumps(
            self.model_dump(mode="json", by_alias=True, exclude_none=True),
            indent=2,
        )

    @classmethod
    def from_json(cls, data) -> "PassDocument":
        return cls.model_validate_json(data)

"""
Pydantic model for pass generation requests.

Every attribute is optional: whatever is left out comes from the default
template for the requested pass type.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .pass_document import (
    BarcodeFormat,
    FieldEntry,
    FieldGroup,
    Location,
    PassType,
    TransitType,
)


class PassRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: PassType = PassType.GENERIC

    # Colors
    background_color: Optional[str] = Field(default=None, alias="backgroundColor")
    foreground_color: Optional[str] = Field(default=None, alias="foregroundColor")
    label_color: Optional[str] = Field(default=None, alias="labelColor")

    # Field groups; a supplied group replaces the template group wholesale
    primary_fields: Optional[List[FieldEntry]] = Field(default=None, alias="primaryFields")
    secondary_fields: Optional[List[FieldEntry]] = Field(default=None, alias="secondaryFields")
    auxiliary_fields: Optional[List[FieldEntry]] = Field(default=None, alias="auxiliaryFields")
    back_fields: Optional[List[FieldEntry]] = Field(default=None, alias="backFields")

    # Barcode
    barcode_message: Optional[str] = Field(default=None, alias="barcodeMessage")
    barcode_format: Optional[BarcodeFormat] = Field(default=None, alias="barcodeFormat")

    # Metadata
    description: Optional[str] = None
    organization_name: Optional[str] = Field(default=None, alias="organizationName")
    expiration_date: Optional[datetime] = Field(default=None, alias="expirationDate")
    relevant_date: Optional[datetime] = Field(default=None, alias="relevantDate")

    # Boarding pass only
    transit_type: Optional[TransitType] = Field(default=None, alias="transitType")

    locations: Optional[List[Location]] = None

    @field_validator("type", mode="before")
    @classmethod
    def resolve_type_code(cls, v):
        if v is None or isinstance(v, str):
            return PassType.from_code(v)
        return v

    @classmethod
    def for_type_code(cls, code: Optional[str]) -> "PassRequest":
        """Request carrying only a pass type, resolved from a short code such as 'BP'."""
        return cls(type=PassType.from_code(code))

    def fields_for(self, group: FieldGroup) -> Optional[List[FieldEntry]]:
        """Requested fields for a group, or None when the group was not supplied."""
        fields = {
            FieldGroup.PRIMARY: self.primary_fields,
            FieldGroup.SECONDARY: self.secondary_fields,
            FieldGroup.AUXILIARY: self.auxiliary_fields,
            FieldGroup.BACK: self.back_fields,
        }[group]
        # An empty list counts as "not supplied"
        return fields or None

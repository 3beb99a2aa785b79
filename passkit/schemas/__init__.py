from .pass_document import (
    Barcode,
    BarcodeFormat,
    FieldEntry,
    FieldGroup,
    Location,
    PassDocument,
    PassStructure,
    PassType,
    TextAlignment,
    TransitType,
)
from .pass_request import PassRequest

__all__ = [
    "Barcode",
    "BarcodeFormat",
    "FieldEntry",
    "FieldGroup",
    "Location",
    "PassDocument",
    "PassRequest",
    "PassStructure",
    "PassType",
    "TextAlignment",
    "TransitType",
]

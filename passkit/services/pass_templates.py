"""
Default pass templates, one per pass type.

Used wholesale when no request is supplied and group-by-group for anything a
request leaves out. Field values are placeholders.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from passkit.schemas.pass_document import FieldEntry, FieldGroup, PassType, TransitType

# (key, label, value)
FieldSpec = Tuple[str, str, str]

DEFAULT_DESCRIPTION = "Example Pass"
DEFAULT_BACKGROUND_COLOR = "rgb(60, 65, 76)"
DEFAULT_FOREGROUND_COLOR = "rgb(255, 255, 255)"
DEFAULT_LABEL_COLOR = "rgb(255, 255, 255)"
DEFAULT_BARCODE_MESSAGE = "123456789"
DEFAULT_TRANSIT_TYPE = TransitType.AIR


@dataclass(frozen=True)
class PassTemplate:
    description: str = DEFAULT_DESCRIPTION
    background_color: str = DEFAULT_BACKGROUND_COLOR
    foreground_color: str = DEFAULT_FOREGROUND_COLOR
    label_color: str = DEFAULT_LABEL_COLOR
    barcode_message: str = DEFAULT_BARCODE_MESSAGE
    transit_type: Optional[TransitType] = None
    groups: Dict[FieldGroup, Tuple[FieldSpec, ...]] = field(default_factory=dict)

    def fields(self, group: FieldGroup) -> Optional[List[FieldEntry]]:
        """Fresh FieldEntry list for a group, or None if the template leaves it out."""
        specs = self.groups.get(group)
        if not specs:
            return None
        return [FieldEntry(key=key, label=label, value=value) for key, label, value in specs]


DEFAULT_TEMPLATES: Dict[PassType, PassTemplate] = {
    PassType.GENERIC: PassTemplate(
        background_color="rgb(220, 20, 60)",
        label_color="rgb(255, 215, 0)",
        groups={
            FieldGroup.PRIMARY: (("title", "VIP Pass", "Gold Member"),),
            FieldGroup.SECONDARY: (("name", "Name", "John Doe"),),
            FieldGroup.BACK: (
                ("details", "Details", "This is a sample pass issued by the PassKit backend for Apple Wallet."),
            ),
        },
    ),
    PassType.BOARDING_PASS: PassTemplate(
        description="Flight to NYC",
        background_color="rgb(0, 51, 102)",
        barcode_message="BOARDING123456",
        transit_type=DEFAULT_TRANSIT_TYPE,
        groups={
            FieldGroup.PRIMARY: (
                ("origin", "SAN FRANCISCO", "SFO"),
                ("destination", "NEW YORK", "JFK"),
            ),
            FieldGroup.SECONDARY: (
                ("passenger", "PASSENGER", "Jane Smith"),
                ("seat", "SEAT", "14B"),
            ),
            FieldGroup.AUXILIARY: (
                ("gate", "GATE", "A23"),
                ("boarding", "BOARDING", "2:45 PM"),
            ),
        },
    ),
    PassType.COUPON: PassTemplate(
        description="Store Discount",
        background_color="rgb(255, 87, 34)",
        barcode_message="COUPON25OFF",
        groups={
            FieldGroup.PRIMARY: (("offer", "", "25% OFF"),),
            FieldGroup.SECONDARY: (("expires", "EXPIRES", "Dec 31, 2026"),),
            FieldGroup.BACK: (("terms", "Terms", "Valid on purchases over $50."),),
        },
    ),
    PassType.EVENT_TICKET: PassTemplate(
        description="Concert Ticket",
        background_color="rgb(138, 43, 226)",
        barcode_message="TICKET789012",
        groups={
            FieldGroup.PRIMARY: (("event", "EVENT", "Rock Concert 2026"),),
            FieldGroup.SECONDARY: (
                ("date", "DATE", "March 15, 2026"),
                ("time", "TIME", "8:00 PM"),
            ),
            FieldGroup.AUXILIARY: (
                ("section", "SECTION", "VIP"),
                ("seat", "SEAT", "A-12"),
            ),
        },
    ),
    PassType.STORE_CARD: PassTemplate(
        description="Loyalty Card",
        background_color="rgb(76, 175, 80)",
        barcode_message="MEMBER345678",
        groups={
            FieldGroup.PRIMARY: (("balance", "POINTS", "2,500"),),
            FieldGroup.SECONDARY: (("member", "MEMBER", "Alice Johnson"),),
            FieldGroup.AUXILIARY: (("tier", "TIER", "Gold"),),
        },
    ),
}

_missing = set(PassType) - set(DEFAULT_TEMPLATES)
if _missing:
    raise RuntimeError(f"No default pass template for: {sorted(t.name for t in _missing)}")


def get_template(pass_type: PassType) -> PassTemplate:
    return DEFAULT_TEMPLATES[pass_type]

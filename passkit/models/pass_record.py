"""
Pass Record Model
One row per issued pass, keyed by serial number
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, Enum as SQLEnum, Index
from ..db import Base
import enum


class PassStatus(str, enum.Enum):
    """Pass lifecycle status. REVOKED is terminal."""
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


class PassRecord(Base):
    """Last generated pass.json plus version and lifecycle status"""
    __tablename__ = "pass_records"

    serial_number = Column(String(64), primary_key=True)
    pass_type_identifier = Column(String(255), nullable=False)

    # Pretty-printed pass.json exactly as it was placed in the last archive
    pass_data = Column(Text, nullable=False)

    # Bumped on every regeneration, field update and status change
    version = Column(Integer, nullable=False, default=1)

    status = Column(SQLEnum(PassStatus), nullable=False, default=PassStatus.ACTIVE, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_pass_records_type_status", "pass_type_identifier", "status"),
    )

    @property
    def is_revoked(self) -> bool:
        return self.status == PassStatus.REVOKED

    def __repr__(self):
        return f"<PassRecord {self.serial_number} v{self.version} {self.status}>"

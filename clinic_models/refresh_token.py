"""
RefreshToken model: opaque refresh tokens handed out at login.
Fields:
- token (unique opaque string)
- patient_id (String(36)) - FK to patients.id
- created_at, expires_at
A row exists only while the token is usable; revocation and expiry delete it.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship, backref

from clinic_models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token = Column(String(128), nullable=False, unique=True, index=True)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    patient = relationship("Patient", backref=backref("refresh_tokens", passive_deletes=True))

    __table_args__ = (
        Index("ix_refresh_tokens_patient_id", "patient_id"),
    )

    def __repr__(self):
        return f"<RefreshToken patient={self.patient_id} expires_at={self.expires_at}>"

from sqlalchemy import Column, String, JSON, Index

from clinic_models.base_model import Base, BaseModel


class Patient(BaseModel, Base):
    """A patient is also the principal that logs in."""
    __tablename__ = "patients"

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    roles = Column(JSON, nullable=False, default=lambda: ["PATIENT"])
    diet_group_id = Column(String(36), nullable=True)
    nutritionist_id = Column(String(36), nullable=True)

    __table_args__ = (
        Index("ix_patients_diet_group_id", "diet_group_id"),
    )

from sqlalchemy import Column, String, Float, CheckConstraint, Index

from clinic_models.base_model import BaseModel, Base


class Diet(BaseModel, Base):
    __tablename__ = "diets"

    name = Column(String(255), nullable=True)

    breakfast_liquid = Column(String(255), nullable=False)
    breakfast_solid = Column(String(255), nullable=True)
    breakfast_fruit = Column(String(255), nullable=True)

    lunch_side_dish = Column(String(255), nullable=False)
    lunch_protein = Column(String(255), nullable=True)
    lunch_salad = Column(String(255), nullable=True)

    dinner_side_dish = Column(String(255), nullable=False)
    dinner_protein = Column(String(255), nullable=True)
    dinner_salad = Column(String(255), nullable=True)

    calories_total_amount = Column(Float, nullable=False, default=0.0)

    nutritionist_id = Column(String(36), nullable=True)
    diet_group_id = Column(String(36), nullable=True)

    __table_args__ = (
        CheckConstraint("calories_total_amount >= 0", name="ck_diets_calories_nonnegative"),
        Index("ix_diets_diet_group_id", "diet_group_id"),
    )

from marshmallow import Schema, fields, validate

_meal = validate.Length(min=1, max=255)


class DietCreateSchema(Schema):
    name = fields.String(allow_none=True, validate=validate.Length(max=255))

    breakfast_liquid = fields.String(required=True, validate=_meal)
    breakfast_solid = fields.String(allow_none=True, validate=_meal)
    breakfast_fruit = fields.String(allow_none=True, validate=_meal)

    lunch_side_dish = fields.String(required=True, validate=_meal)
    lunch_protein = fields.String(allow_none=True, validate=_meal)
    lunch_salad = fields.String(allow_none=True, validate=_meal)

    dinner_side_dish = fields.String(required=True, validate=_meal)
    dinner_protein = fields.String(allow_none=True, validate=_meal)
    dinner_salad = fields.String(allow_none=True, validate=_meal)

    calories_total_amount = fields.Float(load_default=0.0, validate=validate.Range(min=0))

    nutritionist_id = fields.String(allow_none=True)
    diet_group_id = fields.String(allow_none=True)


class DietUpdateSchema(DietCreateSchema):
    # All meal fields optional on update, but validated if present
    id = fields.String(required=True)
    breakfast_liquid = fields.String(validate=_meal)
    lunch_side_dish = fields.String(validate=_meal)
    dinner_side_dish = fields.String(validate=_meal)
    calories_total_amount = fields.Float(validate=validate.Range(min=0))


class DietOutSchema(Schema):
    id = fields.String()
    name = fields.String(allow_none=True)
    breakfast_liquid = fields.String()
    breakfast_solid = fields.String(allow_none=True)
    breakfast_fruit = fields.String(allow_none=True)
    lunch_side_dish = fields.String()
    lunch_protein = fields.String(allow_none=True)
    lunch_salad = fields.String(allow_none=True)
    dinner_side_dish = fields.String()
    dinner_protein = fields.String(allow_none=True)
    dinner_salad = fields.String(allow_none=True)
    calories_total_amount = fields.Float()
    nutritionist_id = fields.String(allow_none=True)
    diet_group_id = fields.String(allow_none=True)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()

from marshmallow import Schema, fields, pre_load, validates, ValidationError, validate

from clinic_models.schemas.auth import _norm_email


class PatientCreateSchema(Schema):
    name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    diet_group_id = fields.String(allow_none=True)
    nutritionist_id = fields.String(allow_none=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data["email"] = _norm_email(data["email"])
        return data

    @validates("password")
    def validate_password(self, value, **kwargs):
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")


class PatientUpdateSchema(Schema):
    # identity (id, email) is immutable; id only selects the row
    id = fields.String(required=True)
    name = fields.String(validate=validate.Length(min=1, max=255))
    password = fields.String(load_only=True)
    diet_group_id = fields.String(allow_none=True)
    nutritionist_id = fields.String(allow_none=True)

    @validates("password")
    def validate_password(self, value, **kwargs):
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")


class PatientOutSchema(Schema):
    id = fields.String()
    name = fields.String()
    email = fields.String()
    roles = fields.List(fields.String())
    diet_group_id = fields.String(allow_none=True)
    nutritionist_id = fields.String(allow_none=True)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()

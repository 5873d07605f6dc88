from __future__ import annotations

from flask import Blueprint, jsonify, abort, current_app

from clinic_api.errors import fallback_response
from clinic_api.services import get_services
from clinic_api.validation import RequestValidationError, validate_request
from clinic_models import storage
from clinic_models.patient import Patient
from clinic_models.schemas.patient import PatientCreateSchema, PatientOutSchema, PatientUpdateSchema
from clinic_utils.decorators import jwt_required
from clinic_utils.resilience import Fallback
from clinic_utils.security import hash_password

bp = Blueprint("patients", __name__)

create_schema = PatientCreateSchema()
update_schema = PatientUpdateSchema()
out_schema = PatientOutSchema()
out_list_schema = PatientOutSchema(many=True)

# roles allowed to manage other patients' records
STAFF_ROLES = {"ADMIN", "NUTRITIONIST"}
# only these may set another patient's password
PASSWORD_ROLES = {"ADMIN"}


def _all_patients() -> list[Patient]:
    session = storage.get_session()
    return session.query(Patient).order_by(Patient.name.asc()).all()


def _patient_by_id(patient_id: str) -> Patient | None:
    return storage.get(Patient, patient_id)


def _patients_by_group(group_id: str) -> list[Patient]:
    session = storage.get_session()
    return (
        session.query(Patient)
        .filter(Patient.diet_group_id == group_id)
        .order_by(Patient.name.asc())
        .all()
    )


def _require_owner_or(claims, patient_id: str, roles: set[str]):
    if claims.subject != patient_id and not (set(claims.roles) & roles):
        abort(403, description="Not allowed to modify another patient")


@bp.get("/all")
@jwt_required()
def get_all(claims):
    """
    List all patients
    ---
    tags: [Patients]
    security:
      - Bearer: []
    responses:
      200: { description: OK }
      401: { description: Unauthorized }
      503: { description: Service currently unavailable (fallback) }
    """
    rows = get_services().patients_gateway.call(_all_patients)
    if isinstance(rows, Fallback):
        return fallback_response(rows)
    return jsonify({"data": out_list_schema.dump(rows)})


@bp.get("/<patient_id>")
@jwt_required()
def get_by_id(patient_id: str, claims):
    """
    Get a patient by id
    ---
    tags: [Patients]
    security:
      - Bearer: []
    parameters:
      - in: path
        name: patient_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
      503: { description: Service currently unavailable (fallback) }
    """
    p = get_services().patients_gateway.call(_patient_by_id, patient_id)
    if isinstance(p, Fallback):
        return fallback_response(p)
    if p is None:
        abort(404, description="Patient not found")
    return jsonify({"data": out_schema.dump(p)})


@bp.get("/diet-groups/<group_id>")
@jwt_required()
def get_all_by_group_id(group_id: str, claims):
    """
    List patients of a diet group
    ---
    tags: [Patients]
    security:
      - Bearer: []
    parameters:
      - in: path
        name: group_id
        type: string
        required: true
    responses:
      200: { description: OK (possibly an empty list) }
      503: { description: Service currently unavailable (fallback) }
    """
    rows = get_services().patients_gateway.call(_patients_by_group, group_id)
    if isinstance(rows, Fallback):
        return fallback_response(rows)
    return jsonify({"data": out_list_schema.dump(rows)})


@bp.post("/register")
def register_patient():
    """
    Register a new patient (public)
    ---
    tags: [Patients]
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name: { type: string }
            email: { type: string }
            password: { type: string }
            diet_group_id: { type: string }
            nutritionist_id: { type: string }
    responses:
      201: { description: Created }
      409: { description: Email already registered }
      422: { description: Validation error }
    """
    data = validate_request(create_schema)
    if isinstance(data, RequestValidationError):
        return data.to_response()

    session = storage.get_session()
    if session.query(Patient).filter(Patient.email == data["email"]).first():
        abort(409, description="Email already registered")

    p = Patient(
        name=data["name"],
        email=data["email"],
        password_hash=hash_password(data["password"]),
        roles=list(current_app.config["DEFAULT_ROLES"]),
        diet_group_id=data.get("diet_group_id"),
        nutritionist_id=data.get("nutritionist_id"),
    )
    storage.new(p)
    storage.save()
    return jsonify({"data": out_schema.dump(p)}), 201


@bp.put("/")
@jwt_required()
def update_patient(claims):
    """
    Update a patient (owner, NUTRITIONIST or ADMIN; password: owner or ADMIN)
    ---
    tags: [Patients]
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            id: { type: string }
            name: { type: string }
            password: { type: string }
            diet_group_id: { type: string }
            nutritionist_id: { type: string }
    responses:
      200: { description: OK }
      403: { description: Forbidden }
      404: { description: Not found }
      422: { description: Validation error }
    """
    data = validate_request(update_schema)
    if isinstance(data, RequestValidationError):
        return data.to_response()

    _require_owner_or(claims, data["id"], STAFF_ROLES)
    if "password" in data:
        _require_owner_or(claims, data["id"], PASSWORD_ROLES)
    p = storage.get(Patient, data["id"])
    if not p:
        abort(404, description="Patient not found")

    for key in ("name", "diet_group_id", "nutritionist_id"):
        if key in data:
            setattr(p, key, data[key])
    if "password" in data:
        p.password_hash = hash_password(data["password"])
    storage.new(p)
    storage.save()
    return jsonify({"data": out_schema.dump(p)})


@bp.delete("/<patient_id>")
@jwt_required()
def delete_patient(patient_id: str, claims):
    """
    Delete a patient (owner or ADMIN); their refresh tokens are revoked first
    ---
    tags: [Patients]
    security:
      - Bearer: []
    parameters:
      - in: path
        name: patient_id
        type: string
        required: true
    responses:
      204: { description: Deleted }
      403: { description: Forbidden }
      404: { description: Not found }
    """
    _require_owner_or(claims, patient_id, {"ADMIN"})
    p = storage.get(Patient, patient_id)
    if not p:
        abort(404, description="Patient not found")

    get_services().refresh_tokens.revoke_all(patient_id, commit=False)
    storage.delete(p)
    storage.save()
    return ("", 204)

from __future__ import annotations

from flask import Blueprint, jsonify, abort

from clinic_api.errors import fallback_response
from clinic_api.services import get_services
from clinic_api.validation import RequestValidationError, validate_request
from clinic_models import storage
from clinic_models.diet import Diet
from clinic_models.schemas.diet import DietCreateSchema, DietOutSchema, DietUpdateSchema
from clinic_utils.decorators import jwt_required, roles_required
from clinic_utils.resilience import Fallback

bp = Blueprint("diets", __name__)

create_schema = DietCreateSchema()
update_schema = DietUpdateSchema()
out_schema = DietOutSchema()
out_list_schema = DietOutSchema(many=True)

WRITER_ROLES = ["NUTRITIONIST", "ADMIN"]


def _all_diets() -> list[Diet]:
    session = storage.get_session()
    return session.query(Diet).order_by(Diet.name.asc()).all()


def _diet_by_id(diet_id: str) -> Diet | None:
    return storage.get(Diet, diet_id)


def _diets_by_group(group_id: str) -> list[Diet]:
    session = storage.get_session()
    return session.query(Diet).filter(Diet.diet_group_id == group_id).order_by(Diet.name.asc()).all()


@bp.get("/all")
@jwt_required()
def get_all(claims):
    """
    List all diets
    ---
    tags: [Diets]
    security:
      - Bearer: []
    responses:
      200: { description: OK }
      503: { description: Service currently unavailable (fallback) }
    """
    rows = get_services().diets_gateway.call(_all_diets)
    if isinstance(rows, Fallback):
        return fallback_response(rows)
    return jsonify({"data": out_list_schema.dump(rows)})


@bp.get("/<diet_id>")
@jwt_required()
def get_by_id(diet_id: str, claims):
    """
    Get a diet by id
    ---
    tags: [Diets]
    security:
      - Bearer: []
    parameters:
      - in: path
        name: diet_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    d = get_services().diets_gateway.call(_diet_by_id, diet_id)
    if isinstance(d, Fallback):
        return fallback_response(d)
    if d is None:
        abort(404, description="Diet not found")
    return jsonify({"data": out_schema.dump(d)})


@bp.get("/diet-groups/<group_id>")
@jwt_required()
def get_all_by_group_id(group_id: str, claims):
    """
    List diets of a diet group
    ---
    tags: [Diets]
    security:
      - Bearer: []
    parameters:
      - in: path
        name: group_id
        type: string
        required: true
    responses:
      200: { description: OK }
      503: { description: Service currently unavailable (fallback) }
    """
    rows = get_services().diets_gateway.call(_diets_by_group, group_id)
    if isinstance(rows, Fallback):
        return fallback_response(rows)
    return jsonify({"data": out_list_schema.dump(rows)})


@bp.post("/register")
@roles_required(WRITER_ROLES)
def register_diet(claims):
    """
    Create a diet (NUTRITIONIST or ADMIN)
    ---
    tags: [Diets]
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
            name: { type: string }
            breakfast_liquid: { type: string }
            lunch_side_dish: { type: string }
            dinner_side_dish: { type: string }
            calories_total_amount: { type: number }
            diet_group_id: { type: string }
    responses:
      201: { description: Created }
      403: { description: Forbidden }
      422: { description: Validation error }
    """
    data = validate_request(create_schema)
    if isinstance(data, RequestValidationError):
        return data.to_response()

    # the author is the nutritionist unless one is named explicitly
    data.setdefault("nutritionist_id", claims.subject)
    d = Diet(**data)
    storage.new(d)
    storage.save()
    return jsonify({"data": out_schema.dump(d)}), 201


@bp.put("/")
@roles_required(WRITER_ROLES)
def update_diet(claims):
    """
    Update a diet (partial, NUTRITIONIST or ADMIN)
    ---
    tags: [Diets]
    security:
      - Bearer: []
    responses:
      200: { description: OK }
      404: { description: Not found }
      422: { description: Validation error }
    """
    data = validate_request(update_schema)
    if isinstance(data, RequestValidationError):
        return data.to_response()

    d = storage.get(Diet, data.pop("id"))
    if not d:
        abort(404, description="Diet not found")
    for key, value in data.items():
        setattr(d, key, value)
    storage.new(d)
    storage.save()
    return jsonify({"data": out_schema.dump(d)})


@bp.delete("/<diet_id>")
@roles_required(WRITER_ROLES)
def delete_diet(diet_id: str, claims):
    """
    Delete a diet (NUTRITIONIST or ADMIN)
    ---
    tags: [Diets]
    security:
      - Bearer: []
    parameters:
      - in: path
        name: diet_id
        type: string
        required: true
    responses:
      204: { description: Deleted }
      404: { description: Not found }
    """
    d = storage.get(Diet, diet_id)
    if not d:
        abort(404, description="Diet not found")
    storage.delete(d)
    storage.save()
    return ("", 204)

from flask import Blueprint

from clinic_api.services import get_services

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Health check, including the state of each circuit breaker
    ---
    tags:
      - Health
    responses:
      200:
        description: API is up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
            circuits:
              type: array
              items:
                type: object
    """
    circuits = [g.breaker.get_state() for g in get_services().gateways]
    return {"status": "ok", "version": "1.0.0", "circuits": circuits}, 200

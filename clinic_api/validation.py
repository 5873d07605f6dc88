"""Explicit request-body validation returning a typed error instead of raising."""
from __future__ import annotations

from dataclasses import dataclass, field

from flask import request
from marshmallow import Schema, ValidationError

from clinic_api.errors import error_response


@dataclass(frozen=True)
class RequestValidationError:
    message: str
    details: dict = field(default_factory=dict)

    def to_response(self):
        return error_response("VALIDATION_ERROR", self.message, 422, details=self.details or None)


def validate_request(schema: Schema, payload=None) -> dict | RequestValidationError:
    """Load ``payload`` (default: the JSON body) through ``schema``."""
    if payload is None:
        payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return RequestValidationError("Request body must be a JSON object")
    try:
        return schema.load(payload)
    except ValidationError as err:
        messages = err.messages if isinstance(err.messages, dict) else {"_schema": err.messages}
        return RequestValidationError("Invalid input", messages)

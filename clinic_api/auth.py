"""
Authentication blueprint:
- POST /patient/login
- POST /patient/refreshtoken
- POST /patient/logout

Access tokens are short-lived HS256 JWTs; refresh tokens are opaque strings
stored in the refresh_tokens table (see services.refresh_tokens).
"""
from __future__ import annotations

from flask import Blueprint, jsonify

from clinic_api.errors import error_response
from clinic_api.services import get_services
from clinic_api.validation import RequestValidationError, validate_request
from clinic_models.schemas.auth import LoginSchema, TokenRefreshSchema
from clinic_utils.security import AuthError

bp = Blueprint("auth", __name__)

login_schema = LoginSchema()
token_refresh_schema = TokenRefreshSchema()


@bp.post("/login")
def login():
    """
    Login: return accessToken and refreshToken
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens and roles)
      401:
        description: Invalid credentials
      422:
        description: Validation error
    """
    data = validate_request(login_schema)
    if isinstance(data, RequestValidationError):
        return data.to_response()

    result = get_services().auth.login(data["email"], data["password"])
    if isinstance(result, AuthError):
        return error_response(result.kind.value, result.message, 401)

    return jsonify(
        {
            "accessToken": result.access_token.token,
            "refreshToken": result.refresh_token,
            "tokenType": "Bearer",
            "email": result.email,
            "roles": result.roles,
        }
    ), 200


@bp.post("/refreshtoken")
def refreshtoken():
    """
    Use a refresh token to obtain a new access token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refreshToken: { type: string }
    responses:
      200:
        description: OK (new accessToken; refreshToken is the same one unless rotation is on)
      403:
        description: Unknown or expired refresh token
    """
    data = validate_request(token_refresh_schema)
    if isinstance(data, RequestValidationError):
        return data.to_response()

    result = get_services().auth.refresh(data["refreshToken"])
    if isinstance(result, AuthError):
        return error_response(result.kind.value, result.message, 403)

    return jsonify(
        {
            "accessToken": result.access_token.token,
            "refreshToken": result.refresh_token,
            "tokenType": "Bearer",
        }
    ), 200


@bp.post("/logout")
def logout():
    """
    logout: revokes a refresh token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refreshToken: { type: string }
    responses:
      204:
        description: ""
    """
    data = validate_request(token_refresh_schema)
    if isinstance(data, RequestValidationError):
        return data.to_response()

    # unknown tokens are not reported, logout is idempotent
    get_services().auth.logout(data["refreshToken"])
    return ("", 204)

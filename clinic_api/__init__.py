import logging

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import DEV_JWT_SECRET, ProductionConfig, get_config
from .errors import register_error_handlers
from .services import EXTENSION_KEY, Services
from .services.auth_service import AuthService
from .services.credentials import CredentialStore
from .services.refresh_tokens import RefreshTokenStore
from clinic_models import storage  # DBStorage singleton (scoped_session)
from clinic_utils.resilience import CircuitBreaker, ResilientCallGateway, RetryPolicy
from clinic_utils.security import TokenSigner

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Diet Clinic API",
        "version": "1.0.0",
        "description": "REST API for patients and diets, with JWT login and refresh tokens.",
    },
    "basePath": "/",  # blueprints are mounted under /api/v1
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def _configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_gateway(app: Flask, name: str) -> ResilientCallGateway:
    breaker = CircuitBreaker(
        name,
        failure_threshold=app.config["CIRCUIT_FAILURE_THRESHOLD"],
        window=app.config["CIRCUIT_WINDOW_SECONDS"],
        cooldown=app.config["CIRCUIT_COOLDOWN_SECONDS"],
    )
    policy = RetryPolicy(
        max_attempts=app.config["RETRY_MAX_ATTEMPTS"],
        backoff=app.config["RETRY_BACKOFF_SECONDS"],
    )
    # a failed query leaves the session unusable until rolled back
    return ResilientCallGateway(breaker, policy, on_error=lambda e: storage.rollback())


def build_services(app: Flask) -> Services:
    """Wire the auth and resilience collaborators from the app config."""
    signer = TokenSigner(
        secret=app.config["JWT_SECRET"],
        ttl=app.config["ACCESS_TOKEN_EXPIRES"],
        algorithm=app.config["JWT_ALGORITHM"],
        issuer=app.config["JWT_ISSUER"],
    )
    credentials = CredentialStore(storage)
    refresh_tokens = RefreshTokenStore(
        storage,
        ttl=app.config["REFRESH_TOKEN_EXPIRES"],
        single_session=app.config["REFRESH_TOKEN_SINGLE_SESSION"],
    )
    auth = AuthService(
        credentials,
        signer,
        refresh_tokens,
        storage,
        rotate_refresh_tokens=app.config["REFRESH_TOKEN_ROTATION"],
    )
    return Services(
        signer=signer,
        credentials=credentials,
        refresh_tokens=refresh_tokens,
        auth=auth,
        patients_gateway=_build_gateway(app, "patients"),
        diets_gateway=_build_gateway(app, "diets"),
    )


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    ``overrides`` is applied on top of the selected config class (used by tests).
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    config_cls = get_config(config_name)
    app.config.from_object(config_cls)
    if overrides:
        app.config.update(overrides)

    _configure_logging(app.config["LOG_LEVEL"])
    if config_cls is ProductionConfig and app.config["JWT_SECRET"] == DEV_JWT_SECRET:
        raise RuntimeError("JWT_SECRET must be set in production")

    storage.reload(app.config["DATABASE_URL"], echo=app.config.get("SQL_ECHO", False))

    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    app.extensions[EXTENSION_KEY] = build_services(app)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .patients import bp as patients_bp
    from .diets import bp as diets_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/patient")
    app.register_blueprint(patients_bp, url_prefix="/api/v1/patient")
    app.register_blueprint(diets_bp, url_prefix="/api/v1/diet")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Diet Clinic API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app

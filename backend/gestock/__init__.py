# backend/gestock/__init__.py
import os

from flask import Flask, request

from .config import Config
from .extensions import db, migrate
from .responses import failure


MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "migrations")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "X-XSS-Protection": "1; mode=block",
}


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        # Must land before db.init_app: the engine is built from this config
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=MIGRATIONS_DIR)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.stocks import stocks_bp
    from .routes.auth import auth_bp, legacy_auth_bp
    from .routes.users import users_bp
    from .routes.products import products_bp
    from .routes.parties import clients_bp, fournisseurs_bp
    from .routes.sales import sales_bp
    from .routes.returns import returns_bp
    from .routes.movements import movements_bp
    from .routes.purchases import achats_bp
    from .routes.invoices import invoices_bp
    from .routes.statistics import statistics_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(stocks_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(legacy_auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(fournisseurs_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(returns_bp)
    app.register_blueprint(movements_bp)
    app.register_blueprint(achats_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(statistics_bp)

    _register_request_filters(app)
    _register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def _register_request_filters(app: Flask) -> None:
    from .services.rate_limit_service import RateLimiter

    limiter = RateLimiter(
        max_requests=app.config["RATE_LIMIT_MAX_REQUESTS"],
        window_seconds=app.config["RATE_LIMIT_WINDOW_SECONDS"],
    )
    app.extensions["rate_limiter"] = limiter

    @app.before_request
    def apply_rate_limit():
        if not app.config.get("RATE_LIMIT_ENABLED") or not request.path.startswith("/api/"):
            return None
        if request.method == "OPTIONS":
            return None

        decision = limiter.hit(request.remote_addr or "unknown")
        request.environ["gestock.rate_limit"] = decision
        if decision.allowed:
            return None

        app.logger.warning("Rate limit exceeded for %s on %s", request.remote_addr, request.path)
        response, status = failure(
            "Trop de requêtes. Réessayez plus tard.",
            429,
            retry_after_seconds=decision.retry_after,
        )
        response.headers.update(decision.headers())
        return response, status

    @app.after_request
    def add_response_headers(response):
        decision = request.environ.get("gestock.rate_limit")
        if decision is not None:
            for name, value in decision.headers().items():
                response.headers.setdefault(name, value)

        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)

        origin = request.headers.get("Origin")
        if origin and origin in app.config.get("CORS_ALLOWED_ORIGINS", ()):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(400)
    def bad_request(e):
        return failure("Requête invalide", 400)

    @app.errorhandler(404)
    def not_found(e):
        return failure("Ressource introuvable", 404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return failure("Méthode non autorisée", 405)

    @app.errorhandler(429)
    def too_many_requests(e):
        return failure("Trop de requêtes. Réessayez plus tard.", 429)

    @app.errorhandler(500)
    def internal_server_error(e):
        db.session.rollback()
        return failure("Internal server error", 500)

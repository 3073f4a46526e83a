from flask import Flask
from .config import config_by_name
from .extensions import db, migrate, jwt, ma, cors
from .utils.logging_config import configure_logging
import os


def create_app(config_name=None):
    app = Flask(__name__, instance_relative_config=False)
    env = config_name or os.getenv("FLASK_ENV", "development")
    app.config.from_object(config_by_name.get(env, config_by_name["development"]))

    configure_logging(app)

    # initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    ma.init_app(app)
    origins = [o.strip() for o in app.config["CORS_ORIGINS"].split(",")]
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": origins}},
        supports_credentials=True,
        allow_headers=["Content-Type", "Authorization"],
        methods=["GET", "POST", "PATCH", "OPTIONS"],
    )

    # models must be registered before create_all / migrations see them
    from gigorders.models import user, gig, order, order_requirement, order_revision, order_payout  # noqa: F401

    # register blueprints
    from gigorders.routes.order_routes import bp as order_bp
    app.register_blueprint(order_bp)

    # error handlers to match required error format
    from gigorders.utils.exceptions import ServiceError
    from gigorders.utils.response_formatter import error_response, service_error_response

    @app.errorhandler(ServiceError)
    def handle_service_error(e):
        if e.status >= 500:
            app.logger.error("Service failure: %s", e.message)
        else:
            app.logger.info("%s: %s", e.code, e.message)
        return service_error_response(e)

    @app.errorhandler(400)
    def bad_request(e):
        return error_response("BAD_REQUEST", str(e), status=400)

    @app.errorhandler(401)
    def unauthorized(e):
        return error_response("UNAUTHORIZED", str(e), status=401)

    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", "Resource not found", status=404)

    @app.errorhandler(500)
    def server_error(e):
        return error_response("SERVER_ERROR", "Internal server error", status=500)

    app.logger.debug("gigorders app created (env=%s)", env)
    return app

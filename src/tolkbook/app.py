import logging

from flask import Flask, g, request

from tolkbook.config import config


def load_actor_from_header() -> dict | None:
    """
    Resolve the user an upstream gateway authenticated.

    The gateway forwards the user's id in X-User-Id; this service trusts it.
    """
    user_id = request.headers.get("X-User-Id", "")
    if not user_id.isdigit():
        return None

    from tolkbook.booking import UserRepository

    return UserRepository().find(int(user_id))


def create_app(actor_loader=None) -> Flask:
    """Application factory."""
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = Flask(__name__)
    app.config["LEGACY_ERROR_RESPONSES"] = config.legacy_error_responses

    loader = actor_loader or load_actor_from_header

    @app.before_request
    def attach_actor():
        g.user = loader()

    # Register blueprints
    from tolkbook.api.bookings import bp as bookings_bp

    app.register_blueprint(bookings_bp, url_prefix="/api")

    @app.route("/api/health")
    def health():
        return {"status": "ok"}

    return app


# For flask run command
app = create_app()

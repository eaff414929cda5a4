from flask import Flask

from .config import get_config
from .errors import register_error_handlers
from .request_logging import configure_logging, register_request_logging
from models import storage  # DBStorage singleton (scoped_session)
from utils.security import PasswordHasher, TokenService


def create_app(config_name: str | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    The password hasher and token service are built once here from config and
    shared through app.extensions; a bad JWT configuration fails at startup.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))

    configure_logging(app)

    app.extensions["password_hasher"] = PasswordHasher(
        time_cost=app.config["ARGON2_TIME_COST"],
        memory_cost=app.config["ARGON2_MEMORY_COST"],
        parallelism=app.config["ARGON2_PARALLELISM"],
    )
    app.extensions["token_service"] = TokenService(
        secret=app.config["JWT_SECRET"],
        issuer=app.config["JWT_ISSUER"],
        audience=app.config["JWT_AUDIENCE"],
        access_token_ttl=app.config["ACCESS_TOKEN_EXPIRES"],
        algorithm=app.config["JWT_ALGORITHM"],
    )

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)
    register_request_logging(app)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp
    from .categories import bp as categories_bp
    from .tags import bp as tags_bp
    from .topics import bp as topics_bp
    from .posts import bp as posts_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp, url_prefix="/api/v1")
    app.register_blueprint(categories_bp, url_prefix="/api/v1")
    app.register_blueprint(tags_bp, url_prefix="/api/v1")
    app.register_blueprint(topics_bp, url_prefix="/api/v1")
    app.register_blueprint(posts_bp, url_prefix="/api/v1")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # Calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to the Forum API",
            "health": "/api/v1/health",
        }, 200

    return app

import logging
import os

from flask import Flask
from flask.logging import default_handler

from .config import Config
from .extensions import db, migrate


def _configure_logging(app: Flask):
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    package_logger = logging.getLogger(__name__)
    package_logger.setLevel(level)
    if default_handler not in package_logger.handlers:
        package_logger.addHandler(default_handler)


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)

    upload_folder = app.config["UPLOAD_FOLDER"]
    if not os.path.isabs(upload_folder):
        app.config["UPLOAD_FOLDER"] = os.path.join(app.instance_path, upload_folder)
    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)

    _configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)

    from . import models  # noqa: F401
    from .wizard import wizard_bp
    from .wizard.wizard_service import SessionRegistry

    app.extensions["wizard_sessions"] = SessionRegistry(
        ttl=app.config["WIZARD_SESSION_TTL"],
        max_sessions=app.config["MAX_WIZARD_SESSIONS"],
    )
    app.register_blueprint(wizard_bp)

    @app.cli.command("init-db")
    def init_db():
        """Create the database tables."""
        db.create_all()
        app.logger.info("Database tables created")

    return app

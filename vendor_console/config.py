import os


def _extensions(value: str):
    return [ext.strip().lower().lstrip(".") for ext in value.split(",") if ext.strip()]


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///vendor_console.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # relative paths are resolved against the instance folder
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "uploads")
    UPLOAD_URL_PREFIX = os.getenv("UPLOAD_URL_PREFIX", "/uploads")
    MAX_UPLOAD_WORKERS = int(os.getenv("MAX_UPLOAD_WORKERS", "6"))
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", str(16 * 1024 * 1024)))
    ALLOWED_UPLOAD_EXTENSIONS = _extensions(
        os.getenv("ALLOWED_UPLOAD_EXTENSIONS", "pdf,jpg,jpeg,png,webp")
    )

    # idle seconds before a wizard session is dropped
    WIZARD_SESSION_TTL = int(os.getenv("WIZARD_SESSION_TTL", str(2 * 60 * 60)))
    MAX_WIZARD_SESSIONS = int(os.getenv("MAX_WIZARD_SESSIONS", "1000"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class DevConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    MAX_UPLOAD_WORKERS = 2

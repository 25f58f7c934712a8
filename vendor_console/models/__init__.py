from .entity import Entity  # noqa: F401

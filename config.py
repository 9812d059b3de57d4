# config.py
import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config(overrides=None):
    """Build the Flask config mapping from the environment.

    ``overrides`` is applied last so tests can swap the database for an
    in-memory one and switch seeding off.
    """
    config = {
        "SECRET_KEY": os.environ.get("ECOKART_SECRET_KEY", "dev-secret-change-me"),
        "SQLALCHEMY_DATABASE_URI": os.environ.get(
            "DATABASE_URL", f"sqlite:///{os.path.join(BASE_DIR, 'ecokart.db')}"
        ),
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        "ADMIN_PASSWORD": os.environ.get("ADMIN_PASSWORD", "admin123"),
        "ECOKART_SEED": _flag("ECOKART_SEED", True),
        "ECOKART_ENFORCE_STOCK": _flag("ECOKART_ENFORCE_STOCK", True),
        "LOG_LEVEL": os.environ.get("LOG_LEVEL", "INFO").upper(),
        "LOG_JSON": _flag("LOG_JSON", False),
    }
    if overrides:
        config.update(overrides)
    return config

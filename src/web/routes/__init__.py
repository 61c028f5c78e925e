"""Route blueprints for the web application."""

from .runs import runs_bp
from .settings import settings_bp

__all__ = [
    "runs_bp",
    "settings_bp",
]

"""Web application package for the bulk translation runner."""

from flask import Flask


def create_app(runner_factory=None, config_file=None) -> Flask:
    """Application factory for the web interface."""
    from .app import build_app  # Import here to avoid circular imports

    return build_app(runner_factory=runner_factory, config_file=config_file)


__all__ = ["create_app"]

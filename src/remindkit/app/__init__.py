"""Process wiring: builds the scheduler and its collaborators from settings."""

from remindkit.app.container import Container, build_container

__all__ = ["Container", "build_container"]

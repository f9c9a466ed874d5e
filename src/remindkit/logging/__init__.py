"""Logging subsystem for remindkit.

Public API::

    from remindkit.logging import configure_logging, tick_context

    configure_logging(settings.logging)
"""

from remindkit.logging.context import current_tick, tick_context
from remindkit.logging.setup import configure_logging

__all__ = ["configure_logging", "current_tick", "tick_context"]

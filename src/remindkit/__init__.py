"""remindkit: time-windowed, idempotent, multi-tenant notification scheduler."""

__version__ = "1.0.0"

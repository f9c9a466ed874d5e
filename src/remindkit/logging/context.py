"""Per-tick logging context.

The scheduler wraps every task run in :func:`tick_context` so each log
line emitted while the tick runs carries the same ``tick_id``.
"""

from __future__ import annotations

import contextlib
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(frozen=True)
class TickInfo:
    tick_id: str
    task: str


_current: ContextVar[TickInfo | None] = ContextVar("remindkit_tick", default=None)


def current_tick() -> TickInfo | None:
    return _current.get()


@contextlib.contextmanager
def tick_context(task: str) -> Iterator[TickInfo]:
    info = TickInfo(tick_id=uuid.uuid4().hex[:12], task=task)
    token = _current.set(info)
    try:
        yield info
    finally:
        _current.reset(token)

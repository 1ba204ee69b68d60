"""Structured workflow events.

Each event is one JSON object per line on stdout, stamped with the time it was
emitted. A trace id ties together everything one workflow operation logs: the
store write, the transition record and the notifications it fans out.
"""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

SERVICE = 'schoolflow'


def new_trace_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Span:
    """Timed section of an operation, usable as a context manager."""

    name: str
    trace_id: str
    attributes: dict[str, Any] = field(default_factory=dict)
    span_id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    _started: float = field(default_factory=time.perf_counter, repr=False)
    _elapsed: float | None = field(default=None, repr=False)

    def end(self) -> None:
        if self._elapsed is None:
            self._elapsed = time.perf_counter() - self._started

    def __enter__(self) -> 'Span':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.end()
        if exc_type is not None:
            self.attributes['error_type'] = exc_type.__name__

    @property
    def duration_ms(self) -> float | None:
        if self._elapsed is None:
            return None
        return round(self._elapsed * 1000.0, 3)

    def as_dict(self) -> dict[str, Any]:
        return {
            'name': self.name,
            'span_id': self.span_id,
            'duration_ms': self.duration_ms,
            'attributes': self.attributes,
        }


def log_event(event: str, *, trace_id: str, span: Span | None = None, **fields: Any) -> None:
    record: dict[str, Any] = {
        'ts': datetime.now(timezone.utc).isoformat(),
        'service': SERVICE,
        'event': event,
        'trace_id': trace_id,
        **fields,
    }
    if span is not None:
        record['span'] = span.as_dict()
    print(json.dumps(record, ensure_ascii=False, default=str))

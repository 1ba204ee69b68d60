"""Structured event logging and timing spans."""
from .tracing import Span, log_event, new_trace_id

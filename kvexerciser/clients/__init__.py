"""Client management module for KV-Exerciser."""

from .registry import BulkAddReport, BulkCreateReport, ClientRegistry
from .relay import EventBinding, EventRelay, Notification

__all__ = [
    "BulkAddReport",
    "BulkCreateReport",
    "ClientRegistry",
    "EventBinding",
    "EventRelay",
    "Notification",
]

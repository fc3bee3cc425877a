"""Ingestion package — drop/paste routing into the node store."""

from cascade.ingest.events import DropEvent, EventTarget, IngestResult, PasteEvent
from cascade.ingest.router import IngestionRouter

__all__ = ["DropEvent", "EventTarget", "IngestResult", "IngestionRouter", "PasteEvent"]

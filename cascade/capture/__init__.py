"""Capture package — payload model, drag classification, favicons."""

from cascade.capture.payload import CUSTOM_MIME, CapturePayload
from cascade.capture.transfer import DataTransfer, DroppedFile

__all__ = ["CUSTOM_MIME", "CapturePayload", "DataTransfer", "DroppedFile"]

"""Relay package — cross-context messaging, drag relay cache, image fetch."""

from cascade.relay.background import BackgroundService
from cascade.relay.bus import BACKGROUND, MessageBus
from cascade.relay.cache import RelayCache
from cascade.relay.image_fetch import ImageFetchRelay

__all__ = ["BACKGROUND", "BackgroundService", "ImageFetchRelay", "MessageBus", "RelayCache"]

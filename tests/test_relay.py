"""Relay tests: message bus, relay cache, image fetch and background context.

- ``respx`` patches ``httpx`` at the transport layer so no real network calls
  are made.
- Coroutine tests run under pytest-asyncio's auto mode.
"""

from __future__ import annotations

import asyncio
import base64

import httpx
import pytest
import respx
from pydantic import BaseModel

from cascade.capture.payload import CapturePayload
from cascade.errors import DeliveryError, ImageFetchError
from cascade.relay.background import BackgroundService
from cascade.relay.bus import BACKGROUND, MessageBus
from cascade.relay.cache import RelayCache
from cascade.relay.image_fetch import (
    ImageFetchRelay,
    decode_data_url,
    encode_data_url,
    extension_for,
    image_file_name,
)
from cascade.relay.messages import (
    DownloadImage,
    GetDragPayload,
    GetFavicon,
    ImageDownloaded,
    SetDragPayload,
    parse_message,
)

PNG = b"\x89PNG\r\n\x1a\n" + bytes(92)


def _payload(content: str = "hello") -> CapturePayload:
    return CapturePayload(source_url="https://a.example/", type="text", content=content)


# ---------------------------------------------------------------------------
# Message bus
# ---------------------------------------------------------------------------

class TestMessageBus:
    async def test_request_reaches_handler(self) -> None:
        bus = MessageBus()

        async def handler(message: BaseModel) -> str:
            return type(message).__name__

        bus.register("panel", handler)
        assert await bus.request("panel", GetDragPayload()) == "GetDragPayload"

    async def test_request_to_missing_context_raises(self) -> None:
        with pytest.raises(DeliveryError, match="does not exist"):
            await MessageBus().request(BACKGROUND, GetDragPayload())

    async def test_broadcast_skips_failing_listener(self) -> None:
        bus = MessageBus()
        seen = []

        async def broken(message: BaseModel) -> None:
            raise RuntimeError("boom")

        async def working(message: BaseModel) -> None:
            seen.append(message)

        bus.subscribe(broken)
        bus.subscribe(working)
        await bus.broadcast(GetDragPayload())
        assert len(seen) == 1

    async def test_post_and_drain(self) -> None:
        bus = MessageBus()
        seen = []

        async def listener(message: BaseModel) -> None:
            seen.append(message)

        unsubscribe = bus.subscribe(listener)
        bus.post(GetDragPayload())
        assert seen == []
        await bus.drain()
        assert len(seen) == 1

        unsubscribe()
        bus.post(GetDragPayload())
        await bus.drain()
        assert len(seen) == 1


class TestMessages:
    def test_parse_by_action(self) -> None:
        message = parse_message(
            {"action": "downloadImage", "url": "https://a.example/x.png", "projectId": "p1"}
        )
        assert isinstance(message, DownloadImage)
        assert message.project_id == "p1"
        assert message.task_id

    def test_parse_unknown_action_raises(self) -> None:
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            parse_message({"action": "launchRockets"})


# ---------------------------------------------------------------------------
# Relay cache
# ---------------------------------------------------------------------------

class TestRelayCache:
    async def test_get_twice_returns_once(self) -> None:
        cache = RelayCache(ttl=5.0)
        payload = _payload()
        cache.set(payload)
        assert cache.get() == payload
        assert cache.get() is None

    async def test_newest_set_wins(self) -> None:
        cache = RelayCache(ttl=5.0)
        cache.set(_payload("first"))
        cache.set(_payload("second"))
        assert cache.take().content == "second"  # type: ignore[union-attr]

    async def test_expires_after_ttl(self) -> None:
        cache = RelayCache(ttl=0.05)
        cache.set(_payload())
        await asyncio.sleep(0.1)
        assert cache.take() is None

    async def test_old_timer_does_not_clear_newer_payload(self) -> None:
        cache = RelayCache(ttl=0.1)
        payload = _payload()
        cache.set(payload)
        await asyncio.sleep(0.06)
        # Same object set again: only the second timer may expire it.
        cache.set(payload)
        await asyncio.sleep(0.06)
        assert cache.peek() == payload

    async def test_stale_token_is_ignored(self) -> None:
        cache = RelayCache(ttl=5.0)
        cache.set(_payload("first"))
        stale = cache._token
        cache.set(_payload("second"))
        cache._expire(stale)
        assert cache.peek().content == "second"  # type: ignore[union-attr]


# ---------------------------------------------------------------------------
# Image fetch
# ---------------------------------------------------------------------------

class TestNaming:
    @pytest.mark.parametrize(
        "content_type, expected",
        [
            ("image/jpeg", "jpeg"),
            ("image/webp; charset=binary", "webp"),
            ("image/svg+xml", "svg"),
            (None, "png"),
            ("garbage", "png"),
        ],
    )
    def test_extension_for(self, content_type, expected) -> None:
        assert extension_for(content_type) == expected

    def test_image_file_name(self) -> None:
        assert image_file_name("image/gif", now_ms=1700000000000) == "image-1700000000000.gif"

    def test_decode_data_url(self) -> None:
        assert decode_data_url(encode_data_url(PNG, "image/png")) == PNG

    def test_decode_garbage_raises(self) -> None:
        with pytest.raises(ImageFetchError, match="Base64"):
            decode_data_url("data:image/png;base64,@@@")


class TestImageFetchRelay:
    async def test_download_success(self) -> None:
        request = DownloadImage(url="https://cdn.example.com/cat.jpg", project_id="p1", source_url="https://a.example/")
        with respx.mock:
            respx.get("https://cdn.example.com/cat.jpg").mock(
                return_value=httpx.Response(200, content=PNG, headers={"content-type": "image/jpeg"})
            )
            done = await ImageFetchRelay().download(request)

        assert isinstance(done, ImageDownloaded)
        assert done.task_id == request.task_id
        assert done.project_id == "p1"
        assert done.file_name.endswith(".jpeg")
        assert done.source_url == "https://a.example/"
        assert decode_data_url(done.base64) == PNG

    async def test_missing_content_type_defaults_to_png(self) -> None:
        with respx.mock:
            respx.get("https://cdn.example.com/raw").mock(return_value=httpx.Response(200, content=PNG))
            done = await ImageFetchRelay().download(
                DownloadImage(url="https://cdn.example.com/raw", project_id="p1")
            )
        assert done.file_name.endswith(".png")

    async def test_http_error_carries_status(self) -> None:
        with respx.mock:
            respx.get("https://cdn.example.com/gone.png").mock(return_value=httpx.Response(404))
            with pytest.raises(ImageFetchError) as info:
                await ImageFetchRelay().download(
                    DownloadImage(url="https://cdn.example.com/gone.png", project_id="p1")
                )
        assert info.value.status_code == 404
        assert "404" in str(info.value)

    async def test_network_error(self) -> None:
        with respx.mock:
            respx.get("https://cdn.example.com/x.png").mock(side_effect=httpx.ConnectError("refused"))
            with pytest.raises(ImageFetchError, match="Network error") as info:
                await ImageFetchRelay().download(
                    DownloadImage(url="https://cdn.example.com/x.png", project_id="p1")
                )
        assert info.value.status_code is None

    async def test_inline_data_url_is_decoded_locally(self) -> None:
        inline = encode_data_url(PNG, "image/gif")
        request = DownloadImage(url=inline, project_id="p1", source_url="https://a.example/")
        with respx.mock(assert_all_called=False) as mock:
            done = await ImageFetchRelay().download(request)
        assert not mock.calls
        assert done.task_id == request.task_id
        assert done.file_name.endswith(".gif")
        assert decode_data_url(done.base64) == PNG

    async def test_inline_percent_encoded_svg(self) -> None:
        request = DownloadImage(url="data:image/svg+xml,%3Csvg%2F%3E", project_id="p1")
        done = await ImageFetchRelay().download(request)
        assert done.file_name.endswith(".svg")
        assert decode_data_url(done.base64) == b"<svg/>"

    async def test_inline_bad_base64_raises(self) -> None:
        with pytest.raises(ImageFetchError, match="Base64"):
            await ImageFetchRelay().download(
                DownloadImage(url="data:image/png;base64,@@@", project_id="p1")
            )


# ---------------------------------------------------------------------------
# Background context
# ---------------------------------------------------------------------------

@pytest.fixture()
def bus() -> MessageBus:
    return MessageBus()


@pytest.fixture()
def background(bus: MessageBus) -> BackgroundService:
    service = BackgroundService(bus).start()
    yield service
    service.stop()


class TestBackgroundService:
    async def test_drag_payload_round_trip(self, bus: MessageBus, background: BackgroundService) -> None:
        payload = _payload()
        reply = await bus.request(BACKGROUND, SetDragPayload(payload=payload))
        assert reply.success is True

        first = await bus.request(BACKGROUND, GetDragPayload())
        second = await bus.request(BACKGROUND, GetDragPayload())
        assert first.payload == payload
        assert second.success is True
        assert second.payload is None

    async def test_get_favicon(self, bus: MessageBus, background: BackgroundService) -> None:
        reply = await bus.request(BACKGROUND, GetFavicon(url="https://github.com/x"))
        assert reply.success
        assert "domain=github.com" in reply.favicon

        bad = await bus.request(BACKGROUND, GetFavicon(url="nonsense"))
        assert bad.success is False

    async def test_download_broadcasts_completion(self, bus: MessageBus, background: BackgroundService) -> None:
        received = []

        async def listener(message: BaseModel) -> None:
            received.append(message)

        bus.subscribe(listener)
        with respx.mock:
            respx.get("https://cdn.example.com/a.png").mock(
                return_value=httpx.Response(200, content=PNG, headers={"content-type": "image/png"})
            )
            request = DownloadImage(url="https://cdn.example.com/a.png", project_id="p1")
            reply = await bus.request(BACKGROUND, request)
            await bus.drain()

        assert reply.success is True
        assert len(received) == 1
        assert received[0].task_id == request.task_id

    async def test_download_failure_is_structured(self, bus: MessageBus, background: BackgroundService) -> None:
        received = []

        async def listener(message: BaseModel) -> None:
            received.append(message)

        bus.subscribe(listener)
        with respx.mock:
            respx.get("https://cdn.example.com/a.png").mock(return_value=httpx.Response(403))
            reply = await bus.request(
                BACKGROUND, DownloadImage(url="https://cdn.example.com/a.png", project_id="p1")
            )
            await bus.drain()

        assert reply.success is False
        assert reply.status_code == 403
        assert reply.error == "HTTP error: 403"
        assert received == []

    async def test_stopped_service_is_unreachable(self, bus: MessageBus, background: BackgroundService) -> None:
        background.stop()
        with pytest.raises(DeliveryError):
            await bus.request(BACKGROUND, GetDragPayload())

"""Capture-side tests: payload wire format, favicons, drag classification."""

from __future__ import annotations

import json

import pytest

from cascade.capture.classifier import DragCapture, DragGesture, Element, PageContext, classify
from cascade.capture.favicon import favicon_for, hostname_of, page_favicon
from cascade.capture.payload import CUSTOM_MIME, CapturePayload
from cascade.capture.transfer import DataTransfer, DroppedFile
from cascade.errors import PayloadError
from cascade.relay.bus import BACKGROUND, MessageBus
from cascade.relay.messages import SetDragPayload

PAGE = PageContext(url="https://news.example.com/story/1", title="A story")


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------

class TestCapturePayload:
    def test_wire_names_are_camel_case(self) -> None:
        payload = CapturePayload(source_url="https://a.example/", type="link", content="https://b.example/")
        wire = payload.to_wire()
        assert wire["sourceUrl"] == "https://a.example/"
        assert wire["sourceTitle"] == ""
        assert "sourceIcon" not in wire
        assert "linkTitle" not in wire

    def test_parse_json_string(self) -> None:
        raw = json.dumps({
            "sourceUrl": "https://a.example/",
            "sourceTitle": "A",
            "type": "text",
            "content": "hello",
        })
        payload = CapturePayload.parse(raw)
        assert payload.type == "text"
        assert payload.content == "hello"
        assert payload.is_actionable

    def test_parse_malformed_raises_payload_error(self) -> None:
        with pytest.raises(PayloadError):
            CapturePayload.parse("{not json")

    def test_parse_wrong_shape_raises_payload_error(self) -> None:
        with pytest.raises(PayloadError):
            CapturePayload.parse({"type": "video"})

    def test_unknown_is_not_actionable(self) -> None:
        assert not CapturePayload(source_url="https://a.example/").is_actionable
        assert not CapturePayload(source_url="https://a.example/", type="text", content="").is_actionable


# ---------------------------------------------------------------------------
# Transfer model
# ---------------------------------------------------------------------------

class TestDataTransfer:
    def test_missing_type_reads_empty(self) -> None:
        assert DataTransfer().get_data("text/uri-list") == ""

    def test_text_alias(self) -> None:
        assert DataTransfer({"text/plain": "hi"}).get_data("text") == "hi"

    def test_set_data_lowercases_type(self) -> None:
        dt = DataTransfer()
        dt.set_data("Text/Plain", "x")
        assert dt.types == ["text/plain"]
        assert dt.get_data("text") == "x"

    def test_dropped_file_is_image(self) -> None:
        assert DroppedFile(b"1", "image/png").is_image
        assert not DroppedFile(b"1", "application/pdf").is_image


# ---------------------------------------------------------------------------
# Favicons
# ---------------------------------------------------------------------------

class TestFavicon:
    def test_favicon_for_uses_hostname(self) -> None:
        icon = favicon_for("https://docs.python.org/3/library/")
        assert icon == "https://www.google.com/s2/favicons?domain=docs.python.org&sz=128"

    def test_favicon_for_unparsable_is_none(self) -> None:
        assert favicon_for("not a url") is None
        assert favicon_for(None) is None
        assert hostname_of("http://[broken") is None

    def test_page_favicon_prefers_icon(self) -> None:
        html = """
        <html><head>
          <link rel="apple-touch-icon" href="/touch.png">
          <link rel="shortcut icon" href="/static/fav.ico">
        </head></html>
        """
        assert page_favicon(html, PAGE.url) == "https://news.example.com/static/fav.ico"

    def test_page_favicon_apple_touch_fallback(self) -> None:
        html = '<link rel="apple-touch-icon" href="https://cdn.example.com/t.png">'
        assert page_favicon(html, PAGE.url) == "https://cdn.example.com/t.png"

    def test_page_favicon_default(self) -> None:
        assert page_favicon(None, PAGE.url) == "https://news.example.com/favicon.ico"


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

class TestClassify:
    def test_image_wins(self) -> None:
        anchor = Element("A", {"href": "/article"}, "Article")
        img = Element("IMG", {"src": "/img/cat.png"}, parent=anchor)
        payload = classify(PAGE, img, selection="some text")
        assert payload.type == "image"
        assert payload.content == "https://news.example.com/img/cat.png"

    def test_link_inside_anchor(self) -> None:
        anchor = Element("a", {"href": "https://other.example/x", "title": "Tooltip"}, "  Read more ")
        span = Element("span", parent=anchor)
        payload = classify(PAGE, span)
        assert payload.type == "link"
        assert payload.content == "https://other.example/x"
        assert payload.link_title == "Read more"

    def test_link_title_attribute_fallback(self) -> None:
        anchor = Element("a", {"href": "/x", "title": "Tooltip"}, "")
        assert classify(PAGE, anchor).link_title == "Tooltip"

    def test_selection_is_trimmed(self) -> None:
        payload = classify(PAGE, Element("p"), selection="  quoted words \n")
        assert payload.type == "text"
        assert payload.content == "quoted words"

    def test_nothing_is_unknown(self) -> None:
        payload = classify(PAGE, Element("div"), selection="   ")
        assert payload.type == "unknown"
        assert payload.content is None

    def test_malformed_src_keeps_raw_value(self) -> None:
        img = Element("img", {"src": "http://[bad/x.png"})
        payload = classify(PAGE, img)
        assert payload.type == "image"
        assert payload.content == "http://[bad/x.png"

    def test_malformed_href_keeps_raw_value(self) -> None:
        anchor = Element("a", {"href": "http://[bad/page"}, "Broken")
        payload = classify(PAGE, anchor)
        assert payload.type == "link"
        assert payload.content == "http://[bad/page"

    def test_provenance_attached(self) -> None:
        payload = classify(PAGE, None, selection="x")
        assert payload.source_url == PAGE.url
        assert payload.source_title == "A story"
        assert payload.source_icon == "https://news.example.com/favicon.ico"


class TestDragCapture:
    async def test_attaches_payload_and_relays(self) -> None:
        bus = MessageBus()
        received = []

        async def background(message):
            received.append(message)

        bus.register(BACKGROUND, background)
        gesture = DragGesture(page=PAGE, target=Element("a", {"href": "/x"}, "X"))
        payload = await DragCapture(bus).on_drag_start(gesture)

        attached = CapturePayload.parse(gesture.data_transfer.get_data(CUSTOM_MIME))
        assert attached == payload
        assert isinstance(received[0], SetDragPayload)
        assert received[0].payload == payload

    async def test_dead_background_is_swallowed(self) -> None:
        gesture = DragGesture(page=PAGE, selection="hello")
        payload = await DragCapture(MessageBus()).on_drag_start(gesture)
        assert payload.type == "text"
        assert gesture.data_transfer.get_data(CUSTOM_MIME)

    async def test_unknown_is_not_attached(self) -> None:
        gesture = DragGesture(page=PAGE)
        await DragCapture(None).on_drag_start(gesture)
        assert gesture.data_transfer.types == []

"""Upstream adapter: handshake, config and message translation."""
import base64
import json

import pytest

from pizzeria_voice.agent_client import (
    build_session_update,
    decode_upstream,
    function_result_item,
    user_text_item,
)
from pizzeria_voice.errors import UpstreamHandshakeError
from pizzeria_voice.messages import BinaryDataEvent


def test_decode_text_event():
    assert decode_upstream('{"type": "session.created"}') == {"type": "session.created"}


def test_decode_bytes_that_hold_json():
    assert decode_upstream(b'{"type": "response.done"}') == {"type": "response.done"}


def test_decode_raw_bytes_become_binary_data():
    raw = bytes([0, 255, 16, 32, 200])
    evt = decode_upstream(raw)
    assert isinstance(evt, BinaryDataEvent)
    assert evt.format == "application/octet-stream"
    assert base64.b64decode(evt.data) == raw


def test_decode_text_that_is_not_json_raises():
    with pytest.raises(ValueError):
        decode_upstream("hello")


def test_user_text_item():
    msg = user_text_item("two large pepperoni")
    assert msg["type"] == "conversation.item.create"
    assert msg["item"]["role"] == "user"
    assert msg["item"]["content"] == [{"type": "input_text", "text": "two large pepperoni"}]


def test_function_result_item_links_call():
    msg = function_result_item("call_1", "add_to_cart", {"success": True}, previous_item_id="item_9")
    assert msg["type"] == "conversation.item.create"
    assert msg["previous_item_id"] == "item_9"
    item = msg["item"]
    assert item["role"] == "function"
    assert item["name"] == "add_to_cart"
    assert item["call_id"] == "call_1"
    assert json.loads(item["output"]) == {"success": True}


def test_session_update_by_language(settings, catalog):
    en = build_session_update(settings, catalog, "en")["session"]
    ur = build_session_update(settings, catalog, "ur")["session"]
    assert en["voice"] == "nova"
    assert ur["voice"] == "alloy"
    assert en["input_audio_transcription"]["language"] == "en"
    assert ur["input_audio_transcription"]["language"] == "ur"
    assert "Pixel Pizzeria" in en["instructions"]
    assert len(en["tools"]) == 5
    assert en["turn_detection"]["threshold"] == settings.vad_threshold


@pytest.mark.asyncio
async def test_open_sends_session_update(adapter, connector):
    ws = await adapter.open("en")
    assert ws is connector.last
    call = connector.calls[0]
    assert call["url"].endswith("?model=gpt-4o-realtime-preview-2024-12-17")
    assert call["headers"]["Authorization"] == "Bearer sk-test"
    assert ws.sent[0]["type"] == "session.update"


@pytest.mark.asyncio
async def test_open_failure_is_handshake_error(adapter, connector):
    connector.fail = OSError("401 Unauthorized")
    with pytest.raises(UpstreamHandshakeError):
        await adapter.open("en")

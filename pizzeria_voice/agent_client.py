# pizzeria_voice/agent_client.py
import base64
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from websockets.asyncio.client import connect as ws_connect

from .agent_functions import FUNCTION_DEFS
from .catalog import Catalog
from .errors import UpstreamHandshakeError
from .instructions import build_instructions
from .messages import BinaryDataEvent
from .settings import Settings

log = logging.getLogger("agent_client")

# Realtime API event types we look at; everything else is passed through
RT_SESSION_UPDATE         = "session.update"
RT_AUDIO_APPEND           = "input_audio_buffer.append"
RT_AUDIO_COMMIT           = "input_audio_buffer.commit"
RT_ITEM_CREATE            = "conversation.item.create"
RT_RESPONSE_CREATE        = "response.create"
RT_FUNCTION_ARGS_DONE     = "response.function_call_arguments.done"
RT_ERROR                  = "error"

# Closures after which the conversation is simply re-opened
RECONNECT_CLOSE_CODES = (1000, 1001)

Connector = Callable[[str, Dict[str, str]], Awaitable[Any]]


async def default_connector(url: str, headers: Dict[str, str]):
    return await ws_connect(url, additional_headers=headers, max_size=2**24)


def build_session_update(settings: Settings, catalog: Optional[Catalog], language: str) -> Dict[str, Any]:
    return {
        "type": RT_SESSION_UPDATE,
        "session": {
            "modalities": ["text", "audio"],
            "voice": settings.voice_for(language),
            "instructions": build_instructions(catalog, language),
            "input_audio_format": "pcm16",
            "output_audio_format": "pcm16",
            "input_audio_transcription": {
                "model": "whisper-1",
                "language": settings.transcription_locale(language),
            },
            "turn_detection": {
                "type": "server_vad",
                "threshold": settings.vad_threshold,
                "prefix_padding_ms": settings.vad_prefix_padding_ms,
                "silence_duration_ms": settings.vad_silence_duration_ms,
            },
            "tools": FUNCTION_DEFS,
            "tool_choice": "auto",
        },
    }


# ---------- core -> AI ----------
def audio_append(data_b64: str) -> Dict[str, Any]:
    return {"type": RT_AUDIO_APPEND, "audio": data_b64}


def audio_commit() -> Dict[str, Any]:
    return {"type": RT_AUDIO_COMMIT}


def user_text_item(text: str) -> Dict[str, Any]:
    return {
        "type": RT_ITEM_CREATE,
        "item": {
            "type": "message",
            "role": "user",
            "content": [{"type": "input_text", "text": text}],
        },
    }


def function_result_item(call_id: str, name: str, result: Any,
                         previous_item_id: Optional[str] = None) -> Dict[str, Any]:
    msg: Dict[str, Any] = {
        "type": RT_ITEM_CREATE,
        "item": {
            "type": "function_call_output",
            "role": "function",
            "name": name,
            "call_id": call_id,
            "output": result if isinstance(result, str) else json.dumps(result),
        },
    }
    if previous_item_id:
        msg["previous_item_id"] = previous_item_id
    return msg


def response_create() -> Dict[str, Any]:
    return {"type": RT_RESPONSE_CREATE}


# ---------- AI -> core ----------
def decode_upstream(message: Union[str, bytes, bytearray]) -> Union[Dict[str, Any], BinaryDataEvent]:
    """
    Text frames are events. Binary frames are events too if they decode to
    JSON; anything else is treated as opaque audio and base64-wrapped.
    Raises ValueError only for a text frame that is not JSON.
    """
    if isinstance(message, str):
        evt = json.loads(message)
        if not isinstance(evt, dict):
            raise ValueError("upstream event is not a JSON object")
        return evt

    raw = bytes(message)
    try:
        evt = json.loads(raw.decode("utf-8"))
        if isinstance(evt, dict):
            return evt
    except (UnicodeDecodeError, ValueError):
        pass
    return BinaryDataEvent(data=base64.b64encode(raw).decode("ascii"))


class UpstreamAdapter:
    """Opens and feeds one realtime conversation per browser session."""

    def __init__(self, settings: Settings, catalog: Optional[Catalog],
                 connector: Optional[Connector] = None) -> None:
        self.settings = settings
        self.catalog = catalog
        self._connector = connector or default_connector

    @property
    def url(self) -> str:
        return f"{self.settings.realtime_url}?model={self.settings.realtime_model}"

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.openai_api_key}",
            "OpenAI-Beta": "realtime=v1",
        }

    async def open(self, language: str):
        """Connect and configure. Raises UpstreamHandshakeError on any failure."""
        try:
            ws = await self._connector(self.url, self.headers)
        except Exception as e:
            log.error(f"❌ Realtime connection error: {e}")
            raise UpstreamHandshakeError(f"Error connecting to OpenAI: {e}") from e
        try:
            await ws.send(json.dumps(build_session_update(self.settings, self.catalog, language)))
        except Exception as e:
            log.error(f"❌ Failed to send session settings: {e}")
            try:
                await ws.close()
            except Exception:
                log.debug("close after failed handshake raised", exc_info=True)
            raise UpstreamHandshakeError(f"Error configuring OpenAI session: {e}") from e
        log.info(f"✅ Connected to OpenAI Realtime (model={self.settings.realtime_model}, language={language})")
        return ws

    async def send(self, ws, payload: Dict[str, Any]) -> None:
        await ws.send(json.dumps(payload))

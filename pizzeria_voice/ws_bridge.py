# pizzeria_voice/ws_bridge.py
import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from .relay import RelayBridge

log = logging.getLogger("ws_bridge")
router = APIRouter()


class WebSocketChannel:
    """Browser channel backed by a FastAPI websocket."""

    def __init__(self, ws: WebSocket) -> None:
        self.ws = ws
        self._closed = False

    @property
    def is_open(self) -> bool:
        return not self._closed and self.ws.client_state == WebSocketState.CONNECTED

    def mark_closed(self) -> None:
        self._closed = True

    async def send_json(self, payload: Dict[str, Any]) -> None:
        await self.ws.send_text(json.dumps(payload))


async def _serve(ws: WebSocket) -> None:
    await ws.accept()
    bridge: RelayBridge = ws.app.state.bridge
    channel = WebSocketChannel(ws)
    session = await bridge.connect(channel)

    try:
        while True:
            frame = await ws.receive()
            if frame["type"] == "websocket.disconnect":
                break
            raw = frame.get("text")
            if raw is None:
                raw = frame.get("bytes")
            if raw is None:
                continue
            await bridge.handle_client_raw(session, raw)
    except WebSocketDisconnect:
        log.info(f"[{session.id}] websocket disconnect")
    except Exception as e:
        log.exception(f"[{session.id}] error: {e}")
    finally:
        channel.mark_closed()
        await bridge.disconnect(session)


@router.websocket("/ws")
async def client_ws(ws: WebSocket):
    await _serve(ws)


# Older browser builds open the socket on "/"
@router.websocket("/")
async def client_ws_root(ws: WebSocket):
    await _serve(ws)

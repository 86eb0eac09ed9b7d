# pizzeria_voice/relay.py
import asyncio
import contextlib
import json
import logging
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed

from .agent_client import (
    RECONNECT_CLOSE_CODES,
    RT_ERROR,
    RT_FUNCTION_ARGS_DONE,
    UpstreamAdapter,
    audio_append,
    audio_commit,
    decode_upstream,
    user_text_item,
)
from .audio import AudioCommitBuffer, b64_decoded_len
from .coordinator import FunctionCallCoordinator
from .errors import UpstreamHandshakeError
from .messages import (
    AudioMessage,
    BinaryDataEvent,
    ConnectionEvent,
    DisconnectedEvent,
    ErrorEvent,
    FunctionResultMessage,
    InitMessage,
    ReadyEvent,
    TextMessage,
    parse_client_message,
)
from .session import ClientChannel, ClientSession, SessionRegistry, SessionState
from .settings import Settings

log = logging.getLogger("relay")

# High-volume upstream events kept out of INFO logs
NOISY_EVENTS = {
    "response.audio.delta",
    "response.audio_transcript.delta",
    "response.function_call_arguments.delta",
    "input_audio_buffer.committed",
    "input_audio_buffer.speech_started",
    "input_audio_buffer.speech_stopped",
    "rate_limits.updated",
}


class RelayBridge:
    """
    Per-session state machine between the browser and the realtime service.

        new -> awaiting_upstream_ready -> active <-> reconnecting
        any -> closed (browser gone)

    Every handler runs on the event loop as a reaction to one inbound frame
    or timer; none of them blocks other sessions.
    """

    def __init__(self, registry: SessionRegistry, adapter: UpstreamAdapter,
                 coordinator: FunctionCallCoordinator, settings: Settings) -> None:
        self.registry = registry
        self.adapter = adapter
        self.coordinator = coordinator
        self.settings = settings

    # ---------- browser lifecycle ----------
    async def connect(self, channel: ClientChannel) -> ClientSession:
        session = await self.registry.create(channel, language=self.settings.agent_language)
        log.info(f"[{session.id}] Client connected")
        await session.emit(ConnectionEvent(id=session.id).to_wire())
        return session

    async def disconnect(self, session: ClientSession) -> None:
        """Browser gone: close upstream, cancel timers, forget the session."""
        log.info(f"[{session.id}] Client disconnected (state={session.state.value})")
        await self.registry.remove(session.id)

    # ---------- browser -> relay ----------
    async def handle_client_raw(self, session: ClientSession, raw: Union[str, bytes]) -> None:
        try:
            msg = parse_client_message(raw)
        except ValidationError as e:
            log.warning(f"[{session.id}] rejected client message: {e.errors()[:1]}")
            await session.emit(ErrorEvent.of("Invalid message", details=_first_error(e)).to_wire())
            return
        except ValueError as e:
            log.warning(f"[{session.id}] malformed client JSON: {e}")
            await session.emit(ErrorEvent.of(f"Malformed JSON: {e}").to_wire())
            return
        await self.handle_client_message(session, msg)

    async def handle_client_message(self, session: ClientSession, msg) -> None:
        if isinstance(msg, InitMessage):
            await self._on_init(session, msg.language)
        elif isinstance(msg, AudioMessage):
            await self._on_audio(session, msg.data)
        elif isinstance(msg, TextMessage):
            await self._on_text(session, msg.text)
        elif isinstance(msg, FunctionResultMessage):
            await self.coordinator.on_client_function_result(session, msg.id, msg.result, name=msg.name)

    async def _on_init(self, session: ClientSession, language: str) -> None:
        if session.state == SessionState.AWAITING_UPSTREAM_READY:
            log.warning(f"[{session.id}] init ignored; upstream already opening")
            return
        if session.state in (SessionState.ACTIVE, SessionState.RECONNECTING):
            log.info(f"[{session.id}] re-init ({session.language} -> {language}); replacing upstream")
            if session.reconnect_task and not session.reconnect_task.done():
                session.reconnect_task.cancel()
            session.reconnect_task = None
            await session.close_upstream()
            self._drop_pending_calls(session, "language change")
        session.reconnect_attempts = 0
        await self.open_upstream(session, language)

    async def _on_audio(self, session: ClientSession, data_b64: str) -> None:
        if session.state != SessionState.ACTIVE or session.upstream is None:
            log.warning(f"[{session.id}] Cannot send audio: no upstream connection ({session.state.value})")
            return
        try:
            await self.adapter.send(session.upstream, audio_append(data_b64))
            if session.audio.add(b64_decoded_len(data_b64)):
                await self.adapter.send(session.upstream, audio_commit())
                session.audio.committed()
        except ConnectionClosed as e:
            log.warning(f"[{session.id}] audio send failed, upstream closed: {e}")
            await session.emit(ErrorEvent.of(f"Upstream connection closed: {e}").to_wire())
        except Exception as e:
            log.warning(f"[{session.id}] audio send failed: {e}")
            await session.emit(ErrorEvent.of(f"Could not send audio: {e}").to_wire())

    async def _on_text(self, session: ClientSession, text: str) -> None:
        if session.state != SessionState.ACTIVE or session.upstream is None:
            log.warning(f"[{session.id}] Cannot send text: no upstream connection ({session.state.value})")
            return
        try:
            await self.adapter.send(session.upstream, user_text_item(text))
            log.info(f"[{session.id}] 💬 user text: {text[: self.settings.log_tool_maxlen]}")
        except Exception as e:
            log.warning(f"[{session.id}] text send failed: {e}")
            await session.emit(ErrorEvent.of(f"Could not send text: {e}").to_wire())

    # ---------- upstream lifecycle ----------
    async def open_upstream(self, session: ClientSession, language: str) -> bool:
        if session.closed:
            return False
        session.language = language
        session.transition_to(SessionState.AWAITING_UPSTREAM_READY)
        log.info(f"[{session.id}] Initializing OpenAI connection with language {language}")

        try:
            ws = await self.adapter.open(language)
        except UpstreamHandshakeError as e:
            session.transition_to(SessionState.NEW)
            await session.emit(ErrorEvent.of(str(e)).to_wire())
            return False

        if session.closed or not session.client.is_open:
            # browser left while we were dialing
            await ws.close()
            return False

        session.upstream = ws
        session.audio = AudioCommitBuffer(
            min_bytes=self.settings.audio_min_buffer_bytes,
            min_interval_ms=self.settings.audio_min_buffer_ms,
            every_append=self.settings.audio_commit_every_append,
        )
        session.upstream_reader = asyncio.create_task(self._read_upstream(session, ws))
        session.transition_to(SessionState.ACTIVE)
        await session.emit(ReadyEvent().to_wire())
        return True

    async def _read_upstream(self, session: ClientSession, ws) -> None:
        failure: Optional[Exception] = None
        try:
            async for message in ws:
                await self.handle_upstream_message(session, message)
        except asyncio.CancelledError:
            log.debug(f"[{session.id}] upstream reader cancelled")
            return
        except ConnectionClosed:
            log.debug(f"[{session.id}] upstream websocket closed")
        except Exception as e:
            log.exception(f"[{session.id}] upstream reader error: {e}")
            failure = e
            # the socket is still open; nothing else will close it
            with contextlib.suppress(Exception):
                await ws.close()

        if session.upstream is not ws:
            return
        if failure is not None:
            await self.on_upstream_closed(session, None, f"Upstream reader failed: {failure}")
        else:
            await self.on_upstream_closed(session, getattr(ws, "close_code", None),
                                          getattr(ws, "close_reason", None) or "")

    async def on_upstream_closed(self, session: ClientSession, code: Optional[int], reason: str) -> None:
        log.info(f"[{session.id}] OpenAI WebSocket closed. Code: {code}, Reason: {reason or 'No reason provided'}")
        session.upstream = None
        session.upstream_reader = None
        if session.closed:
            return
        self._drop_pending_calls(session, "upstream closed")

        if code in RECONNECT_CLOSE_CODES and session.client.is_open:
            if session.reconnect_task and not session.reconnect_task.done():
                return
            session.transition_to(SessionState.RECONNECTING)
            log.info(f"[{session.id}] Attempting to reconnect in {self.settings.reconnect_delay_ms}ms...")
            session.reconnect_task = asyncio.create_task(self._reconnect_later(session))
            return

        session.transition_to(SessionState.NEW)
        await session.emit(DisconnectedEvent(code=code, reason=reason or "Connection closed").to_wire())

    async def _reconnect_later(self, session: ClientSession) -> None:
        await asyncio.sleep(self.settings.reconnect_delay_ms / 1000.0)
        session.reconnect_task = None
        if session.closed or not session.client.is_open:
            log.info(f"[{session.id}] reconnect skipped; client gone")
            return
        session.reconnect_attempts += 1
        log.info(f"[{session.id}] Reconnecting (attempt {session.reconnect_attempts}, language {session.language})")
        await self.open_upstream(session, session.language)

    def _drop_pending_calls(self, session: ClientSession, why: str) -> None:
        """Calls belong to the conversation that issued them; a new upstream never sees their results."""
        dropped = session.drop_pending_calls()
        if dropped:
            log.warning(f"[{session.id}] {why}: dropped {len(dropped)} pending call(s) {dropped}")

    # ---------- upstream -> browser ----------
    async def handle_upstream_message(self, session: ClientSession, message: Union[str, bytes]) -> None:
        try:
            evt = decode_upstream(message)
        except ValueError as e:
            log.warning(f"[{session.id}] unparseable upstream frame: {e}")
            return

        if isinstance(evt, BinaryDataEvent):
            log.debug(f"[{session.id}] upstream binary frame ({len(message)} bytes)")
            await session.emit(evt.to_wire())
            return

        etype = evt.get("type")
        self._log_event(session, etype, evt)
        await session.emit(evt)

        if etype == RT_FUNCTION_ARGS_DONE:
            await self.coordinator.on_upstream_function_call(session, evt)

    def _log_event(self, session: ClientSession, etype: Optional[str], evt: Dict[str, Any]) -> None:
        if etype == RT_ERROR:
            log.error(f"[{session.id}] Received error from OpenAI: {json.dumps(evt.get('error'))}")
        elif self.settings.log_agent_events and etype not in NOISY_EVENTS:
            log.info(f"[{session.id}] Agent: {etype}")
        else:
            log.debug(f"[{session.id}] Agent: {etype}")


def _first_error(e: ValidationError) -> str:
    errs = e.errors()
    if not errs:
        return str(e)
    loc = ".".join(str(p) for p in errs[0].get("loc", ()))
    return f"{loc}: {errs[0].get('msg')}" if loc else str(errs[0].get("msg"))

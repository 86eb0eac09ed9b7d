# pizzeria_voice/session.py
import asyncio
import contextlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from .audio import AudioCommitBuffer

log = logging.getLogger("session")


class SessionState(str, Enum):
    NEW = "new"
    AWAITING_UPSTREAM_READY = "awaiting_upstream_ready"
    ACTIVE = "active"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class ClientChannel(Protocol):
    """Browser side of a session. ws_bridge wraps the FastAPI websocket in one."""

    @property
    def is_open(self) -> bool: ...

    async def send_json(self, payload: Dict[str, Any]) -> None: ...


@dataclass
class CartLine:
    item_ref: str
    quantity: int = 1
    size: str = "Medium"
    customizations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item": self.item_ref,
            "quantity": self.quantity,
            "size": self.size,
            "customizations": list(self.customizations),
        }


@dataclass
class PendingCall:
    correlation_id: str
    function_name: str
    arguments: Dict[str, Any]
    issued_at: float = field(default_factory=time.monotonic)
    item_id: Optional[str] = None           # upstream conversation item to append the result after
    timeout_handle: Optional[asyncio.TimerHandle] = None

    def cancel_timeout(self) -> None:
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
            self.timeout_handle = None


@dataclass
class ClientSession:
    """Holds *per-connection* state so two browsers never clobber each other."""
    id: str
    client: ClientChannel
    language: str = "en"
    state: SessionState = SessionState.NEW

    upstream: Any = None                    # live realtime channel, at most one
    upstream_reader: Optional[asyncio.Task] = None
    reconnect_task: Optional[asyncio.Task] = None
    reconnect_attempts: int = 0            # since the last init

    cart: List[CartLine] = field(default_factory=list)
    pending_calls: Dict[str, PendingCall] = field(default_factory=dict)
    audio: Optional[AudioCommitBuffer] = None

    @property
    def closed(self) -> bool:
        return self.state == SessionState.CLOSED

    def transition_to(self, new_state: SessionState) -> SessionState:
        old = self.state
        if old == SessionState.CLOSED:
            return old
        self.state = new_state
        if old != new_state:
            log.debug(f"[{self.id}] state {old.value} -> {new_state.value}")
        return old

    async def emit(self, payload: Dict[str, Any]) -> bool:
        """Send to the browser unless the session is gone. Returns False if nothing was sent."""
        if self.closed or not self.client.is_open:
            return False
        try:
            await self.client.send_json(payload)
            return True
        except Exception as e:
            log.warning(f"[{self.id}] send to client failed: {e}")
            return False

    def cancel_timers(self) -> None:
        if self.reconnect_task and not self.reconnect_task.done():
            self.reconnect_task.cancel()
        self.reconnect_task = None
        self.drop_pending_calls()

    def drop_pending_calls(self) -> List[str]:
        dropped = list(self.pending_calls)
        for call in self.pending_calls.values():
            call.cancel_timeout()
        self.pending_calls.clear()
        return dropped

    async def close_upstream(self) -> None:
        upstream, reader = self.upstream, self.upstream_reader
        self.upstream = None
        self.upstream_reader = None
        if reader and not reader.done() and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await reader
        if upstream is not None:
            with contextlib.suppress(Exception):
                await upstream.close()


class SessionRegistry:
    def __init__(self) -> None:
        self._by_id: Dict[str, ClientSession] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._by_id)

    async def create(self, channel: ClientChannel, language: str = "en") -> ClientSession:
        async with self._lock:
            session_id = uuid.uuid4().hex
            while session_id in self._by_id:
                session_id = uuid.uuid4().hex
            s = ClientSession(id=session_id, client=channel, language=language)
            self._by_id[session_id] = s
            return s

    async def get(self, session_id: str) -> Optional[ClientSession]:
        async with self._lock:
            return self._by_id.get(session_id)

    async def remove(self, session_id: str) -> None:
        async with self._lock:
            s = self._by_id.pop(session_id, None)
        if s is None:
            return
        s.transition_to(SessionState.CLOSED)
        s.cancel_timers()
        await s.close_upstream()

    async def close_all(self) -> None:
        async with self._lock:
            ids = list(self._by_id)
        for session_id in ids:
            await self.remove(session_id)

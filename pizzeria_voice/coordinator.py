# pizzeria_voice/coordinator.py
import asyncio
import json
import logging
import uuid
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .agent_client import UpstreamAdapter, function_result_item, response_create
from .agent_functions import FUNCTION_MAP
from .catalog import Catalog
from .messages import ErrorEvent, FunctionCallEvent
from .session import ClientSession, PendingCall
from .settings import Settings

log = logging.getLogger("coordinator")


class FunctionCallCoordinator:
    """
    Round-trips AI function calls through the browser.

    AI -> function_call event to the browser -> function_result back ->
    cart mutation on the session's validated cart -> result appended to the
    upstream conversation. Results are matched by correlation id only.
    """

    def __init__(self, adapter: UpstreamAdapter, catalog: Catalog, settings: Settings) -> None:
        self.adapter = adapter
        self.catalog = catalog
        self.settings = settings

    def _clip(self, s: str) -> str:
        return s[: self.settings.log_tool_maxlen]

    async def on_upstream_function_call(self, session: ClientSession, call: Dict[str, Any]) -> Optional[PendingCall]:
        name = call.get("name") or ""
        correlation_id = call.get("call_id") or call.get("id") or uuid.uuid4().hex
        item_id = call.get("item_id")
        raw_args = call.get("arguments") or "{}"
        log.info(f"[{session.id}] 🔧 function.call {name}({self._clip(raw_args if isinstance(raw_args, str) else json.dumps(raw_args))})")

        if correlation_id in session.pending_calls:
            log.debug(f"[{session.id}] duplicate function call {correlation_id} ignored")
            return None

        entry = FUNCTION_MAP.get(name)
        if not entry:
            await self._reply_upstream(session, correlation_id, name,
                                       {"success": False, "error": f"Unknown function: {name}"}, item_id)
            return None

        try:
            args = json.loads(raw_args) if isinstance(raw_args, str) else raw_args
            if not isinstance(args, dict):
                raise ValueError("arguments must be a JSON object")
            validated = entry[0].model_validate(args)
        except (TypeError, ValueError, ValidationError) as e:
            log.warning(f"[{session.id}] invalid arguments for {name}: {e}")
            await self._reply_upstream(session, correlation_id, name,
                                       {"success": False, "error": f"Invalid arguments: {e}"}, item_id)
            return None

        pending = PendingCall(
            correlation_id=correlation_id,
            function_name=name,
            arguments=validated.model_dump(),
            item_id=item_id,
        )
        loop = asyncio.get_running_loop()
        pending.timeout_handle = loop.call_later(
            self.settings.pending_call_timeout_s, self._expire, session, correlation_id
        )
        session.pending_calls[correlation_id] = pending

        await session.emit(FunctionCallEvent(id=correlation_id, name=name, arguments=args).to_wire())
        return pending

    async def on_client_function_result(self, session: ClientSession, correlation_id: Optional[str],
                                        result: Any, name: Optional[str] = None) -> bool:
        """Never raises toward the transport; unknown ids are logged and dropped."""
        pending = session.pending_calls.pop(correlation_id, None) if correlation_id else None
        if pending is None:
            log.info(f"[{session.id}] function_result for unknown call id {correlation_id!r} ({name}); discarded")
            return False
        pending.cancel_timeout()
        if name and name != pending.function_name:
            log.warning(f"[{session.id}] function_result name {name!r} does not match call {pending.function_name!r}")

        outcome = self._apply(session, pending)
        forwarded = result if outcome.get("success") and result is not None else outcome
        await self._reply_upstream(session, pending.correlation_id, pending.function_name, forwarded, pending.item_id)
        return True

    def _apply(self, session: ClientSession, pending: PendingCall) -> Dict[str, Any]:
        model, op = FUNCTION_MAP[pending.function_name]
        try:
            outcome = op(session.cart, self.catalog, model.model_validate(pending.arguments))
        except Exception as e:
            log.exception(f"[{session.id}] {pending.function_name} failed: {e}")
            return {"success": False, "error": str(e)}
        if not outcome.get("success"):
            log.info(f"[{session.id}] {pending.function_name} rejected: {outcome.get('error')}")
        return outcome

    async def _reply_upstream(self, session: ClientSession, correlation_id: str, name: str,
                              result: Any, previous_item_id: Optional[str]) -> None:
        if session.upstream is None:
            log.warning(f"[{session.id}] no upstream for {name} result {correlation_id}; dropped")
            return
        msg = function_result_item(correlation_id, name, result, previous_item_id)
        try:
            await self.adapter.send(session.upstream, msg)
            if self.settings.auto_response_after_function:
                await self.adapter.send(session.upstream, response_create())
        except Exception as e:
            log.warning(f"[{session.id}] sending {name} result upstream failed: {e}")
            await session.emit(ErrorEvent.of(f"Could not deliver function result: {e}").to_wire())
            return
        log.info(f"[{session.id}] 🔧 function.result {name}: {self._clip(msg['item']['output'])}")

    def _expire(self, session: ClientSession, correlation_id: str) -> None:
        pending = session.pending_calls.pop(correlation_id, None)
        if pending is not None:
            pending.timeout_handle = None
            log.warning(f"[{session.id}] ⏱️ {pending.function_name} call {correlation_id} got no result "
                        f"within {self.settings.pending_call_timeout_s}s; dropped")

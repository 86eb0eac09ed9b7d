# pizzeria_voice/messages.py
"""
Wire messages between the browser and the relay.

Each message type is its own model with a literal ``type`` tag, so inbound
frames are validated in one place and outbound frames are built field by
field instead of spreading dicts together.
"""
import json
from typing import Any, Dict, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter
from typing_extensions import Annotated

Language = Literal["en", "ur"]


# ---------- browser -> relay ----------
class InitMessage(BaseModel):
    type: Literal["init"]
    language: Language = "en"


class AudioMessage(BaseModel):
    type: Literal["audio"]
    data: str  # base64 PCM16


class TextMessage(BaseModel):
    type: Literal["text"]
    text: str


class FunctionResultMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["function_result"]
    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "call_id", "function_call_id"))
    name: Optional[str] = None
    result: Any = None


ClientMessage = Annotated[
    Union[InitMessage, AudioMessage, TextMessage, FunctionResultMessage],
    Field(discriminator="type"),
]
_client_message = TypeAdapter(ClientMessage)


def parse_client_message(raw: Union[str, bytes, Dict[str, Any]]):
    """Raises ValueError (json) or pydantic.ValidationError on a bad frame."""
    data = json.loads(raw) if isinstance(raw, (str, bytes, bytearray)) else raw
    return _client_message.validate_python(data)


# ---------- relay -> browser ----------
class OutboundEvent(BaseModel):
    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump()


class ConnectionEvent(OutboundEvent):
    type: Literal["connection"] = "connection"
    id: str


class ReadyEvent(OutboundEvent):
    type: Literal["ready"] = "ready"


class ErrorEvent(OutboundEvent):
    type: Literal["error"] = "error"
    error: Any

    @classmethod
    def of(cls, message: str, **extra: Any) -> "ErrorEvent":
        return cls(error={"message": message, **extra})


class FunctionCallEvent(OutboundEvent):
    type: Literal["function_call"] = "function_call"
    id: str
    name: str
    arguments: Dict[str, Any]


class BinaryDataEvent(OutboundEvent):
    type: Literal["binary_data"] = "binary_data"
    format: str = "application/octet-stream"
    data: str  # base64


class DisconnectedEvent(OutboundEvent):
    type: Literal["disconnected"] = "disconnected"
    code: Optional[int] = None
    reason: str = "Connection closed"

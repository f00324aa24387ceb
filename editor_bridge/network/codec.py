"""Wire codec for editor command/response envelopes."""

from __future__ import annotations

import enum
import json
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from editor_bridge.network.errors import DecodeError


class ResponseStatus(str, enum.Enum):
    SUCCESS = "success"
    ERROR = "error"


class CommandEnvelope(BaseModel):
    """Outbound request frame."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str
    params: Dict[str, Any] = Field(default_factory=dict)
    command_id: str = Field(alias="commandId")


class ResponseEnvelope(BaseModel):
    """Inbound reply frame echoed back by the editor."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    command_id: Optional[str] = Field(default=None, alias="commandId")
    # Anything other than "success" is treated as a failed command.
    status: Optional[str] = None
    result: Any = None
    message: Optional[str] = None

    @model_validator(mode="after")
    def _require_status_or_id(self) -> "ResponseEnvelope":
        if self.command_id is None and self.status is None:
            raise ValueError("response envelope carries neither commandId nor status")
        return self

    @property
    def ok(self) -> bool:
        return self.status == ResponseStatus.SUCCESS.value


def build_command(command_type: str, params: Optional[Mapping[str, Any]], command_id: str) -> CommandEnvelope:
    return CommandEnvelope(type=command_type, params=dict(params or {}), commandId=command_id)


def encode(envelope: CommandEnvelope) -> str:
    """Serialize a command envelope into a compact JSON text frame."""

    return envelope.model_dump_json(by_alias=True)


def decode(frame: str | bytes | bytearray) -> ResponseEnvelope:
    """Parse a text frame into a response envelope or raise DecodeError."""

    if isinstance(frame, (bytes, bytearray)):
        try:
            frame = bytes(frame).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError("frame is not valid UTF-8") from exc
    try:
        raw = json.loads(frame)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"frame is not valid JSON: {exc.msg}") from exc
    if not isinstance(raw, dict):
        raise DecodeError(f"frame must be a JSON object, got {type(raw).__name__}")
    try:
        return ResponseEnvelope.model_validate(raw)
    except ValidationError as exc:
        raise DecodeError(f"invalid response envelope: {exc.errors(include_url=False)}") from exc

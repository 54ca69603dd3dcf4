"""JSON envelopes exchanged with the game's websocket client.

Outbound traffic is limited to two envelope kinds: the one-off event
subscription sent when a client connects, and command requests carrying a
single slash command. Inbound frames are decoded strictly into one of three
tagged variants; anything that does not fit raises ``ProtocolDecodeError``.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from .constants import PLAYER_MESSAGE_EVENT

PROTOCOL_VERSION = 1


class ProtocolDecodeError(ValueError):
    """Raised when an inbound frame does not match a known envelope."""


def _new_request_id() -> str:
    return str(uuid.uuid4())


@dataclass(slots=True)
class SubscribeRequest:
    event_name: str = PLAYER_MESSAGE_EVENT
    request_id: str = field(default_factory=_new_request_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "header": {
                "version": PROTOCOL_VERSION,
                "requestId": self.request_id,
                "messageType": "commandRequest",
                "messagePurpose": "subscribe",
            },
            "body": {"eventName": self.event_name},
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(slots=True)
class CommandRequest:
    command_line: str
    request_id: str = field(default_factory=_new_request_id)

    def __post_init__(self) -> None:
        self.command_line = normalize_command_line(self.command_line)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "header": {
                "version": PROTOCOL_VERSION,
                "requestId": self.request_id,
                "messagePurpose": "commandRequest",
                "messageType": "commandRequest",
            },
            "body": {
                "version": PROTOCOL_VERSION,
                "commandLine": self.command_line,
                "origin": {"type": "player"},
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def normalize_command_line(text: str) -> str:
    """Return ``text`` with exactly one leading slash."""

    stripped = text.strip()
    return "/" + stripped.lstrip("/")


@dataclass(slots=True)
class PlayerMessage:
    message: str
    sender: Optional[str] = None
    message_type: Optional[str] = None

    @property
    def is_chat(self) -> bool:
        # say/tell echoes of our own replies come back with a non-chat type
        return self.message_type in (None, "chat")


@dataclass(slots=True)
class CommandResponse:
    request_id: Optional[str]
    status_code: Optional[int] = None
    status_message: Optional[str] = None


@dataclass(slots=True)
class OtherEvent:
    event_name: Optional[str]
    purpose: Optional[str]


InboundMessage = Union[PlayerMessage, CommandResponse, OtherEvent]


def decode_inbound(raw: Union[str, bytes]) -> InboundMessage:
    """Decode one inbound frame.

    Raises:
        ProtocolDecodeError: If the frame is not JSON, is not an object with a
            ``header`` object, or is a ``PlayerMessage`` without a text body.
    """

    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ProtocolDecodeError(f"Frame is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise ProtocolDecodeError("Frame is not a JSON object")

    header = payload.get("header")
    if not isinstance(header, dict):
        raise ProtocolDecodeError("Frame has no header object")

    body = payload.get("body", {})
    if body is None:
        body = {}
    if not isinstance(body, dict):
        raise ProtocolDecodeError("Frame body is not an object")

    event_name = header.get("eventName")
    purpose = header.get("messagePurpose")

    if event_name == PLAYER_MESSAGE_EVENT:
        message = body.get("message")
        if not isinstance(message, str):
            raise ProtocolDecodeError("PlayerMessage event without a text message")
        sender = body.get("sender")
        message_type = body.get("type")
        return PlayerMessage(
            message=message,
            sender=sender if isinstance(sender, str) else None,
            message_type=message_type if isinstance(message_type, str) else None,
        )

    if purpose == "commandResponse":
        status_code = body.get("statusCode")
        status_message = body.get("statusMessage")
        return CommandResponse(
            request_id=header.get("requestId"),
            status_code=status_code if isinstance(status_code, int) else None,
            status_message=status_message if isinstance(status_message, str) else None,
        )

    return OtherEvent(event_name=event_name, purpose=purpose)

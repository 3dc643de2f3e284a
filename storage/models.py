"""Storage domain models shared by every provider."""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass, field
from typing import Any

ROLES = ("system", "user", "assistant")

_CONVERSATION_ID_RE = re.compile(r"conv_[0-9a-f]{32}")


def generate_conversation_id() -> str:
    """128-bit random conversation token, ``conv_`` + 32 lowercase hex chars."""
    return f"conv_{secrets.token_hex(16)}"


def is_conversation_id(value: str) -> bool:
    return _CONVERSATION_ID_RE.fullmatch(value) is not None


@dataclass
class Message:
    role: str
    content: str
    meta: dict[str, Any] | None = field(default=None)

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Invalid message role: {self.role!r}")
        if not isinstance(self.content, str):
            raise ValueError("Message content must be a string")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.meta:
            data["meta"] = dict(self.meta)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Message:
        """Build a Message from a decoded record.

        Raises:
            ValueError: If the record is not a valid message.
        """
        if not isinstance(data, dict):
            raise ValueError("Message record must be an object")
        meta = data.get("meta")
        if meta is not None and not isinstance(meta, dict):
            raise ValueError("Message meta must be an object")
        return cls(role=data.get("role", ""), content=data.get("content"), meta=meta)

    def copy(self) -> Message:
        return Message(role=self.role, content=self.content, meta=dict(self.meta) if self.meta else None)

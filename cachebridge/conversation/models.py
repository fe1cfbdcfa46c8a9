"""Conversation turns and their cache serialization."""

import json
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Tuple

USER = "user"
ASSISTANT = "assistant"
ROLES = (USER, ASSISTANT)


@dataclass(frozen=True)
class Turn:
    """
    One message in a conversation.

    `content` is a tuple of content blocks. User turns carry a single
    {"type": "text", "text": ...} block; assistant turns keep every block the
    model returned.
    """
    role: str
    content: Tuple[Mapping[str, Any], ...]

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown role: {self.role!r}")
        frozen = tuple(MappingProxyType(dict(block)) for block in self.content)
        object.__setattr__(self, "content", frozen)

    @classmethod
    def user(cls, text: str) -> "Turn":
        return cls(role=USER, content=({"type": "text", "text": text},))

    @classmethod
    def assistant(cls, blocks: Iterable[Mapping[str, Any]]) -> "Turn":
        return cls(role=ASSISTANT, content=tuple(blocks))

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": [dict(block) for block in self.content]}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, record: str) -> "Turn":
        """Parse one stored record. Raises ValueError if it is not a turn."""
        data = json.loads(record)
        if not isinstance(data, dict):
            raise ValueError(f"Turn record must be an object, got {type(data).__name__}")
        content = data.get("content", [])
        if not isinstance(content, list) or not all(isinstance(b, Mapping) for b in content):
            raise ValueError("Turn content must be a list of content blocks")
        return cls(role=data.get("role"), content=tuple(content))

    @property
    def text(self) -> str:
        """Text of the first content block, or "" if there is none."""
        if not self.content:
            return ""
        return self.content[0].get("text", "")

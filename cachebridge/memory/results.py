"""
Tagged results returned by cache backends.

Reads yield CacheHit | CacheMiss | CacheError, writes yield CacheOk | CacheError.
Callers dispatch with isinstance and must handle every variant.
"""

import json
from dataclasses import dataclass, field
from typing import Any, List, Union


@dataclass(frozen=True)
class CacheHit:
    """Key found. `value` is bytes for scalars, a list of bytes for lists."""
    value: Union[bytes, List[bytes]]

    def value_bytes(self) -> bytes:
        if isinstance(self.value, list):
            raise TypeError("List hit has no scalar bytes value")
        return self.value

    def value_string(self) -> str:
        return self.value_bytes().decode("utf-8")

    def value_json(self) -> Any:
        return json.loads(self.value_string())

    def value_list_string(self) -> List[str]:
        if not isinstance(self.value, list):
            raise TypeError("Scalar hit has no list value")
        return [item.decode("utf-8") for item in self.value]


@dataclass(frozen=True)
class CacheMiss:
    """Key not present (or expired)."""


@dataclass(frozen=True)
class CacheOk:
    """Write accepted by the backend."""


@dataclass(frozen=True)
class CacheError:
    """Backend failed; the message is safe to log."""
    message: str
    error_type: str = field(default="")

    def __str__(self) -> str:
        if self.error_type:
            return f"{self.error_type}: {self.message}"
        return self.message


CacheReadResult = Union[CacheHit, CacheMiss, CacheError]
CacheWriteResult = Union[CacheOk, CacheError]

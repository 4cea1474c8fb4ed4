"""
Minimal write-only JSON value model.

Payloads are built as a tree of JsonObject / JsonArray / JsonPrimitive nodes
and emitted as compact JSON text. There is no parser; the tree is assembled
fresh for every collection cycle and thrown away after serialization.
"""

import math
import numbers
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any, Iterator

_ESCAPES = {
    '"': '\\"',
    '\\': '\\\\',
    '\b': '\\b',
    '\f': '\\f',
    '\n': '\\n',
    '\r': '\\r',
    '\t': '\\t',
}


def escape(text: str) -> str:
    """Escape a string for inclusion between JSON double quotes.

    Control characters without a short escape become ``\\u00xx``. Anything
    at or above 0x20 is emitted unchanged.
    """
    out = []
    for ch in text:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ord(ch) < 0x20:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
    return "".join(out)


class JsonValue(ABC):
    """A node in the payload tree."""

    @abstractmethod
    def to_json(self) -> str:
        """Serialize this node (and its children) to compact JSON text."""

    @staticmethod
    def of(value: Any) -> "JsonValue":
        """Convert an arbitrary Python value into a JsonValue.

        - None becomes a null primitive
        - JsonValue instances pass through unchanged
        - Mappings recurse key-by-key, keys coerced with str()
        - Other collections (list, tuple, set, generators...) recurse element-wise
        - Everything else becomes a primitive
        """
        if value is None:
            return JsonPrimitive(None)
        if isinstance(value, JsonValue):
            return value
        if isinstance(value, Mapping):
            obj = JsonObject()
            for key, item in value.items():
                obj.add(str(key), item)
            return obj
        if isinstance(value, Iterable) and not isinstance(value, (str, bytes, bytearray)):
            return JsonArray().extend(value)
        return JsonPrimitive(value)

    def __str__(self) -> str:
        return self.to_json()


def of(value: Any) -> JsonValue:
    """Module-level shortcut for JsonValue.of."""
    return JsonValue.of(value)


class JsonObject(JsonValue):
    """Ordered string-keyed object.

    Re-adding an existing key replaces its value in place, so the key keeps
    the position of its first insertion.
    """

    def __init__(self):
        self._fields: dict[str, JsonValue] = {}

    def add(self, key: str, value: Any) -> "JsonObject":
        self._fields[str(key)] = JsonValue.of(value)
        return self

    def __getitem__(self, key: str) -> JsonValue:
        return self._fields[key]

    def __contains__(self, key: object) -> bool:
        return key in self._fields

    def __len__(self) -> int:
        return len(self._fields)

    def keys(self) -> list[str]:
        return list(self._fields)

    def to_json(self) -> str:
        body = ",".join(
            f'"{escape(key)}":{value.to_json()}' for key, value in self._fields.items()
        )
        return "{" + body + "}"

    def __repr__(self) -> str:
        return f"JsonObject({self.to_json()})"


class JsonArray(JsonValue):
    """Ordered sequence of JSON values."""

    def __init__(self):
        self._items: list[JsonValue] = []

    def add(self, value: Any) -> "JsonArray":
        self._items.append(JsonValue.of(value))
        return self

    def extend(self, values: Iterable[Any]) -> "JsonArray":
        for value in values:
            self.add(value)
        return self

    def __getitem__(self, index: int) -> JsonValue:
        return self._items[index]

    def __iter__(self) -> Iterator[JsonValue]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def to_json(self) -> str:
        return "[" + ",".join(item.to_json() for item in self._items) + "]"

    def __repr__(self) -> str:
        return f"JsonArray({self.to_json()})"


class JsonPrimitive(JsonValue):
    """null, boolean, number, or string leaf.

    Integers, floats, Decimals and other real numbers are written bare;
    anything else is rendered as a string via str().
    """

    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value

    def to_json(self) -> str:
        value = self.value
        if value is None:
            return "null"
        # bool first: bool is a subclass of int
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, numbers.Integral):
            return str(int(value))
        if isinstance(value, Decimal):
            return str(value) if value.is_finite() else "null"
        if isinstance(value, numbers.Real):
            value = float(value)
            if math.isnan(value) or math.isinf(value):
                return "null"
            return repr(value)
        return f'"{escape(str(value))}"'

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JsonPrimitive):
            return NotImplemented
        return type(self.value) is type(other.value) and self.value == other.value

    def __hash__(self) -> int:
        return hash((type(self.value), self.value))

    def __repr__(self) -> str:
        return f"JsonPrimitive({self.value!r})"

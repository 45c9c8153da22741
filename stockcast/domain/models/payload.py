"""Normalization of variably shaped upstream JSON.

The backend answers the same endpoint with an array, a single object, an
empty body, or the whole document encoded once more as a JSON string.
`Payload.decode` folds all of these into one tagged variant so call sites
iterate items instead of re-checking shapes.
"""

import enum
import json
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple

from stockcast.domain.errors import ParseFailure


class PayloadKind(enum.Enum):
    EMPTY = "empty"
    SINGLE = "single"
    MANY = "many"


@dataclass(frozen=True)
class Payload:
    """Tagged variant: Empty, Single(item) or Many(items)."""
    kind: PayloadKind
    items: Tuple[Dict[str, Any], ...] = ()

    @classmethod
    def empty(cls) -> "Payload":
        return cls(PayloadKind.EMPTY)

    @classmethod
    def decode(cls, raw: Any, field: Optional[str] = None) -> "Payload":
        """Decodes a response body, optionally descending into one field.

        Args:
            raw: Parsed JSON, or a JSON document still encoded as a string.
            field: Key holding the records, e.g. 'llm' for prediction bodies.

        Raises:
            ParseFailure: A string body is not valid JSON, or the records are
                neither objects nor arrays of objects.
        """
        data = unwrap_json(raw)
        if field is not None:
            data = data.get(field) if isinstance(data, dict) else None

        if data is None or data == {} or data == []:
            return cls.empty()
        if isinstance(data, dict):
            return cls(PayloadKind.SINGLE, (data,))
        if isinstance(data, list):
            records = tuple(item for item in data if isinstance(item, dict))
            if not records:
                return cls.empty()
            return cls(PayloadKind.MANY, records)
        raise ParseFailure(f"Unexpected payload type: {type(data).__name__}")

    @property
    def is_empty(self) -> bool:
        return self.kind is PayloadKind.EMPTY

    def first(self) -> Optional[Dict[str, Any]]:
        return self.items[0] if self.items else None

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


def unwrap_json(raw: Any) -> Any:
    """Parses a body that may arrive as a JSON string instead of a document."""
    if isinstance(raw, (str, bytes)):
        try:
            return json.loads(raw)
        except ValueError as e:
            raise ParseFailure(f"Body is not valid JSON: {e}") from e
    return raw

"""
Core data structures for request handling.

Provides:
- MultiDict: repeated-key mapping for query strings and url-encoded bodies
- Headers: case-insensitive view over raw ASGI headers
- ParsedContentType: Content-Type parsing helper
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple


class MultiDict:
    """
    Mapping where every key may carry several values.

    ``get`` returns the first value, ``get_all`` every value in arrival order.
    """

    def __init__(self, items: Optional[List[Tuple[str, str]]] = None):
        self._data: Dict[str, List[str]] = {}
        for key, value in items or ():
            self.add(key, value)

    def __getitem__(self, key: str) -> str:
        return self._data[key][0]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MultiDict({self._data})"

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        values = self._data.get(key)
        return values[0] if values else default

    def get_all(self, key: str) -> List[str]:
        return list(self._data.get(key, []))

    def add(self, key: str, value: str) -> None:
        self._data.setdefault(key, []).append(value)

    def to_dict(self) -> Dict[str, object]:
        """
        Collapse to a plain dict.

        Keys seen once map to their value, repeated keys map to a list,
        which is how url-encoded bodies are exposed to handlers.
        """
        return {k: v[0] if len(v) == 1 else list(v) for k, v in self._data.items()}


@dataclass
class Headers:
    """
    Case-insensitive header access over the raw ASGI header list.
    """

    raw: List[Tuple[bytes, bytes]] = field(default_factory=list)
    _index: Dict[str, List[str]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        self._index = {}
        for name, value in self.raw:
            key = name.decode("latin-1").lower()
            self._index.setdefault(key, []).append(value.decode("latin-1"))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self._index.get(name.lower())
        return values[0] if values else default

    def get_all(self, name: str) -> List[str]:
        return list(self._index.get(name.lower(), []))

    def has(self, name: str) -> bool:
        return name.lower() in self._index

    def items(self) -> Iterator[Tuple[str, str]]:
        for name, value in self.raw:
            yield name.decode("latin-1"), value.decode("latin-1")

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(f"Header '{name}' not found")
        return value


@dataclass
class ParsedContentType:
    """Parsed Content-Type header: media type plus lower-cased parameters."""

    media_type: str
    params: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, content_type: Optional[str]) -> Optional["ParsedContentType"]:
        if not content_type:
            return None

        media_type, _, rest = content_type.partition(";")
        params = {}
        for part in rest.split(";"):
            if "=" in part:
                key, value = part.split("=", 1)
                params[key.strip().lower()] = value.strip().strip('"')

        return cls(media_type=media_type.strip().lower(), params=params)

    @property
    def charset(self) -> str:
        return self.params.get("charset", "utf-8")

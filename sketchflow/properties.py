"""Flat key=value configuration layers (platform.txt, boards.txt, tool overrides)."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)

# {build.path} style references inside a value.
_REFERENCE = re.compile(r"{([^{}]+)}")

_MAX_EXPAND_DEPTH = 10


class PropertySet:
    """An ordered mapping of dotted keys to string values.

    Later merges win for identical keys, so layers are applied in order:
    platform defaults, board-specific overrides, then user/tool overrides.
    """

    def __init__(self, values: dict[str, str] | None = None):
        self._values: dict[str, str] = dict(values or {})

    @classmethod
    def load_file(cls, path: Path | str) -> PropertySet:
        """Parse a properties file. A missing file yields an empty set."""
        props = cls()
        props.load(path)
        return props

    def load(self, path: Path | str) -> PropertySet:
        """Read `path` into this set, overwriting existing keys."""
        path = Path(path)
        if not path.is_file():
            logger.debug("Properties file %s not found, skipping", path)
            return self
        for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            key, sep, value = line.partition("=")
            if not sep:
                continue
            self._values[key.strip()] = value.strip()
        return self

    def merge(self, other: PropertySet | dict[str, str]) -> PropertySet:
        """Apply `other` on top of this set, last wins."""
        for key, value in other.items():
            self._values[key] = value
        return self

    def extract_with_prefix(self, prefix: str) -> PropertySet:
        """Return a new set of the `prefix.*` keys with the prefix stripped."""
        head = prefix + "."
        return PropertySet({
            key[len(head):]: value
            for key, value in self._values.items()
            if key.startswith(head)
        })

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._values.get(key, default)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def expand(self, value: str) -> str:
        """Replace {key} references with their values.

        References to unknown keys are left as-is. Nested references are
        resolved up to a fixed depth so self-referencing keys terminate.
        """
        for _ in range(_MAX_EXPAND_DEPTH):
            expanded = _REFERENCE.sub(self._lookup_reference, value)
            if expanded == value:
                break
            value = expanded
        return value

    def _lookup_reference(self, match: re.Match) -> str:
        return self._values.get(match.group(1), match.group(0))

    def items(self):
        return self._values.items()

    def to_dict(self) -> dict[str, str]:
        return dict(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PropertySet):
            return self._values == other._values
        if isinstance(other, dict):
            return self._values == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"PropertySet({self._values!r})"

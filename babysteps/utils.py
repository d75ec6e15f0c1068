from __future__ import annotations

import re

# python-markdown only opens a fence at column 0; indented lines are code.
FENCE_RE = re.compile(r"^(?P<marker>`{3,}|~{3,})(?P<info>.*)$")

TRUE_WORDS = frozenset({"1", "true", "yes", "y", "on"})


def parse_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in TRUE_WORDS
    return bool(value)


def parse_int(value: object, default: int) -> int:
    try:
        return int(str(value).strip()) if value is not None else default
    except ValueError:
        return default


def parse_list(value: object) -> list[str]:
    """Accept ``[a, b]``, ``a, b`` or an already parsed list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        text = str(value).strip()
        if text.startswith("[") and text.endswith("]"):
            text = text[1:-1]
        items = text.split(",")
    return [item.strip().strip("'\"") for item in items if item.strip().strip("'\"")]


class FenceTracker:
    """Follows fenced code blocks line by line."""

    def __init__(self) -> None:
        self.marker = ""

    @property
    def inside(self) -> bool:
        return bool(self.marker)

    def feed(self, line: str) -> bool:
        """Return True if ``line`` opens, closes or sits inside a fence."""
        match = FENCE_RE.match(line)
        if match:
            marker = match.group("marker")
            if not self.marker:
                self.marker = marker
            elif marker[0] == self.marker[0] and len(marker) >= len(self.marker) and not match.group("info").strip():
                self.marker = ""
            return True
        return self.inside

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Iterator, Optional, TextIO

MISSING_FIELD = "MissingField"
INVALID_DATE = "InvalidDate"
MALFORMED_FENCE = "MalformedFence"

DUPLICATE_POST = "DuplicatePost"
SLUG_COLLISION = "SlugCollision"
RENDER_WARNING = "RenderWarning"
UNREADABLE = "Unreadable"
CATEGORY_COLLISION = "CategoryCollision"
SKIPPED_DRAFT = "SkippedDraft"
NO_CONTENT = "NoContent"


class ParseError(Exception):
    """A content unit could not be turned into a post."""

    def __init__(self, reason: str, message: str, source: str = "<string>"):
        super().__init__(f"{source}: {reason}: {message}")
        self.reason = reason
        self.message = message
        self.source = source


@dataclass(frozen=True)
class Diagnostic:
    kind: str
    source: str
    message: str

    @property
    def fatal(self) -> bool:
        return self.kind == NO_CONTENT

    def __str__(self) -> str:
        return f"[{self.kind}] {self.source}: {self.message}"


class Diagnostics:
    def __init__(self) -> None:
        self._items: list[Diagnostic] = []

    def record(self, kind: str, source: str, message: str) -> Diagnostic:
        item = Diagnostic(kind, source, message)
        self._items.append(item)
        return item

    def record_parse_error(self, exc: ParseError) -> Diagnostic:
        return self.record(exc.reason, exc.source, exc.message)

    def extend(self, items) -> None:
        self._items.extend(items)

    def of_kind(self, kind: str) -> list[Diagnostic]:
        return [item for item in self._items if item.kind == kind]

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def report(self, stream: Optional[TextIO] = None) -> None:
        stream = stream or sys.stderr
        if not self._items:
            return
        print(f"{len(self._items)} problem(s) during build:", file=stream)
        for item in self._items:
            print(f"  {item}", file=stream)


class BuildError(Exception):
    """Fatal build failure; nothing is published."""

    def __init__(self, message: str, diagnostics: Diagnostics):
        super().__init__(message)
        self.diagnostics = diagnostics

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Optional, Union

UNSPECIFIED_LANGUAGE = "unspecified"


@dataclass(frozen=True)
class Prose:
    text: str


@dataclass(frozen=True)
class CodeSnippet:
    language: str
    text: str
    # False when the closing fence never showed up; text then holds the raw remainder.
    closed: bool = True


@dataclass(frozen=True)
class EmbeddedWidget:
    kind: str
    markup: str
    closed: bool = True


Block = Union[Prose, CodeSnippet, EmbeddedWidget]


@dataclass(frozen=True)
class Post:
    title: str
    date: dt.datetime
    categories: frozenset[str] = frozenset()
    author: Optional[str] = None
    body: tuple[Block, ...] = ()
    summary: Optional[str] = None
    draft: bool = False
    source: str = field(default="<string>", compare=False)
    # Order of acceptance into the store; slugs are claimed in this order.
    sequence: int = field(default=0, compare=False)

    @property
    def identity(self) -> tuple[str, dt.datetime]:
        return self.title, self.date

    def sorted_categories(self) -> list[str]:
        return sorted(self.categories, key=lambda name: (name.lower(), name))


def publication_order(posts) -> list:
    """Sort posts (or anything with a ``post`` attribute) newest first, then by title.

    Sorting by title first and then by date with ``reverse=True`` keeps the
    title order for equal dates because Python's sort is stable.
    """

    def as_post(item):
        return getattr(item, "post", item)

    by_title = sorted(posts, key=lambda item: as_post(item).title)
    return sorted(by_title, key=lambda item: as_post(item).date, reverse=True)

from __future__ import annotations

import datetime as dt
from dataclasses import replace
from typing import Iterator, Optional

from .errors import DUPLICATE_POST, Diagnostics
from .models import Post, publication_order


class PostStore:
    """Append-only collection of posts keyed by (title, date)."""

    def __init__(self, diagnostics: Optional[Diagnostics] = None) -> None:
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._posts: dict[tuple[str, dt.datetime], Post] = {}

    def add(self, post: Post) -> bool:
        existing = self._posts.get(post.identity)
        if existing is not None:
            self.diagnostics.record(
                DUPLICATE_POST,
                post.source,
                f"duplicate of {existing.source} ({post.title!r}, {post.date:%Y-%m-%d %H:%M}); dropped",
            )
            return False
        self._posts[post.identity] = replace(post, sequence=len(self._posts))
        return True

    def all(self) -> Iterator[Post]:
        yield from publication_order(self._posts.values())

    def __len__(self) -> int:
        return len(self._posts)

    def __contains__(self, post: object) -> bool:
        return isinstance(post, Post) and post.identity in self._posts

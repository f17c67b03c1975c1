"""Post-to-post transforms applied between parsing and storage.

A transform is any callable taking a Post and returning a Post, so plain
functions and configured callable objects are interchangeable.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Iterable

from .content import normalize_list_spacing
from .models import Post, Prose

Transform = Callable[[Post], Post]


def normalize_prose(post: Post) -> Post:
    body = tuple(
        Prose(normalize_list_spacing(block.text)) if isinstance(block, Prose) else block for block in post.body
    )
    return replace(post, body=body)


class DefaultCategory:
    def __init__(self, name: str = "General") -> None:
        self.name = name

    def __call__(self, post: Post) -> Post:
        if post.categories:
            return post
        return replace(post, categories=frozenset([self.name]))


def apply_transforms(post: Post, transforms: Iterable[Transform]) -> Post:
    for transform in transforms:
        post = transform(post)
    return post


DEFAULT_TRANSFORMS: list[Transform] = [normalize_prose, DefaultCategory()]

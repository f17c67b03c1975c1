"""Tests for postpress.store.PostStore."""

import datetime as dt

from postpress.errors import DUPLICATE_POST
from postpress.models import Post, Prose
from postpress.store import PostStore


def make_post(title, day, body="text", source="<string>"):
    return Post(title=title, date=dt.datetime(2020, 7, day), body=(Prose(body),), source=source)


class TestAdd:
    def test_accepts_distinct_posts(self):
        store = PostStore()
        assert store.add(make_post("A", 1)) is True
        assert store.add(make_post("A", 2)) is True
        assert store.add(make_post("B", 1)) is True
        assert len(store) == 3

    def test_rejects_duplicate_identity(self):
        store = PostStore()
        first = make_post("Polymorphism with Functions in Go", 17, "draft one", "a.md")
        second = make_post("Polymorphism with Functions in Go", 17, "draft two", "b.md")
        assert store.add(first) is True
        assert store.add(second) is False
        assert len(store) == 1
        assert list(store.all()) == [first]
        (warning,) = store.diagnostics.of_kind(DUPLICATE_POST)
        assert warning.source == "b.md"
        assert "a.md" in warning.message

    def test_duplicate_does_not_stop_later_posts(self):
        store = PostStore()
        store.add(make_post("A", 1))
        store.add(make_post("A", 1))
        assert store.add(make_post("B", 2)) is True
        assert len(store) == 2

    def test_sequence_follows_acceptance_order(self):
        store = PostStore()
        store.add(make_post("B", 2))
        store.add(make_post("B", 2))
        store.add(make_post("A", 1))
        assert {post.title: post.sequence for post in store.all()} == {"B": 0, "A": 1}

    def test_contains(self):
        store = PostStore()
        post = make_post("A", 1)
        store.add(post)
        assert make_post("A", 1, body="other") in store
        assert make_post("A", 2) not in store
        assert "A" not in store


class TestAll:
    def test_orders_by_date_desc_then_title(self):
        store = PostStore()
        for title, day in [("Charlie", 3), ("alpha", 1), ("Bravo", 3), ("Delta", 2)]:
            store.add(make_post(title, day))
        assert [post.title for post in store.all()] == ["Bravo", "Charlie", "Delta", "alpha"]

    def test_traversal_restarts(self):
        store = PostStore()
        store.add(make_post("A", 1))
        store.add(make_post("B", 2))
        iterator = store.all()
        next(iterator)
        assert [post.title for post in store.all()] == ["B", "A"]
        assert list(store.all()) == list(store.all())

    def test_empty_store(self):
        assert list(PostStore().all()) == []

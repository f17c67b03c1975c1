from __future__ import annotations

import datetime as dt
import html
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .content import count_words, post_slug, slugify
from .errors import CATEGORY_COLLISION, DUPLICATE_POST, SLUG_COLLISION, Diagnostics
from .models import publication_order
from .render import DEFAULT_TEMPLATE, Document, highlight_css, render_template, strip_tags
from .utils import join_url, parse_bool, parse_int, rfc822_date, write_nojekyll, write_text

DATE_FMT = "%Y-%m-%d"
DATETIME_FMT = "%Y-%m-%d %H:%M"
FEED_LIMIT = 20
DEFAULT_SITE_NAME = "postpress"
DEFAULT_SITE_DESCRIPTION = "Notes, code and the occasional rant."
HIGHLIGHT_CSS = "css/highlight.css"


@dataclass(frozen=True)
class IndexEntry:
    slug: str
    title: str
    date: dt.datetime
    categories: tuple[str, ...]
    summary: str
    words: int

    @property
    def url(self) -> str:
        return f"posts/{self.slug}.html"


@dataclass
class Site:
    entries: list[IndexEntry] = field(default_factory=list)
    documents: dict[str, Document] = field(default_factory=dict)
    categories: dict[str, tuple[str, list[IndexEntry]]] = field(default_factory=dict)
    category_slugs: dict[str, str] = field(default_factory=dict)
    pages: dict[str, str] = field(default_factory=dict)


def format_date(value: dt.datetime) -> str:
    if value.time() == dt.time(0, 0):
        return value.strftime(DATE_FMT)
    return value.strftime(DATETIME_FMT)


def assign_category_slugs(names: Iterable[str], diagnostics: Diagnostics) -> dict[str, str]:
    """Give every category name its own page slug.

    Names are taken in sorted order; a name whose slug is taken gets the
    next free ``-N`` suffix and the clash is reported.
    """
    slugs: dict[str, str] = {}
    owners: dict[str, str] = {}
    for name in sorted(set(names), key=lambda value: (value.lower(), value)):
        base = slugify(name)
        slug = base
        counter = 2
        while slug in owners:
            slug = f"{base}-{counter}"
            counter += 1
        if slug != base:
            diagnostics.record(
                CATEGORY_COLLISION,
                "<build>",
                f"category {name!r} shares slug {base!r} with {owners[base]!r}; published as {slug!r}",
            )
        owners[slug] = name
        slugs[name] = slug
    return slugs


def category_links(names: Iterable[str], root: str, category_slugs: dict[str, str]) -> str:
    return " ".join(
        f'<a class="chip" href="{root}/categories/{category_slugs.get(name) or slugify(name)}.html">'
        f"{html.escape(name)}</a>"
        for name in names
    )


def build_post_cards(entries: list[IndexEntry], root: str, category_slugs: dict[str, str]) -> str:
    cards = []
    for idx, entry in enumerate(entries):
        delay = min(idx * 0.05, 0.3)
        url = f"{root}/{entry.url}"
        cards.append(
            f'<article class="post-card" style="animation-delay: {delay:.2f}s">'
            '<div class="post-meta"><div class="post-meta-left">'
            f'<span class="post-date">{format_date(entry.date)}</span>'
            f'<span class="post-words">{entry.words} words</span>'
            "</div>"
            f'<div class="post-tags">{category_links(entry.categories, root, category_slugs)}</div></div>'
            f'<h2 class="post-title"><a href="{url}">{html.escape(entry.title)}</a></h2>'
            f'<p class="post-summary">{html.escape(entry.summary)}</p>'
            f'<a class="post-more" href="{url}">Read more</a>'
            "</article>"
        )
    return "\n".join(cards) if cards else '<p class="post-empty">No posts yet.</p>'


def render_page(template: str, args: object, title: str, root: str, content: str) -> str:
    site_name = getattr(args, "site_name", DEFAULT_SITE_NAME) or DEFAULT_SITE_NAME
    site_description = getattr(args, "site_description", DEFAULT_SITE_DESCRIPTION) or ""
    extra_head = ""
    if parse_bool(getattr(args, "highlight", False)):
        extra_head = f'<link rel="stylesheet" href="{root}/{HIGHLIGHT_CSS}">'
    return render_template(
        template,
        title=html.escape(f"{title} | {site_name}" if title else site_name),
        root=root,
        content=content,
        site_name=html.escape(site_name),
        site_description=html.escape(site_description),
        extra_head=extra_head,
    )


def build_index(template: str, site: Site, args: object) -> str:
    content = (
        '<div class="section-head">'
        "<h2>Latest posts</h2>"
        "</div>"
        f'<div class="post-grid">{build_post_cards(site.entries, ".", site.category_slugs)}</div>'
    )
    return render_page(template, args, "", ".", content)


def build_post(template: str, entry: IndexEntry, site: Site, args: object) -> str:
    root = ".."
    document = site.documents[entry.slug]
    author = document.post.author
    author_html = f'<span class="post-author">{html.escape(author)}</span>' if author else ""
    content = (
        '<article class="post">'
        '<div class="post-meta"><div class="post-meta-left">'
        f'<span class="post-date">{format_date(entry.date)}</span>'
        f"{author_html}"
        f'<span class="post-words">{entry.words} words</span>'
        "</div>"
        f'<div class="post-tags">{category_links(entry.categories, root, site.category_slugs)}</div></div>'
        f'<h1 class="post-title">{html.escape(entry.title)}</h1>'
        f'<div class="post-body">{document.html}</div>'
        f'<div class="post-footer"><a href="{root}/index.html">Back to home</a></div>'
        "</article>"
    )
    return render_page(template, args, entry.title, root, content)


def build_category(template: str, name: str, entries: list[IndexEntry], site: Site, args: object) -> str:
    content = (
        '<div class="section-head">'
        f"<h2>{html.escape(name)}</h2>"
        "<p>Posts grouped in this category.</p>"
        "</div>"
        f'<div class="post-grid">{build_post_cards(entries, "..", site.category_slugs)}</div>'
    )
    return render_page(template, args, name, "..", content)


def build_rss(entries: list[IndexEntry], args: object) -> str:
    site_url = (getattr(args, "site_url", "") or "").strip().rstrip("/")
    feed_limit = max(0, parse_int(getattr(args, "feed_limit", FEED_LIMIT), FEED_LIMIT))
    site_name = getattr(args, "site_name", DEFAULT_SITE_NAME) or DEFAULT_SITE_NAME
    site_description = getattr(args, "site_description", DEFAULT_SITE_DESCRIPTION) or ""
    items = []
    for entry in entries[:feed_limit]:
        link = join_url(site_url, entry.url)
        items.append(
            "\n".join(
                [
                    "<item>",
                    f"<title>{html.escape(entry.title)}</title>",
                    f"<link>{link}</link>",
                    f"<guid>{link}</guid>",
                    f"<pubDate>{rfc822_date(entry.date)}</pubDate>",
                    f"<description>{html.escape(entry.summary)}</description>",
                    "</item>",
                ]
            )
        )
    last_build = rfc822_date(entries[0].date) if entries else ""
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0">',
            "<channel>",
            f"<title>{html.escape(site_name)}</title>",
            f"<link>{site_url}/</link>",
            f"<description>{html.escape(site_description)}</description>",
            f"<lastBuildDate>{last_build}</lastBuildDate>",
            "\n".join(items),
            "</channel>",
            "</rss>",
        ]
    )


def assemble_site(
    documents: Iterable[Document],
    args: object = None,
    diagnostics: Optional[Diagnostics] = None,
    template: str = DEFAULT_TEMPLATE,
) -> Site:
    """Lay out rendered documents as an index plus one permalink page per post.

    Slugs are claimed in ingestion order (``Post.sequence``, then input
    order). A document whose slug is already claimed is dropped and
    reported, never written over the first. Entries are then listed in
    publication order.
    """
    if diagnostics is None:
        diagnostics = Diagnostics()
    site = Site()
    claimed: dict[str, Document] = {}
    ingested = sorted(enumerate(documents), key=lambda item: (item[1].post.sequence, item[0]))
    for _, document in ingested:
        post = document.post
        slug = post_slug(post)
        first = claimed.get(slug)
        if first is not None:
            kind = DUPLICATE_POST if first.post.identity == post.identity else SLUG_COLLISION
            diagnostics.record(kind, post.source, f"slug {slug!r} already used by {first.post.source}; dropped")
            continue
        claimed[slug] = document

    for document in publication_order(claimed.values()):
        post = document.post
        entry = IndexEntry(
            slug=post_slug(post),
            title=post.title,
            date=post.date,
            categories=tuple(post.sorted_categories()),
            summary=document.summary(),
            words=count_words(strip_tags(document.html)),
        )
        site.documents[entry.slug] = document
        site.entries.append(entry)

    site.category_slugs = assign_category_slugs(
        (name for entry in site.entries for name in entry.categories), diagnostics
    )
    for entry in site.entries:
        for name in entry.categories:
            site.categories.setdefault(site.category_slugs[name], (name, []))[1].append(entry)

    site.pages["index.html"] = build_index(template, site, args)
    for entry in site.entries:
        site.pages[f"posts/{entry.slug}.html"] = build_post(template, entry, site, args)
    for category_slug, (name, entries) in sorted(site.categories.items()):
        site.pages[f"categories/{category_slug}.html"] = build_category(template, name, entries, site, args)
    site_url = (getattr(args, "site_url", "") or "").strip()
    if site_url and parse_bool(getattr(args, "enable_rss", True)):
        site.pages["rss.xml"] = build_rss(site.entries, args)
    if parse_bool(getattr(args, "highlight", False)):
        site.pages[HIGHLIGHT_CSS] = highlight_css()
    return site


def write_site(site: Site, output_dir: Path, nojekyll: bool = False) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)
    for rel_path, text in site.pages.items():
        write_text(output_dir / rel_path, text)
    if nojekyll:
        write_nojekyll(output_dir)

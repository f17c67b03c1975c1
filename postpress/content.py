from __future__ import annotations

import datetime as dt
import html as html_lib
import re
from typing import Optional

from .errors import INVALID_DATE, MALFORMED_FENCE, MISSING_FIELD, ParseError
from .models import UNSPECIFIED_LANGUAGE, Block, CodeSnippet, EmbeddedWidget, Post, Prose
from .utils import parse_bool

LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(`{3,}|~{3,})")
FENCE_OPEN_RE = re.compile(r"^[ \t]{0,3}(?P<fence>`{3,}|~{3,})(?P<info>[^\r]*)\r?$")
FENCE_CLOSE_RE = re.compile(r"^[ \t]{0,3}(?P<fence>`{3,}|~{3,})[ \t]*\r?$")
DOUBLE_QUOTE_RE = re.compile(r"^(?P<indent>[ \t]*)>>(?!>)(?P<rest>.*)$")
CJK_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af]")
WORD_RE = re.compile(r"[A-Za-z0-9]+(?:'[A-Za-z0-9]+)?")
LIST_KEYS = {"categories", "category", "tags"}
EXTRA_DATE_FORMATS = ("%Y-%m-%d %H:%M:%S %z", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M")

# (kind, start, end, keep_markers). The generic marker names its own kind.
EMBED_MARKERS = [
    (
        "mailing-list",
        re.compile(r"<!--\s*Begin\s+Mailchimp\s+Signup\s+Form\s*-->", re.IGNORECASE),
        re.compile(r"<!--\s*End\s+mc_embed_signup\s*-->", re.IGNORECASE),
        True,
    ),
    (
        "comments",
        re.compile(r"^\s*<div\s+id=[\"']disqus_thread[\"']", re.IGNORECASE),
        re.compile(r"</noscript>", re.IGNORECASE),
        True,
    ),
    (
        None,
        re.compile(r"^\s*<!--\s*embed:\s*(?P<name>[\w-]+)\s*-->\s*$", re.IGNORECASE),
        re.compile(r"^\s*<!--\s*/embed\s*-->\s*$", re.IGNORECASE),
        False,
    ),
]


def slugify(text: str) -> str:
    text = text.lower()
    text = re.sub(r"[\W_]+", "-", text, flags=re.UNICODE)
    text = text.strip("-")
    return text or "post"


def post_slug(post: Post) -> str:
    return f"{post.date:%Y-%m-%d}-{slugify(post.title)}"


def parse_list(value: str) -> list[str]:
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1]
        items = [item.strip().strip("'\"") for item in inner.split(",")]
    else:
        items = [item.strip().strip("'\"") for item in value.split(",")]
    return [item for item in items if item]


def unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def parse_front_matter(text: str) -> tuple[dict, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.split("\n")
    if not lines or lines[0].strip() != "---":
        return {}, clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == "---":
            end = i
            break
    if end is None:
        return {}, clean_text

    meta = {}
    last_key = None
    for line in lines[1:end]:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("- ") and last_key in LIST_KEYS:
            item = unquote(line[2:].strip())
            if item:
                meta[last_key].append(item)
            continue
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip().lower()
        value = value.strip()
        if key in LIST_KEYS:
            meta[key] = parse_list(value)
        else:
            meta[key] = unquote(value)
        last_key = key
    body = "\n".join(lines[end + 1 :])
    return meta, body


def parse_date(value: str, source: str = "<string>") -> dt.datetime:
    value = value.strip()
    parsed = None
    if value:
        iso_value = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = dt.datetime.fromisoformat(iso_value)
        except ValueError:
            for fmt in EXTRA_DATE_FORMATS:
                try:
                    parsed = dt.datetime.strptime(value, fmt)
                    break
                except ValueError:
                    continue
    if parsed is None:
        raise ParseError(INVALID_DATE, f"unparsable date {value!r}", source)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return parsed


def get_categories(meta: dict) -> frozenset[str]:
    names = []
    for key in ("categories", "category", "tags"):
        names.extend(meta.get(key) or [])
    return frozenset(name for name in names if name)


def match_embed(line: str) -> Optional[tuple[str, re.Match, re.Pattern, bool]]:
    for kind, start_re, end_re, keep_markers in EMBED_MARKERS:
        match = start_re.search(line)
        if match:
            return kind or match.group("name").lower(), match, end_re, keep_markers
    return None


def split_blocks(body: str, strict: bool = False, source: str = "<string>") -> tuple[Block, ...]:
    """Split a post body into prose, fenced code and embedded widget blocks.

    Fenced code is kept exactly as written between its fences. Recognized
    embed markup is kept opaque. Everything else is prose, in source order.
    """
    lines = body.split("\n")
    blocks: list[Block] = []
    prose: list[str] = []

    def flush_prose() -> None:
        text = "\n".join(prose)
        if text.strip():
            blocks.append(Prose(text))
        prose.clear()

    i = 0
    while i < len(lines):
        line = lines[i]
        fence_match = FENCE_OPEN_RE.match(line)
        # A backtick in a backtick fence's info string makes the line inline code, not a fence.
        if fence_match and not (fence_match.group("fence")[0] == "`" and "`" in fence_match.group("info")):
            fence = fence_match.group("fence")
            info = fence_match.group("info").strip()
            language = info.split()[0] if info else UNSPECIFIED_LANGUAGE
            end = None
            for j in range(i + 1, len(lines)):
                close_match = FENCE_CLOSE_RE.match(lines[j])
                if (
                    close_match
                    and close_match.group("fence")[0] == fence[0]
                    and len(close_match.group("fence")) >= len(fence)
                ):
                    end = j
                    break
            flush_prose()
            if end is None:
                if strict:
                    raise ParseError(MALFORMED_FENCE, f"unterminated code fence on line {i + 1}", source)
                blocks.append(CodeSnippet(language, "\n".join(lines[i:]), closed=False))
                break
            blocks.append(CodeSnippet(language, "\n".join(lines[i + 1 : end])))
            i = end + 1
            continue

        embed = match_embed(line)
        if embed:
            kind, start_match, end_re, keep_markers = embed
            end = None
            if keep_markers and end_re.search(line, start_match.end()):
                end = i
            else:
                for j in range(i + 1, len(lines)):
                    if end_re.search(lines[j]):
                        end = j
                        break
            flush_prose()
            if end is None:
                # Without an end marker the broken widget runs to the next blank line only.
                stop = i + 1
                while stop < len(lines) and lines[stop].strip():
                    stop += 1
                blocks.append(EmbeddedWidget(kind, "\n".join(lines[i:stop]), closed=False))
                i = stop
                continue
            if keep_markers:
                markup = "\n".join(lines[i : end + 1])
            else:
                markup = "\n".join(lines[i + 1 : end])
            blocks.append(EmbeddedWidget(kind, markup))
            i = end + 1
            continue

        prose.append(line)
        i += 1
    flush_prose()
    return tuple(blocks)


def parse_post(text: str, source: str = "<string>", strict: bool = False) -> Post:
    meta, body = parse_front_matter(text)
    title = (meta.get("title") or "").strip()
    if not title:
        raise ParseError(MISSING_FIELD, "front matter has no title", source)
    date_value = (meta.get("date") or "").strip()
    if not date_value:
        raise ParseError(MISSING_FIELD, "front matter has no date", source)
    return Post(
        title=title,
        date=parse_date(date_value, source),
        categories=get_categories(meta),
        author=(meta.get("author") or "").strip() or None,
        body=split_blocks(body, strict=strict, source=source),
        summary=(meta.get("summary") or meta.get("description") or "").strip() or None,
        draft=parse_bool(meta.get("draft")),
        source=source,
    )


def normalize_list_spacing(text: str) -> str:
    lines = text.splitlines()
    out: list[str] = []
    in_fence = False
    fence_marker = ""
    for line in lines:
        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(2)
            if not in_fence:
                in_fence = True
                fence_marker = marker
            elif marker == fence_marker:
                in_fence = False
                fence_marker = ""
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue
        quote_match = DOUBLE_QUOTE_RE.match(line)
        if quote_match:
            rest = quote_match.group("rest").lstrip()
            if rest:
                line = f'{quote_match.group("indent")}> {rest}'
            else:
                line = f'{quote_match.group("indent")}>'
        list_match = LIST_MARKER_RE.match(line)
        if list_match:
            if not list_match.group("indent"):
                if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                    out.append("")
        out.append(line)
    return "\n".join(out)


def count_words(text: str) -> int:
    text = html_lib.unescape(text)
    cjk_count = len(CJK_RE.findall(text))
    text = CJK_RE.sub(" ", text)
    word_count = len(WORD_RE.findall(text))
    return cjk_count + word_count

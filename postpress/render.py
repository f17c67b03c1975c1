from __future__ import annotations

import html
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import markdown
from pygments import highlight as pygments_highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .errors import RENDER_WARNING, Diagnostic
from .models import UNSPECIFIED_LANGUAGE, CodeSnippet, EmbeddedWidget, Post, Prose, publication_order

IMG_SRC_RE = re.compile(r'<img([^>]*?)src="([^"]+)"', re.IGNORECASE)
TAG_RE = re.compile(r"<[^>]+>")
CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
LANG_CLASS_RE = re.compile(r"[^\w+-]+")
WIDGET_SANDBOX = "allow-scripts allow-forms allow-popups"
HIGHLIGHT_CLASS = "codehilite"

DEFAULT_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{title}}</title>
<link rel="stylesheet" href="{{root}}/css/style.css">
{{extra_head}}
</head>
<body>
<header class="site-header">
<a class="site-name" href="{{root}}/index.html">{{site_name}}</a>
<p class="site-description">{{site_description}}</p>
</header>
<main>
{{content}}
</main>
</body>
</html>
"""


@dataclass(frozen=True)
class Fragment:
    kind: str
    html: str


@dataclass(frozen=True)
class Document:
    post: Post
    fragments: tuple[Fragment, ...]
    warnings: tuple[Diagnostic, ...] = ()

    @property
    def html(self) -> str:
        return "\n".join(fragment.html for fragment in self.fragments)

    def summary(self, limit: int = 200) -> str:
        if self.post.summary:
            return self.post.summary
        text = " ".join(
            strip_tags(fragment.html).strip() for fragment in self.fragments if fragment.kind == "prose"
        )
        text = html.unescape(" ".join(text.split()))
        return text[:limit] + ("..." if len(text) > limit else "")


def fix_relative_img_src(html_text: str, root: str) -> str:
    def repl(match: re.Match) -> str:
        attrs = match.group(1)
        src = match.group(2)
        if src.startswith(("http://", "https://", "data:", "#", "/", "./", "../")):
            return match.group(0)
        src = src.lstrip("/")
        return f'<img{attrs}src="{root}/{src}"'

    return IMG_SRC_RE.sub(repl, html_text)


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def render_template(template: str, **context: str) -> str:
    output = template
    late_keys = {"content"}
    for key, value in context.items():
        if key in late_keys:
            continue
        output = output.replace(f"{{{{{key}}}}}", value)
    for key in late_keys:
        if key in context:
            output = output.replace(f"{{{{{key}}}}}", context[key])
    return output


def read_template(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def render_prose(block: Prose, root: str = "..") -> str:
    md = markdown.Markdown(extensions=["tables", "sane_lists"])
    html_content = md.convert(block.text)
    return fix_relative_img_src(html_content, root)


def render_fallback(text: str) -> str:
    escaped = html.escape(text).replace("\n", "<br>\n")
    return f'<p class="render-fallback">{escaped}</p>'


def highlight_code(text: str, language: str) -> str:
    """Return highlighted HTML for ``text``, or plain escaped text.

    Lexers normalize line endings and drop a leading BOM, so highlighted
    output that no longer decodes to ``text`` is replaced by plain escaping.
    """
    if language == UNSPECIFIED_LANGUAGE:
        return html.escape(text)
    try:
        lexer = get_lexer_by_name(language, stripnl=False, ensurenl=False)
    except ClassNotFound:
        return html.escape(text)
    highlighted = pygments_highlight(text, lexer, HtmlFormatter(nowrap=True))
    if html.unescape(strip_tags(highlighted)) != text:
        return html.escape(text)
    return highlighted


def highlight_css() -> str:
    return HtmlFormatter().get_style_defs(f".{HIGHLIGHT_CLASS}")


def render_code(block: CodeSnippet, highlight: bool = False) -> str:
    language = LANG_CLASS_RE.sub("-", block.language.lower()).strip("-") or UNSPECIFIED_LANGUAGE
    code_html = highlight_code(block.text, block.language.lower()) if highlight else html.escape(block.text)
    highlight_class = f" {HIGHLIGHT_CLASS}" if highlight else ""
    return (
        f'<figure class="code-block" data-lang="{html.escape(block.language)}">'
        f'<figcaption class="code-lang">{html.escape(block.language)}</figcaption>'
        f'<pre class="code{highlight_class}" data-lang="{html.escape(block.language)}">'
        f'<code class="language-{language}">{code_html}</code></pre>'
        "</figure>"
    )


def widget_problem(block: EmbeddedWidget) -> str:
    if not block.closed:
        return "embed markup has no end marker"
    if not block.markup.strip():
        return "embed markup is empty"
    if CONTROL_CHAR_RE.search(block.markup):
        return "embed markup contains control characters"
    return ""


def render_widget(block: EmbeddedWidget) -> str:
    kind = html.escape(block.kind)
    if widget_problem(block):
        return f'<div class="embed embed-{kind} embed-blocked"></div>'
    return (
        f'<div class="embed embed-{kind}">'
        f'<iframe sandbox="{WIDGET_SANDBOX}" loading="lazy" title="{kind}" '
        f'srcdoc="{html.escape(block.markup, quote=True)}"></iframe>'
        "</div>"
    )


def render_post(post: Post, highlight: bool = False) -> Document:
    """Render every block of ``post`` into one fragment each.

    A block that cannot be rendered properly degrades to a safe fallback and
    adds a warning; the document itself is always produced.
    """
    fragments = []
    warnings = []
    for index, block in enumerate(post.body, start=1):
        if isinstance(block, Prose):
            fragments.append(Fragment("prose", render_prose(block)))
        elif isinstance(block, CodeSnippet):
            if block.closed:
                fragments.append(Fragment("code", render_code(block, highlight)))
            else:
                fragments.append(Fragment("prose", render_fallback(block.text)))
                warnings.append(
                    Diagnostic(RENDER_WARNING, post.source, f"block {index}: unterminated code fence rendered as text")
                )
        elif isinstance(block, EmbeddedWidget):
            problem = widget_problem(block)
            fragments.append(Fragment("widget", render_widget(block)))
            if problem:
                warnings.append(
                    Diagnostic(RENDER_WARNING, post.source, f"block {index}: {block.kind} widget blocked, {problem}")
                )
        else:
            raise TypeError(f"Unknown block type: {type(block).__name__}")
    return Document(post, tuple(fragments), tuple(warnings))


def render_all(posts: Iterable[Post], highlight: bool = False, workers: int = 1) -> list[Document]:
    posts = list(posts)

    def render_one(post: Post) -> Document:
        return render_post(post, highlight)

    workers = max(1, int(workers or 1))
    if workers <= 1 or len(posts) <= 1:
        documents = [render_one(post) for post in posts]
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(posts))) as executor:
            documents = list(executor.map(render_one, posts))
    return publication_order(documents)

"""Tests for postpress.content parsing."""

import datetime as dt

import pytest

from postpress.content import parse_date, parse_front_matter, parse_post, post_slug, slugify, split_blocks
from postpress.errors import INVALID_DATE, MALFORMED_FENCE, MISSING_FIELD, ParseError
from postpress.models import CodeSnippet, EmbeddedWidget, Prose

GO_BODY = """Intro text.

```go
type Shape interface {
	Area() float64
}
```

More prose.
"""

MAILCHIMP = """<!-- Begin Mailchimp Signup Form -->
<div id="mc_embed_signup"><form action="https://example.us1.list-manage.com/subscribe/post"></form></div>
<script src="//s3.amazonaws.com/downloads.mailchimp.com/js/mc-validate.js"></script>
<!--End mc_embed_signup-->"""

DISQUS = """<div id="disqus_thread"></div>
<script>
var d = document, s = d.createElement('script');
s.src = 'https://example.disqus.com/embed.js';
(d.head || d.body).appendChild(s);
</script>
<noscript>Please enable JavaScript to view the comments.</noscript>"""


class TestFrontMatter:
    def test_reads_quoted_values_and_lists(self):
        meta, body = parse_front_matter('---\ntitle: "Hello"\ncategories: [Go, "Design"]\n---\nBody\n')
        assert meta["title"] == "Hello"
        assert meta["categories"] == ["Go", "Design"]
        assert body == "Body\n"

    def test_reads_dash_lists(self):
        meta, _ = parse_front_matter("---\ntitle: x\ntags:\n  - go\n  - 'interfaces'\n---\n")
        assert meta["tags"] == ["go", "interfaces"]

    def test_no_header_returns_text(self):
        meta, body = parse_front_matter("Just text")
        assert meta == {}
        assert body == "Just text"

    def test_ignores_bom(self):
        meta, _ = parse_front_matter("\ufeff---\ntitle: x\n---\n")
        assert meta["title"] == "x"


class TestParseDate:
    def test_date_only_is_midnight(self):
        assert parse_date("2020-07-17") == dt.datetime(2020, 7, 17)

    def test_zulu_suffix(self):
        assert parse_date("2020-07-17T10:00:00Z") == dt.datetime(2020, 7, 17, 10, 0)

    def test_offset_converted_to_utc(self):
        assert parse_date("2020-07-17 10:00:00 +0200") == dt.datetime(2020, 7, 17, 8, 0)

    def test_invalid_date_raises(self):
        with pytest.raises(ParseError) as info:
            parse_date("2020-13-45", "a.md")
        assert info.value.reason == INVALID_DATE
        assert info.value.source == "a.md"


class TestParsePost:
    def test_parses_header_and_blocks(self, make_unit):
        post = parse_post(make_unit(body=GO_BODY, categories="[Go, Programming]", author="Jane"), "go.md")
        assert post.title == "Polymorphism with Functions in Go"
        assert post.date == dt.datetime(2020, 7, 17)
        assert post.categories == frozenset({"Go", "Programming"})
        assert post.author == "Jane"
        assert post.source == "go.md"
        assert [type(block) for block in post.body] == [Prose, CodeSnippet, Prose]
        assert post.body[0].text.strip() == "Intro text."
        assert post.body[1].language == "go"
        assert post.body[1].text == "type Shape interface {\n\tArea() float64\n}"
        assert post.body[2].text.strip() == "More prose."

    def test_missing_title(self, make_unit):
        with pytest.raises(ParseError) as info:
            parse_post(make_unit(title=None))
        assert info.value.reason == MISSING_FIELD

    def test_missing_date(self, make_unit):
        with pytest.raises(ParseError) as info:
            parse_post(make_unit(date=None))
        assert info.value.reason == MISSING_FIELD

    def test_missing_header(self):
        with pytest.raises(ParseError) as info:
            parse_post("# Heading only\n\nText")
        assert info.value.reason == MISSING_FIELD

    def test_invalid_date(self, make_unit):
        with pytest.raises(ParseError) as info:
            parse_post(make_unit(date="sometime in July"))
        assert info.value.reason == INVALID_DATE

    def test_optional_fields(self, make_unit):
        post = parse_post(make_unit(draft="true", summary='"Short."'))
        assert post.draft is True
        assert post.summary == "Short."
        assert post.author is None
        assert post.categories == frozenset()

    def test_strict_rejects_unterminated_fence(self, make_unit):
        with pytest.raises(ParseError) as info:
            parse_post(make_unit(body="```python\nprint(1)\n"), strict=True)
        assert info.value.reason == MALFORMED_FENCE


class TestSplitBlocks:
    def test_fence_without_language(self):
        (block,) = split_blocks("```\nplain\n```")
        assert block == CodeSnippet("unspecified", "plain")

    def test_tilde_fence_keeps_backticks(self):
        (block,) = split_blocks("~~~md\n```go\nx\n```\n~~~")
        assert block.language == "md"
        assert block.text == "```go\nx\n```"

    def test_longer_fence_needs_longer_close(self):
        (block,) = split_blocks("````\n```\ninner\n```\n````")
        assert block.text == "```\ninner\n```"

    def test_code_is_not_interpreted(self):
        (block,) = split_blocks("```html\n<b>*not emphasis*</b> &amp;\n```")
        assert block.text == "<b>*not emphasis*</b> &amp;"

    def test_unterminated_fence_kept_open(self):
        blocks = split_blocks("Before\n\n```python\nprint(1)\n")
        assert isinstance(blocks[0], Prose)
        assert blocks[1].closed is False
        assert blocks[1].text.startswith("```python\nprint(1)")

    def test_inline_triple_backticks_stay_prose(self):
        (block,) = split_blocks("Use ```x``` sparingly.")
        assert isinstance(block, Prose)

    def test_mailchimp_form(self):
        blocks = split_blocks(f"Subscribe below.\n\n{MAILCHIMP}\n\nThanks.")
        assert [type(block) for block in blocks] == [Prose, EmbeddedWidget, Prose]
        widget = blocks[1]
        assert widget.kind == "mailing-list"
        assert widget.markup == MAILCHIMP
        assert widget.closed

    def test_disqus_loader(self):
        (widget,) = split_blocks(DISQUS)
        assert widget.kind == "comments"
        assert widget.markup == DISQUS

    def test_generic_embed_keeps_inner_markup(self):
        (widget,) = split_blocks("<!-- embed: poll -->\n<div>vote</div>\n<!-- /embed -->")
        assert widget == EmbeddedWidget("poll", "<div>vote</div>")

    def test_unterminated_embed(self):
        blocks = split_blocks("<!-- Begin Mailchimp Signup Form -->\n<form></form>\nrest")
        assert blocks == (
            EmbeddedWidget("mailing-list", "<!-- Begin Mailchimp Signup Form -->\n<form></form>\nrest", closed=False),
        )

    def test_unterminated_embed_stops_at_blank_line(self):
        body = '<div id="disqus_thread"></div>\n<script>load()</script>\n\nLater paragraph.\n\n```go\nx := 1\n```\n'
        assert split_blocks(body) == (
            EmbeddedWidget("comments", '<div id="disqus_thread"></div>\n<script>load()</script>', closed=False),
            Prose("\nLater paragraph.\n"),
            CodeSnippet("go", "x := 1"),
        )

    def test_whitespace_only_prose_dropped(self):
        blocks = split_blocks("\n\n```\nx\n```\n\n")
        assert len(blocks) == 1


class TestSlugify:
    def test_lowercases_and_joins(self):
        assert slugify("Polymorphism with Functions in Go") == "polymorphism-with-functions-in-go"

    def test_collapses_separators(self):
        assert slugify("  a__b -- c!! ") == "a-b-c"

    def test_empty_falls_back(self):
        assert slugify("!!!") == "post"

    def test_post_slug_uses_date_and_title(self, make_unit):
        assert post_slug(parse_post(make_unit())) == "2020-07-17-polymorphism-with-functions-in-go"

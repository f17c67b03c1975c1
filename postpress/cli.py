from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path
from typing import Iterable, Optional

from .config import load_config, resolve_template
from .content import parse_post
from .errors import NO_CONTENT, SKIPPED_DRAFT, UNREADABLE, BuildError, Diagnostics, ParseError
from .pages import DEFAULT_SITE_DESCRIPTION, DEFAULT_SITE_NAME, FEED_LIMIT, Site, assemble_site, write_site
from .render import DEFAULT_TEMPLATE, render_all
from .store import PostStore
from .transforms import DEFAULT_TRANSFORMS, Transform, apply_transforms
from .utils import clean_output_dir, copy_static, parse_bool, parse_int


def load_units(posts_dir: Path, diagnostics: Diagnostics) -> list[tuple[str, str]]:
    units = []
    for md_file in sorted(posts_dir.rglob("*.md"), key=lambda p: p.as_posix()):
        source = md_file.as_posix()
        try:
            units.append((source, md_file.read_text(encoding="utf-8")))
        except (OSError, UnicodeDecodeError) as exc:
            diagnostics.record(UNREADABLE, source, str(exc))
    return units


def build(
    units: Iterable[tuple[str, str]],
    args: object = None,
    diagnostics: Optional[Diagnostics] = None,
    transforms: Optional[list[Transform]] = None,
    template: str = DEFAULT_TEMPLATE,
) -> Site:
    """Parse, deduplicate, render and assemble ``(source, text)`` content units.

    Per-unit problems are recorded in ``diagnostics`` and the unit is skipped.
    Raises BuildError when nothing is left to publish.
    """
    if diagnostics is None:
        diagnostics = Diagnostics()
    if transforms is None:
        transforms = DEFAULT_TRANSFORMS
    strict = parse_bool(getattr(args, "strict_fences", False))
    include_drafts = parse_bool(getattr(args, "drafts", False))

    store = PostStore(diagnostics)
    seen_units = 0
    for source, text in units:
        seen_units += 1
        try:
            post = parse_post(text, source=source, strict=strict)
        except ParseError as exc:
            diagnostics.record_parse_error(exc)
            continue
        if post.draft and not include_drafts:
            diagnostics.record(SKIPPED_DRAFT, source, "marked draft; not published")
            continue
        store.add(apply_transforms(post, transforms))

    if not len(store):
        reason = "no content units found" if not seen_units else "no publishable posts"
        diagnostics.record(NO_CONTENT, "<build>", reason)
        raise BuildError(f"Nothing to publish: {reason}.", diagnostics)

    documents = render_all(
        store.all(),
        highlight=parse_bool(getattr(args, "highlight", False)),
        workers=parse_int(getattr(args, "build_workers", 1), 1),
    )
    for document in documents:
        diagnostics.extend(document.warnings)
    return assemble_site(documents, args, diagnostics, template)


def build_site(args: argparse.Namespace) -> bool:
    posts_dir = Path(args.posts)
    output_dir = Path(args.output)
    project_root = Path.cwd()
    diagnostics = Diagnostics()

    build_workers = parse_int(getattr(args, "build_workers", 0), 0)
    if build_workers <= 0:
        build_workers = os.cpu_count() or 1
    args.build_workers = max(1, min(build_workers, 32))

    if posts_dir.is_dir():
        units = load_units(posts_dir, diagnostics)
    else:
        units = []
        diagnostics.record(UNREADABLE, posts_dir.as_posix(), "posts directory not found")
    try:
        site = build(units, args, diagnostics, template=resolve_template(args))
    except BuildError as exc:
        print(str(exc), file=sys.stderr)
        exc.diagnostics.report()
        return False

    if args.clean:
        try:
            clean_output_dir(output_dir, project_root)
        except ValueError as exc:
            print(exc, file=sys.stderr)
            return False
    output_dir.mkdir(parents=True, exist_ok=True)
    static_dir = Path(getattr(args, "static", "") or "static")
    if static_dir.is_dir():
        copy_static(static_dir, output_dir)
    write_site(site, output_dir, nojekyll=args.write_nojekyll)
    print(f"Published {len(site.entries)} post(s), {len(site.pages)} file(s).")
    diagnostics.report()
    return True


def main() -> None:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument(
        "--config",
        default="site.toml",
        help="Path to site config file (TOML/YAML/JSON).",
    )
    pre_args, _ = pre_parser.parse_known_args()
    config = load_config(Path(pre_args.config))

    def cfg_value(key: str, default: object) -> object:
        value = config.get(key)
        return default if value is None else value

    def cfg_str(key: str, default: str) -> str:
        return str(cfg_value(key, default))

    def cfg_bool(key: str, default: bool) -> bool:
        return parse_bool(cfg_value(key, default))

    def cfg_int(key: str, default: int) -> int:
        return parse_int(cfg_value(key, default), default)

    parser = argparse.ArgumentParser(description="Build a static blog from Markdown posts.")
    parser.add_argument("--config", default=pre_args.config, help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument("--posts", default=cfg_str("posts", "posts"), help="Directory containing Markdown posts.")
    parser.add_argument("--static", default=cfg_str("static", "static"), help="Directory containing static assets.")
    parser.add_argument("--output", default=cfg_str("output", "dist"), help="Output directory for the site.")
    parser.add_argument("--site-name", default=cfg_str("site_name", DEFAULT_SITE_NAME), help="Site title.")
    parser.add_argument(
        "--site-description",
        default=cfg_str("site_description", DEFAULT_SITE_DESCRIPTION),
        help="Site description.",
    )
    parser.add_argument(
        "--site-url",
        default=cfg_str("site_url", ""),
        help="Public site URL used for the RSS feed.",
    )
    parser.add_argument(
        "--template",
        default=cfg_str("template", ""),
        help="Path to a page template with {{placeholders}}.",
    )
    parser.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("clean", True),
        help="Clean output directory before build.",
    )
    parser.add_argument(
        "--highlight",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("highlight", False),
        help="Syntax-highlight code blocks with Pygments.",
    )
    parser.add_argument(
        "--strict-fences",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("strict_fences", False),
        help="Reject posts with an unterminated code fence instead of rendering it as text.",
    )
    parser.add_argument(
        "--drafts",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("drafts", False),
        help="Publish posts marked draft.",
    )
    parser.add_argument(
        "--enable-rss",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("enable_rss", True),
        help="Generate rss.xml (needs --site-url).",
    )
    parser.add_argument(
        "--feed-limit",
        default=cfg_int("feed_limit", FEED_LIMIT),
        type=int,
        help="Maximum number of posts in the RSS feed.",
    )
    parser.add_argument(
        "--build-workers",
        default=cfg_int("build_workers", 1),
        type=int,
        help="Number of worker threads for rendering (0 = auto).",
    )
    parser.add_argument(
        "--write-nojekyll",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("write_nojekyll", False),
        help="Write .nojekyll in the output directory.",
    )
    args = parser.parse_args()
    start = time.perf_counter()
    built = build_site(args)
    elapsed = time.perf_counter() - start
    if not built:
        sys.exit(1)
    print(f"Build completed in {elapsed:.2f}s.")
    print(f"Site generated in: {args.output}")

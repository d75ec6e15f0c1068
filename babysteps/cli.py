from __future__ import annotations

import argparse
import os
import shutil
import sys
import time
from pathlib import Path
from urllib.parse import urlparse

from .aafigure import DEFAULT_COMMAND
from .config import load_config
from .content import load_pages
from .errors import BuildError
from .feeds import output_formats, write_feeds
from .highlight import DEFAULT_KEYWORDS, DEFAULT_TYPES, stylesheet
from .mermaid import DEFAULT_SCRIPT_URL
from .models import Site
from .pages import build_404, build_home, build_pages, listed_pages, write_file
from .utils import parse_bool, parse_int, parse_list

DEFAULT_CONFIG = "site.toml"
MAX_WORKERS = 32

# (flag, config key, default, help). The default's type decides how the flag parses.
SETTINGS = [
    ("--content", "content", "content", "Directory holding the Markdown pages."),
    ("--static", "static", "static", "Directory copied as-is into the output."),
    ("--templates", "templates", "templates", "Directory holding base.html."),
    ("--output", "output", "public", "Directory the site is written to."),
    ("--site-title", "title", "Baby Steps", "Site title."),
    ("--site-description", "description", "", "Site description."),
    ("--base-url", "base_url", "", "Public URL of the site; feeds are only written when set."),
    ("--aafigure", "aafigure", DEFAULT_COMMAND, "Command that renders aafigure blocks."),
    ("--outputs", "outputs", "rss,atom", "Alternate output formats to publish (rss, atom)."),
    ("--taxonomies", "taxonomies", "categories,pinned", "Front matter keys read as taxonomies."),
    ("--home-types", "home_types", "posts", "Page types listed on the home page and in feeds."),
    ("--posts-per-page", "posts_per_page", 10, "Posts on each home page."),
    ("--feed-limit", "feed_limit", 20, "Newest posts included in each feed."),
    ("--build-workers", "build_workers", 0, "Threads used to convert and write pages (0 = one per CPU)."),
    ("--toc-depth", "toc_depth", "2-4", "Heading levels collected by the table of contents."),
    ("--drafts", "drafts", False, "Publish pages marked as drafts."),
    ("--clean", "clean", True, "Empty the output directory first."),
    ("--mermaid-url", "mermaid_url", DEFAULT_SCRIPT_URL, "Module URL of mermaid, loaded by pages with diagrams."),
    ("--pygments-style", "pygments_style", "default", "Pygments style for highlighted code."),
    ("--dada-keywords", "dada_keywords", ",".join(DEFAULT_KEYWORDS), "Comma separated Dada keywords."),
    ("--dada-types", "dada_types", ",".join(DEFAULT_TYPES), "Comma separated Dada type names."),
]


def build_parser(config: dict, config_path: str) -> argparse.ArgumentParser:
    """Flags for every setting, defaulting to the value in the config file."""
    parser = argparse.ArgumentParser(prog="babysteps", description="Build the Baby Steps blog.")
    parser.add_argument("--config", default=config_path, help="Settings file (TOML, YAML or JSON).")
    for flag, key, default, help_text in SETTINGS:
        value = config.get(key)
        if value is None:
            value = default
        if isinstance(default, bool):
            parser.add_argument(
                flag, action=argparse.BooleanOptionalAction, default=parse_bool(value), help=help_text
            )
        elif isinstance(default, int):
            parser.add_argument(flag, type=int, default=parse_int(value, default), help=help_text)
        else:
            if isinstance(value, (list, tuple)):
                value = ",".join(str(item) for item in value)
            parser.add_argument(flag, default=str(value), help=help_text)
    return parser


def worker_count(requested: int) -> int:
    if requested <= 0:
        requested = os.cpu_count() or 1
    return min(requested, MAX_WORKERS)


def clean_output_dir(output_dir: Path, project_root: Path) -> None:
    """Remove a previous build, but only from inside the project."""
    if not output_dir.exists():
        return
    target = output_dir.resolve()
    root = project_root.resolve()
    if target == root or not target.is_relative_to(root):
        raise BuildError(f"Refusing to clean {output_dir}: it must be a directory inside {root}")
    shutil.rmtree(target)


def build_site(args: argparse.Namespace) -> Site:
    content_dir = Path(args.content)
    template_path = Path(args.templates) / "base.html"
    output_dir = Path(args.output)
    for required, label in ((content_dir, "Content directory"), (template_path, "Base template")):
        if not required.exists():
            print(f"{label} not found: {required}", file=sys.stderr)
            sys.exit(1)

    workers = worker_count(args.build_workers)
    base_url = args.base_url.strip()
    args.site_root = urlparse(base_url).path.rstrip("/")
    pages = load_pages(content_dir, args, workers=workers)

    try:
        formats = output_formats(parse_list(args.outputs), base_url) if base_url else ()
    except ValueError as exc:
        raise BuildError(str(exc)) from exc
    site = Site(
        title=args.site_title,
        description=args.site_description,
        base_url=base_url,
        pages=tuple(pages),
        output_formats=formats,
    )

    if args.clean:
        clean_output_dir(output_dir, Path.cwd())
    output_dir.mkdir(parents=True, exist_ok=True)
    static_dir = Path(args.static)
    if static_dir.is_dir():
        shutil.copytree(static_dir, output_dir, dirs_exist_ok=True)
    write_file(output_dir / "css" / "pygments.css", stylesheet(args.pygments_style))

    base_template = template_path.read_text(encoding="utf-8")
    home_types = parse_list(args.home_types)
    build_pages(base_template, output_dir, site, args.mermaid_url, workers=workers)
    home_pages = build_home(base_template, output_dir, site, home_types, args.posts_per_page)
    build_404(base_template, output_dir, site)
    feeds = write_feeds(output_dir, site, listed_pages(site, home_types), args.feed_limit)

    print(f"Rendered {len(site.pages)} pages, {home_pages} home page(s) and {len(feeds)} feed(s).")
    return site


def main(argv: list[str] | None = None) -> None:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", default=DEFAULT_CONFIG)
    known, _ = pre_parser.parse_known_args(argv)
    try:
        config = load_config(Path(known.config))
    except BuildError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    args = build_parser(config, known.config).parse_args(argv)
    started = time.perf_counter()
    try:
        build_site(args)
    except BuildError as exc:
        print(f"Build failed: {exc}", file=sys.stderr)
        sys.exit(1)
    print(f"Build completed in {time.perf_counter() - started:.2f}s, output in {args.output}")

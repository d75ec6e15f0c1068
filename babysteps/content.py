from __future__ import annotations

import dataclasses
import datetime as dt
import html
import re
import tomllib
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import markdown

from .aafigure import CLOSE_TAG_RE, DEFAULT_COMMAND, OPEN_TAG_RE, AafigureExtension
from .errors import BuildError
from .highlight import DEFAULT_KEYWORDS, DEFAULT_TYPES, DadaExtension
from .mermaid import MermaidExtension
from .models import PINNED_TAXONOMY, Page
from .utils import FenceTracker, parse_bool, parse_int, parse_list


# a list item, possibly nested
LIST_ITEM_RE = re.compile(r"[ \t]*(?:[-+*]|\d+[.)])\s+")
FRONT_MATTER_RE = re.compile(
    r"\A(?P<fence>---|\+\+\+)[ \t]*\n(?P<meta>.*?)^(?P=fence)[ \t]*$\n?", re.DOTALL | re.MULTILINE
)
# relative sources only: no scheme, no leading "/", "#", "./" or "../"
IMG_SRC_RE = re.compile(r'(<img\b[^>]*?\bsrc=")(?![a-z][a-z0-9+.-]*:|/|#|\.\.?/)([^"]+)"', re.IGNORECASE)
TAG_RE = re.compile(r"<[^>]+>")
SUMMARY_LENGTH = 200


def slugify(text: str) -> str:
    return "-".join(re.findall(r"[^\W_]+", text.lower())) or "post"


def read_simple_meta(block: str):
    for raw in block.splitlines():
        key, sep, value = raw.partition(":")
        if not sep or raw.lstrip().startswith("#"):
            continue
        yield key.strip().lower(), value.strip().strip("'\"")


def parse_front_matter(text: str, list_keys: tuple[str, ...] = ()) -> tuple[dict, str]:
    """Split ``---`` (key: value) or ``+++`` (TOML) front matter from the body.

    Keys in ``list_keys`` always come back as lists of strings.
    """
    text = text.removeprefix("\ufeff").replace("\r\n", "\n")
    match = FRONT_MATTER_RE.match(text)
    if not match:
        return {}, text
    if match.group("fence") == "+++":
        try:
            data = tomllib.loads(match.group("meta"))
        except tomllib.TOMLDecodeError as exc:
            raise BuildError(f"Invalid TOML front matter: {exc}") from exc
        meta = {key.lower(): value for key, value in data.items()}
    else:
        meta = dict(read_simple_meta(match.group("meta")))
    for key in list_keys:
        if key in meta:
            meta[key] = parse_list(meta[key])
    return meta, text[match.end() :].rstrip("\n")


def extract_title(meta: dict, body: str) -> tuple[str, str]:
    """Front matter title, else a leading ``# `` heading taken out of the body."""
    if meta.get("title"):
        return str(meta["title"]), body
    first, _, rest = body.lstrip().partition("\n")
    if first.startswith("# "):
        return first[2:].strip() or "Untitled", rest.lstrip()
    return "Untitled", body


def parse_date(meta: dict, file_path: Path) -> dt.datetime:
    value = meta.get("date")
    if isinstance(value, dt.datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, dt.date):
        return dt.datetime.combine(value, dt.time())
    date_value = str(value or "").strip()
    if date_value:
        try:
            return dt.datetime.fromisoformat(date_value).replace(tzinfo=None)
        except ValueError:
            pass
    return dt.datetime.fromtimestamp(file_path.stat().st_mtime)


def page_type(meta: dict, rel_path: Path) -> str:
    explicit = str(meta.get("type") or "").strip()
    if explicit:
        return explicit
    if len(rel_path.parts) > 1:
        return rel_path.parts[0]
    return "page"


def make_permalink(rel_path: Path, slug: str) -> str:
    if len(rel_path.parts) > 1:
        return f"/{rel_path.parts[0]}/{slug}/"
    return f"/{slug}/"


def get_taxonomies(meta: dict, taxonomies: tuple[str, ...]) -> dict[str, tuple[str, ...]]:
    result = {}
    for name in taxonomies:
        terms = parse_list(meta.get(name))
        if terms:
            result[name] = tuple(terms)
    return result


def normalize_list_spacing(text: str) -> str:
    """Put a blank line between a paragraph and a top-level list right under it."""
    out: list[str] = []
    fences = FenceTracker()
    in_figure = False
    for line in text.splitlines():
        if in_figure:
            in_figure = not CLOSE_TAG_RE.match(line)
        elif not fences.feed(line):
            if OPEN_TAG_RE.match(line):
                in_figure = True
            elif (
                LIST_ITEM_RE.match(line)
                and not line[0].isspace()
                and out
                and out[-1].strip()
                and not LIST_ITEM_RE.match(out[-1])
            ):
                out.append("")
        out.append(line)
    return "\n".join(out)


def convert_markdown(body: str, source: str, args: object) -> tuple[str, bool]:
    """Render one page body; the flag says whether it needs the mermaid script."""
    mermaid_ext = MermaidExtension()
    md = markdown.Markdown(
        extensions=[
            "fenced_code",
            "tables",
            "toc",
            AafigureExtension(command=getattr(args, "aafigure", DEFAULT_COMMAND), source=source),
            mermaid_ext,
            DadaExtension(
                keywords=parse_list(getattr(args, "dada_keywords", "")) or DEFAULT_KEYWORDS,
                types=parse_list(getattr(args, "dada_types", "")) or DEFAULT_TYPES,
            ),
        ],
        extension_configs={"toc": {"toc_depth": getattr(args, "toc_depth", "2-4")}},
    )
    html_content = md.convert(body)
    return html_content, mermaid_ext.used


def rebase_images(body: str, root: str) -> str:
    """Point relative image sources at the site root."""
    return IMG_SRC_RE.sub(lambda match: f'{match.group(1)}{root}/{match.group(2)}"', body)


def summarize(meta: dict, body: str) -> str:
    summary = str(meta.get("summary") or meta.get("description") or "")
    if summary:
        return summary
    text = " ".join(html.unescape(TAG_RE.sub("", body)).split())
    if len(text) <= SUMMARY_LENGTH:
        return text
    return text[:SUMMARY_LENGTH] + "..."


def parse_page(path: Path, content_dir: Path, args: object) -> Page | None:
    """Build the Page for one Markdown file.

    Returns None for a draft when drafts are not being published; its body is
    never converted, so its diagrams are never rendered.
    """
    rel_path = path.relative_to(content_dir)
    source = rel_path.as_posix()
    taxonomies = tuple(dict.fromkeys([*parse_list(getattr(args, "taxonomies", "categories")), PINNED_TAXONOMY]))
    meta, body = parse_front_matter(path.read_text(encoding="utf-8"), taxonomies)
    draft = parse_bool(meta.get("draft"))
    if draft and not parse_bool(getattr(args, "drafts", False)):
        return None
    title, body = extract_title(meta, body)
    slug = slugify(str(meta.get("slug") or "").strip() or path.stem)

    html_content, uses_diagrams = convert_markdown(normalize_list_spacing(body), source, args)
    html_content = rebase_images(html_content, getattr(args, "site_root", ""))

    return Page(
        source=source,
        title=title,
        body=html_content,
        type=page_type(meta, rel_path),
        slug=slug,
        permalink=make_permalink(rel_path, slug),
        date=parse_date(meta, path),
        weight=parse_int(meta.get("weight"), 0),
        summary=summarize(meta, html_content),
        taxonomies=get_taxonomies(meta, taxonomies),
        draft=draft,
        uses_diagrams=uses_diagrams,
    )


def load_pages(content_dir: Path, args: object, workers: int = 1) -> list[Page]:
    """Parse every Markdown file under ``content_dir``.

    Pages come back in registration order: sorted by their path relative to
    the content directory. Drafts are left out unless ``args.drafts`` is set.
    Two pages claiming the same permalink keep it in registration order; the
    later one gets a numeric suffix.
    """
    files = sorted(content_dir.rglob("*.md"), key=lambda p: p.relative_to(content_dir).as_posix())

    def parse(path: Path) -> Page | None:
        return parse_page(path, content_dir, args)

    workers = max(1, min(workers, len(files))) if files else 1
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            parsed = list(executor.map(parse, files))
    else:
        parsed = [parse(path) for path in files]

    pages = []
    used = set()
    for page in parsed:
        if page is None:
            continue
        if page.permalink in used:
            counter = 2
            while True:
                slug = f"{page.slug}-{counter}"
                permalink = page.permalink[: -len(page.slug) - 1] + f"{slug}/"
                if permalink not in used:
                    break
                counter += 1
            page = dataclasses.replace(page, slug=slug, permalink=permalink)
        used.add(page.permalink)
        pages.append(page)
    return pages

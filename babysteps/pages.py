from __future__ import annotations

import datetime as dt
import html
import math
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from urllib.parse import urlparse

from .mermaid import DEFAULT_SCRIPT_URL, mermaid_script
from .models import PINNED_TAXONOMY, Page, Site

TITLE_SEPARATOR = " · "
NAV_TYPE = "main"
PINNED_TERM = "yes"
PLACEHOLDER = "{{{{{}}}}}"


def fill_template(template: str, content: str, **chrome: str) -> str:
    """Substitute the chrome placeholders, then ``{{content}}``.

    Page bodies go in after everything else, so a post that talks about
    ``{{nav}}`` keeps that text.
    """
    for key, value in chrome.items():
        template = template.replace(PLACEHOLDER.format(key), value)
    return template.replace(PLACEHOLDER.format("content"), content)


def write_file(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def site_root(site: Site) -> str:
    return urlparse(site.base_url).path.rstrip("/")


def page_url(site: Site, page: Page) -> str:
    return f"{site_root(site)}{page.permalink}"


def page_title(site: Site, title: str) -> str:
    if title == site.title:
        return site.title
    return f"{title}{TITLE_SEPARATOR}{site.title}"


def nav_pages(site: Site) -> list[Page]:
    return site.pages_of_type(NAV_TYPE)


def pinned_pages(site: Site) -> list[Page]:
    # sorted() is stable, so equal weights keep registration order
    return sorted(site.pages_with_term(PINNED_TAXONOMY, PINNED_TERM), key=lambda page: page.weight)


def build_link_list(site: Site, pages: list[Page]) -> str:
    return "\n".join(
        f'<li><a href="{html.escape(page_url(site, page))}">{html.escape(page.title)}</a></li>' for page in pages
    )


def build_alternate_links(site: Site) -> str:
    return "\n".join(
        f'<link rel="{fmt.rel}" type="{fmt.mime_type}" href="{html.escape(fmt.url)}" '
        f'title="{html.escape(site.title)} ({fmt.name.upper()})">'
        for fmt in site.output_formats
    )


def render_document(
    base_template: str,
    site: Site,
    title: str,
    content: str,
    uses_diagrams: bool = False,
    mermaid_url: str = DEFAULT_SCRIPT_URL,
) -> str:
    """Wrap ``content`` in the site chrome.

    The mermaid script is only included when the page asked for it.
    """
    return fill_template(
        base_template,
        title=html.escape(page_title(site, title)),
        site_title=html.escape(site.title),
        site_description=html.escape(site.description),
        root=site_root(site),
        alternate_links=build_alternate_links(site),
        extra_head=mermaid_script(mermaid_url) if uses_diagrams else "",
        nav=build_link_list(site, nav_pages(site)),
        pinned=build_link_list(site, pinned_pages(site)),
        year=str(dt.datetime.now().year),
        content=content,
    )


def render_page(base_template: str, site: Site, page: Page, mermaid_url: str = DEFAULT_SCRIPT_URL) -> str:
    if page.type == NAV_TYPE:
        header = f'<h1 class="post-title">{html.escape(page.title)}</h1>'
    else:
        header = (
            f'<h1 class="post-title">{html.escape(page.title)}</h1>'
            f'<div class="post-meta"><span class="post-date">{page.date.strftime("%Y-%m-%d")}</span></div>'
        )
    content = f'<article class="post">{header}<div class="post-body">{page.body}</div></article>'
    return render_document(base_template, site, page.title, content, page.uses_diagrams, mermaid_url)


def build_pages(
    base_template: str,
    output_dir: Path,
    site: Site,
    mermaid_url: str = DEFAULT_SCRIPT_URL,
    workers: int = 1,
) -> None:
    def write_page(page: Page) -> None:
        html_doc = render_page(base_template, site, page, mermaid_url)
        write_file(output_dir / page.permalink.strip("/") / "index.html", html_doc)

    pages = list(site.pages)
    if workers <= 1 or len(pages) <= 1:
        for page in pages:
            write_page(page)
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(pages))) as executor:
            list(executor.map(write_page, pages))


def listed_pages(site: Site, types: list[str]) -> list[Page]:
    pages = [page for page in site.pages if page.type in types]
    pages.sort(key=lambda page: page.date, reverse=True)
    return pages


def build_post_list(site: Site, pages: list[Page]) -> str:
    items = []
    for page in pages:
        url = html.escape(page_url(site, page))
        items.append(
            '<article class="post-card">'
            f'<span class="post-date">{page.date.strftime("%Y-%m-%d")}</span>'
            f'<h2 class="post-title"><a href="{url}">{html.escape(page.title)}</a></h2>'
            f'<p class="post-summary">{html.escape(page.summary)}</p>'
            "</article>"
        )
    return "\n".join(items)


def build_home(base_template: str, output_dir: Path, site: Site, types: list[str], per_page: int) -> int:
    posts = listed_pages(site, types)
    root = site_root(site)
    per_page = max(1, per_page)
    total_pages = max(1, math.ceil(len(posts) / per_page))

    def home_url(number: int) -> str:
        if number == 1:
            return f"{root}/"
        return f"{root}/page/{number}/"

    def build_pagination(number: int) -> str:
        if total_pages <= 1:
            return ""
        items = []
        if number > 1:
            items.append(f'<a class="page-link" href="{home_url(number - 1)}">Newer</a>')
        items.append(f'<span class="page-number">{number} / {total_pages}</span>')
        if number < total_pages:
            items.append(f'<a class="page-link" href="{home_url(number + 1)}">Older</a>')
        return f'<nav class="pagination">{"".join(items)}</nav>'

    for number in range(1, total_pages + 1):
        start = (number - 1) * per_page
        content = (
            f'<div class="post-list">{build_post_list(site, posts[start : start + per_page])}</div>'
            f"{build_pagination(number)}"
        )
        html_doc = render_document(base_template, site, site.title, content)
        if number == 1:
            write_file(output_dir / "index.html", html_doc)
        else:
            write_file(output_dir / "page" / str(number) / "index.html", html_doc)
    return total_pages


def build_404(base_template: str, output_dir: Path, site: Site) -> None:
    content = (
        '<article class="post">'
        '<h1 class="post-title">Not found</h1>'
        "<p>The page you requested does not exist.</p>"
        f'<p><a href="{site_root(site)}/">Back to home</a></p>'
        "</article>"
    )
    write_file(output_dir / "404.html", render_document(base_template, site, "Not found", content))


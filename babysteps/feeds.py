"""RSS and Atom listings for the site's alternate output formats.

Each enabled format is announced by a ``<link rel="alternate">`` on every
page, so the build writes one file per format at the URL it advertises.
"""
from __future__ import annotations

import datetime as dt
import xml.etree.ElementTree as ET
from email.utils import format_datetime
from pathlib import Path

from .models import OutputFormat, Page, Site
from .pages import write_file

ATOM_NS = "http://www.w3.org/2005/Atom"
XML_DECLARATION = "<?xml version='1.0' encoding='UTF-8'?>\n"

FEED_FORMATS = {
    "rss": ("application/rss+xml", "rss.xml"),
    "atom": ("application/atom+xml", "atom.xml"),
}


def absolute_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def output_formats(names: list[str], base_url: str) -> tuple[OutputFormat, ...]:
    formats = []
    for name in names:
        key = name.strip().lower()
        if key not in FEED_FORMATS:
            raise ValueError(f"Unknown output format: {name}")
        mime_type, filename = FEED_FORMATS[key]
        formats.append(OutputFormat(key, "alternate", mime_type, absolute_url(base_url, filename)))
    return tuple(formats)


def as_utc(value: dt.datetime) -> dt.datetime:
    # page dates are naive and taken as UTC
    return value if value.tzinfo else value.replace(tzinfo=dt.timezone.utc)


def rss_feed(site: Site, posts: list[Page], fmt: OutputFormat) -> str:
    rss = ET.Element("rss", version="2.0")
    channel = ET.SubElement(rss, "channel")
    ET.SubElement(channel, "title").text = site.title
    ET.SubElement(channel, "link").text = absolute_url(site.base_url, "/")
    ET.SubElement(channel, "description").text = site.description
    if posts:
        ET.SubElement(channel, "lastBuildDate").text = format_datetime(as_utc(posts[0].date), usegmt=True)
    for post in posts:
        link = absolute_url(site.base_url, post.permalink)
        item = ET.SubElement(channel, "item")
        ET.SubElement(item, "title").text = post.title
        ET.SubElement(item, "link").text = link
        ET.SubElement(item, "guid").text = link
        ET.SubElement(item, "pubDate").text = format_datetime(as_utc(post.date), usegmt=True)
        ET.SubElement(item, "description").text = post.summary
    return XML_DECLARATION + ET.tostring(rss, encoding="unicode")


def atom_feed(site: Site, posts: list[Page], fmt: OutputFormat) -> str:
    home = absolute_url(site.base_url, "/")
    feed = ET.Element("feed", {"xmlns": ATOM_NS})
    ET.SubElement(feed, "title").text = site.title
    if site.description:
        ET.SubElement(feed, "subtitle").text = site.description
    ET.SubElement(feed, "id").text = home
    ET.SubElement(feed, "link", rel="alternate", type="text/html", href=home)
    ET.SubElement(feed, "link", rel="self", type=fmt.mime_type, href=fmt.url)
    updated = as_utc(posts[0].date) if posts else dt.datetime.now(dt.timezone.utc)
    ET.SubElement(feed, "updated").text = updated.isoformat()
    for post in posts:
        link = absolute_url(site.base_url, post.permalink)
        entry = ET.SubElement(feed, "entry")
        ET.SubElement(entry, "title").text = post.title
        ET.SubElement(entry, "link", rel="alternate", type="text/html", href=link)
        ET.SubElement(entry, "id").text = link
        ET.SubElement(entry, "updated").text = as_utc(post.date).isoformat()
        ET.SubElement(entry, "summary").text = post.summary
    return XML_DECLARATION + ET.tostring(feed, encoding="unicode")


FEED_BUILDERS = {"rss": rss_feed, "atom": atom_feed}


def write_feeds(output_dir: Path, site: Site, posts: list[Page], limit: int) -> list[Path]:
    """Write one file per output format of ``site`` with the ``limit`` newest posts."""
    recent = posts[: max(0, limit)]
    written = []
    for fmt in site.output_formats:
        target = output_dir / FEED_FORMATS[fmt.name][1]
        write_file(target, FEED_BUILDERS[fmt.name](site, recent, fmt))
        written.append(target)
    return written

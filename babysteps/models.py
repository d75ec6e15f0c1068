from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field

# Pages carrying this taxonomy with the term "yes" are listed beside every page.
PINNED_TAXONOMY = "pinned"


@dataclass(frozen=True)
class OutputFormat:
    name: str
    rel: str
    mime_type: str
    url: str


@dataclass(frozen=True)
class Page:
    source: str
    title: str
    body: str
    type: str
    slug: str
    permalink: str
    date: dt.datetime
    weight: int = 0
    summary: str = ""
    taxonomies: dict[str, tuple[str, ...]] = field(default_factory=dict)
    draft: bool = False
    uses_diagrams: bool = False

    def terms(self, taxonomy: str) -> tuple[str, ...]:
        return self.taxonomies.get(taxonomy, ())


@dataclass(frozen=True)
class Site:
    """Everything one build knows about the site.

    Built once from the full set of pages and handed to every render call.
    ``pages`` keeps registration order.
    """

    title: str
    description: str = ""
    base_url: str = ""
    pages: tuple[Page, ...] = ()
    output_formats: tuple[OutputFormat, ...] = ()

    def pages_of_type(self, page_type: str) -> list[Page]:
        return [page for page in self.pages if page.type == page_type]

    def pages_with_term(self, taxonomy: str, term: str) -> list[Page]:
        return [page for page in self.pages if term in page.terms(taxonomy)]


@dataclass(frozen=True)
class DiagramBlock:
    source: str
    options: str = ""
    location: str = ""

import datetime as dt
import shlex
import sys

import pytest

from babysteps.models import Page

SVG_OUTPUT = (
    '<?xml version="1.0" standalone="no"?>\n'
    '<!DOCTYPE svg PUBLIC "-//W3C//DTD SVG 1.1//EN" "http://www.w3.org/Graphics/SVG/1.1/DTD/svg11.dtd">\n'
    "\n"
    '<svg width="100" height="50"><rect/></svg>\n'
)

FAKE_AAFIGURE = """\
import sys

source = sys.stdin.read()
with open({log!r}, "w", encoding="utf-8") as fh:
    fh.write("\\n".join(sys.argv[1:]))
    fh.write("\\n---\\n")
    fh.write(source)
sys.stdout.write({output!r})
"""


def make_page(title, type="posts", slug=None, weight=0, taxonomies=None, date=None, **kwargs):
    slug = slug or title.lower().replace(" ", "-")
    permalink = f"/{slug}/" if type == "main" else f"/{type}/{slug}/"
    return Page(
        source=f"{type}/{slug}.md",
        title=title,
        body=kwargs.pop("body", f"<p>{title}</p>"),
        type=type,
        slug=slug,
        permalink=permalink,
        date=date or dt.datetime(2024, 1, 1),
        weight=weight,
        taxonomies=taxonomies or {},
        **kwargs,
    )


@pytest.fixture
def fake_aafigure(tmp_path):
    """A stand-in aafigure command; returns (command, log path)."""
    log = tmp_path / "aafigure.log"
    script = tmp_path / "fake_aafigure.py"
    script.write_text(FAKE_AAFIGURE.format(log=str(log), output=SVG_OUTPUT), encoding="utf-8")
    command = f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"
    return command, log


@pytest.fixture
def page_factory():
    return make_page

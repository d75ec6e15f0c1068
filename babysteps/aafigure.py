"""Inline SVG diagrams rendered by the external ``aafigure`` tool.

A Markdown source marks a diagram with Liquid-style delimiters::

    {% aafigure -s 0.8 %}
        +-----+   +-----+
        | a   |-->| b   |
        +-----+   +-----+
    {% endaafigure %}

The text between the tags is piped to ``aafigure`` and replaced by the SVG it
prints, scaled to the width of its container.
"""
from __future__ import annotations

import re
import shlex
import subprocess

from markdown.extensions import Extension
from markdown.preprocessors import Preprocessor

from .errors import DiagramError, MalformedOutputError, RendererFailedError, RendererNotFoundError
from .models import DiagramBlock
from .utils import FenceTracker

DEFAULT_COMMAND = "aafigure"
HEADER_LINES = 3
SVG_OPEN = "<svg "
WIDTH_STYLE = 'style="width:100%"'
# Tags start at column 0; an indented tag is example code, not a diagram.
OPEN_TAG_RE = re.compile(r"^\{%-?\s*aafigure\b(?P<options>.*?)-?%\}\s*$")
CLOSE_TAG_RE = re.compile(r"^\{%-?\s*endaafigure\s*-?%\}\s*$")


def build_command(command: str, options: str) -> list[str]:
    # The output type is always svg, whatever the block asks for.
    args = []
    skip_next = False
    for arg in shlex.split(options or ""):
        if skip_next:
            skip_next = False
            continue
        if arg in {"-t", "--type"}:
            skip_next = True
            continue
        if arg.startswith("--type=") or (arg.startswith("-t") and not arg.startswith("--")):
            continue
        args.append(arg)
    return shlex.split(command) + args + ["--type", "svg"]


def strip_header(output: str, location: str = "", header_lines: int = HEADER_LINES) -> str:
    """Drop the XML declaration, DOCTYPE and blank line aafigure prints first."""
    lines = output.split("\n")
    if output.endswith("\n"):
        lines.pop()
    if len(lines) < header_lines:
        raise MalformedOutputError(
            location,
            f"aafigure printed {len(lines)} line(s), expected at least {header_lines} header lines",
        )
    body = lines[header_lines:]
    while body and body[-1] == "":
        body.pop()
    return "".join(f"{line}\n" for line in body)


def inject_width_style(markup: str) -> str:
    start = markup.find(SVG_OPEN)
    if start < 0:
        return markup
    end = markup.find(">", start)
    tag = markup[start:] if end < 0 else markup[start:end]
    if WIDTH_STYLE in tag:
        return markup
    insert_at = start + len(SVG_OPEN)
    return f"{markup[:insert_at]}{WIDTH_STYLE} {markup[insert_at:]}"


def render_block(block: DiagramBlock, command: str = DEFAULT_COMMAND) -> str:
    argv = build_command(command, block.options)
    source = block.source if block.source.endswith("\n") else f"{block.source}\n"
    try:
        result = subprocess.run(argv, input=source, capture_output=True, text=True, check=False)
    except FileNotFoundError as exc:
        raise RendererNotFoundError(block.location, f"aafigure executable not found: {argv[0]}") from exc
    except OSError as exc:
        raise RendererNotFoundError(block.location, f"could not start {argv[0]}: {exc}") from exc
    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise RendererFailedError(
            block.location,
            f"{argv[0]} exited with status {result.returncode}" + (f": {stderr}" if stderr else ""),
            result.returncode,
            stderr,
        )
    markup = inject_width_style(strip_header(result.stdout, block.location))
    return f"<div>{markup}</div>"


class AafigurePreprocessor(Preprocessor):
    def __init__(self, md, command: str, source: str):
        super().__init__(md)
        self.command = command
        self.source = source

    def run(self, lines: list[str]) -> list[str]:
        out: list[str] = []
        fences = FenceTracker()
        index = 0
        count = 0
        while index < len(lines):
            line = lines[index]
            index += 1
            if fences.feed(line):
                out.append(line)
                continue
            match = OPEN_TAG_RE.match(line)
            if not match:
                out.append(line)
                continue
            count += 1
            location = f"{self.source}, aafigure block {count}" if self.source else f"aafigure block {count}"
            body = []
            while index < len(lines) and not CLOSE_TAG_RE.match(lines[index]):
                body.append(lines[index])
                index += 1
            if index >= len(lines):
                raise DiagramError(location, "unterminated aafigure block")
            index += 1
            block = DiagramBlock("\n".join(body), match.group("options").strip(), location)
            placeholder = self.md.htmlStash.store(render_block(block, self.command))
            out.extend(["", placeholder, ""])
        return out


class AafigureExtension(Extension):
    def __init__(self, command: str = DEFAULT_COMMAND, source: str = "", **kwargs):
        super().__init__(**kwargs)
        self.command = command
        self.source = source

    def extendMarkdown(self, md):
        # After normalize_whitespace (30), ahead of fenced_code (25).
        md.preprocessors.register(AafigurePreprocessor(md, self.command, self.source), "aafigure", 28)

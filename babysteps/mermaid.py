from __future__ import annotations

import html

from markdown.extensions import Extension
from markdown.preprocessors import Preprocessor

from .utils import FENCE_RE

DEFAULT_SCRIPT_URL = "https://cdn.jsdelivr.net/npm/mermaid@10/dist/mermaid.esm.min.mjs"


def mermaid_script(url: str = DEFAULT_SCRIPT_URL) -> str:
    return (
        '<script type="module">'
        f'import mermaid from "{url}";'
        "mermaid.initialize({ startOnLoad: true });"
        "</script>"
    )


class MermaidPreprocessor(Preprocessor):
    """Hand ```mermaid fences to the browser untouched and note that the page needs the script."""

    def __init__(self, md, extension: "MermaidExtension"):
        super().__init__(md)
        self.extension = extension

    def run(self, lines: list[str]) -> list[str]:
        out: list[str] = []
        index = 0
        while index < len(lines):
            line = lines[index]
            index += 1
            match = FENCE_RE.match(line)
            if not match:
                out.append(line)
                continue
            marker = match.group("marker")
            body = []
            closed = False
            while index < len(lines):
                inner = lines[index]
                index += 1
                end = FENCE_RE.match(inner)
                if end and end.group("marker").startswith(marker) and not end.group("info").strip():
                    closed = True
                    break
                body.append(inner)
            if match.group("info").strip().lower() != "mermaid" or not closed:
                out.append(line)
                out.extend(body)
                if closed:
                    out.append(inner)
                continue
            self.extension.used = True
            diagram = html.escape("\n".join(body))
            placeholder = self.md.htmlStash.store(f'<pre class="mermaid">{diagram}</pre>')
            out.extend(["", placeholder, ""])
        return out


class MermaidExtension(Extension):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.used = False

    def extendMarkdown(self, md):
        md.registerExtension(self)
        md.preprocessors.register(MermaidPreprocessor(md, self), "mermaid", 27)

    def reset(self):
        self.used = False

from __future__ import annotations

from markdown.extensions import Extension
from markdown.preprocessors import Preprocessor

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import RegexLexer, bygroups
from pygments.token import Comment, Keyword, Name, Number, Operator, Punctuation, String, Text, Whitespace
from pygments.util import get_list_opt

from .utils import FENCE_RE

DEFAULT_KEYWORDS = ("let",)
DEFAULT_TYPES = ("String",)


class DadaLexer(RegexLexer):
    """Lexer for the Dada language.

    Keywords and type names are options rather than fixed tables since the
    language keeps changing between posts.
    """

    name = "Dada"
    aliases = ["dada"]
    filenames = ["*.dada"]

    tokens = {
        "root": [
            (r"(//|#)[^\n]*", Comment.Single),
            (r'"', String, "string"),
            (r"\d+(\.\d+)?", Number.Integer),
            (r"[a-zA-Z_][a-zA-Z0-9_]*(?=\s*\()", Name.Function),
            (r"[a-zA-Z_][a-zA-Z0-9_]*", Name),
            (r"[(){}\[\]:;,.]", Punctuation),
            (r"=", Operator),
            (r"\s+", Whitespace),
            (r".", Text),
        ],
        "string": [
            (r"(\{)([^}]+)(\})", bygroups(String, Name, String)),
            (r'[^"{]+', String),
            (r"\{", String),
            (r'"', String, "#pop"),
        ],
    }

    def __init__(self, **options):
        super().__init__(**options)
        self.keywords = set(get_list_opt(options, "keywords", list(DEFAULT_KEYWORDS)))
        self.types = set(get_list_opt(options, "types", list(DEFAULT_TYPES)))

    def get_tokens_unprocessed(self, text, stack=("root",)):
        for index, token, value in super().get_tokens_unprocessed(text, stack):
            if token in (Name, Name.Function):
                if value in self.keywords:
                    token = Keyword
                elif value in self.types:
                    token = Keyword.Type
            yield index, token, value


def parse_fence_options(info: str) -> dict[str, list[str]]:
    options = {}
    for part in info.split():
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        key = key.strip().lower()
        if key in {"keywords", "types"}:
            options[key] = [item for item in value.split(",") if item]
    return options


def highlight_dada(code: str, keywords=DEFAULT_KEYWORDS, types=DEFAULT_TYPES) -> str:
    lexer = DadaLexer(keywords=list(keywords), types=list(types))
    formatter = HtmlFormatter(cssclass="codehilite")
    return highlight(code, lexer, formatter)


class DadaPreprocessor(Preprocessor):
    def __init__(self, md, keywords, types):
        super().__init__(md)
        self.keywords = list(keywords)
        self.types = list(types)

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
            info = match.group("info").strip()
            language = info.split()[0].lower() if info else ""
            if language != "dada" or not closed:
                out.append(line)
                out.extend(body)
                if closed:
                    out.append(inner)
                continue
            options = parse_fence_options(info)
            html_code = highlight_dada(
                "\n".join(body),
                options.get("keywords", self.keywords),
                options.get("types", self.types),
            )
            out.extend(["", self.md.htmlStash.store(html_code), ""])
        return out


class DadaExtension(Extension):
    def __init__(self, keywords=DEFAULT_KEYWORDS, types=DEFAULT_TYPES, **kwargs):
        super().__init__(**kwargs)
        self.keywords = keywords
        self.types = types

    def extendMarkdown(self, md):
        md.preprocessors.register(DadaPreprocessor(md, self.keywords, self.types), "dada", 26)


def stylesheet(style: str = "default") -> str:
    return HtmlFormatter(style=style).get_style_defs(".codehilite")

import html
import re
from pathlib import Path as FSPath
from urllib.parse import urlsplit

import markdown
from fastapi.templating import Jinja2Templates
from markdown import util
from markdown.treeprocessors import Treeprocessor
from markupsafe import Markup

BASE_DIR = FSPath(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"

MARKDOWN_EXTENSIONS = ["fenced_code", "tables"]

SAFE_URL_SCHEMES = {"http", "https", "mailto", "ftp"}
URL_ATTRIBUTES = ("href", "src")

# Browsers ignore these inside a scheme ("java\tscript:")
_URL_NOISE_RE = re.compile(r"[\x00-\x20\x7f]+")


def is_safe_url(url: str) -> bool:
    """Relative URLs and the schemes in SAFE_URL_SCHEMES pass."""
    # markdown parks "&" as a placeholder until serialization
    url = (url or "").replace(util.AMP_SUBSTITUTE, "&")
    cleaned = _URL_NOISE_RE.sub("", html.unescape(url))
    try:
        scheme = urlsplit(cleaned).scheme
    except ValueError:
        return False
    return not scheme or scheme.lower() in SAFE_URL_SCHEMES


class UnsafeUrlTreeprocessor(Treeprocessor):
    """Drops link and image targets such as ``javascript:`` or ``data:``."""

    def run(self, root):
        for el in root.iter():
            for attr in URL_ATTRIBUTES:
                value = el.get(attr)
                if value is not None and not is_safe_url(value):
                    del el.attrib[attr]


def render_markdown(text: str) -> Markup:
    """Markdown to HTML with raw HTML disabled.

    Inline tags and HTML blocks in the source come out escaped instead of
    being passed through to the page.
    """
    md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS)
    md.preprocessors.deregister("html_block")
    md.inlinePatterns.deregister("html")
    # last, once every inline pattern has filled in its attributes
    md.treeprocessors.register(UnsafeUrlTreeprocessor(md), "unsafe_url", -10)
    return Markup(md.convert(text or ""))


templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["markdown"] = render_markdown

__all__ = ["BASE_DIR", "TEMPLATES_DIR", "templates", "render_markdown", "is_safe_url"]

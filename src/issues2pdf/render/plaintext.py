"""
Flattening of issue markdown into the plain text laid out by the PDF renderer.

The markdown is rendered to HTML with markdown2 and the HTML is then reduced
to text by an ordered list of named substitution stages. Order matters: list
items must get their bullet before the generic tag stripping runs, and inline
code has to be handled before code blocks are unwrapped.
"""
import html
import re
from typing import Callable, List, Tuple, Union

import markdown2

from issues2pdf.logger import get_logger

BULLET = "• "

MARKDOWN_EXTRAS = {
    "breaks": {"on_newline": True},
    "fenced-code-blocks": None,
    "tables": None,
    "strike": None,
    "task_list": None,
    "code-friendly": None,
    # Keeps fenced blocks with a language hint as plain <pre><code> instead
    # of pygments markup.
    "highlightjs-lang": None,
}

Replacement = Union[str, Callable[["re.Match[str]"], str]]
Stage = Tuple[str, "re.Pattern[str]", Replacement]


def _stage(name: str, pattern: str, replacement: Replacement, flags: int = 0) -> Stage:
    return name, re.compile(pattern, flags), replacement


# Autolinks such as <https://example.com> are markdown, not raw HTML.
RAW_HTML_TAG = re.compile(r"<(?![a-zA-Z][a-zA-Z0-9+.-]*:)[^>]*>")

STAGES: List[Stage] = [
    _stage("line-breaks", r"<br\s*/?>\n?", "\n", re.I),
    _stage("paragraph-ends", r"</p>", "\n\n", re.I),
    _stage("heading-ends", r"</h[1-6]>", "\n\n", re.I),
    _stage("div-ends", r"</div>", "\n", re.I),
    _stage("list-item-ends", r"</li>", "\n", re.I),
    _stage("list-item-starts", r"<li(?:\s[^>]*)?>", BULLET, re.I),
    _stage("horizontal-rules", r"<hr\s*/?>", "\n---\n", re.I),
    _stage("bold", r"<(strong|b)>(.*?)</\1>", r"\2", re.I),
    _stage("italic", r"<(em|i)>(.*?)</\1>", r"\2", re.I),
    _stage("inline-code", r"<code>(.*?)</code>", r"`\1`", re.I),
    _stage("code-blocks", r"<pre[^>]*><code[^>]*>(.*?)</code></pre>", r"\n\1\n", re.I | re.S),
    _stage("tags", r"<[^>]*>", ""),
    _stage("blank-lines", r"\n\s*\n\s*\n", "\n\n"),
    _stage("bold-markers", r"\*\*(.*?)\*\*", r"\1"),
    _stage("italic-markers", r"\*(.*?)\*", r"\1"),
    _stage("code-markers", r"`([^`]+)`", r"\1"),
    _stage("bullet-markers", r"^\s*[-*+]\s+", BULLET, re.M),
    _stage("numbered-markers", r"^\s*\d+\.\s+", BULLET, re.M),
    _stage("links", r"\[([^\]]+)\]\([^)]+\)", r"\1"),
]


def markdown_to_html(markdown: str) -> str:
    return markdown2.markdown(RAW_HTML_TAG.sub("", markdown), extras=MARKDOWN_EXTRAS)


def flatten_html(text: str) -> str:
    for _name, pattern, replacement in STAGES:
        text = pattern.sub(replacement, text)
    return html.unescape(text).strip()


def markdown_to_plain_text(markdown: str) -> str:
    """
    Convert markdown to plain text while keeping its block structure:
    paragraphs are separated by blank lines, list items start with a bullet
    and horizontal rules become a paragraph of exactly "---".

    Never raises. If the conversion fails the raw markdown is returned.
    """
    try:
        return flatten_html(markdown_to_html(markdown))
    except Exception:
        get_logger().warning(
            "Couldn't convert markdown to plain text, using raw text", exc_info=True
        )
        return markdown

"""Safety check for inline code and script blocks.

Readers copy code boxes into terminals, so a box must not contain a clickable
link and must not contain non-ASCII punctuation (typographic quotes, dashes)
that a shell would choke on. Letters of any script are fine, and so are the
markers a document exempts with a ``// NONASCII`` comment.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from docserve.markup import NAV_CONTENT, NAV_UTILS, parse

if TYPE_CHECKING:
    from collections.abc import Iterable

    from bs4 import Tag

_WHITESPACE_RE = re.compile(r"\s+")
_WORD_RE = re.compile(r"\w+")
_ELLIPSES = ("…\u200b", "…")


def _has_foreign_characters(markup: str, exempt: Iterable[str]) -> bool:
    for marker in exempt:
        markup = markup.replace(marker, "")
    markup = _WHITESPACE_RE.sub("", markup)
    markup = _WORD_RE.sub("", markup)
    for ellipsis in _ELLIPSES:
        markup = markup.replace(ellipsis, "")
    return not markup.isascii()


def _is_unsafe(element: Tag, exempt: Iterable[str]) -> bool:
    if element.find("a") is not None:
        return True
    return _has_foreign_characters(str(element), exempt)


def check_code_blocks(html: str, exempt: Iterable[str] = ()) -> list[str]:
    """Return the markup of every ``code``/``script`` element that is unsafe to copy."""
    exempt = tuple(exempt)
    soup = parse(html, without=(NAV_CONTENT, NAV_UTILS))
    body = soup.body or soup
    return [
        str(element)
        for element in body.find_all(["script", "code"])
        if _is_unsafe(element, exempt)
    ]

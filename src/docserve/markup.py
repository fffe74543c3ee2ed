"""Thin helpers around BeautifulSoup shared by all markup-inspecting checks."""

from __future__ import annotations

from bs4 import BeautifulSoup

PARSER = "html.parser"

# Navigation chrome injected by the page template; never part of the document.
NAV_CONTENT = "div.main-nav__content"
NAV_UTILS = "div.main-nav__utils"


def parse(html: str, *, without: tuple[str, ...] = (NAV_CONTENT,)) -> BeautifulSoup:
    """Parse *html* into a fresh tree and drop every element matching *without*.

    Every caller gets its own tree, so removals never leak between checks.
    """
    soup = BeautifulSoup(html, PARSER)
    for selector in without:
        for node in soup.select(selector):
            node.decompose()
    return soup

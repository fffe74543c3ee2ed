"""Structural fingerprinting of rendered documents.

A fingerprint is the ordered sequence of headings, images, paragraphs, tables,
lists and code listings of a rendered page. Comparing the fingerprints of the
German and the English variant of a document position by position finds the
first place where the translations drifted apart.
"""

from __future__ import annotations

import re
from itertools import zip_longest
from typing import TYPE_CHECKING

from docserve.markup import parse
from docserve.models.document import NodeKind, StructuralFingerprint, StructuralNode

if TYPE_CHECKING:
    from bs4 import Tag

_AUTO_HEADING_ID = re.compile(r"^(_|heading__)")
_HEADINGS = {"h2": 2, "h3": 3, "h4": 4}


def _nested_src(element: Tag) -> str | None:
    img = element if element.name == "img" else element.find("img")
    if img is None or img.get("src") is None:
        return None
    return str(img["src"])


def _classify(element: Tag) -> StructuralNode | None:
    """Map one element to its structural node, or None if it carries no structure."""
    name = element.name
    classes = element.get("class") or []

    if name in _HEADINGS:
        element_id = element.get("id")
        trait = None
        if element_id is not None and not _AUTO_HEADING_ID.match(str(element_id)):
            trait = str(element_id)
        return StructuralNode(NodeKind.HEADING, trait, _HEADINGS[name], element)
    if name == "div" and classes in (["imageblock"], ["imageblock", "border"]):
        return StructuralNode(NodeKind.IMAGE, _nested_src(element), element=element)
    if name == "span" and classes == ["image-inline"]:
        return StructuralNode(NodeKind.INLINE_IMAGE, _nested_src(element), element=element)
    if name == "div" and classes == ["paragraph"]:
        return StructuralNode(NodeKind.PARAGRAPH, element=element)
    if name == "table":
        return StructuralNode(NodeKind.TABLE, len(element.find_all("tr")), element=element)
    if name == "ul":
        return StructuralNode(NodeKind.UNORDERED_LIST, len(element.find_all("li")), element=element)
    if name == "ol":
        return StructuralNode(NodeKind.ORDERED_LIST, len(element.find_all("li")), element=element)
    if name == "div" and classes == ["listingblock"]:
        return StructuralNode(NodeKind.CODE_LISTING, element=element)
    return None


def fingerprint(html: str) -> StructuralFingerprint:
    """Return the structural nodes of *html* in document order, navigation excluded."""
    soup = parse(html)
    nodes = []
    for element in soup.find_all(True):
        node = _classify(element)
        if node is not None:
            nodes.append(node)
    return tuple(nodes)


def diff(
    a: StructuralFingerprint,
    b: StructuralFingerprint,
) -> tuple[StructuralNode, StructuralNode] | None:
    """Return the first divergent pair of nodes, or None if both agree.

    A position present on only one side is compared against an empty
    placeholder node. Only the first divergence is reported.
    """
    for node_a, node_b in zip_longest(a, b):
        if node_a is None:
            return StructuralNode.empty(), node_b
        if node_b is None:
            return node_a, StructuralNode.empty()
        if node_a.signature != node_b.signature:
            return node_a, node_b
    return None

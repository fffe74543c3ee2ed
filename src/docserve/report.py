"""Diagnostic outputs: the in-page error panel, per-document summary lines and
the global listings served under ``/errors.csv``, ``/errors.html``,
``/links.html``, ``/wordcount.html``, ``/images.txt`` and ``/images.html``.

All functions here are pure string builders.
"""

from __future__ import annotations

from html import escape
from typing import TYPE_CHECKING

from docserve.errors import DiagnosticKind

if TYPE_CHECKING:
    from collections import Counter
    from collections.abc import Iterable, Mapping, Sequence

    from docserve.links import LinkCache
    from docserve.models.document import DiagnosticReport, DocumentKey

ERRORS_CSV_HEADER = (
    '"Filename";"Asciidoc errors";"Broken links";"Missing includes";'
    '"Spellcheck errors";"Structure mismatch";"Non-ASCII in code box";\n'
)

# Column order of the CSV line and the HTML row.
_COLUMNS = (
    DiagnosticKind.RENDERER,
    DiagnosticKind.LINK,
    DiagnosticKind.MISSING_INCLUDE,
    DiagnosticKind.SPELLING,
    DiagnosticKind.STRUCTURE_MISMATCH,
    DiagnosticKind.UNSAFE_CODE_BLOCK,
)


def document_url(public_url: str, key: DocumentKey) -> str:
    return f"{public_url.rstrip('/')}{key.served_path}"


def build_panel(report: DiagnosticReport) -> str:
    """Return the ``div#docserveerrors`` markup listing every non-empty category."""
    parts = ["<div id='docserveerrors'>"]
    if report.renderer_errors:
        lines = "<br />".join(escape(line) for line in report.renderer_errors)
        parts.append(f"<h3>Asciidoctor errors</h3><p class='errmono'>{lines}</p>")
    if report.broken_links:
        parts.append("<h3>Broken links</h3><ul>")
        for link, reason in report.broken_links.items():
            link = escape(link, quote=True)
            parts.append(f"<li><a href='{link}' target='_blank'>{link}</a> ({escape(reason)})</li>\n")
        parts.append("</ul>")
    if report.missing_includes:
        parts.append("<h3>Missing include files</h3><ul>")
        parts.extend(f"<li>{escape(path)}</li>\n" for path in report.missing_includes)
        parts.append("</ul>")
    if report.misspelled:
        words = " ".join(escape(word) for word in report.misspelled)
        parts.append(f"<h3>Misspelled or unknown words</h3><p>{words}</p>")
    if report.structure_mismatch is not None:
        this, other = report.structure_mismatch
        parts.append(
            "<h3>Structure not matching</h3>"
            f"<p><b>This:</b> {this.to_html()}</p>"
            f"<p><b>Other:</b> {other.to_html()}</p>"
        )
    if report.unsafe_code_blocks:
        parts.append("<h3>Found codeboxes with non ASCII chars or clickable link</h3><p>")
        parts.extend(f"<pre class='pygments highlight'>{block}</pre>" for block in report.unsafe_code_blocks)
        parts.append("</p>")
    parts.append("</div>\n")
    return "".join(parts)


def csv_line(report: DiagnosticReport, url: str) -> str | None:
    """``<url>;<renderer>;<links>;<includes>;<spelling>;<structure>;<code>;`` or None."""
    if report.is_empty:
        return None
    counts = report.counts
    fields = "".join(f"{counts[kind]};" for kind in _COLUMNS)
    return f"{url};{fields}\n"


def html_row(report: DiagnosticReport, url: str, label: str) -> str | None:
    if report.is_empty:
        return None
    counts = report.counts
    cells = "".join(f"<td>{counts[kind]}</td>" for kind in _COLUMNS)
    return f'<tr><td><a href="{url}" target="_blank">{escape(label)}</a></td>{cells}</tr>\n'


# ---------------------------------------------------------------------------
# Global listings
# ---------------------------------------------------------------------------


def errors_csv(lines: Iterable[str]) -> str:
    return ERRORS_CSV_HEADER + "".join(lines)


def errors_html(rows: Iterable[str]) -> str:
    header = (
        "<tr><td><b>Filename</b></td><td><b>Asciidoc errors</b></td><td><b>Broken links</b></td>"
        "<td><b>Missing includes</b></td><td><b>Spellcheck errors</b></td>"
        "<td><b>Structure mismatch</b></td><td><b>Code box with non-ASCII or link</b></td></tr>\n"
    )
    return (
        '<!DOCTYPE html>\n<html><head><meta charset="UTF-8"><title>Errors</title></head><body>\n'
        f"<table>{header}{''.join(rows)}</table></body></html>"
    )


def _link_item(url: str, users: Iterable[str], note: str = "") -> str:
    href = escape(url, quote=True)
    used_by = "".join(f"<a href='/latest{user}'>{user}</a>\n" for user in users)
    note = f" ({escape(note)})" if note else ""
    return f"<li><a href='{href}'>{href}</a>{note} Used by:\n{used_by}</li>\n"


def links_html(cache: LinkCache) -> str:
    """Broken links, working links answering with a redirect, and working links."""
    broken, redirected, working = [], [], []
    for url in sorted(cache.used_by):
        record = cache.get(url)
        if record is None:
            continue
        users = cache.used_by[url]
        if not record.ok:
            broken.append(_link_item(url, users, record.error))
        elif record.status_code > 299:
            redirected.append(_link_item(url, users, str(record.status_code)))
        else:
            working.append(_link_item(url, users))
    return (
        '<!DOCTYPE html>\n<html><head><meta charset="UTF-8"><title>Linkstats</title></head><body>\n'
        f"<h2>Broken links</h2>\n<ul>\n{''.join(broken)}</ul>\n"
        f"<h2>Working links with redirect</h2>\n<ul>\n{''.join(redirected)}</ul>\n"
        f"<h2>Working links</h2>\n<ul>\n{''.join(working)}</ul></body></html>"
    )


def wordcount_html(counts: Mapping[str, Counter[str]]) -> str:
    """One block per document, most frequent words first."""
    rows = []
    for document, counter in counts.items():
        rows.append(f"<tr><td>{escape(document)}</td></tr>\n")
        rows.extend(
            f"<tr><td></td><td>{escape(word)}</td><td>{count}</td></tr>\n"
            for word, count in counter.most_common()
        )
    return (
        '<!DOCTYPE html>\n<html><head><meta charset="UTF-8"><title>Wordstats</title></head><body>\n'
        f"<table><tr><td>Filename</td><td>Word</td><td>Count</td></tr>\n{''.join(rows)}</table></body></html>"
    )


def unused_images(available: Iterable[str], used: Iterable[str]) -> list[str]:
    """Images no rendered document references; ``*_original.*`` masters excluded."""
    seen = set(used)
    return [
        image.removeprefix("../")
        for image in available
        if image not in seen and "_original." not in image
    ]


def images_txt(available: Iterable[str], used: Iterable[str]) -> str:
    return "".join(f"{image}\n" for image in unused_images(available, used))


def images_html(available: Sequence[str], used: Iterable[str]) -> str:
    """Image counts plus a linked list of the unused images."""
    used_set = set(used)
    unused = [image for image in available if image not in used_set]
    originals = sum(1 for image in unused if "_original." in image)
    items = "".join(
        f"<li><a href='/latest/{escape(name, quote=True)}'>{escape(name)}</a></li>\n"
        for name in unused_images(available, used_set)
    )
    return (
        '<!DOCTYPE html>\n<html><head><meta charset="UTF-8"><title>Imagestats</title></head><body>\n'
        f"<p>Images present: {len(available)}\n<br />Images used: {len(used_set)}"
        f"\n<br />Original images: {originals}\n</p>"
        f"<h2>Unused images</h2>\n<ul>\n{items}</ul></body></html>"
    )

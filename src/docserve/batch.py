"""Pre-building and batch mode.

Pre-building renders a list of documents (or all of them) before the server
starts serving. In batch mode the process exits after pre-building instead,
with a non-zero status if any built document has broken links, misspelled
words or a structure mismatch, which makes docserve usable as a CI check.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from docserve.models.document import DocumentKey
from docserve.notify import post_to_slack

if TYPE_CHECKING:
    from pathlib import Path

    from docserve.cache import BuildCache
    from docserve.models.document import DiagnosticReport
    from docserve.state import AppState

log = structlog.get_logger()


@dataclass
class BuildSummary:
    requested: list[str]
    built: int = 0
    reports: dict[DocumentKey, DiagnosticReport] = field(default_factory=dict)

    @property
    def failed_documents(self) -> dict[DocumentKey, DiagnosticReport]:
        """Documents failing the batch gate; renderer errors alone do not count."""
        return {
            key: report
            for key, report in self.reports.items()
            if report.broken_links or report.misspelled or report.structure_mismatch is not None
        }


async def _git(docs_dir: Path, *args: str) -> str | None:
    try:
        process = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=docs_dir,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError:
        log.warning("git_unavailable", args=args)
        return None
    stdout, _ = await process.communicate()
    if process.returncode != 0:
        log.warning("git_failed", args=args, returncode=process.returncode)
        return None
    return stdout.decode("utf-8", errors="replace")


async def modified_since(docs_dir: Path, since: str) -> list[str] | None:
    """Files touched by commits since *since* (passed verbatim to ``git log``).

    Returns None if *docs_dir* is not a git checkout.
    """
    commits = await _git(docs_dir, "log", f"--since={since}", "--format=%H")
    if commits is None:
        return None
    files: dict[str, None] = {}
    for commit in commits.split():
        changed = await _git(docs_dir, "diff-tree", "--no-commit-id", "--name-only", "-r", commit)
        for name in (changed or "").splitlines():
            if name.strip():
                files[name.strip()] = None
    log.info("git_modified_files", since=since, commits=len(commits.split()), files=len(files))
    return list(files)


def select_documents(cache: BuildCache, requested: list[str], build_all: bool) -> list[DocumentKey]:
    """Map ``en/foo.asciidoc``-style paths to servable documents."""
    if build_all:
        return sorted(cache.allowed.documents.values(), key=str)
    keys = []
    for path in requested:
        language, _, name = path.strip().lstrip("/").partition("/")
        if not name.endswith(".asciidoc") or "/" in name:
            continue
        key = DocumentKey(language=language, path=name)
        if cache.allowed.is_document(key.served_path):
            keys.append(key)
    return keys


async def prebuild(state: AppState) -> BuildSummary:
    settings = state.settings.build
    requested = list(settings.prebuild)
    if settings.since:
        changed = await modified_since(state.docs_dir, settings.since)
        if changed is not None:
            requested = changed

    summary = BuildSummary(requested=requested)
    if not requested and not settings.build_all:
        return summary

    cache = state.build_cache
    cache.refresh_allowed()
    keys = select_documents(cache, requested, settings.build_all)
    log.info("prebuild_started", documents=len(keys), build_all=settings.build_all)
    started = time.monotonic()
    for key in keys:
        log.info("prebuild_document", document=str(key))
        output = await cache.render(key)
        summary.reports[key] = output.report
        summary.built += 1
    log.info("prebuild_complete", built=summary.built, duration=round(time.monotonic() - started, 1))
    return summary


def error_lines(summary: BuildSummary) -> list[str]:
    lines = [f"+++> ERROR: prebuilding {summary.requested} requested, but errors found!"]
    for key, report in summary.failed_documents.items():
        if report.broken_links:
            links = ", ".join(report.broken_links)
            lines.append(f"+++> {key}: {len(report.broken_links)} broken links found: {links}")
        if report.misspelled:
            words = ", ".join(report.misspelled)
            lines.append(f"+++> {key}: {len(report.misspelled)} misspelled words found: {words}")
        if report.structure_mismatch is not None:
            lines.append(f"+++> {key}: Document structure not matching")
    return lines


async def run_batch(state: AppState) -> int:
    """Pre-build, print the outcome and return the process exit status."""
    settings = state.settings
    try:
        summary = await prebuild(state)

        if summary.failed_documents:
            lines = error_lines(summary)
            status = 1
        elif summary.requested and summary.built < 1:
            lines = [f"+++> ERROR: prebuilding {summary.requested} requested, but nothing was built!"]
            print("\n".join(lines))
            return 1
        else:
            lines = [f"---> INFO: prebuilding {summary.requested} requested, done without issues!"]
            status = 0

        print("\n".join(lines))
        await post_to_slack(
            state.http_client,
            settings.notify,
            failed=status != 0,
            since=settings.build.since,
            lines=lines,
        )
        return status
    finally:
        await state.http_client.aclose()

"""Adapter for the external asciidoctor renderer.

The renderer runs as a subprocess with stderr merged into stdout. Every output
line counts as a renderer error except lines matching the configured benign
pattern (the stylesheet warning asciidoctor prints for ``linkcss`` builds).
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from docserve.errors import DocserveError, ErrorCode

if TYPE_CHECKING:
    from pathlib import Path

    from docserve.config import RendererSettings

log = structlog.get_logger()


@dataclass
class RenderRequest:
    source: Path
    output_dir: Path
    language: str
    menu: bool = False  # render with the index templates instead of the page templates


@dataclass
class RenderResult:
    html: str
    errors: list[str] = field(default_factory=list)


class AsciidoctorRenderer:
    """Implements RendererProtocol by shelling out to asciidoctor."""

    def __init__(self, settings: RendererSettings, styling_dir: Path) -> None:
        self._settings = settings
        self._styling_dir = styling_dir
        self._benign = re.compile(settings.benign_pattern)

    def build_command(self, request: RenderRequest) -> list[str]:
        command = list(self._settings.command)
        if request.menu:
            return [
                *command,
                "-T", str(self._styling_dir / "templates" / "index"),
                "-E", "slim",
                str(request.source),
                "-D", str(request.output_dir),
            ]

        branch = self._settings.branch
        attributes = {
            "toc-title": self._settings.toc_titles.get(request.language, ""),
            "latest": branch,
            "branches": branch,
            "branch": branch,
            "lang": request.language,
            "jsdir": "../../assets/js",
            "linkcss": "true",
            "stylesheet": "checkmk.css",
            "stylesdir": "../../assets/css",
            **self._settings.extra_attributes,
        }
        for name, value in attributes.items():
            command += ["-a", f"{name}={value}"]
        command += ["-a", self._settings.edition]
        return [
            *command,
            "-T", str(self._styling_dir / "templates" / "slim"),
            "-E", "slim",
            "-a", "toc=right",
            str(request.source),
            "-D", str(request.output_dir),
        ]

    async def render(self, request: RenderRequest) -> RenderResult:
        """Render one document and collect the renderer's complaints.

        Raises DocserveError(RENDER_FAILED) if the renderer cannot be started
        or produced no output file.
        """
        argv = self.build_command(request)
        request.output_dir.mkdir(parents=True, exist_ok=True)
        log.info("renderer_started", source=str(request.source), menu=request.menu)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise DocserveError(
                code=ErrorCode.RENDER_FAILED,
                message=f"Could not start renderer {argv[0]!r}: {exc}",
                suggestion="Install asciidoctor or set renderer.command.",
            ) from exc
        stdout, _ = await process.communicate()

        errors = [
            line.strip()
            for line in stdout.decode("utf-8", errors="replace").splitlines()
            if line.strip() and not self._benign.search(line)
        ]
        if process.returncode != 0:
            errors.append(f"{argv[0]} exited with status {process.returncode}")

        output = request.output_dir / f"{request.source.stem}.html"
        try:
            html = output.read_text(encoding="utf-8")
        except OSError as exc:
            raise DocserveError(
                code=ErrorCode.RENDER_FAILED,
                message=f"Renderer produced no output for {request.source.name}",
                suggestion="Fix the problems reported by the renderer.",
                details=tuple(errors),
            ) from exc

        log.info(
            "renderer_finished",
            source=str(request.source),
            returncode=process.returncode,
            errors=len(errors),
        )
        return RenderResult(html=html, errors=errors)

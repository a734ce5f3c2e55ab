#!/usr/bin/env python3
"""
Badge Press
Turns a sheet of rendered event badges (HTML) into one print-ready PDF at exact
physical size, either one page per badge face or as butterfly fold sheets.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from config import BACK_SELECTOR, CAPTURE_SCALE, FRONT_SELECTOR, SEQUENTIAL_SELECTOR
from errors import FinalizeFailure
from layout import PAGE_SIZES, get_page_size
from models import JobResult, PagingMode, ProgressCallback, Template
from utils import badge_pdf_filename

logger = logging.getLogger(__name__)


def load_template(path: str) -> Template:
    """Load a template exported from the template store (camelCase JSON)."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return Template.from_dict(data)


def build_template(page_size: str = "a7", bleed: float = 0.0, background_color: Optional[str] = None) -> Template:
    """Template from a page-size preset, for sheets that come without template JSON."""
    return Template(page_size=get_page_size(page_size), bleed=bleed, background_color=background_color)


class BadgePrinter:
    """Renders one badge sheet to one PDF."""

    def __init__(
        self,
        template: Template,
        mode: PagingMode = PagingMode.SEQUENTIAL,
        context_name: str = "event",
        output_dir: str = "output",
        scale: float = CAPTURE_SCALE,
        front_selector: str = FRONT_SELECTOR,
        back_selector: str = BACK_SELECTOR,
        sequential_selector: str = SEQUENTIAL_SELECTOR,
    ):
        """
        Initialize the printer.

        Args:
            template: Template the sheet was rendered with
            mode: sequential (one page per face) or butterfly (fold sheets)
            context_name: Event or context name used in the output filename
            output_dir: Directory to save the PDF (created on save only)
            scale: Capture oversampling
        """
        self.template = template
        self.mode = PagingMode(mode)
        self.context_name = context_name
        self.output_dir = Path(output_dir)
        self.scale = scale
        self.front_selector = front_selector
        self.back_selector = back_selector
        self.sequential_selector = sequential_selector

    @property
    def filename(self) -> str:
        kind = "butterfly_badges" if self.mode is PagingMode.BUTTERFLY else "badges"
        return badge_pdf_filename(self.context_name, kind, date.today())

    async def render(
        self,
        source: Optional[str] = None,
        html: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> JobResult:
        """Load the sheet, collect its badges and run the job. Returns PDF bytes and summary."""
        # Import the browser layer only when needed (keeps CLI --help and the UI startup fast)
        from browser import open_surface
        from coordinator import BadgeJobRunner
        from models import RenderJob
        from rasterizer import Rasterizer

        async with open_surface(source=source, html=html, device_scale_factor=self.scale) as surface:
            targets = await surface.collect_targets(
                self.template,
                self.mode,
                front_selector=self.front_selector,
                back_selector=self.back_selector,
                sequential_selector=self.sequential_selector,
            )
            logger.info("Found %d badge face(s) on the sheet", len(targets))
            job = RenderJob(targets=targets, mode=self.mode, filename=self.filename, on_progress=on_progress)
            runner = BadgeJobRunner(surface=surface, rasterizer=Rasterizer(scale=self.scale))
            return await runner.run(job)

    def save(self, result: JobResult) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / result.filename
        with open(path, "wb") as f:
            f.write(result.data)
        return path


def _print_progress(percent: int, current: int, total: int) -> None:
    print(f"Rendering badge {current}/{total} ({percent}%)", flush=True)


def main(argv=None) -> int:
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Render a sheet of event badges to a print-ready PDF")
    parser.add_argument("sheet", help="Path or URL of the rendered badge sheet (HTML)")
    parser.add_argument("-t", "--template", help="Template JSON exported from the template store")
    parser.add_argument(
        "-p", "--page-size", default="a7", choices=sorted(PAGE_SIZES), help="Page size preset when no template is given (default: a7)"
    )
    parser.add_argument("-b", "--bleed", type=float, default=0.0, help="Bleed in mm when no template is given (default: 0)")
    parser.add_argument(
        "-m", "--mode", default="sequential", choices=[m.value for m in PagingMode], help="Paging mode (default: sequential)"
    )
    parser.add_argument("-n", "--name", default="event", help="Event/context name for the output filename")
    parser.add_argument("-o", "--output", default="output", help="Output directory (default: output)")
    parser.add_argument("-s", "--scale", type=float, default=CAPTURE_SCALE, help=f"Capture oversampling (default: {CAPTURE_SCALE:g})")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        template = load_template(args.template) if args.template else build_template(args.page_size, args.bleed)
    except (OSError, ValueError, KeyError, TypeError) as e:
        print(f"Error loading template: {e}")
        return 1

    printer = BadgePrinter(template, mode=PagingMode(args.mode), context_name=args.name, output_dir=args.output, scale=args.scale)
    try:
        result = asyncio.run(printer.render(source=args.sheet, on_progress=_print_progress))
    except FinalizeFailure as e:
        print(f"Error generating PDF: {e}")
        return 1
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    path = printer.save(result)
    s = result.summary
    print(f"\nCompleted! {s.pages} page(s) from {s.succeeded}/{s.total} badge face(s) written to '{path}'")
    for failure in s.failures:
        print(f"  skipped {failure.label}: {failure.stage} - {failure.reason}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

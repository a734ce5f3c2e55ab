"""
Job coordinator - drives a badge job from render targets to finished PDF.

Responsibilities:
1. Iterate targets strictly in input order (pairs in butterfly mode)
2. Report progress at the start of each item
3. Isolate per-target failures: log, record, continue
4. Finalize the document; finalize failures are fatal

Progress semantics: the callback fires before work on item i starts, with
percent = round(i / N * 100). A bar therefore reaches 100% while the last
item is still being captured.
"""

from __future__ import annotations

import asyncio
import logging
import math
from enum import Enum
from typing import Any, List, Optional

from assembler import PageAssembler
from compositor import capture_scope, orient
from config import (
    BATCH_PAUSE_S,
    BATCH_SIZE,
    FONT_READY_TIMEOUT_S,
    IMAGE_FORMAT,
    JPEG_QUALITY,
    SETTLE_DELAY_S,
)
from errors import CaptureFailure, ExportFailure, FinalizeFailure, ValidationFailure
from fonts import font_readiness_gate
from layout import BadgeLayout, resolve_job_layout
from models import (
    JobResult,
    JobSummary,
    PagingMode,
    ProgressCallback,
    RasterizedPage,
    RenderJob,
    RenderTarget,
    Side,
    TargetFailure,
)
from rasterizer import Rasterizer
from validator import validate_target

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    IDLE = "idle"
    ITERATING = "iterating"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


def percent_complete(current: int, total: int) -> int:
    """Rounded percentage, halves rounded up."""
    if total <= 0:
        return 0
    return int(math.floor(current * 100 / total + 0.5))


def _failure_stage(error: Exception) -> str:
    if isinstance(error, ValidationFailure):
        return "validation"
    if isinstance(error, CaptureFailure):
        return "capture"
    if isinstance(error, ExportFailure):
        return "export"
    return "compose"


class BadgeJobRunner:
    """Runs one render job at a time on the current event loop."""

    def __init__(
        self,
        surface: Optional[Any] = None,
        rasterizer: Optional[Rasterizer] = None,
        settle_delay: float = SETTLE_DELAY_S,
        batch_size: int = BATCH_SIZE,
        batch_pause: float = BATCH_PAUSE_S,
        font_timeout: float = FONT_READY_TIMEOUT_S,
        image_format: str = IMAGE_FORMAT,
        quality: int = JPEG_QUALITY,
    ):
        self.surface = surface
        self.rasterizer = rasterizer or Rasterizer()
        self.settle_delay = settle_delay
        self.batch_size = max(1, int(batch_size))
        self.batch_pause = batch_pause
        self.font_timeout = font_timeout
        self.image_format = image_format
        self.quality = quality
        self.state = JobState.IDLE

    async def run(self, job: RenderJob) -> JobResult:
        targets = list(job.targets)
        if not targets:
            raise ValueError("No badges to generate")
        mode = PagingMode(job.mode)
        layout = resolve_job_layout(targets, mode)
        total = len(targets)
        summary = JobSummary(total=total)
        assembler = PageAssembler(
            layout,
            title=job.filename.rsplit(".", 1)[0],
            image_format=self.image_format,
            quality=self.quality,
        )

        logger.info(
            "Starting %s job: %d badge face(s), badge %gx%gmm, page %gx%gmm",
            mode.value,
            total,
            layout.badge_width_mm,
            layout.badge_height_mm,
            layout.page_width_mm,
            layout.page_height_mm,
        )
        self.state = JobState.ITERATING
        async with font_readiness_gate(self.surface, self.font_timeout):
            if self.settle_delay > 0:
                await asyncio.sleep(self.settle_delay)
            if mode is PagingMode.BUTTERFLY:
                await self._run_butterfly(job, targets, layout, assembler, summary)
            else:
                await self._run_sequential(job, targets, layout, assembler, summary)

        self.state = JobState.FINALIZING
        summary.pages = assembler.page_count
        try:
            data = assembler.finalize()
        except FinalizeFailure:
            self.state = JobState.FAILED
            logger.error(
                "Finalize failed: %d of %d badge face(s) rendered", summary.succeeded, total
            )
            raise
        self.state = JobState.DONE
        if summary.failed:
            logger.warning(
                "Job finished with %d failed badge face(s) of %d; %d page(s) written",
                summary.failed,
                total,
                summary.pages,
            )
        else:
            logger.info("Job finished: %d badge face(s), %d page(s)", total, summary.pages)
        return JobResult(data=data, filename=job.filename, summary=summary)

    async def _run_sequential(
        self,
        job: RenderJob,
        targets: List[RenderTarget],
        layout: BadgeLayout,
        assembler: PageAssembler,
        summary: JobSummary,
    ) -> None:
        for i in range(len(targets)):
            page = await self._render(job, targets, i, layout, summary)
            if page is None:
                continue
            try:
                assembler.add_page(page)
            except Exception as e:
                self._record(summary, targets[i], i, e)
                continue
            summary.succeeded += 1

    async def _run_butterfly(
        self,
        job: RenderJob,
        targets: List[RenderTarget],
        layout: BadgeLayout,
        assembler: PageAssembler,
        summary: JobSummary,
    ) -> None:
        i = 0
        while i < len(targets):
            # a pair is a front followed by a back; unmatched faces get a page of their own
            indices = [i]
            if targets[i].side is Side.FRONT and i + 1 < len(targets) and targets[i + 1].side is Side.BACK:
                indices.append(i + 1)
            i += len(indices)

            halves = {Side.FRONT: None, Side.BACK: None}
            for index in indices:
                halves[targets[index].side] = await self._render(job, targets, index, layout, summary)
            front, back = halves[Side.FRONT], halves[Side.BACK]
            if front is None and back is None:
                continue
            try:
                assembler.add_pair(front, back)
            except Exception as e:
                for index in indices:
                    if halves[targets[index].side] is not None:
                        self._record(summary, targets[index], index, e)
                continue
            summary.succeeded += int(front is not None) + int(back is not None)

    async def _render(
        self,
        job: RenderJob,
        targets: List[RenderTarget],
        index: int,
        layout: BadgeLayout,
        summary: JobSummary,
    ) -> Optional[RasterizedPage]:
        """Validate, capture and orient one target. Never raises for per-target problems."""
        target = targets[index]
        total = len(targets)
        current = index + 1
        if index and index % self.batch_size == 0:
            # let the host loop breathe between batches
            await asyncio.sleep(self.batch_pause)
        self._report_progress(job.on_progress, current, total)
        label = target.label or f"{current}-{target.side.value}"
        logger.debug("Processing badge %d/%d (%s)", current, total, label)

        try:
            state = await validate_target(target)
            async with capture_scope(target.element, target.side):
                image, source = await self.rasterizer.rasterize(
                    target.element,
                    state,
                    background=target.template.background_color,
                )
            page = RasterizedPage(
                image=image,
                width_mm=layout.badge_width_mm,
                height_mm=layout.badge_height_mm,
                label=label,
                source=source,
            )
            return orient(page, target.side, layout.mode)
        except Exception as e:
            self._record(summary, target, index, e)
            return None

    @staticmethod
    def _report_progress(callback: Optional[ProgressCallback], current: int, total: int) -> None:
        if callback is not None:
            callback(percent_complete(current, total), current, total)

    @staticmethod
    def _record(summary: JobSummary, target: RenderTarget, index: int, error: Exception) -> None:
        stage = _failure_stage(error)
        label = target.label or f"{index + 1}-{target.side.value}"
        logger.error("Badge %s skipped (%s): %s", label, stage, error)
        summary.failed += 1
        summary.failures.append(
            TargetFailure(index=index, label=label, side=target.side, stage=stage, reason=str(error))
        )


async def generate_badges_pdf(
    targets: List[RenderTarget],
    filename: str = "badges.pdf",
    mode: PagingMode = PagingMode.SEQUENTIAL,
    on_progress: Optional[ProgressCallback] = None,
    surface: Optional[Any] = None,
    **runner_options: Any,
) -> JobResult:
    """Build a job from targets and run it to completion."""
    job = RenderJob(targets=list(targets), mode=PagingMode(mode), filename=filename, on_progress=on_progress)
    return await BadgeJobRunner(surface=surface, **runner_options).run(job)


async def generate_single_badge_pdf(
    target: RenderTarget,
    filename: str = "badge.pdf",
    surface: Optional[Any] = None,
    **runner_options: Any,
) -> JobResult:
    """One badge face as a one-page PDF, for single downloads."""
    return await generate_badges_pdf(
        [target], filename=filename, mode=PagingMode.SEQUENTIAL, surface=surface, **runner_options
    )

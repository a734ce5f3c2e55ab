"""
Font readiness gate.

Captures must not start while web fonts are still loading, otherwise the
fallback glyphs end up baked into the raster. The gate waits once per job for
the surface's "fonts ready" signal (best effort, bounded by a timeout) and, for
the lifetime of the job, switches swap-on-load font stylesheets to
block-until-loaded.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from config import FONT_READY_TIMEOUT_S

logger = logging.getLogger(__name__)


async def wait_for_fonts(surface: Any, timeout: float = FONT_READY_TIMEOUT_S) -> bool:
    """Return True when fonts reported ready in time, False otherwise. Never raises."""
    try:
        await asyncio.wait_for(surface.fonts_ready(), timeout=timeout)
        return True
    except asyncio.TimeoutError:
        logger.warning("Fonts not ready after %.1fs; capturing with fallback glyphs", timeout)
    except Exception as e:
        logger.warning("Font readiness signal unavailable (%s); continuing", e)
    return False


@asynccontextmanager
async def font_display_override(surface: Any, value: str = "block") -> AsyncIterator[int]:
    """Force font-display for the duration of the block, restoring it on exit."""
    try:
        changed = await surface.force_font_display(value)
    except Exception as e:
        logger.warning("Could not force font-display=%s (%s); continuing", value, e)
        changed = 0
    if changed:
        logger.info("Forced font-display=%s on %d stylesheet(s)", value, changed)
    try:
        yield changed
    finally:
        if changed:
            await surface.restore_font_display()


@asynccontextmanager
async def font_readiness_gate(
    surface: Optional[Any],
    timeout: float = FONT_READY_TIMEOUT_S,
) -> AsyncIterator[bool]:
    """Job-scoped gate: override font-display, then wait for fonts. Yields readiness."""
    if surface is None:
        yield False
        return
    async with font_display_override(surface, "block"):
        ready = await wait_for_fonts(surface, timeout)
        yield ready

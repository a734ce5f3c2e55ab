"""
Orientation compositor.

Back faces are shown through an interactive 3-D flip on screen. Capturing the
live node would produce a mirrored raster, so the surface is asked for the
back face "shown, untransformed" for exactly the duration of the capture.
In butterfly mode the back raster is then rotated 180 degrees so it reads
right-side-up once the sheet is folded along its horizontal midline.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from PIL import Image

from models import PagingMode, RasterizedPage, Side

logger = logging.getLogger(__name__)


@asynccontextmanager
async def capture_scope(element: Any, side: Side) -> AsyncIterator[None]:
    """Mark the element as the in-flight target; back faces are also untransformed."""
    untransformed = side is Side.BACK
    await element.acquire_scope(untransformed=untransformed)
    try:
        yield
    finally:
        await element.release_scope()


def rotate_180(image: "Image.Image") -> "Image.Image":
    # Exact pixel transpose; no resampling, so two rotations restore the original.
    return image.transpose(Image.Transpose.ROTATE_180)


def orient(page: RasterizedPage, side: Side, mode: PagingMode) -> RasterizedPage:
    """Rotate back faces for fold printing; everything else passes through."""
    if side is not Side.BACK or mode is not PagingMode.BUTTERFLY:
        return page
    page.image = rotate_180(page.image)
    page.rotated = not page.rotated
    page.source = None
    logger.debug("Rotated %s 180 degrees for fold printing", page.label)
    return page

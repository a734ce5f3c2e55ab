"""
Rasterizer - turns one rendered badge element into a fixed-resolution image.

Capture runs down a two-tier ladder:

- Tier 1 (high fidelity): full oversampling, cross-origin images allowed,
  foreign (SVG foreignObject) content rendered, literal background, and the
  style-hardening rules applied to the in-flight node.
- Tier 2 (compatibility): lower oversampling, foreign content disabled,
  cross-origin fetches blocked and external font stylesheets stripped.

Before capturing, the element is probed; when the probe already shows images
that would taint a tier 1 capture, tier 1 is skipped instead of being tried
and failing. The exported buffer is read directly when possible and through
the asynchronous blob export otherwise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Any, List, Optional, Tuple

from PIL import Image, ImageColor

from config import BACKGROUND_FALLBACK, CAPTURE_SCALE, FALLBACK_SCALE, IMAGE_FORMAT, JPEG_QUALITY
from errors import CaptureFailure, ExportFailure, TaintedBufferError
from models import CaptureCapabilities, ElementState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureStrategy:
    name: str
    scale: float
    allow_cross_origin: bool
    foreign_content: bool
    harden_styles: bool
    strip_font_stylesheets: bool
    background: str = BACKGROUND_FALLBACK


def high_fidelity_strategy(scale: float = CAPTURE_SCALE, background: str = BACKGROUND_FALLBACK) -> CaptureStrategy:
    return CaptureStrategy(
        name="high-fidelity",
        scale=scale,
        allow_cross_origin=True,
        foreign_content=True,
        harden_styles=True,
        strip_font_stylesheets=False,
        background=background,
    )


def compatibility_strategy(scale: float = FALLBACK_SCALE, background: str = BACKGROUND_FALLBACK) -> CaptureStrategy:
    return CaptureStrategy(
        name="compatibility",
        scale=scale,
        allow_cross_origin=False,
        foreign_content=False,
        harden_styles=True,
        strip_font_stylesheets=True,
        background=background,
    )


def parse_color(value: Optional[str], default: str = BACKGROUND_FALLBACK) -> Tuple[int, int, int]:
    """CSS-ish color string to an RGB tuple. Unparseable values fall back to the default."""
    for candidate in (value, default, BACKGROUND_FALLBACK):
        if not candidate:
            continue
        try:
            return ImageColor.getrgb(str(candidate).strip())[:3]
        except ValueError:
            continue
    return (255, 255, 255)


def flatten(image: "Image.Image", background: str) -> "Image.Image":
    """Composite any transparency onto an opaque background, returning an RGB image."""
    if image.mode == "RGB":
        return image
    rgba = image.convert("RGBA")
    base = Image.new("RGBA", rgba.size, parse_color(background) + (255,))
    return Image.alpha_composite(base, rgba).convert("RGB")


def encode_image(
    image: "Image.Image",
    image_format: str = IMAGE_FORMAT,
    quality: int = JPEG_QUALITY,
    source: Optional[bytes] = None,
) -> bytes:
    """
    Encode a raster for embedding.

    JPEG keeps print fidelity at a fraction of the PNG size. When the lossless
    format is requested and an untouched PNG capture is available it is
    embedded as-is.
    """
    fmt = image_format.upper()
    if fmt == "PNG" and source is not None:
        return source
    buf = BytesIO()
    if fmt == "PNG":
        image.save(buf, format="PNG")
    else:
        image.convert("RGB").save(buf, format="JPEG", quality=int(quality))
    return buf.getvalue()


class Rasterizer:
    """Runs the capture ladder and export for a single element at a time."""

    def __init__(
        self,
        scale: float = CAPTURE_SCALE,
        fallback_scale: float = FALLBACK_SCALE,
        background: str = BACKGROUND_FALLBACK,
    ):
        self.scale = scale
        self.fallback_scale = min(fallback_scale, scale)
        self.background = background

    def select_strategies(
        self,
        capabilities: CaptureCapabilities,
        background: Optional[str] = None,
    ) -> List[CaptureStrategy]:
        """Ordered ladder for an element with the probed capabilities."""
        bg = background or self.background
        tier1 = high_fidelity_strategy(self.scale, bg)
        tier2 = compatibility_strategy(self.fallback_scale, bg)
        if capabilities.tainting_images:
            logger.info(
                "%d image(s) would taint a high-fidelity capture; using %s tier",
                capabilities.tainting_images,
                tier2.name,
            )
            return [tier2]
        return [tier1, tier2]

    async def rasterize(
        self,
        element: Any,
        state: ElementState,
        background: Optional[str] = None,
    ) -> Tuple["Image.Image", Optional[bytes]]:
        """
        Capture and export one element.

        Returns the RGB image sized to the element box times the strategy
        scale, plus the untouched lossless capture bytes when they are still
        valid for that image.
        """
        try:
            capabilities = await element.probe()
        except Exception as e:
            logger.warning("Capability probe failed (%s); assuming defaults", e)
            capabilities = CaptureCapabilities()

        buffer = None
        strategy = None
        errors = []
        for strategy in self.select_strategies(capabilities, background):
            try:
                buffer = await element.capture(strategy)
                break
            except Exception as e:
                errors.append(f"{strategy.name}: {e}")
                logger.warning("Capture failed at %s tier: %s", strategy.name, e)
        if buffer is None or strategy is None:
            raise CaptureFailure("All capture tiers failed (" + "; ".join(errors) + ")")

        image, source = await self.export(buffer)
        return self._normalize(image, source, state, strategy)

    async def export(self, buffer: Any) -> Tuple["Image.Image", Optional[bytes]]:
        """Direct pixel read first; blob export when the buffer is tainted or unreadable."""
        try:
            image = buffer.read_pixels()
            return image, getattr(buffer, "png_bytes", None)
        except (TaintedBufferError, OSError, ValueError) as e:
            logger.warning("Direct pixel read failed (%s); using blob export", e)

        try:
            blob = await buffer.export_blob()
            image = Image.open(BytesIO(blob))
            image.load()
        except Exception as e:
            raise ExportFailure(f"Blob export failed: {e}") from e
        return image, blob if image.format == "PNG" else None

    def _normalize(
        self,
        image: "Image.Image",
        source: Optional[bytes],
        state: ElementState,
        strategy: CaptureStrategy,
    ) -> Tuple["Image.Image", Optional[bytes]]:
        target_size = (
            max(1, int(round(state.width * strategy.scale))),
            max(1, int(round(state.height * strategy.scale))),
        )
        out = image
        if out.mode != "RGB":
            out = flatten(out, strategy.background)
            source = None
        if out.size != target_size:
            out = out.resize(target_size, Image.Resampling.LANCZOS)
            source = None
        return out, source

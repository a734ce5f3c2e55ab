"""Page assembly: rasterized badge faces into one PDF at physical size."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional

from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from config import IMAGE_FORMAT, JPEG_QUALITY
from errors import EmptyDocumentError, FinalizeFailure
from layout import BadgeLayout
from models import RasterizedPage
from rasterizer import encode_image

logger = logging.getLogger(__name__)


@dataclass
class DocumentPage:
    width_mm: float
    height_mm: float
    top: Optional[str] = None
    bottom: Optional[str] = None
    bottom_rotated: bool = False


class PageAssembler:
    """
    Accumulates rasterized faces into a reportlab canvas.

    The canvas is created lazily by the first page, which fixes the page size
    for the whole document. Each added page is closed right away, so the
    canvas never holds more than one page in progress.
    """

    def __init__(
        self,
        layout: BadgeLayout,
        title: str = "",
        image_format: str = IMAGE_FORMAT,
        quality: int = JPEG_QUALITY,
    ):
        self.layout = layout
        self.title = title
        self.image_format = image_format
        self.quality = quality
        self.pages: List[DocumentPage] = []
        self._buf = BytesIO()
        self._canvas: Optional[canvas.Canvas] = None
        self._page_w_mm = layout.page_width_mm
        self._page_h_mm = layout.page_height_mm

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def _ensure_canvas(self) -> canvas.Canvas:
        if self._canvas is None:
            c = canvas.Canvas(self._buf, pagesize=(self._page_w_mm * mm, self._page_h_mm * mm))
            if self.title:
                c.setTitle(self.title)
            c.setAuthor("badge-press")
            self._canvas = c
            logger.info(
                "Document page size %gx%gmm (%s, %s)",
                self._page_w_mm,
                self._page_h_mm,
                self.layout.mode.value,
                self.layout.orientation,
            )
        return self._canvas

    def _encode(self, page: RasterizedPage) -> bytes:
        return encode_image(page.image, self.image_format, self.quality, source=page.source)

    def _draw(self, data: bytes, x_mm: float, y_mm: float, w_mm: float, h_mm: float) -> None:
        self._ensure_canvas().drawImage(
            ImageReader(BytesIO(data)),
            x_mm * mm,
            y_mm * mm,
            width=w_mm * mm,
            height=h_mm * mm,
        )

    def add_page(self, page: RasterizedPage) -> None:
        """Sequential layout: one face fills one page at exact badge size."""
        data = self._encode(page)
        if self.pages and (page.width_mm, page.height_mm) != (self._page_w_mm, self._page_h_mm):
            logger.warning(
                "Badge %s is %gx%gmm; drawing into the document's %gx%gmm page",
                page.label,
                page.width_mm,
                page.height_mm,
                self._page_w_mm,
                self._page_h_mm,
            )
        elif not self.pages:
            self._page_w_mm, self._page_h_mm = page.width_mm, page.height_mm
        self._draw(data, 0, 0, self._page_w_mm, self._page_h_mm)
        self._ensure_canvas().showPage()
        self.pages.append(DocumentPage(self._page_w_mm, self._page_h_mm, top=page.label))

    def add_pair(self, front: Optional[RasterizedPage], back: Optional[RasterizedPage]) -> bool:
        """
        Butterfly layout: front on the top half, rotated back on the bottom half.

        Either half may be missing; a pair with neither emits nothing.
        Returns True when a page was emitted.
        """
        if front is None and back is None:
            return False
        badge_w = self.layout.badge_width_mm
        badge_h = self.layout.badge_height_mm
        # encode both halves before drawing so a failed half leaves no partial page
        front_data = self._encode(front) if front is not None else None
        back_data = self._encode(back) if back is not None else None
        # reportlab's origin is bottom-left: the top half starts at badge_h
        if front_data is not None:
            self._draw(front_data, 0, badge_h, badge_w, badge_h)
        if back_data is not None:
            self._draw(back_data, 0, 0, badge_w, badge_h)
        self._ensure_canvas().showPage()
        self.pages.append(
            DocumentPage(
                self._page_w_mm,
                self._page_h_mm,
                top=front.label if front is not None else None,
                bottom=back.label if back is not None else None,
                bottom_rotated=bool(back is not None and back.rotated),
            )
        )
        return True

    def finalize(self) -> bytes:
        """Encode the document. Raises EmptyDocumentError when no page was added."""
        if not self.pages or self._canvas is None:
            raise EmptyDocumentError("No badges could be rendered; the document would be empty")
        try:
            self._canvas.save()
        except Exception as e:
            raise FinalizeFailure(f"Failed to save PDF: {e}") from e
        data = self._buf.getvalue()
        logger.info("Finalized PDF: %d page(s), %d bytes", len(self.pages), len(data))
        return data


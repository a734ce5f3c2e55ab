"""Physical page dimensions for badge documents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from reportlab.lib.units import mm

from models import PageSize, PagingMode, RenderTarget, Template

# ISO presets offered by the template editor
PAGE_SIZES = {
    "a7": PageSize(width=74, height=105, id="a7", name="A7"),
    "a6": PageSize(width=105, height=148, id="a6", name="A6"),
    "a5": PageSize(width=148, height=210, id="a5", name="A5"),
    "custom_badge": PageSize(width=89, height=108, id="custom_badge", name='Badge (3.5" x 4.25")'),
}
DEFAULT_PAGE_SIZE = PAGE_SIZES["a7"]


def get_page_size(key: str) -> PageSize:
    try:
        return PAGE_SIZES[key.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown page size '{key}'. Choose one of: {', '.join(PAGE_SIZES)}") from None


@dataclass(frozen=True)
class BadgeLayout:
    badge_width_mm: float
    badge_height_mm: float
    mode: PagingMode = PagingMode.SEQUENTIAL

    @property
    def orientation(self) -> str:
        return "landscape" if self.badge_width_mm > self.badge_height_mm else "portrait"

    @property
    def page_width_mm(self) -> float:
        return self.badge_width_mm

    @property
    def page_height_mm(self) -> float:
        # Butterfly sheets hold front and back stacked, folded along the midline
        if self.mode is PagingMode.BUTTERFLY:
            return self.badge_height_mm * 2
        return self.badge_height_mm

    @property
    def page_size_points(self) -> Tuple[float, float]:
        return (self.page_width_mm * mm, self.page_height_mm * mm)


def resolve_layout(template: Template, mode: PagingMode = PagingMode.SEQUENTIAL) -> BadgeLayout:
    """Badge size is the template page size plus bleed on every edge."""
    bleed = template.bleed or 0
    return BadgeLayout(
        badge_width_mm=template.page_size.width + bleed * 2,
        badge_height_mm=template.page_size.height + bleed * 2,
        mode=PagingMode(mode),
    )


def resolve_job_layout(targets: Iterable[RenderTarget], mode: PagingMode) -> BadgeLayout:
    """
    Resolve one layout for a whole job.

    Raises ValueError when there are no targets or when templates disagree on
    the physical badge size (one document is one template).
    """
    layout = None
    for t in targets:
        current = resolve_layout(t.template, mode)
        if layout is None:
            layout = current
        elif (current.badge_width_mm, current.badge_height_mm) != (layout.badge_width_mm, layout.badge_height_mm):
            raise ValueError(
                "Mixed badge sizes in one document are not supported: "
                f"{layout.badge_width_mm:g}x{layout.badge_height_mm:g}mm vs "
                f"{current.badge_width_mm:g}x{current.badge_height_mm:g}mm"
            )
    if layout is None:
        raise ValueError("No badges to generate")
    return layout

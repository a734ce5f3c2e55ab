"""
Data model for badge rendering jobs.

Templates arrive as the camelCase JSON the template store emits; everything
else is built in-process right before a job starts and discarded after it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

ProgressCallback = Callable[[int, int, int], None]


class Side(str, Enum):
    FRONT = "front"
    BACK = "back"


class PagingMode(str, Enum):
    SEQUENTIAL = "sequential"
    BUTTERFLY = "butterfly"


@dataclass
class PageSize:
    width: float  # mm
    height: float  # mm
    id: str = "custom"
    name: str = ""
    css_width: str = ""
    css_height: str = ""

    def __post_init__(self) -> None:
        if not self.css_width:
            self.css_width = f"{self.width:g}mm"
        if not self.css_height:
            self.css_height = f"{self.height:g}mm"


@dataclass
class QRCodeSettings:
    show_on_front: bool = True
    show_on_back: bool = False
    x: float = 50.0  # percent of badge width
    y: float = 80.0  # percent of badge height
    size: float = 20.0  # mm


@dataclass
class Template:
    page_size: PageSize
    bleed: float = 0.0
    id: str = ""
    name: str = ""
    background_color: Optional[str] = None
    background_image: Optional[str] = None
    name_color: str = "#111827"
    name_font_size: int = 24
    display_fields: List[str] = field(default_factory=list)
    qr_code: Optional[QRCodeSettings] = None

    def __post_init__(self) -> None:
        if self.page_size.width <= 0 or self.page_size.height <= 0:
            raise ValueError(
                f"Template page size must be positive, got "
                f"{self.page_size.width}x{self.page_size.height}mm"
            )
        if self.bleed < 0:
            raise ValueError(f"Template bleed must be >= 0, got {self.bleed}mm")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Template":
        """
        Build a template from the template store's JSON.

        Accepts the camelCase keys used by the store (pageSize, backgroundColor,
        qrCode, ...). Missing optional keys fall back to the dataclass defaults.
        """
        ps = data.get("pageSize") or data.get("page_size")
        if not ps:
            raise ValueError("Template is missing 'pageSize'.")
        page_size = PageSize(
            width=float(ps["width"]),
            height=float(ps["height"]),
            id=str(ps.get("id", "custom")),
            name=str(ps.get("name", "")),
            css_width=str(ps.get("cssWidth", "")),
            css_height=str(ps.get("cssHeight", "")),
        )
        qr = data.get("qrCode")
        qr_settings = None
        if qr:
            pos = qr.get("position") or {}
            qr_settings = QRCodeSettings(
                show_on_front=bool(qr.get("showOnFront", True)),
                show_on_back=bool(qr.get("showOnBack", False)),
                x=float(pos.get("x", 50)),
                y=float(pos.get("y", 80)),
                size=float(qr.get("size", 20)),
            )
        return cls(
            page_size=page_size,
            bleed=float(data.get("bleed") or 0),
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            background_color=data.get("backgroundColor"),
            background_image=data.get("backgroundImage"),
            name_color=data.get("nameColor") or "#111827",
            name_font_size=int(data.get("nameFontSize") or 24),
            display_fields=list(data.get("displayFields") or []),
            qr_code=qr_settings,
        )


@dataclass
class RenderTarget:
    element: Any
    side: Side
    template: Template
    label: str = ""


@dataclass
class RenderJob:
    targets: List[RenderTarget]
    mode: PagingMode = PagingMode.SEQUENTIAL
    filename: str = "badges.pdf"
    on_progress: Optional[ProgressCallback] = None


@dataclass
class ElementState:
    """Measured state of a render target, in CSS pixels."""

    width: float
    height: float
    hidden: bool = False
    text_length: int = 0
    visible_children: int = 0


@dataclass
class CaptureCapabilities:
    cross_origin_images: int = 0
    tainting_images: int = 0  # cross-origin without CORS; these poison a tier 1 capture
    font_stylesheets: int = 0
    foreign_content: bool = False


@dataclass
class RasterizedPage:
    image: Any  # PIL.Image.Image
    width_mm: float
    height_mm: float
    rotated: bool = False
    label: str = ""
    source: Optional[bytes] = None  # untouched lossless capture, if any


@dataclass
class TargetFailure:
    index: int
    label: str
    side: Side
    stage: str
    reason: str


@dataclass
class JobSummary:
    total: int
    succeeded: int = 0
    failed: int = 0
    pages: int = 0
    failures: List[TargetFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0


@dataclass
class JobResult:
    data: bytes
    filename: str
    summary: JobSummary

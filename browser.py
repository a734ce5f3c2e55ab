"""
Rendering surface backed by Playwright (Chromium).

Loads a sheet of already-rendered badges, hands out element handles that the
pipeline can measure, probe, scope and capture, and owns the one shared
mutable resource of a job: the page's style sheet. All capture overrides live
in a single stylesheet installed once per page whose rules only match nodes
carrying the in-flight marker attributes.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from io import BytesIO
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import urlparse

from PIL import Image
from playwright.async_api import async_playwright

from config import (
    BACK_SELECTOR,
    CAPTURE_SCALE,
    CAPTURE_TIMEOUT_MS,
    CARD_SELECTOR,
    FLIP_SELECTORS,
    FONT_STYLESHEET_HOSTS,
    FRONT_SELECTOR,
    HARDENING_RULES,
    SEQUENTIAL_SELECTOR,
)
from models import CaptureCapabilities, ElementState, PagingMode, RenderTarget, Side, Template

logger = logging.getLogger(__name__)

CAPTURE_MARKER = "data-badge-capture"
HARDEN_MARKER = "data-badge-harden"
NO_FOREIGN_MARKER = "data-badge-no-foreign"
UNTRANSFORMED_MARKER = "data-badge-untransformed"

_MEASURE_JS = """
el => {
  const cs = getComputedStyle(el);
  let visible = 0;
  for (const child of el.querySelectorAll('*')) {
    const box = child.getBoundingClientRect();
    if (box.width > 0 && box.height > 0) visible++;
  }
  return {
    width: el.offsetWidth,
    height: el.offsetHeight,
    hidden: cs.display === 'none' || cs.visibility === 'hidden' || el.getClientRects().length === 0,
    textLength: (el.innerText || '').trim().length,
    visibleChildren: visible,
  };
}
"""

_PROBE_JS = """
(el, hosts) => {
  const origin = location.origin;
  let crossOrigin = 0, tainting = 0;
  for (const img of el.querySelectorAll('img')) {
    let url;
    try { url = new URL(img.currentSrc || img.src, location.href); } catch (e) { continue; }
    if (!url.protocol.startsWith('http') || url.origin === origin) continue;
    crossOrigin++;
    if (!img.crossOrigin) tainting++;
  }
  const fontSheets = [...document.querySelectorAll('link[rel="stylesheet"]')]
    .filter(link => hosts.some(h => (link.href || '').includes(h))).length;
  return {
    crossOrigin: crossOrigin,
    tainting: tainting,
    fontStylesheets: fontSheets,
    foreignContent: !!el.querySelector('foreignObject'),
  };
}
"""

_ACQUIRE_JS = """
(el, args) => {
  el.setAttribute(args.marker, '');
  if (!args.untransformed) return 0;
  let n = 0;
  for (let node = el; node; node = node.parentElement) {
    if (args.selectors.some(s => node.matches(s))) {
      node.setAttribute(args.untransformedMarker, '');
      n++;
    }
  }
  return n;
}
"""

_RELEASE_JS = """
(el, markers) => {
  for (const m of markers) {
    el.removeAttribute(m);
    document.querySelectorAll('[' + m + ']').forEach(node => node.removeAttribute(m));
  }
}
"""

_FORCE_FONT_DISPLAY_JS = """
value => {
  let n = 0;
  document.querySelectorAll('link[rel="stylesheet"][href*="display=swap"]').forEach(link => {
    const href = link.getAttribute('href');
    link.setAttribute('data-badge-href', href);
    link.setAttribute('href', href.replace('display=swap', 'display=' + value));
    n++;
  });
  return n;
}
"""

_RESTORE_FONT_DISPLAY_JS = """
() => {
  document.querySelectorAll('link[data-badge-href]').forEach(link => {
    link.setAttribute('href', link.getAttribute('data-badge-href'));
    link.removeAttribute('data-badge-href');
  });
}
"""

_PAIRED_BACK_JS = """
(el, args) => {
  const card = el.closest(args.card);
  return card ? card.querySelector(args.back) : null;
}
"""

_TOGGLE_FONT_SHEETS_JS = """
(args) => {
  let n = 0;
  document.querySelectorAll('link[rel="stylesheet"]').forEach(link => {
    if (args.hosts.some(h => (link.href || '').includes(h))) {
      link.disabled = args.disabled;
      n++;
    }
  });
  return n;
}
"""


def _important(declarations: str) -> str:
    parts = [d.strip() for d in declarations.split(";") if d.strip()]
    return " ".join(f"{d} !important;" for d in parts)


def build_capture_css(rules: Optional[Dict[str, str]] = None) -> str:
    """Stylesheet whose rules only apply to nodes marked for the in-flight capture."""
    rules = HARDENING_RULES if rules is None else rules
    lines = []
    for suffix, declarations in rules.items():
        lines.append(f"[{CAPTURE_MARKER}][{HARDEN_MARKER}]{suffix} {{ {_important(declarations)} }}")
    lines.append(f"[{UNTRANSFORMED_MARKER}] {{ transform: none !important; }}")
    lines.append(f"[{CAPTURE_MARKER}][{NO_FOREIGN_MARKER}] foreignObject {{ display: none !important; }}")
    return "\n".join(lines)


def state_from_js(data: Dict[str, Any]) -> ElementState:
    return ElementState(
        width=float(data.get("width") or 0),
        height=float(data.get("height") or 0),
        hidden=bool(data.get("hidden")),
        text_length=int(data.get("textLength") or 0),
        visible_children=int(data.get("visibleChildren") or 0),
    )


def capabilities_from_js(data: Dict[str, Any]) -> CaptureCapabilities:
    return CaptureCapabilities(
        cross_origin_images=int(data.get("crossOrigin") or 0),
        tainting_images=int(data.get("tainting") or 0),
        font_stylesheets=int(data.get("fontStylesheets") or 0),
        foreign_content=bool(data.get("foreignContent")),
    )


def _origin(url: str) -> str:
    p = urlparse(url)
    return f"{p.scheme}://{p.netloc}" if p.netloc else ""


class ScreenshotBuffer:
    """PNG bytes from an element screenshot."""

    def __init__(self, png_bytes: bytes):
        self.png_bytes = png_bytes

    def read_pixels(self) -> "Image.Image":
        image = Image.open(BytesIO(self.png_bytes))
        image.load()
        return image

    async def export_blob(self) -> bytes:
        return self.png_bytes


class PlaywrightBadgeElement:
    """Element handle adapter used by the validator, compositor and rasterizer."""

    def __init__(self, surface: "PlaywrightSurface", handle: Any):
        self.surface = surface
        self.handle = handle

    async def measure(self) -> ElementState:
        return state_from_js(await self.handle.evaluate(_MEASURE_JS))

    async def probe(self) -> CaptureCapabilities:
        return capabilities_from_js(await self.handle.evaluate(_PROBE_JS, list(FONT_STYLESHEET_HOSTS)))

    async def acquire_scope(self, untransformed: bool = False) -> None:
        n = await self.handle.evaluate(
            _ACQUIRE_JS,
            {
                "marker": CAPTURE_MARKER,
                "untransformed": untransformed,
                "selectors": list(FLIP_SELECTORS),
                "untransformedMarker": UNTRANSFORMED_MARKER,
            },
        )
        if untransformed:
            logger.debug("Flip transform neutralized on %d node(s)", n)

    async def release_scope(self) -> None:
        await self.handle.evaluate(
            _RELEASE_JS,
            [CAPTURE_MARKER, HARDEN_MARKER, NO_FOREIGN_MARKER, UNTRANSFORMED_MARKER],
        )

    async def capture(self, strategy: Any) -> ScreenshotBuffer:
        flags = []
        if strategy.harden_styles:
            flags.append(HARDEN_MARKER)
        if not strategy.foreign_content:
            flags.append(NO_FOREIGN_MARKER)
        await self.handle.evaluate("(el, flags) => flags.forEach(f => el.setAttribute(f, ''))", flags)
        stripped = 0
        blocking = False
        try:
            if strategy.strip_font_stylesheets:
                stripped = await self.surface.toggle_font_stylesheets(disabled=True)
            if not strategy.allow_cross_origin:
                await self.surface.block_cross_origin()
                blocking = True
            png = await self.handle.screenshot(
                type="png",
                omit_background=True,
                animations="disabled",
                scale="device",
                timeout=CAPTURE_TIMEOUT_MS,
            )
        finally:
            if blocking:
                await self.surface.allow_cross_origin()
            if stripped:
                await self.surface.toggle_font_stylesheets(disabled=False)
            await self.handle.evaluate("(el, flags) => flags.forEach(f => el.removeAttribute(f))", flags)
        return ScreenshotBuffer(png)


class PlaywrightSurface:
    """A loaded badge sheet in a Playwright page."""

    def __init__(self, page: Any):
        self.page = page
        self._installed = False

    async def install(self) -> None:
        if not self._installed:
            await self.page.add_style_tag(content=build_capture_css())
            self._installed = True

    async def fonts_ready(self) -> None:
        await self.page.evaluate("() => document.fonts ? document.fonts.ready.then(() => true) : true")

    async def force_font_display(self, value: str = "block") -> int:
        return await self.page.evaluate(_FORCE_FONT_DISPLAY_JS, value)

    async def restore_font_display(self) -> None:
        await self.page.evaluate(_RESTORE_FONT_DISPLAY_JS)

    async def toggle_font_stylesheets(self, disabled: bool) -> int:
        return await self.page.evaluate(
            _TOGGLE_FONT_SHEETS_JS, {"hosts": list(FONT_STYLESHEET_HOSTS), "disabled": disabled}
        )

    async def _route_cross_origin(self, route: Any) -> None:
        url = route.request.url
        if url.startswith("http") and _origin(url) != _origin(self.page.url):
            await route.abort()
        else:
            await route.continue_()

    async def block_cross_origin(self) -> None:
        await self.page.route("**/*", self._route_cross_origin)

    async def allow_cross_origin(self) -> None:
        await self.page.unroute("**/*", self._route_cross_origin)

    async def _elements(self, selector: str) -> List[PlaywrightBadgeElement]:
        handles = await self.page.query_selector_all(selector)
        return [PlaywrightBadgeElement(self, h) for h in handles]

    async def _paired_back(
        self,
        front: PlaywrightBadgeElement,
        back_selector: str,
        card_selector: str,
    ) -> Optional[PlaywrightBadgeElement]:
        """The back face inside the same card container as `front`, if any."""
        result = await front.handle.evaluate_handle(
            _PAIRED_BACK_JS, {"card": card_selector, "back": back_selector}
        )
        handle = result.as_element()
        if handle is None:
            await result.dispose()
            return None
        return PlaywrightBadgeElement(self, handle)

    async def collect_targets(
        self,
        template: Template,
        mode: PagingMode = PagingMode.SEQUENTIAL,
        front_selector: str = FRONT_SELECTOR,
        back_selector: str = BACK_SELECTOR,
        sequential_selector: str = SEQUENTIAL_SELECTOR,
        card_selector: str = CARD_SELECTOR,
    ) -> List[RenderTarget]:
        """
        Render targets in document order.

        Butterfly mode emits each front followed by the back from the same
        card container; a card without a back contributes its front only.
        Sequential mode takes every node matching the sequential selector;
        nodes inside a flip back face are treated as back faces.
        """
        if PagingMode(mode) is PagingMode.BUTTERFLY:
            fronts = await self._elements(front_selector)
            targets = []
            paired = 0
            for i, front in enumerate(fronts):
                targets.append(RenderTarget(front, Side.FRONT, template, label=f"{i + 1}-front"))
                back = await self._paired_back(front, back_selector, card_selector)
                if back is None:
                    logger.warning("Badge %d has no back face; its page will hold the front only", i + 1)
                    continue
                targets.append(RenderTarget(back, Side.BACK, template, label=f"{i + 1}-back"))
                paired += 1
            backs = await self._elements(back_selector)
            if len(backs) > paired:
                logger.warning("%d back face(s) outside a card with a front; ignored", len(backs) - paired)
            return targets

        targets = []
        for i, element in enumerate(await self._elements(sequential_selector)):
            is_back = await element.handle.evaluate(
                "(el, sel) => !!el.closest(sel)", FLIP_SELECTORS[0]
            )
            side = Side.BACK if is_back else Side.FRONT
            targets.append(RenderTarget(element, side, template, label=f"{i + 1}-{side.value}"))
        return targets


@asynccontextmanager
async def open_surface(
    source: Optional[str] = None,
    html: Optional[str] = None,
    device_scale_factor: float = CAPTURE_SCALE,
    viewport: Optional[Dict[str, int]] = None,
) -> AsyncIterator[PlaywrightSurface]:
    """
    Load a rendered badge sheet in headless Chromium.

    Args:
        source: URL or path to an HTML file
        html: HTML content (used when no source is given)
        device_scale_factor: Oversampling for element screenshots
        viewport: Viewport size in CSS pixels
    """
    if not source and html is None:
        raise ValueError("Provide a source URL/path or HTML content.")
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=True)
        try:
            context = await browser.new_context(
                device_scale_factor=device_scale_factor,
                viewport=viewport or {"width": 1280, "height": 1024},
            )
            page = await context.new_page()
            if source:
                url = source if "://" in source else Path(source).resolve().as_uri()
                logger.info("Loading badge sheet %s", url)
                await page.goto(url, wait_until="networkidle")
            else:
                await page.set_content(html, wait_until="networkidle")
            surface = PlaywrightSurface(page)
            await surface.install()
            yield surface
        finally:
            await browser.close()

"""In-memory stand-ins for the rendering surface and its element handles."""

import asyncio
from io import BytesIO

from PIL import Image

from errors import TaintedBufferError
from models import CaptureCapabilities, ElementState


def two_tone(size, top=(255, 0, 0), bottom=(0, 0, 255)):
    """Image whose top half is `top` and bottom half is `bottom`."""
    w, h = size
    img = Image.new("RGB", (w, h), bottom)
    img.paste(Image.new("RGB", (w, h // 2), top), (0, 0))
    return img


class FakeBuffer:
    def __init__(self, image, tainted=False, blob_fails=False):
        self.image = image
        self.tainted = tainted
        self.blob_fails = blob_fails
        self.blob_calls = 0

    def read_pixels(self):
        if self.tainted:
            raise TaintedBufferError("The canvas has been tainted by cross-origin data")
        return self.image

    async def export_blob(self):
        self.blob_calls += 1
        if self.blob_fails:
            raise RuntimeError("Failed to create blob")
        buf = BytesIO()
        self.image.save(buf, format="PNG")
        return buf.getvalue()


class FakeElement:
    """
    Badge element with a fixed CSS box.

    `fail_tiers` names capture strategies that raise; `tainted` and
    `blob_fails` shape the returned buffer.
    """

    def __init__(
        self,
        name="badge",
        width=280,
        height=397,
        hidden=False,
        text="Ada Lovelace",
        children=3,
        fail_tiers=(),
        capabilities=None,
        tainted=False,
        blob_fails=False,
        measure_error=None,
    ):
        self.name = name
        self.width = width
        self.height = height
        self.hidden = hidden
        self.text = text
        self.children = children
        self.fail_tiers = set(fail_tiers)
        self.capabilities = capabilities or CaptureCapabilities()
        self.tainted = tainted
        self.blob_fails = blob_fails
        self.measure_error = measure_error
        self.captures = []
        self.scope_log = []
        self.scoped = False

    async def measure(self):
        if self.measure_error is not None:
            raise self.measure_error
        return ElementState(
            width=self.width,
            height=self.height,
            hidden=self.hidden,
            text_length=len(self.text),
            visible_children=self.children,
        )

    async def probe(self):
        return self.capabilities

    async def acquire_scope(self, untransformed=False):
        self.scoped = True
        self.scope_log.append(("acquire", untransformed))

    async def release_scope(self):
        self.scoped = False
        self.scope_log.append(("release", None))

    async def capture(self, strategy):
        self.captures.append(strategy)
        await asyncio.sleep(0)
        if strategy.name in self.fail_tiers:
            raise RuntimeError(f"{strategy.name} capture failed")
        size = (int(self.width * strategy.scale), int(self.height * strategy.scale))
        return FakeBuffer(two_tone(size), tainted=self.tainted, blob_fails=self.blob_fails)


class FakeSurface:
    def __init__(self, fonts_delay=0.0, fonts_error=None, swap_links=1):
        self.fonts_delay = fonts_delay
        self.fonts_error = fonts_error
        self.swap_links = swap_links
        self.font_display = "swap"
        self.events = []

    async def fonts_ready(self):
        self.events.append("fonts_ready")
        if self.fonts_error is not None:
            raise self.fonts_error
        await asyncio.sleep(self.fonts_delay)

    async def force_font_display(self, value="block"):
        self.events.append(f"force:{value}")
        self.font_display = value
        return self.swap_links

    async def restore_font_display(self):
        self.events.append("restore")
        self.font_display = "swap"

import re

import pytest
from PIL import Image

from assembler import PageAssembler
from errors import EmptyDocumentError
from layout import resolve_layout
from models import PageSize, PagingMode, RasterizedPage, Template


def _layout(mode=PagingMode.SEQUENTIAL):
    return resolve_layout(Template(page_size=PageSize(width=74, height=105), bleed=3), mode)


def _page(label, rotated=False):
    return RasterizedPage(
        image=Image.new("RGB", (240, 333), (200, 30, 30)),
        width_mm=80,
        height_mm=111,
        rotated=rotated,
        label=label,
    )


def _media_boxes(pdf: bytes):
    return re.findall(rb"/MediaBox \[\s*0 0 ([\d.]+) ([\d.]+)\s*\]", pdf)


def test_sequential_one_page_per_face():
    asm = PageAssembler(_layout(), title="test")
    for label in ("1-front", "2-front", "3-front"):
        asm.add_page(_page(label))
    pdf = asm.finalize()
    assert pdf.startswith(b"%PDF")
    assert asm.page_count == 3
    assert [p.top for p in asm.pages] == ["1-front", "2-front", "3-front"]
    assert all((p.width_mm, p.height_mm) == (80, 111) for p in asm.pages)
    boxes = _media_boxes(pdf)
    assert boxes
    for w, h in boxes:
        assert float(w) == pytest.approx(80 / 25.4 * 72, abs=0.01)
        assert float(h) == pytest.approx(111 / 25.4 * 72, abs=0.01)


def test_butterfly_pairs_front_over_rotated_back():
    asm = PageAssembler(_layout(PagingMode.BUTTERFLY))
    assert asm.add_pair(_page("A-front"), _page("A-back", rotated=True))
    assert asm.add_pair(_page("B-front"), _page("B-back", rotated=True))
    pdf = asm.finalize()
    assert [(p.top, p.bottom, p.bottom_rotated) for p in asm.pages] == [
        ("A-front", "A-back", True),
        ("B-front", "B-back", True),
    ]
    assert all((p.width_mm, p.height_mm) == (80, 222) for p in asm.pages)
    w, h = (float(v) for v in _media_boxes(pdf)[0])
    assert h == pytest.approx(222 / 25.4 * 72, abs=0.01)


def test_butterfly_pair_without_back_keeps_top_half():
    asm = PageAssembler(_layout(PagingMode.BUTTERFLY))
    asm.add_pair(_page("C-front"), None)
    asm.finalize()
    assert asm.pages[0].top == "C-front"
    assert asm.pages[0].bottom is None


def test_butterfly_pair_without_either_half_emits_nothing():
    asm = PageAssembler(_layout(PagingMode.BUTTERFLY))
    assert asm.add_pair(None, None) is False
    assert asm.page_count == 0


def test_empty_document_raises_typed_error():
    with pytest.raises(EmptyDocumentError):
        PageAssembler(_layout()).finalize()


def test_first_page_fixes_page_size():
    asm = PageAssembler(_layout())
    asm.add_page(_page("1-front"))
    odd = _page("2-front")
    odd.width_mm, odd.height_mm = 100, 150
    asm.add_page(odd)
    assert [(p.width_mm, p.height_mm) for p in asm.pages] == [(80, 111), (80, 111)]


def test_png_format_embeds_lossless_source():
    asm = PageAssembler(_layout(), image_format="PNG")
    asm.add_page(_page("1-front"))
    assert asm.finalize().startswith(b"%PDF")


def test_failed_half_leaves_no_partial_page(monkeypatch):
    import assembler
    from reportlab.pdfgen import canvas

    real_encode = assembler.encode_image
    draws = []

    def encode(image, *args, **kwargs):
        if image.size == (7, 7):
            raise OSError("encoder error")
        return real_encode(image, *args, **kwargs)

    real_draw = canvas.Canvas.drawImage

    def draw(self, *args, **kwargs):
        draws.append(args[1:3])
        return real_draw(self, *args, **kwargs)

    monkeypatch.setattr(assembler, "encode_image", encode)
    monkeypatch.setattr(canvas.Canvas, "drawImage", draw)

    asm = PageAssembler(_layout(PagingMode.BUTTERFLY))
    broken = _page("A-back", rotated=True)
    broken.image = Image.new("RGB", (7, 7))
    with pytest.raises(OSError):
        asm.add_pair(_page("A-front"), broken)
    assert draws == []
    assert asm.page_count == 0

    assert asm.add_pair(_page("B-front"), _page("B-back", rotated=True))
    assert len(draws) == 2
    assert [(p.top, p.bottom) for p in asm.pages] == [("B-front", "B-back")]
    assert asm.finalize().startswith(b"%PDF")

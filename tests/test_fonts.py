import asyncio

import pytest

from fonts import font_readiness_gate, wait_for_fonts

from fakes import FakeSurface


def test_wait_for_fonts_ready():
    assert asyncio.run(wait_for_fonts(FakeSurface(), timeout=1.0)) is True


def test_wait_for_fonts_times_out_without_raising():
    surface = FakeSurface(fonts_delay=1.0)
    assert asyncio.run(wait_for_fonts(surface, timeout=0.01)) is False


def test_wait_for_fonts_signal_unavailable():
    surface = FakeSurface(fonts_error=RuntimeError("document.fonts is undefined"))
    assert asyncio.run(wait_for_fonts(surface, timeout=1.0)) is False


def test_gate_forces_block_for_the_job_and_restores():
    surface = FakeSurface()
    seen = []

    async def run():
        async with font_readiness_gate(surface, timeout=1.0) as ready:
            seen.append((ready, surface.font_display))

    asyncio.run(run())
    assert seen == [(True, "block")]
    assert surface.font_display == "swap"
    assert surface.events == ["force:block", "fonts_ready", "restore"]


def test_gate_restores_on_error():
    surface = FakeSurface()

    async def run():
        async with font_readiness_gate(surface, timeout=1.0):
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        asyncio.run(run())
    assert surface.font_display == "swap"


def test_gate_without_swap_links_skips_restore():
    surface = FakeSurface(swap_links=0)

    async def run():
        async with font_readiness_gate(surface, timeout=1.0):
            pass

    asyncio.run(run())
    assert "restore" not in surface.events


def test_gate_without_surface():
    async def run():
        async with font_readiness_gate(None) as ready:
            return ready

    assert asyncio.run(run()) is False

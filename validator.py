"""Pre-capture checks on render targets."""

from __future__ import annotations

from errors import ValidationFailure
from models import ElementState, RenderTarget


def validate_element_state(state: ElementState, label: str = "") -> None:
    """
    Reject element states that would rasterize to a blank page.

    A zero-size, hidden or empty element usually means the rendering surface
    swapped content mid-job.
    """
    who = f"Badge {label}" if label else "Badge"
    if state.width <= 0 or state.height <= 0:
        raise ValidationFailure(f"{who} has no size ({state.width:g}x{state.height:g})")
    if state.hidden:
        raise ValidationFailure(f"{who} is hidden")
    if state.text_length <= 0 and state.visible_children <= 0:
        raise ValidationFailure(f"{who} has no visible content")


async def validate_target(target: RenderTarget) -> ElementState:
    """Measure the target's element and validate it. Returns the measured state."""
    if target.element is None:
        raise ValidationFailure(f"Badge {target.label} element not found")
    state = await target.element.measure()
    validate_element_state(state, target.label)
    return state

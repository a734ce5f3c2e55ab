import asyncio

import pytest

from errors import ValidationFailure
from models import ElementState, PageSize, RenderTarget, Side, Template
from validator import validate_element_state, validate_target

from fakes import FakeElement


def test_valid_state_passes():
    validate_element_state(ElementState(width=280, height=397, text_length=12, visible_children=3))


@pytest.mark.parametrize(
    "state, message",
    [
        (ElementState(width=0, height=0, text_length=5), "no size"),
        (ElementState(width=280, height=0, text_length=5), "no size"),
        (ElementState(width=280, height=397, hidden=True, text_length=5), "hidden"),
        (ElementState(width=280, height=397), "no visible content"),
    ],
)
def test_invalid_states_are_rejected(state, message):
    with pytest.raises(ValidationFailure, match=message):
        validate_element_state(state, "1-front")


def test_children_without_text_count_as_content():
    validate_element_state(ElementState(width=10, height=10, text_length=0, visible_children=1))


def test_validate_target_measures_element():
    template = Template(page_size=PageSize(width=74, height=105))
    el = FakeElement(width=0, height=0)
    with pytest.raises(ValidationFailure):
        asyncio.run(validate_target(RenderTarget(el, Side.FRONT, template, label="1-front")))
    assert el.captures == []


def test_validate_target_missing_element():
    template = Template(page_size=PageSize(width=74, height=105))
    with pytest.raises(ValidationFailure, match="not found"):
        asyncio.run(validate_target(RenderTarget(None, Side.FRONT, template, label="2-back")))

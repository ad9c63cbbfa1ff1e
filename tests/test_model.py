from __future__ import annotations

import pytest

from boxctl.core.model import ChangeSignature, ToggleState, decode_toggle


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0b0010_0000, ToggleState.UP),
        (0b0000_0000, ToggleState.DOWN),
        (0b0001_0000, ToggleState.MIDDLE),
        (0b0011_0000, ToggleState.UNKNOWN),
    ],
)
def test_toggle_decode_bits_four_and_five(value: int, expected: ToggleState) -> None:
    assert decode_toggle(value, shift=4) is expected


def test_toggle_decode_ignores_other_bits() -> None:
    assert decode_toggle(0b1100_1110, shift=4) is ToggleState.DOWN
    assert decode_toggle(0b0000_1001, shift=2) is ToggleState.UP
    assert decode_toggle(0x01) is ToggleState.MIDDLE


def test_signature_equality_ignores_token_order() -> None:
    first = ChangeSignature.from_tokens(["byte3:0->4", "byte2:64->65"])
    second = ChangeSignature.from_tokens(["byte2:64->65", "byte3:0->4"])
    assert first == second
    assert hash(first) == hash(second)
    assert len(first) == 2

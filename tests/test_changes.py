from __future__ import annotations

from boxctl.core.changes import detect, signature_for
from boxctl.core.model import ByteDelta

BASELINE = bytes([0x01, 0x40, 0x00, 0x00, 0x00, 0x00])


def test_single_byte_change_uses_one_indexed_token() -> None:
    current = bytes([0x01, 0x40, 0x20, 0x00, 0x00, 0x00])
    deltas = detect(BASELINE, current)
    assert deltas == [ByteDelta(index=2, old=0, new=32)]
    assert deltas[0].token == "byte3:0->32"


def test_identical_reports_produce_no_deltas() -> None:
    assert detect(BASELINE, BASELINE) == []
    assert not signature_for(BASELINE, BASELINE)


def test_deltas_are_in_ascending_index_order() -> None:
    current = bytes([0x01, 0x41, 0x00, 0x00, 0x10, 0x01])
    deltas = detect(BASELINE, current)
    assert [delta.index for delta in deltas] == [1, 4, 5]
    assert [delta.token for delta in deltas] == ["byte2:64->65", "byte5:0->16", "byte6:0->1"]


def test_only_overlapping_prefix_is_compared() -> None:
    assert detect(bytes([1, 2]), bytes([1, 3, 9, 9])) == [ByteDelta(index=1, old=2, new=3)]
    assert detect(b"", BASELINE) == []


def test_signature_is_order_independent() -> None:
    current = bytes([0x01, 0x41, 0x04, 0x00, 0x00, 0x00])
    signature = signature_for(BASELINE, current)
    assert signature.tokens == ("byte2:64->65", "byte3:0->4")
    assert str(signature) == "byte2:64->65, byte3:0->4"

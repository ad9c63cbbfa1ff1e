"""Byte-level change detection between two report snapshots."""

from __future__ import annotations

from boxctl.core.model import ByteDelta, ChangeSignature


def detect(previous: bytes, current: bytes) -> list[ByteDelta]:
    """Return one delta per differing byte, in ascending index order.

    Only the overlapping prefix ``min(len(previous), len(current))`` is compared.
    """
    return [
        ByteDelta(index=index, old=old, new=new)
        for index, (old, new) in enumerate(zip(previous, current))
        if old != new
    ]


def signature_for(previous: bytes, current: bytes) -> ChangeSignature:
    return ChangeSignature.from_deltas(detect(previous, current))

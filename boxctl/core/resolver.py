"""Exact-match resolution of change signatures against a control catalog."""

from __future__ import annotations

from boxctl.core.model import ChangeSignature, ControlCatalog, ControlDescriptor


class ControlResolver:
    def __init__(self, catalog: ControlCatalog) -> None:
        self.catalog = catalog
        self._index: dict[ChangeSignature, ControlDescriptor] = {}
        # catalog.controls is already in search order; keep the first entry
        # if a malformed catalog ever slips through with a collision.
        for control in catalog.controls:
            self._index.setdefault(control.signature, control)

    def resolve(self, signature: ChangeSignature) -> ControlDescriptor | None:
        if not signature:
            return None
        return self._index.get(signature)

"""Device-to-catalog matching logic."""

from __future__ import annotations

from boxctl.core.model import ControlCatalog, HIDDeviceInfo


def _id_match(device: HIDDeviceInfo, catalog: ControlCatalog) -> bool:
    match = catalog.match
    if match.vendor_id is None or match.product_id is None:
        return False
    return device.vendor_id == match.vendor_id and device.product_id == match.product_id


def _name_contains_match(device: HIDDeviceInfo, catalog: ControlCatalog) -> bool:
    lower_name = device.product.lower()
    return any(token.lower() in lower_name for token in catalog.match.name_contains)


def match_score(device: HIDDeviceInfo, catalog: ControlCatalog) -> int:
    score = 0
    if _id_match(device, catalog):
        score += 2
    if _name_contains_match(device, catalog):
        score += 1
    return score


def best_catalog_for_device(
    device: HIDDeviceInfo, catalogs: dict[str, ControlCatalog]
) -> ControlCatalog | None:
    best: ControlCatalog | None = None
    best_score = 0
    for catalog in catalogs.values():
        score = match_score(device, catalog)
        if score > best_score:
            best = catalog
            best_score = score
    return best

from __future__ import annotations

from boxctl.core.catalog_loader import build_catalog, load_catalogs
from boxctl.core.changes import signature_for
from boxctl.core.model import ChangeSignature, ControlKind
from boxctl.core.resolver import ControlResolver

BASELINE = bytes([0x01, 0x40, 0x00, 0x00, 0x00, 0x00])


def _resolver() -> ControlResolver:
    return ControlResolver(load_catalogs().catalogs["pxn_cb1"])


def test_knob_turn_resolves() -> None:
    current = bytes([0x01, 0x40, 0x20, 0x00, 0x00, 0x00])
    control = _resolver().resolve(signature_for(BASELINE, current))
    assert control is not None
    assert control.id == "abs.up"
    assert control.kind is ControlKind.KNOB
    assert control.signature.tokens == ("byte3:0->32",)


def test_single_button_resolves() -> None:
    current = bytes([0x01, 0x41, 0x00, 0x00, 0x00, 0x00])
    control = _resolver().resolve(signature_for(BASELINE, current))
    assert control is not None
    assert control.id == "handle"
    assert control.kind is ControlKind.BUTTON
    assert control.button_index == 0
    assert control.display_name == "Handle Button"


def test_empty_signature_is_unmatched() -> None:
    assert _resolver().resolve(ChangeSignature(tokens=())) is None


def test_superset_and_subset_do_not_match() -> None:
    resolver = _resolver()
    superset = ChangeSignature.from_tokens(["byte2:64->65", "byte3:0->4"])
    assert resolver.resolve(superset) is None
    assert resolver.resolve(ChangeSignature.from_tokens(["byte2:64->67"])) is None


def test_release_is_unmatched() -> None:
    pressed = bytes([0x01, 0x41, 0x00, 0x00, 0x00, 0x00])
    assert _resolver().resolve(signature_for(pressed, BASELINE)) is None


def test_toggle_and_joystick_slots_follow_search_order() -> None:
    catalog = load_catalogs().catalogs["pxn_cb1"]
    indices = {control.id: control.button_index for control in catalog.controls}
    assert indices["kill_switch"] == 7
    assert indices["abs.up"] == 8
    assert indices["tc.click"] == 13
    assert indices["ignition.middle"] == 14
    assert indices["mode_b.down"] == 21
    assert indices["joystick.right"] == 25
    assert catalog.slot_count == 26


def test_partial_and_repeated_tokens_never_match_compound_entry() -> None:
    catalog = build_catalog(
        {
            "id": "combo",
            "name": "Combo Box",
            "report": {"length": 4},
            "controls": {
                "buttons": {
                    "shift_fire": {"changes": ["byte2:0->1", "byte3:0->8"], "default_name": "Shift Fire"},
                    "fire": {"changes": ["byte3:0->4"], "default_name": "Fire"},
                }
            },
        }
    )
    resolver = ControlResolver(catalog)

    assert resolver.resolve(ChangeSignature.from_tokens(["byte2:0->1"])) is None
    assert resolver.resolve(ChangeSignature.from_tokens(["byte3:0->8"])) is None

    reversed_order = resolver.resolve(ChangeSignature.from_tokens(["byte3:0->8", "byte2:0->1"]))
    assert reversed_order is not None
    assert reversed_order.id == "shift_fire"

    repeated = ChangeSignature.from_tokens(["byte2:0->1", "byte2:0->1", "byte3:0->8"])
    assert resolver.resolve(repeated) is None
    assert resolver.resolve(ChangeSignature.from_tokens(["byte3:0->4", "byte3:0->4"])) is None

"""Catalog loading and validation for YAML/JSON control catalogs."""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Iterator
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml

from boxctl.core.documents import (
    DOCUMENT_SUFFIXES,
    parse_usb_id,
    read_document,
    validate_document,
)
from boxctl.core.errors import CatalogLoadError, CatalogResolutionError, CatalogValidationError
from boxctl.core.model import (
    ChangeSignature,
    ControlCatalog,
    ControlDescriptor,
    ControlKind,
    DeviceMatch,
    ToggleBehavior,
    ToggleField,
)

_TOKEN_RE = re.compile(r"^byte([1-9][0-9]*):([0-9]{1,3})->([0-9]{1,3})$")
_TOGGLE_KEYS = frozenset({"type", "field"})
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedCatalogs:
    catalogs: dict[str, ControlCatalog]
    warnings: tuple[str, ...]
    sources: dict[str, Path | Traversable]


@dataclass(frozen=True)
class _Entry:
    control_id: str
    kind: ControlKind
    spec: dict[str, Any]
    toggle: dict[str, Any] | None = None


def _catalog_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "boxctl/catalogs", xdg_data / "boxctl/catalogs"


def _iter_entries(controls: dict[str, Any]) -> Iterator[_Entry]:
    """Yield catalog entries in resolver search order."""
    for button_id, spec in controls.get("buttons", {}).items():
        yield _Entry(str(button_id), ControlKind.BUTTON, spec)
    for group, actions in controls.get("knobs", {}).items():
        for action, spec in actions.items():
            yield _Entry(f"{group}.{action}", ControlKind.KNOB, spec)
    for group, toggle in controls.get("toggles", {}).items():
        for position, spec in toggle.items():
            if position in _TOGGLE_KEYS:
                continue
            yield _Entry(f"{group}.{position}", ControlKind.TOGGLE, spec, toggle=toggle)
    for direction, spec in controls.get("joystick", {}).items():
        yield _Entry(f"joystick.{direction}", ControlKind.JOYSTICK, spec)


def _normalize_changes(changes: list[str], *, report_length: int, context: str) -> ChangeSignature:
    tokens: list[str] = []
    seen_bytes: set[int] = set()
    for change in changes:
        match = _TOKEN_RE.match(change.strip())
        if not match:
            raise CatalogValidationError(f"{context} has malformed change '{change}'")
        byte, old, new = (int(group) for group in match.groups())
        if byte > report_length:
            raise CatalogValidationError(
                f"{context} refers to byte{byte} beyond report length {report_length}"
            )
        if old > 255 or new > 255:
            raise CatalogValidationError(f"{context} change '{change}' has a value outside 0..255")
        if old == new:
            raise CatalogValidationError(f"{context} change '{change}' does not change anything")
        if byte in seen_bytes:
            raise CatalogValidationError(f"{context} repeats byte{byte} in one signature")
        seen_bytes.add(byte)
        tokens.append(f"byte{byte}:{old}->{new}")
    return ChangeSignature.from_tokens(tokens)


def _assign_indices(entries: list[_Entry], *, catalog_id: str) -> list[int]:
    taken: dict[int, str] = {}
    for entry in entries:
        explicit = entry.spec.get("button_index")
        if explicit is None:
            continue
        if explicit in taken:
            raise CatalogValidationError(
                f"{catalog_id}: controls '{taken[explicit]}' and '{entry.control_id}' "
                f"share button_index {explicit}"
            )
        taken[explicit] = entry.control_id

    indices: list[int] = []
    next_free = 0
    for entry in entries:
        explicit = entry.spec.get("button_index")
        if explicit is not None:
            indices.append(explicit)
            continue
        while next_free in taken:
            next_free += 1
        taken[next_free] = entry.control_id
        indices.append(next_free)
    return indices


def _build_catalog(doc: dict[str, Any], source: Path | Traversable | str) -> ControlCatalog:
    validate_document(doc, "catalog.schema.json", source, validation_error=CatalogValidationError)

    catalog_id = doc["id"]
    report_length = int(doc["report"]["length"])
    entries = list(_iter_entries(doc["controls"]))
    if not entries:
        raise CatalogValidationError(f"Catalog {source} defines no controls")

    indices = _assign_indices(entries, catalog_id=catalog_id)
    seen: dict[ChangeSignature, str] = {}
    controls: list[ControlDescriptor] = []
    for entry, button_index in zip(entries, indices):
        context = f"{catalog_id}.{entry.control_id}"
        signature = _normalize_changes(
            entry.spec["changes"], report_length=report_length, context=context
        )
        if signature in seen:
            raise CatalogValidationError(
                f"{catalog_id}: controls '{seen[signature]}' and '{entry.control_id}' "
                f"have the same change signature [{signature}]"
            )
        seen[signature] = entry.control_id

        behavior: ToggleBehavior | None = None
        field: ToggleField | None = None
        if entry.toggle is not None:
            behavior = ToggleBehavior(entry.toggle["type"])
            if "field" in entry.toggle:
                field = ToggleField(
                    byte=int(entry.toggle["field"]["byte"]),
                    shift=int(entry.toggle["field"]["shift"]),
                )
                if field.byte > report_length:
                    raise CatalogValidationError(
                        f"{context} toggle field byte{field.byte} is beyond report length {report_length}"
                    )

        controls.append(
            ControlDescriptor(
                id=entry.control_id,
                kind=entry.kind,
                signature=signature,
                default_name=entry.spec["default_name"],
                user_name=entry.spec.get("user_name") or None,
                button_index=button_index,
                toggle_behavior=behavior,
                toggle_field=field,
            )
        )

    match_doc = doc.get("match", {})
    match = DeviceMatch(
        vendor_id=parse_usb_id(match_doc["vendor_id"]) if "vendor_id" in match_doc else None,
        product_id=parse_usb_id(match_doc["product_id"]) if "product_id" in match_doc else None,
        name_contains=tuple(match_doc.get("name_contains", [])),
    )
    return ControlCatalog(
        id=catalog_id,
        name=doc["name"],
        match=match,
        report_length=report_length,
        controls=tuple(controls),
    )


def build_catalog(doc: dict[str, Any], source: str = "<memory>") -> ControlCatalog:
    """Build a catalog from an already-parsed document."""
    return _build_catalog(doc, source)


def _read_catalog(path: Path | Traversable) -> dict[str, Any]:
    return read_document(path, validation_error=CatalogValidationError, load_error=CatalogLoadError)


def _iter_packaged_catalog_paths() -> list[Traversable]:
    catalog_root = resources.files("boxctl.catalogs")
    return [item for item in catalog_root.iterdir() if item.name.endswith(DOCUMENT_SUFFIXES)]


def _iter_user_catalog_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _catalog_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in DOCUMENT_SUFFIXES))
    return paths


def load_catalogs() -> LoadedCatalogs:
    catalogs: dict[str, ControlCatalog] = {}
    sources: dict[str, Path | Traversable] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_catalog_paths(), key=lambda p: p.name):
        catalog = _build_catalog(_read_catalog(path), path)
        catalogs[catalog.id] = catalog
        sources[catalog.id] = path

    for path in _iter_user_catalog_paths():
        catalog = _build_catalog(_read_catalog(path), path)
        if catalog.id in catalogs:
            warning = f"User catalog '{catalog.id}' overrides {sources[catalog.id]}"
            LOGGER.warning(warning)
            warnings.append(warning)
        catalogs[catalog.id] = catalog
        sources[catalog.id] = path

    return LoadedCatalogs(catalogs=catalogs, warnings=tuple(warnings), sources=sources)


def set_user_name(
    catalog_id: str,
    control_id: str,
    name: str,
    *,
    loaded: LoadedCatalogs | None = None,
) -> Path:
    """Persist a user-assigned control name into the user catalog directory.

    An empty ``name`` clears the user name. Returns the written path.
    """
    loaded = loaded or load_catalogs()
    source = loaded.sources.get(catalog_id)
    if source is None:
        available = ", ".join(sorted(loaded.catalogs))
        raise CatalogResolutionError(f"Unknown catalog '{catalog_id}'. Available: {available}")

    doc = _read_catalog(source)
    for entry in _iter_entries(doc.get("controls", {})):
        if entry.control_id == control_id:
            entry.spec["user_name"] = name.strip() or None
            break
    else:
        raise CatalogResolutionError(f"Catalog '{catalog_id}' does not define control '{control_id}'")

    user_dir = _catalog_dirs()[0]
    if isinstance(source, Path) and source.parent == user_dir:
        target = source
    else:
        target = user_dir / f"{catalog_id}.yaml"
    _build_catalog(doc, target)

    if target.suffix == ".json":
        content = json.dumps(doc, indent=2, ensure_ascii=False) + "\n"
    else:
        content = yaml.safe_dump(doc, sort_keys=False, allow_unicode=True)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise CatalogLoadError(f"Could not write catalog {target}: {exc}") from exc

    LOGGER.info("Control %s.%s renamed to %r in %s", catalog_id, control_id, name, target)
    return target

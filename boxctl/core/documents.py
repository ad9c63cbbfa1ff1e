"""YAML/JSON document reading and schema validation shared by the loaders."""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from boxctl.core.errors import BoxctlError

DOCUMENT_SUFFIXES = (".yml", ".yaml", ".json")


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[Any, Any]:
    mapping: dict[Any, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise yaml.constructor.ConstructorError(
                None,
                None,
                f"Duplicate key '{key}' in YAML document",
                key_node.start_mark,
            )
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def read_document(
    path: Path | Traversable,
    *,
    validation_error: type[BoxctlError],
    load_error: type[BoxctlError],
) -> dict[str, Any]:
    """Read a YAML or JSON mapping document.

    JSON is parsed with the YAML loader too, so duplicate keys are rejected
    for both formats.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise load_error(f"Could not read {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise validation_error(f"Invalid document {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise validation_error(f"Document {path} must contain a mapping at root")
    return loaded


@lru_cache(maxsize=None)
def schema_validator(schema_name: str) -> Any:
    schema_text = resources.files("boxctl.schemas").joinpath(schema_name).read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def validate_document(
    doc: dict[str, Any],
    schema_name: str,
    source: Path | Traversable | str,
    *,
    validation_error: type[BoxctlError],
) -> None:
    validator = schema_validator(schema_name)
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise validation_error(f"Schema validation failed for {source}{where}: {exc.message}") from exc


def parse_usb_id(value: int | str) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16)


def normalize_bool(value: Any, *, context: str, error: type[BoxctlError]) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise error(f"{context} must be boolean true/false")

"""Core data models used across loader, stream, service, and CLI."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

Report = bytes


class ControlKind(str, Enum):
    BUTTON = "button"
    KNOB = "knob"
    TOGGLE = "toggle"
    JOYSTICK = "joystick"


class ToggleBehavior(str, Enum):
    SPRING_RETURN = "spring-return"
    LATCHING = "latching"


class ToggleState(Enum):
    DOWN = 0
    MIDDLE = 1
    UP = 2
    UNKNOWN = 3


def decode_toggle(value: int, shift: int = 0) -> ToggleState:
    """Decode the 2-bit toggle field found at ``shift`` within ``value``."""
    bits = (value >> shift) & 0b11
    if bits == 0:
        return ToggleState.DOWN
    if bits == 1:
        return ToggleState.MIDDLE
    if bits == 2:
        return ToggleState.UP
    return ToggleState.UNKNOWN


@dataclass(frozen=True)
class ByteDelta:
    index: int
    old: int
    new: int

    @property
    def token(self) -> str:
        # Catalog tokens number bytes from 1.
        return f"byte{self.index + 1}:{self.old}->{self.new}"


@dataclass(frozen=True)
class ChangeSignature:
    tokens: tuple[str, ...]

    @classmethod
    def from_tokens(cls, tokens: Iterable[str]) -> ChangeSignature:
        return cls(tokens=tuple(sorted(tokens)))

    @classmethod
    def from_deltas(cls, deltas: Iterable[ByteDelta]) -> ChangeSignature:
        return cls.from_tokens(delta.token for delta in deltas)

    def __len__(self) -> int:
        return len(self.tokens)

    def __str__(self) -> str:
        return ", ".join(self.tokens)


@dataclass(frozen=True)
class ToggleField:
    byte: int
    shift: int


@dataclass(frozen=True)
class ControlDescriptor:
    id: str
    kind: ControlKind
    signature: ChangeSignature
    default_name: str
    button_index: int
    user_name: str | None = None
    toggle_behavior: ToggleBehavior | None = None
    toggle_field: ToggleField | None = None

    @property
    def display_name(self) -> str:
        return self.user_name or self.default_name


@dataclass(frozen=True)
class DeviceMatch:
    vendor_id: int | None = None
    product_id: int | None = None
    name_contains: tuple[str, ...] = ()


@dataclass(frozen=True)
class ControlCatalog:
    id: str
    name: str
    match: DeviceMatch
    report_length: int
    controls: tuple[ControlDescriptor, ...]

    def get(self, control_id: str) -> ControlDescriptor | None:
        for control in self.controls:
            if control.id == control_id:
                return control
        return None

    @property
    def slot_count(self) -> int:
        return max((c.button_index for c in self.controls), default=-1) + 1


@dataclass(frozen=True)
class HIDDeviceInfo:
    path: str
    vendor_id: int
    product_id: int
    product: str
    manufacturer: str
    serial: str = ""
    interface: int = -1


@dataclass(frozen=True)
class ResolvedTarget:
    device: HIDDeviceInfo
    catalog: ControlCatalog


@dataclass(frozen=True)
class ControlEvent:
    button_index: int
    control_name: str
    timestamp: float
    raw_data: bytes
    device_id: str
    control: ControlDescriptor
    toggle_position: ToggleState | None = None


@dataclass(frozen=True)
class UnmatchedChange:
    tokens: tuple[str, ...]
    raw_data: bytes
    device_id: str
    timestamp: float


@dataclass(frozen=True)
class DecodeResult:
    deltas: tuple[ByteDelta, ...]
    signature: ChangeSignature
    control: ControlDescriptor | None

"""Per-device report stream: change detection, edge triggering and debounce."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from boxctl.core.changes import detect
from boxctl.core.errors import StreamStateError
from boxctl.core.model import (
    ChangeSignature,
    ControlDescriptor,
    ControlEvent,
    ToggleState,
    UnmatchedChange,
    decode_toggle,
)
from boxctl.core.resolver import ControlResolver

LOGGER = logging.getLogger(__name__)

TriggerCallback = Callable[[ControlEvent], Awaitable[object] | object]
UnmatchedCallback = Callable[[UnmatchedChange], object]


class StreamState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    STREAMING = "streaming"


@dataclass
class DeviceState:
    previous: bytes
    slots: list[bool] = field(default_factory=list)

    @classmethod
    def baseline(cls, report_length: int, slot_count: int) -> DeviceState:
        return cls(previous=bytes(report_length), slots=[False] * slot_count)


class DeviceStream:
    """Turns a serial sequence of reports into debounced control events.

    ``feed`` runs synchronously for decoding and state updates; only the
    notification is deferred, by ``debounce_s`` seconds, onto the running
    event loop. A newer edge replaces a notification that has not fired yet.
    """

    def __init__(
        self,
        resolver: ControlResolver,
        *,
        device_id: str,
        report_length: int,
        debounce_s: float,
        on_trigger: TriggerCallback,
        on_unmatched: UnmatchedCallback | None = None,
        include_raw_data: bool = False,
    ) -> None:
        self.resolver = resolver
        self.device_id = device_id
        self.report_length = report_length
        self.debounce_s = debounce_s
        self._on_trigger = on_trigger
        self._on_unmatched = on_unmatched
        self._include_raw_data = include_raw_data
        self._state = StreamState.DISCONNECTED
        self._device_state: DeviceState | None = None
        self._pending: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[None]] = set()
        self.error: BaseException | None = None

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def device_state(self) -> DeviceState | None:
        return self._device_state

    @property
    def has_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def connect(self) -> None:
        if self._state is not StreamState.DISCONNECTED:
            raise StreamStateError(f"Stream for {self.device_id} is already {self._state.value}")
        slot_count = max(self.resolver.catalog.slot_count, 8)
        self._device_state = DeviceState.baseline(self.report_length, slot_count)
        self.error = None
        self._state = StreamState.CONNECTED

    def close(self) -> None:
        """Cancel a pending notification and discard the device state.

        Notifications that already started keep running.
        """
        self._cancel_pending()
        self._device_state = None
        self._state = StreamState.DISCONNECTED

    def fail(self, exc: BaseException) -> None:
        LOGGER.error("Device %s stream failed: %s", self.device_id, exc)
        self.close()
        self.error = exc

    def feed(self, report: bytes) -> ControlEvent | None:
        """Process one report; return the event scheduled for notification."""
        if self._state is StreamState.DISCONNECTED or self._device_state is None:
            raise StreamStateError(f"Stream for {self.device_id} is not connected")

        report = bytes(report)
        if len(report) != self.report_length:
            return None
        if self._include_raw_data:
            LOGGER.debug("Raw HID data: %s", report.hex())

        self._state = StreamState.STREAMING
        state = self._device_state
        timestamp = time.time()
        current_slots = [False] * len(state.slots)
        scheduled: ControlEvent | None = None

        deltas = detect(state.previous, report)
        signature = ChangeSignature.from_deltas(deltas)
        if signature:
            control = self.resolver.resolve(signature)
            if control is None:
                self._report_unmatched(signature, report, timestamp)
            else:
                current_slots[control.button_index] = True
                # Edge trigger: only a false -> true transition of the slot notifies.
                if not state.slots[control.button_index]:
                    scheduled = self._event_for(control, report, timestamp)
                    self._schedule(scheduled)

        state.previous = report
        state.slots = current_slots
        return scheduled

    async def drain(self) -> None:
        """Wait for the pending notification and every in-flight callback."""
        while self.has_pending or self._in_flight:
            waiting = [task for task in (self._pending, *self._in_flight) if task is not None]
            await asyncio.gather(*waiting, return_exceptions=True)

    def _event_for(self, control: ControlDescriptor, report: bytes, timestamp: float) -> ControlEvent:
        position: ToggleState | None = None
        if control.toggle_field is not None:
            position = decode_toggle(report[control.toggle_field.byte - 1], control.toggle_field.shift)
        return ControlEvent(
            button_index=control.button_index,
            control_name=control.display_name,
            timestamp=timestamp,
            raw_data=report,
            device_id=self.device_id,
            control=control,
            toggle_position=position,
        )

    def _report_unmatched(self, signature: ChangeSignature, report: bytes, timestamp: float) -> None:
        LOGGER.debug("Unmatched change on %s: [%s] raw=%s", self.device_id, signature, report.hex())
        if self._on_unmatched is None:
            return
        change = UnmatchedChange(
            tokens=signature.tokens,
            raw_data=report,
            device_id=self.device_id,
            timestamp=timestamp,
        )
        try:
            self._on_unmatched(change)
        except Exception:
            LOGGER.exception("Unmatched-change callback failed on %s", self.device_id)

    def _schedule(self, event: ControlEvent) -> None:
        self._cancel_pending()
        loop = asyncio.get_running_loop()
        self._pending = loop.create_task(self._notify_after_quiet(event))

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    async def _notify_after_quiet(self, event: ControlEvent) -> None:
        await asyncio.sleep(self.debounce_s)
        task = asyncio.current_task()
        if task is not None and self._pending is task:
            # From here on the notification is in flight and no longer cancellable.
            self._pending = None
            self._in_flight.add(task)
        try:
            result = self._on_trigger(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            LOGGER.exception("Trigger callback failed for %s (%s)", event.control_name, event.button_index)
        finally:
            if task is not None:
                self._in_flight.discard(task)

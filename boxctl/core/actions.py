"""Action parsing and dispatch for triggered controls.

Action strings are parsed once, when the configuration is loaded, into one of
three variants:

* ``macro:step1|step2|...`` becomes a :class:`MacroAction` whose steps are
  parsed with the same rules;
* anything containing a space or a path separator becomes a
  :class:`ShellAction`;
* everything else is a :class:`LogAction`.

Execution never retries. Shell commands that exit non-zero and failing macro
steps are logged and reported in the :class:`ActionResult`; only a command
that cannot be started at all raises :class:`ActionError`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass

from boxctl.core.errors import ActionError, ActionParseError
from boxctl.core.model import ControlEvent

MACRO_PREFIX = "macro:"
MACRO_SEPARATOR = "|"
_SHELL_MARKERS = (" ", "/", "\\")
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogAction:
    label: str = "log"


@dataclass(frozen=True)
class ShellAction:
    command: str


@dataclass(frozen=True)
class MacroAction:
    steps: tuple[ActionSpec, ...]


ActionSpec = LogAction | ShellAction | MacroAction


def parse_action_spec(text: str) -> ActionSpec:
    if not text or not text.strip():
        raise ActionParseError("Action must not be empty")

    if text.startswith(MACRO_PREFIX):
        raw_steps = text[len(MACRO_PREFIX):].split(MACRO_SEPARATOR)
        steps: list[ActionSpec] = []
        for position, raw_step in enumerate(raw_steps, start=1):
            if not raw_step.strip():
                raise ActionParseError(f"Macro step {position} is empty in '{text}'")
            steps.append(parse_action_spec(raw_step))
        return MacroAction(steps=tuple(steps))

    if any(marker in text for marker in _SHELL_MARKERS):
        return ShellAction(command=text)

    return LogAction(label=text)


def describe_action(spec: ActionSpec) -> str:
    if isinstance(spec, MacroAction):
        return MACRO_PREFIX + MACRO_SEPARATOR.join(describe_action(step) for step in spec.steps)
    if isinstance(spec, ShellAction):
        return spec.command
    return spec.label


@dataclass(frozen=True)
class ButtonAction:
    name: str
    action: ActionSpec
    description: str | None = None


@dataclass(frozen=True)
class ActionContext:
    button_index: int
    button_name: str
    timestamp: float
    raw_data: bytes
    device_id: str


@dataclass(frozen=True)
class ActionResult:
    kind: str
    ok: bool
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    steps: tuple[ActionResult, ...] = ()
    error: str | None = None


class ActionDispatcher:
    def __init__(
        self,
        mappings: Mapping[int, ButtonAction],
        *,
        include_raw_data: bool = False,
    ) -> None:
        self.mappings = dict(mappings)
        self.include_raw_data = include_raw_data

    async def dispatch(self, event: ControlEvent) -> ActionResult | None:
        """Run the action mapped to the event's button index, if any."""
        mapping = self.mappings.get(event.button_index)
        if mapping is None:
            LOGGER.debug("No action mapped for button %d (%s)", event.button_index, event.control_name)
            return None

        context = ActionContext(
            button_index=event.button_index,
            button_name=mapping.name,
            timestamp=event.timestamp,
            raw_data=event.raw_data,
            device_id=event.device_id,
        )
        try:
            return await self.execute(mapping.action, context)
        except ActionError as exc:
            LOGGER.error("Action for button %d (%s) failed: %s", event.button_index, mapping.name, exc)
            return ActionResult(kind="error", ok=False, error=str(exc))
        except Exception as exc:
            LOGGER.exception("Action for button %d (%s) crashed", event.button_index, mapping.name)
            return ActionResult(kind="error", ok=False, error=str(exc))

    async def execute(self, spec: ActionSpec | str, context: ActionContext) -> ActionResult:
        if isinstance(spec, str):
            spec = parse_action_spec(spec)
        if isinstance(spec, MacroAction):
            return await self._run_macro(spec, context)
        if isinstance(spec, ShellAction):
            return await self._run_shell(spec)
        return self._run_log(context)

    async def _run_macro(self, spec: MacroAction, context: ActionContext) -> ActionResult:
        LOGGER.info("Executing macro with %d actions", len(spec.steps))
        results: list[ActionResult] = []
        for position, step in enumerate(spec.steps, start=1):
            LOGGER.debug("Executing macro step %d: %s", position, describe_action(step))
            try:
                result = await self.execute(step, context)
            except ActionError as exc:
                LOGGER.error("Macro step %d failed: %s", position, exc)
                result = ActionResult(kind="error", ok=False, error=str(exc))
            except Exception as exc:
                LOGGER.exception("Macro step %d crashed", position)
                result = ActionResult(kind="error", ok=False, error=str(exc))
            results.append(result)
        return ActionResult(
            kind="macro",
            ok=all(result.ok for result in results),
            steps=tuple(results),
        )

    async def _run_shell(self, spec: ShellAction) -> ActionResult:
        LOGGER.info("Executing shell command: %s", spec.command)
        try:
            process = await asyncio.create_subprocess_shell(
                spec.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout_bytes, stderr_bytes = await process.communicate()
        except (OSError, ValueError) as exc:
            raise ActionError(f"Could not start command '{spec.command}': {exc}") from exc

        stdout = stdout_bytes.decode(errors="replace")
        stderr = stderr_bytes.decode(errors="replace")
        if stdout:
            LOGGER.info("Command output: %s", stdout.rstrip())
        if stderr:
            LOGGER.warning("Command stderr: %s", stderr.rstrip())
        if process.returncode != 0:
            LOGGER.error("Command '%s' exited with status %s", spec.command, process.returncode)

        return ActionResult(
            kind="shell",
            ok=process.returncode == 0,
            returncode=process.returncode,
            stdout=stdout,
            stderr=stderr,
        )

    def _run_log(self, context: ActionContext) -> ActionResult:
        if self.include_raw_data:
            LOGGER.info(
                "Button pressed: %s (index: %d) raw=%s",
                context.button_name,
                context.button_index,
                context.raw_data.hex(),
            )
        else:
            LOGGER.info("Button pressed: %s (index: %d)", context.button_name, context.button_index)
        return ActionResult(kind="log", ok=True)

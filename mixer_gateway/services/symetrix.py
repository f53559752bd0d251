"""Symetrix Composer Control Protocol codec (push metering subset).

Commands are ASCII strings terminated by a single carriage return. Push
output arrives as ``#<CONTROLLER>=<VALUE>\\r`` with both fields zero-padded
to five decimal digits.
"""

from __future__ import annotations

import codecs
import logging
import re
from dataclasses import dataclass
from typing import Iterable

from ..constants import WIRE_TERMINATOR, WIRE_VALUE_MAX, WIRE_VALUE_MIN

logger = logging.getLogger(__name__)

PUSH_FRAME_PATTERN = re.compile(r"#([0-9]{5})=([0-9]{5})")


@dataclass(frozen=True)
class PushFrame:
    """One decoded push notification."""

    controller: int
    value: int


def clamp_wire_value(value: int) -> int:
    """Clamp an integer into the representable wire range."""
    return max(WIRE_VALUE_MIN, min(WIRE_VALUE_MAX, int(value)))


def _require_wire_value(name: str, value: int, minimum: int = WIRE_VALUE_MIN) -> int:
    number = int(value)
    if number < minimum or number > WIRE_VALUE_MAX:
        raise ValueError(
            f"{name} must be between {minimum} and {WIRE_VALUE_MAX}, got {value}"
        )
    return number


# ============================================================================
# Encode
# ============================================================================


def quiet_mode(enabled: bool = True) -> str:
    """SQ: suppress protocol chatter (ACKs) on the control session."""
    return f"SQ {1 if enabled else 0}"


def echo_mode(enabled: bool = False) -> str:
    """EH: command echo on/off."""
    return f"EH {1 if enabled else 0}"


def push_enable(enabled: bool = True) -> str:
    """PU: global push output on/off."""
    return f"PU {1 if enabled else 0}"


def push_interval(interval_ms: int) -> str:
    """PUI: minimum interval between push updates."""
    return f"PUI {_require_wire_value('push interval', interval_ms, minimum=1)}"


def push_threshold(parameter: int, meter: int) -> str:
    """PUT: change thresholds for parameter-class and meter-class controllers."""
    return f"PUT {clamp_wire_value(parameter)} {clamp_wire_value(meter)}"


def push_enable_controller(controller: int) -> str:
    """PUE: enable push for a single controller."""
    return f"PUE {_require_wire_value('controller', controller)}"


def encode_command(command: str) -> bytes:
    """Terminate a command for the wire."""
    return (command + WIRE_TERMINATOR).encode("ascii")


def configure_sequence(
    controllers: Iterable[int],
    *,
    interval_ms: int,
    threshold: int,
    quiet: bool = True,
    echo: bool = False,
) -> list[str]:
    """Commands sent once per connect, in wire order."""
    commands: list[str] = []
    if quiet:
        commands.append(quiet_mode(True))
    if not echo:
        commands.append(echo_mode(False))
    commands.append(push_enable(True))
    commands.append(push_interval(interval_ms))
    level = clamp_wire_value(threshold)
    commands.append(push_threshold(level, level))
    commands.extend(push_enable_controller(c) for c in controllers)
    return commands


# ============================================================================
# Decode
# ============================================================================


def parse_push_line(line: str) -> PushFrame | None:
    """Parse one trimmed line; returns None for anything that is not a push frame."""
    match = PUSH_FRAME_PATTERN.fullmatch(line)
    if match is None:
        return None
    value = int(match.group(2))
    if value > WIRE_VALUE_MAX:
        return None
    return PushFrame(controller=int(match.group(1)), value=value)


class PushFrameDecoder:
    """Streaming decoder tolerant of arbitrary TCP chunk boundaries."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Unterminated remainder waiting for the next read."""
        return self._buffer

    def feed(self, data: bytes | str) -> list[PushFrame]:
        """Append received data and return every complete frame it finishes."""
        if isinstance(data, bytes):
            data = self._decoder.decode(data)
        self._buffer += data
        *lines, self._buffer = self._buffer.split(WIRE_TERMINATOR)

        frames: list[PushFrame] = []
        for raw_line in lines:
            line = raw_line.strip()
            if not line:
                continue
            frame = parse_push_line(line)
            if frame is None:
                logger.debug("Discarding non-push line: %r", line)
                continue
            frames.append(frame)
        return frames

    def reset(self) -> None:
        self._decoder.reset()
        self._buffer = ""


__all__ = [
    "PUSH_FRAME_PATTERN",
    "PushFrame",
    "PushFrameDecoder",
    "clamp_wire_value",
    "configure_sequence",
    "echo_mode",
    "encode_command",
    "parse_push_line",
    "push_enable",
    "push_enable_controller",
    "push_interval",
    "push_threshold",
    "quiet_mode",
]

"""Persistent push-metering session to one Symetrix DSP.

Design:
 - ONE asyncio task per client owns the socket, the frame decoder and the
   value map. Connect, configure, read and the reconnect wait run strictly
   in sequence inside that task, so state needs no locking.
 - Read-only: the only writes are the push configuration commands.
 - A failed or closed session always ends in exactly one reconnect wait,
   repeated forever until ``stop()``.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import socket
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ..constants import (
    CONNECT_TIMEOUT_SEC,
    DEFAULT_PUSH_INTERVAL_MS,
    DEFAULT_PUSH_THRESHOLD,
    READ_CHUNK_SIZE,
    RECONNECT_DELAY_SEC,
    SYMETRIX_CONTROL_PORT,
)
from ..models import MeterDefinition, MeterReading, MeterSnapshot
from .symetrix import (
    PushFrame,
    PushFrameDecoder,
    clamp_wire_value,
    configure_sequence,
    encode_command,
)

logger = logging.getLogger(__name__)


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class MeterValue:
    """Mutable runtime record, updated in place by push frames."""

    id: str
    label: str
    controller: int
    raw: Optional[int] = None
    last_epoch: Optional[int] = None

    def to_reading(self) -> MeterReading:
        return MeterReading(
            id=self.id,
            label=self.label,
            controller=self.controller,
            raw=self.raw,
            last_epoch=self.last_epoch,
        )


def _describe_error(exc: BaseException) -> str:
    text = str(exc).strip()
    return text or exc.__class__.__name__


class SymetrixMeterClient:
    """Self-healing metering client for one DSP target."""

    def __init__(
        self,
        host: str,
        meters: Sequence[MeterDefinition],
        *,
        port: int = SYMETRIX_CONTROL_PORT,
        push_interval_ms: int = DEFAULT_PUSH_INTERVAL_MS,
        push_threshold: int = DEFAULT_PUSH_THRESHOLD,
        quiet_mode: bool = True,
        echo_mode: bool = False,
        reconnect_delay: float = RECONNECT_DELAY_SEC,
        connect_timeout: float = CONNECT_TIMEOUT_SEC,
        clock: Callable[[], float] = time.time,
    ):
        self.host = host
        self.port = port
        self.push_interval_ms = int(push_interval_ms)
        self.push_threshold = clamp_wire_value(push_threshold)
        self.quiet_mode = quiet_mode
        self.echo_mode = echo_mode
        self.reconnect_delay = reconnect_delay
        self.connect_timeout = connect_timeout
        self._clock = clock

        self._definitions: tuple[MeterDefinition, ...] = tuple(meters)
        self._values: dict[str, MeterValue] = {}
        self._by_controller: dict[int, str] = {}
        for meter in self._definitions:
            self._values[meter.id] = MeterValue(
                id=meter.id, label=meter.label, controller=meter.controller
            )
            previous = self._by_controller.get(meter.controller)
            if previous is not None and previous != meter.id:
                logger.warning(
                    "Controller %d on %s is mapped to both %s and %s; %s wins",
                    meter.controller,
                    host,
                    previous,
                    meter.id,
                    meter.id,
                )
            self._by_controller[meter.controller] = meter.id

        self._state = ConnectionState.DISCONNECTED
        self._last_connect_epoch: int | None = None
        self._last_error: str | None = None
        self._next_reconnect_at: float | None = None
        self._decoder = PushFrameDecoder()
        self._task: asyncio.Task | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._connect_attempts = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        """Return True while the session task is alive."""
        return self._task is not None and not self._task.done()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def next_reconnect_at(self) -> float | None:
        """Epoch seconds of the pending reconnect, or None."""
        return self._next_reconnect_at

    @property
    def connect_attempts(self) -> int:
        return self._connect_attempts

    @property
    def meter_count(self) -> int:
        return len(self._definitions)

    async def start(self) -> None:
        """Start the session (no-op without meters or when already running)."""
        if not self._definitions:
            logger.info("No meters configured for %s; meter client idle", self.host)
            return
        if self.running:
            return
        self._state = ConnectionState.CONNECTING
        self._task = asyncio.create_task(
            self._run(), name=f"symetrix-meters-{self.host}"
        )

    async def stop(self) -> None:
        """Cancel any pending reconnect and drop the socket."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._close_writer()
        self._next_reconnect_at = None
        self._state = ConnectionState.DISCONNECTED

    def snapshot(self) -> MeterSnapshot:
        """Return an immutable copy of the observable state."""
        return MeterSnapshot(
            connected=self.connected,
            last_connect_epoch=self._last_connect_epoch,
            last_error=self._last_error,
            meters=[value.to_reading() for value in self._values.values()],
        )

    # ------------------------------------------------------------------
    # Session task
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            self._state = ConnectionState.CONNECTING
            try:
                await self._session()
            except asyncio.CancelledError:
                raise
            except (OSError, asyncio.TimeoutError) as exc:
                self._last_error = _describe_error(exc)
                logger.warning(
                    "Symetrix session %s:%d failed: %s",
                    self.host,
                    self.port,
                    self._last_error,
                )
            except Exception as exc:  # noqa: BLE001
                self._last_error = _describe_error(exc)
                logger.exception("Unexpected error in Symetrix session %s", self.host)
            finally:
                self._state = ConnectionState.DISCONNECTED
                self._next_reconnect_at = self._clock() + self.reconnect_delay
                await self._close_writer()

            logger.info(
                "Reconnecting to %s:%d in %.1fs",
                self.host,
                self.port,
                self.reconnect_delay,
            )
            try:
                await asyncio.sleep(self.reconnect_delay)
            finally:
                self._next_reconnect_at = None

    async def _session(self) -> None:
        self._connect_attempts += 1
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(self.host, self.port),
            timeout=self.connect_timeout,
        )
        self._writer = writer
        sock = writer.get_extra_info("socket")
        if sock is not None:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        self._state = ConnectionState.CONNECTED
        self._last_error = None
        self._last_connect_epoch = int(self._clock())
        self._decoder.reset()
        logger.info("Connected to Symetrix DSP at %s:%d", self.host, self.port)

        for command in configure_sequence(
            (meter.controller for meter in self._definitions),
            interval_ms=self.push_interval_ms,
            threshold=self.push_threshold,
            quiet=self.quiet_mode,
            echo=self.echo_mode,
        ):
            writer.write(encode_command(command))
        await writer.drain()

        while True:
            chunk = await reader.read(READ_CHUNK_SIZE)
            if not chunk:
                logger.info("Symetrix DSP at %s closed the connection", self.host)
                return
            for frame in self._decoder.feed(chunk):
                self._apply(frame)

    def _apply(self, frame: PushFrame) -> None:
        meter_id = self._by_controller.get(frame.controller)
        if meter_id is None:
            return
        value = self._values[meter_id]
        value.raw = frame.value
        value.last_epoch = int(self._clock())

    async def _close_writer(self) -> None:
        writer, self._writer = self._writer, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass


__all__ = ["ConnectionState", "MeterValue", "SymetrixMeterClient"]

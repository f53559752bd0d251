"""DSP reachability probing (TCP connect, ICMP ping fallback)."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Sequence

from ..constants import (
    PING_BINARY,
    PROBE_INTERVAL_SEC,
    PROBE_PING_TIMEOUT_SEC,
    PROBE_TCP_TIMEOUT_SEC,
)
from ..models import DspProbe, DspTarget

logger = logging.getLogger(__name__)

TcpProbe = Callable[[str, int, float], Awaitable[int]]
PingProbe = Callable[[str, int], Awaitable[int]]


async def tcp_probe(ip: str, port: int, timeout: float) -> int:
    """Return connect round-trip in ms; raises on refusal or timeout."""
    started = time.monotonic()
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(ip, port), timeout=timeout
        )
    except asyncio.TimeoutError as exc:
        raise TimeoutError("tcp timeout") from exc
    elapsed = int((time.monotonic() - started) * 1000)
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return elapsed


async def ping_probe(ip: str, timeout_sec: int) -> int:
    """Return single-ping wall time in ms; raises if ping fails."""
    started = time.monotonic()
    process = await asyncio.create_subprocess_exec(
        PING_BINARY,
        "-c",
        "1",
        "-W",
        str(timeout_sec),
        ip,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
    )
    returncode = await process.wait()
    if returncode != 0:
        raise OSError(f"ping exited with status {returncode}")
    return int((time.monotonic() - started) * 1000)


class ProbeStore:
    """Latest probe result per DSP target, keyed by target id."""

    def __init__(self):
        self._probes: dict[str, DspProbe] = {}

    def sync_targets(self, targets: Sequence[DspTarget]) -> None:
        """Create slots for new targets and refresh name/ip/disabled of known ones."""
        for target in targets:
            slot = self._probes.get(target.id)
            if slot is None:
                self._probes[target.id] = DspProbe(
                    id=target.id,
                    name=target.name,
                    ip=target.ip,
                    disabled=target.disabled,
                )
            else:
                slot.name = target.name
                slot.ip = target.ip
                slot.disabled = target.disabled

    def get(self, target_id: str) -> DspProbe | None:
        return self._probes.get(target_id)

    def snapshot(self) -> list[DspProbe]:
        return [probe.model_copy() for probe in self._probes.values()]


class ReachabilityProber:
    """Background loop probing every DSP target on a fixed interval."""

    def __init__(
        self,
        targets: Sequence[DspTarget],
        store: ProbeStore,
        *,
        port: int,
        interval_seconds: float = PROBE_INTERVAL_SEC,
        tcp: TcpProbe = tcp_probe,
        ping: PingProbe = ping_probe,
        enabled: bool = True,
    ):
        self._targets = list(targets)
        self._store = store
        self._port = port
        self._interval = max(0.01, float(interval_seconds))
        self._tcp = tcp
        self._ping = ping
        self._enabled = enabled
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self._store.sync_targets(self._targets)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start probing (no-op when disabled or without targets)."""
        if not self._enabled:
            logger.info("DSP reachability probing is disabled")
            return
        if not self._targets or self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name="dsp-reachability-prober")

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

    async def probe_one(self, target: DspTarget) -> DspProbe:
        """Probe one target and update its slot in place."""
        self._store.sync_targets([target])
        slot = self._store.get(target.id)
        if slot is None:
            raise RuntimeError(f"No probe slot for DSP target {target.id}")
        slot.last_check_epoch = int(time.time())

        if target.disabled:
            slot.ok = None
            slot.error = "disabled"
            slot.method = None
            slot.rtt_ms = None
            return slot

        try:
            rtt = await self._tcp(target.ip, self._port, PROBE_TCP_TIMEOUT_SEC)
            slot.ok = True
            slot.method = "tcp"
            slot.rtt_ms = rtt
            slot.error = None
            return slot
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            slot.ok = False
            slot.method = "tcp"
            slot.rtt_ms = None
            slot.error = str(exc) or exc.__class__.__name__

        try:
            rtt = await self._ping(target.ip, PROBE_PING_TIMEOUT_SEC)
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            # keep tcp failure info
            logger.debug("Ping fallback failed for %s", target.ip, exc_info=True)
            return slot
        slot.ok = True
        slot.method = "ping"
        slot.rtt_ms = rtt
        slot.error = None
        return slot

    async def probe_all(self) -> None:
        for target in self._targets:
            await self.probe_one(target)

    async def _run(self) -> None:
        """Background loop."""
        try:
            while not self._stop_event.is_set():
                await self.probe_all()
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self._interval
                    )
                except asyncio.TimeoutError:
                    continue
        except asyncio.CancelledError:
            pass


__all__ = ["ProbeStore", "ReachabilityProber", "ping_probe", "tcp_probe"]

"""Process-wide gateway state owned by the application factory."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from fastapi.requests import HTTPConnection

from ..models import GatewaySettings
from .probe import ProbeStore, ReachabilityProber
from .registry import MeterClientRegistry


@dataclass
class GatewayRuntime:
    """Meter clients, probe results and boot metadata for one app instance."""

    settings: GatewaySettings
    registry: MeterClientRegistry
    probe_store: ProbeStore
    prober: ReachabilityProber | None = None
    boot_time: float = field(default_factory=time.time)
    ws_clients: int = 0

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> "GatewayRuntime":
        store = ProbeStore()
        prober = ReachabilityProber(
            settings.targets,
            store,
            port=settings.probe_port,
            enabled=settings.probing_enabled,
        )
        return cls(
            settings=settings,
            registry=MeterClientRegistry.from_settings(settings),
            probe_store=store,
            prober=prober,
        )

    async def start(self) -> None:
        await self.registry.start_all()
        if self.prober is not None:
            await self.prober.start()

    async def shutdown(self) -> None:
        if self.prober is not None:
            await self.prober.stop()
        await self.registry.stop_all()


def get_gateway_runtime(connection: HTTPConnection) -> GatewayRuntime:
    """Dependency returning the runtime attached to the running app.

    Takes an HTTPConnection so HTTP routes and WebSocket routes share it.
    """
    return connection.app.state.runtime


__all__ = ["GatewayRuntime", "get_gateway_runtime"]

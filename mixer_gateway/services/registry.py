"""Per-target meter client table owned by the application."""

from __future__ import annotations

import logging
from typing import Iterator

from ..models import GatewaySettings, MeterClientSummary
from .meter_client import SymetrixMeterClient

logger = logging.getLogger(__name__)


class MeterClientRegistry:
    """Explicit map of DSP target id -> meter client."""

    def __init__(self, clients: dict[str, SymetrixMeterClient] | None = None):
        self._clients: dict[str, SymetrixMeterClient] = dict(clients or {})

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> "MeterClientRegistry":
        """Build one client per enabled target that has meters configured."""
        allowlist = set(settings.meter_target_ids)
        clients: dict[str, SymetrixMeterClient] = {}
        for target in settings.targets:
            meters = settings.meter_map.get(target.id, [])
            if not meters:
                continue
            if target.disabled:
                logger.info("DSP target %s is disabled; skipping meters", target.id)
                continue
            if allowlist and target.id not in allowlist:
                continue
            clients[target.id] = SymetrixMeterClient(
                host=target.ip,
                meters=meters,
                port=settings.control_port,
                push_interval_ms=settings.push_interval_ms,
                push_threshold=settings.push_threshold,
            )
        unknown = set(settings.meter_map) - {target.id for target in settings.targets}
        for target_id in sorted(unknown):
            logger.warning("Meter map references unknown DSP target %s", target_id)
        return cls(clients)

    def __contains__(self, target_id: object) -> bool:
        return target_id in self._clients

    def __len__(self) -> int:
        return len(self._clients)

    def __iter__(self) -> Iterator[str]:
        return iter(self._clients)

    def get(self, target_id: str) -> SymetrixMeterClient | None:
        return self._clients.get(target_id)

    def items(self) -> list[tuple[str, SymetrixMeterClient]]:
        return list(self._clients.items())

    def summaries(self) -> list[MeterClientSummary]:
        summaries = []
        for target_id, client in self._clients.items():
            snapshot = client.snapshot()
            summaries.append(
                MeterClientSummary(
                    id=target_id,
                    connected=snapshot.connected,
                    meter_count=len(snapshot.meters),
                )
            )
        return summaries

    async def start_all(self) -> None:
        for target_id, client in self._clients.items():
            logger.info(
                "Starting meter client for %s (%s:%d, %d meters)",
                target_id,
                client.host,
                client.port,
                client.meter_count,
            )
            await client.start()

    async def stop_all(self) -> None:
        for target_id, client in self._clients.items():
            try:
                await client.stop()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Stopping meter client %s failed: %s", target_id, exc)


__all__ = ["MeterClientRegistry"]

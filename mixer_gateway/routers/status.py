"""Gateway status endpoint."""

import time

from fastapi import APIRouter, Depends

from ..constants import APP_NAME
from ..models import DspStatus, GatewayStatus, MetersStatus, UpdateStatus
from ..services import config, read_epoch_file, read_release_id
from ..services.runtime import GatewayRuntime, get_gateway_runtime

router = APIRouter(prefix="/api", tags=["status"])


@router.get("/status", response_model=GatewayStatus)
async def get_status(runtime: GatewayRuntime = Depends(get_gateway_runtime)):
    """Gateway health, DSP reachability, UI sockets and meter-client summary."""
    now = time.time()
    settings = runtime.settings
    return GatewayStatus(
        app=APP_NAME,
        release_id=read_release_id(config.release_id_file()),
        now_epoch=int(now),
        boot_time_epoch=int(runtime.boot_time),
        uptime_sec=max(0, int(now - runtime.boot_time)),
        ws_clients=runtime.ws_clients,
        last_operator_activity_epoch=read_epoch_file(config.activity_file()),
        update=UpdateStatus(
            last_check_epoch=read_epoch_file(config.update_last_check_file()),
            last_deploy_epoch=read_epoch_file(config.update_last_deploy_file()),
        ),
        dsp=DspStatus(
            probe_port=settings.probe_port,
            targets=runtime.probe_store.snapshot(),
        ),
        meters=MetersStatus(
            push_interval_ms=settings.push_interval_ms,
            push_threshold=settings.push_threshold,
            targets=runtime.registry.summaries(),
        ),
    )

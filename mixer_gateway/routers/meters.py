"""Per-target meter snapshot endpoint."""

from fastapi import APIRouter, Depends

from ..error_codes import ErrorCode
from ..exceptions import GatewayError
from ..models import ErrorResponse, TargetMetersResponse
from ..services.runtime import GatewayRuntime, get_gateway_runtime

router = APIRouter(prefix="/api/meters", tags=["meters"])


@router.get(
    "/{target_id}",
    response_model=TargetMetersResponse,
    summary="Latest meter values for one DSP target",
    responses={404: {"model": ErrorResponse}},
)
async def get_target_meters(
    target_id: str,
    runtime: GatewayRuntime = Depends(get_gateway_runtime),
):
    """Return the meter client's snapshot; never waits on the DSP."""
    client = runtime.registry.get(target_id)
    if client is None:
        raise GatewayError(
            error_code=ErrorCode.METER_TARGET_NOT_FOUND.value,
            message="No meter client configured for targetId.",
        )
    snapshot = client.snapshot()
    return TargetMetersResponse(target_id=target_id, **snapshot.model_dump())

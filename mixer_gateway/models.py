"""Pydantic models for the WLCB Mixer gateway."""

from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from .constants import (
    DEFAULT_PROBE_PORT,
    DEFAULT_PUSH_INTERVAL_MS,
    DEFAULT_PUSH_THRESHOLD,
    SYMETRIX_CONTROL_PORT,
    WIRE_VALUE_MAX,
)

# Common constrained types
NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
WireInt = Annotated[int, Field(ge=0, le=WIRE_VALUE_MAX)]
Port = Annotated[int, Field(ge=1, le=65535)]


# ============================================================================
# Configuration Models
# ============================================================================


class DspTarget(BaseModel):
    """A DSP device the gateway knows about."""

    id: NonEmptyStr
    name: NonEmptyStr
    ip: NonEmptyStr
    disabled: bool = False


class MeterDefinition(BaseModel):
    """Static binding of a logical meter to a device controller number."""

    model_config = ConfigDict(frozen=True)

    id: NonEmptyStr
    label: NonEmptyStr
    controller: WireInt


class GatewaySettings(BaseModel):
    """Everything the composition root needs to build meter clients."""

    targets: list[DspTarget] = Field(default_factory=list)
    meter_map: dict[str, list[MeterDefinition]] = Field(default_factory=dict)
    meter_target_ids: list[str] = Field(
        default_factory=list,
        description="Allowlist of target ids that get meter clients (empty = all)",
    )
    control_port: Port = SYMETRIX_CONTROL_PORT
    push_interval_ms: int = Field(default=DEFAULT_PUSH_INTERVAL_MS, ge=1, le=WIRE_VALUE_MAX)
    push_threshold: WireInt = DEFAULT_PUSH_THRESHOLD
    probe_port: Port = DEFAULT_PROBE_PORT
    probing_enabled: bool = True


# ============================================================================
# Meter Snapshot Models
# ============================================================================


class MeterReading(BaseModel):
    """Point-in-time copy of one meter value."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    label: str
    controller: int
    raw: Optional[WireInt] = None
    last_epoch: Optional[int] = Field(default=None, serialization_alias="lastEpoch")


class MeterSnapshot(BaseModel):
    """Immutable copy of a meter client's observable state.

    Serialized with camelCase aliases:
        {"connected": true, "lastConnectEpoch": 1700000000, "lastError": null,
         "meters": [{"id": "vu_program", "label": "Program", "controller": 9001,
                     "raw": 32768, "lastEpoch": 1700000001}]}
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    connected: bool = False
    last_connect_epoch: Optional[int] = Field(
        default=None, serialization_alias="lastConnectEpoch"
    )
    last_error: Optional[str] = Field(default=None, serialization_alias="lastError")
    meters: list[MeterReading] = Field(default_factory=list)


class TargetMetersResponse(MeterSnapshot):
    """Response payload for GET /api/meters/{target_id}."""

    target_id: str = Field(serialization_alias="targetId")


# ============================================================================
# Status Models
# ============================================================================


class DspProbe(BaseModel):
    """Latest reachability probe result for one DSP target."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    ip: str
    disabled: bool = False
    ok: Optional[bool] = None
    method: Optional[Literal["tcp", "ping"]] = None
    rtt_ms: Optional[int] = Field(default=None, serialization_alias="rttMs")
    last_check_epoch: Optional[int] = Field(
        default=None, serialization_alias="lastCheckEpoch"
    )
    error: Optional[str] = None


class DspStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    probe_port: int = Field(serialization_alias="probePort")
    targets: list[DspProbe] = Field(default_factory=list)


class MeterClientSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    connected: bool
    meter_count: int = Field(serialization_alias="meterCount")


class MetersStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    push_interval_ms: int = Field(serialization_alias="pushIntervalMs")
    push_threshold: int = Field(serialization_alias="pushThreshold")
    targets: list[MeterClientSummary] = Field(default_factory=list)


class UpdateStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    last_check_epoch: Optional[int] = Field(
        default=None, serialization_alias="lastCheckEpoch"
    )
    last_deploy_epoch: Optional[int] = Field(
        default=None, serialization_alias="lastDeployEpoch"
    )


class GatewayStatus(BaseModel):
    """Response payload for GET /api/status."""

    model_config = ConfigDict(populate_by_name=True)

    app: str
    release_id: Optional[str] = Field(default=None, serialization_alias="releaseId")
    now_epoch: int = Field(serialization_alias="nowEpoch")
    boot_time_epoch: int = Field(serialization_alias="bootTimeEpoch")
    uptime_sec: int = Field(serialization_alias="uptimeSec")
    ws_clients: int = Field(default=0, serialization_alias="wsClients")
    last_operator_activity_epoch: Optional[int] = Field(
        default=None, serialization_alias="lastOperatorActivityEpoch"
    )
    update: UpdateStatus = Field(default_factory=UpdateStatus)
    dsp: DspStatus
    meters: MetersStatus


# ============================================================================
# Error Response Models (RFC 9457)
# ============================================================================


class ErrorResponse(BaseModel):
    """RFC 9457 Problem Details compliant error response.

    Content-Type: application/problem+json

    Example:
        {
            "type": "/errors/meter-target-not-found",
            "title": "Meter Target Not Found",
            "status": 404,
            "detail": "No meter client configured for targetId.",
            "error_code": "METER_TARGET_NOT_FOUND",
            "category": "meter"
        }
    """

    type: Optional[str] = Field(
        default=None,
        description="URI reference identifying the problem type (e.g., '/errors/meter-target-not-found')",
    )
    title: Optional[str] = Field(
        default=None, description="Short human-readable summary of the problem"
    )
    status: Optional[int] = Field(
        default=None, description="HTTP status code for this error"
    )
    detail: str | dict[str, Any] = Field(description="Human-readable error description")
    error_code: Optional[str] = Field(
        default=None,
        description="Application-specific error code (e.g., 'METER_TARGET_NOT_FOUND')",
    )
    category: Optional[str] = Field(
        default=None, description="Error category (e.g., 'meter', 'validation')"
    )

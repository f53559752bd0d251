"""Services for the WLCB Mixer gateway."""

from .config import (
    load_dsp_targets,
    load_gateway_settings,
    load_meter_map,
    resolve_push_interval_ms,
    resolve_push_threshold,
)
from .meter_client import ConnectionState, MeterValue, SymetrixMeterClient
from .probe import ProbeStore, ReachabilityProber, ping_probe, tcp_probe
from .registry import MeterClientRegistry
from .symetrix import (
    PushFrame,
    PushFrameDecoder,
    configure_sequence,
    encode_command,
    parse_push_line,
)
from .system import mark_operator_activity, read_epoch_file, read_release_id

__all__ = [
    # config
    "load_dsp_targets",
    "load_gateway_settings",
    "load_meter_map",
    "resolve_push_interval_ms",
    "resolve_push_threshold",
    # meter client
    "ConnectionState",
    "MeterValue",
    "SymetrixMeterClient",
    # probe
    "ProbeStore",
    "ReachabilityProber",
    "ping_probe",
    "tcp_probe",
    # registry
    "MeterClientRegistry",
    # symetrix codec
    "PushFrame",
    "PushFrameDecoder",
    "configure_sequence",
    "encode_command",
    "parse_push_line",
    # system
    "mark_operator_activity",
    "read_epoch_file",
    "read_release_id",
]

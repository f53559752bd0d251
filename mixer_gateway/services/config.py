"""Configuration loading from the environment.

DSP_TARGETS_JSON example:
    [{"id": "aec", "name": "Engineering", "ip": "10.0.0.20"}]

DSP_METER_MAP_JSON example (keys must match DSP target ids):
    {
      "aec": [
        {"id": "vu_program", "label": "Program", "controller": 9001},
        {"id": "vu_rec", "label": "Record", "controller": 9002}
      ]
    }
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..constants import (
    DEFAULT_ACTIVITY_FILE,
    DEFAULT_PROBE_PORT,
    DEFAULT_PUSH_INTERVAL_MS,
    DEFAULT_PUSH_THRESHOLD,
    DEFAULT_RELEASE_ID_FILE,
    DEFAULT_UI_DIR,
    DEFAULT_UPDATE_LAST_CHECK_FILE,
    DEFAULT_UPDATE_LAST_DEPLOY_FILE,
    SYMETRIX_CONTROL_PORT,
    WIRE_VALUE_MAX,
)
from ..models import DspTarget, GatewaySettings, MeterDefinition
from .symetrix import clamp_wire_value

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    """Return True if an env var looks enabled."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int, minimum: int, maximum: int) -> int:
    """Read an integer env var; out-of-range or garbage falls back to default."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(float(raw))
    except (ValueError, OverflowError):
        logger.warning("%s=%s is not a number; using default %s", name, raw, default)
        return default
    if value < minimum or value > maximum:
        logger.warning(
            "%s=%s is outside [%s, %s]; using default %s",
            name,
            raw,
            minimum,
            maximum,
            default,
        )
        return default
    return value


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name, "").strip()
    return Path(raw) if raw else default


def _load_json_env(name: str) -> Any:
    raw = os.getenv(name)
    if not raw or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("%s is not valid JSON: %s", name, exc)
        return None


def load_dsp_targets() -> list[DspTarget]:
    """Parse DSP_TARGETS_JSON; incomplete entries are dropped."""
    parsed = _load_json_env("DSP_TARGETS_JSON")
    if parsed is None:
        return []
    if not isinstance(parsed, list):
        logger.warning("DSP_TARGETS_JSON must be a JSON array; ignoring")
        return []

    targets: list[DspTarget] = []
    for entry in parsed:
        if not isinstance(entry, dict):
            continue
        try:
            targets.append(
                DspTarget(
                    id=str(entry.get("id") or ""),
                    name=str(entry.get("name") or ""),
                    ip=str(entry.get("ip") or ""),
                    disabled=bool(entry.get("disabled", False)),
                )
            )
        except ValidationError:
            logger.warning("Skipping incomplete DSP target: %s", entry)
    return targets


def _parse_meter_definition(entry: Any) -> MeterDefinition | None:
    if not isinstance(entry, dict):
        return None
    controller = entry.get("controller")
    if isinstance(controller, bool) or not isinstance(controller, (int, float, str)):
        return None
    try:
        return MeterDefinition(
            id=str(entry.get("id") or ""),
            label=str(entry.get("label") or ""),
            controller=int(float(controller)),
        )
    except (ValueError, OverflowError, ValidationError):
        return None


def load_meter_map() -> dict[str, list[MeterDefinition]]:
    """Parse DSP_METER_MAP_JSON into target id -> meter definitions."""
    parsed = _load_json_env("DSP_METER_MAP_JSON")
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        logger.warning("DSP_METER_MAP_JSON must be a JSON object; ignoring")
        return {}

    meter_map: dict[str, list[MeterDefinition]] = {}
    for target_id, entries in parsed.items():
        if not isinstance(entries, list):
            logger.warning("Meter map for %s is not a list; ignoring", target_id)
            continue
        meters: list[MeterDefinition] = []
        for entry in entries:
            meter = _parse_meter_definition(entry)
            if meter is None:
                logger.warning("Skipping invalid meter for %s: %s", target_id, entry)
                continue
            meters.append(meter)
        meter_map[str(target_id)] = meters
    return meter_map


def resolve_push_interval_ms() -> int:
    return _env_int(
        "DSP_METER_PUSH_INTERVAL_MS", DEFAULT_PUSH_INTERVAL_MS, 1, WIRE_VALUE_MAX
    )


def resolve_push_threshold() -> int:
    """Threshold in meter units; values outside the wire range are clamped."""
    raw = os.getenv("DSP_METER_PUSH_THRESHOLD", "").strip()
    if not raw:
        return DEFAULT_PUSH_THRESHOLD
    try:
        return clamp_wire_value(int(float(raw)))
    except (ValueError, OverflowError):
        logger.warning(
            "DSP_METER_PUSH_THRESHOLD=%s is not a number; using default %s",
            raw,
            DEFAULT_PUSH_THRESHOLD,
        )
        return DEFAULT_PUSH_THRESHOLD


def _resolve_meter_target_ids() -> list[str]:
    raw = os.getenv("DSP_METER_TARGETS", "")
    return [part.strip() for part in raw.split(",") if part.strip()]


def load_gateway_settings() -> GatewaySettings:
    """Collect every DSP/metering setting from the environment."""
    return GatewaySettings(
        targets=load_dsp_targets(),
        meter_map=load_meter_map(),
        meter_target_ids=_resolve_meter_target_ids(),
        control_port=_env_int("DSP_CONTROL_PORT", SYMETRIX_CONTROL_PORT, 1, 65535),
        push_interval_ms=resolve_push_interval_ms(),
        push_threshold=resolve_push_threshold(),
        probe_port=_env_int("DSP_PROBE_PORT", DEFAULT_PROBE_PORT, 1, 65535),
        probing_enabled=not _env_flag("MIXER_DISABLE_PROBING"),
    )


def activity_file() -> Path:
    return _env_path("ACTIVITY_FILE", DEFAULT_ACTIVITY_FILE)


def update_last_check_file() -> Path:
    return _env_path("UPDATE_LAST_CHECK_FILE", DEFAULT_UPDATE_LAST_CHECK_FILE)


def update_last_deploy_file() -> Path:
    return _env_path("UPDATE_LAST_DEPLOY_FILE", DEFAULT_UPDATE_LAST_DEPLOY_FILE)


def release_id_file() -> Path:
    return _env_path("MIXER_RELEASE_ID_FILE", DEFAULT_RELEASE_ID_FILE)


def ui_dir() -> Path:
    return _env_path("MIXER_UI_DIR", DEFAULT_UI_DIR)

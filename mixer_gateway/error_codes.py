"""Error codes for the gateway HTTP API.

Each code maps to an HTTP status, a category and a short title used in
RFC 9457 problem responses.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Error category classification."""

    METER = "meter"
    VALIDATION = "validation"
    INTERNAL = "internal"


class ErrorCode(str, Enum):
    """Application error codes."""

    METER_TARGET_NOT_FOUND = "METER_TARGET_NOT_FOUND"


@dataclass(frozen=True)
class ErrorMapping:
    """Mapping from error code to HTTP response details."""

    http_status: int
    category: ErrorCategory
    title: str


ERROR_MAPPINGS: dict[ErrorCode, ErrorMapping] = {
    ErrorCode.METER_TARGET_NOT_FOUND: ErrorMapping(
        404, ErrorCategory.METER, "Meter Target Not Found"
    ),
}

# Default mapping for unknown error codes
_DEFAULT_MAPPING = ErrorMapping(500, ErrorCategory.INTERNAL, "Internal Error")


def get_error_mapping(error_code: str) -> ErrorMapping:
    """Get error mapping for a given error code string.

    Returns the default 500/INTERNAL mapping for unknown codes.
    """
    try:
        code = ErrorCode(error_code)
        return ERROR_MAPPINGS.get(code, _DEFAULT_MAPPING)
    except ValueError:
        return _DEFAULT_MAPPING


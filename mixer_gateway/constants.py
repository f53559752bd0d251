"""Constants for the WLCB Mixer gateway."""

from pathlib import Path

# ============================================================================
# Paths
# ============================================================================

PACKAGE_DIR = Path(__file__).parent
PROJECT_ROOT = PACKAGE_DIR.parent
DEFAULT_UI_DIR = PROJECT_ROOT / "public"
DEFAULT_RELEASE_ID_FILE = PROJECT_ROOT / ".release_id"
DEFAULT_ACTIVITY_FILE = Path("/var/lib/wlcb-mixer/last_activity_epoch")
DEFAULT_UPDATE_LAST_CHECK_FILE = Path("/var/lib/wlcb-mixer/update_last_check_epoch")
DEFAULT_UPDATE_LAST_DEPLOY_FILE = Path(
    "/var/lib/wlcb-mixer/update_last_deploy_epoch"
)

APP_NAME = "WLCB-Mixer"

# ============================================================================
# Symetrix Composer Control Protocol
# ============================================================================

SYMETRIX_CONTROL_PORT = 48631
WIRE_TERMINATOR = "\r"
WIRE_VALUE_MIN = 0
WIRE_VALUE_MAX = 65535  # 5 decimal digits, unsigned 16-bit range

# ============================================================================
# Meter client
# ============================================================================

DEFAULT_PUSH_INTERVAL_MS = 200
DEFAULT_PUSH_THRESHOLD = 50
RECONNECT_DELAY_SEC = 3.0
CONNECT_TIMEOUT_SEC = 5.0
READ_CHUNK_SIZE = 4096

# ============================================================================
# Reachability probing
# ============================================================================

DEFAULT_PROBE_PORT = 80
PROBE_INTERVAL_SEC = 5.0
PROBE_TCP_TIMEOUT_SEC = 0.8
PROBE_PING_TIMEOUT_SEC = 1
PING_BINARY = "/bin/ping"

# ============================================================================
# HTTP server
# ============================================================================

DEFAULT_HTTP_HOST = "0.0.0.0"
DEFAULT_HTTP_PORT = 8080

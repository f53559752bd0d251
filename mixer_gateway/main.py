"""
WLCB Mixer gateway
FastAPI service exposing Symetrix DSP metering to the browser mixer UI.
"""

from contextlib import asynccontextmanager
import argparse
import logging
import os

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from .constants import APP_NAME, DEFAULT_HTTP_HOST, DEFAULT_HTTP_PORT
from .exceptions import register_exception_handlers
from .models import GatewaySettings
from .routers import control_router, meters_router, status_router
from .services import config
from .services.config import load_gateway_settings
from .services.runtime import GatewayRuntime, get_gateway_runtime

# OpenAPI tag descriptions
tags_metadata = [
    {
        "name": "status",
        "description": "Gateway status, DSP reachability and meter-client summary",
    },
    {
        "name": "meters",
        "description": "Live DSP meter snapshots (read-only, push-based)",
    },
    {
        "name": "control",
        "description": "Operator WebSocket (hello / control ack, activity tracking)",
    },
]


_logger = logging.getLogger(__name__)


class SpaStaticFiles(StaticFiles):
    """Static UI files with an index.html fallback for client-side routes."""

    async def get_response(self, path: str, scope):
        try:
            return await super().get_response(path, scope)
        except StarletteHTTPException as exc:
            # unknown /api paths keep their problem+json 404
            if exc.status_code != 404 or path.split("/", 1)[0] == "api":
                raise
            return await super().get_response("index.html", scope)


def _resolve_runtime(app: FastAPI) -> GatewayRuntime:
    """Resolve the runtime, honoring dependency overrides."""
    override = app.dependency_overrides.get(get_gateway_runtime)
    if override:
        return override()
    return app.state.runtime


def create_app(settings: GatewaySettings | None = None) -> FastAPI:
    """
    Build the FastAPI app and its per-target meter clients.

    - Settings default to the environment (`DSP_TARGETS_JSON`, `DSP_METER_MAP_JSON`, ...).
    - Meter clients and the reachability prober start in the lifespan, not at import.
    """
    resolved_settings = settings if settings is not None else load_gateway_settings()
    runtime = GatewayRuntime.from_settings(resolved_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifecycle."""
        active = _resolve_runtime(app)
        try:
            await active.start()
            _logger.info(
                "Started %d meter client(s), probing %d DSP target(s)",
                len(active.registry),
                len(active.settings.targets),
            )
        except Exception as exc:  # noqa: BLE001
            _logger.warning("Gateway startup encountered an error: %s", exc)

        yield
        try:
            await active.shutdown()
        except Exception as exc:  # noqa: BLE001
            _logger.warning("Gateway shutdown encountered an error: %s", exc)

    app = FastAPI(
        lifespan=lifespan,
        title=f"{APP_NAME} Gateway",
        description="""
## WLCB Mixer Gateway API

Read-only bridge between the browser mixer UI and Symetrix DSPs.

### Features
- **Metering**: push-based meter values per DSP target (Composer Control Protocol)
- **Status**: DSP reachability, meter-client connection state, release info
- **Operator socket** (`/ws`): hello on connect, ack per control message

### Authentication
Endpoints do not require authentication (studio network only).
    """,
        version="0.3.0",
        openapi_tags=tags_metadata,
    )
    app.state.runtime = runtime

    # Register exception handlers for unified error responses
    register_exception_handlers(app)

    # Include routers
    app.include_router(status_router)
    app.include_router(meters_router)
    app.include_router(control_router)

    # Mount the built UI last so API routes take precedence
    ui_dir = config.ui_dir()
    if ui_dir.is_dir():
        app.mount("/", SpaStaticFiles(directory=str(ui_dir), html=True), name="ui")
    else:

        @app.get("/", response_class=PlainTextResponse, include_in_schema=False)
        async def root_banner():
            return f"{APP_NAME} server running (UI not built yet)."

    return app


app = create_app()


# ============================================================================
# Main entry point
# ============================================================================


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=f"{APP_NAME} gateway")
    parser.add_argument(
        "--host",
        default=os.getenv("HOST", DEFAULT_HTTP_HOST),
        help="bind host (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", str(DEFAULT_HTTP_PORT))),
        help="HTTP port (default: PORT env or 8080)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    _setup_logging(args.verbose)
    _logger.info("%s listening on http://%s:%d", APP_NAME, args.host, args.port)

    from uvicorn import run

    run(
        create_app(),
        host=args.host,
        port=args.port,
        log_level="debug" if args.verbose else "info",
    )


if __name__ == "__main__":
    main()

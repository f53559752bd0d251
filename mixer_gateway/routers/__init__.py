"""API routers for the WLCB Mixer gateway."""

from .control import router as control_router
from .meters import router as meters_router
from .status import router as status_router

__all__ = [
    "control_router",
    "meters_router",
    "status_router",
]

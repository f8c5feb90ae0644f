from spindecide.routers.auth import router as session_router
from spindecide.routers.rooms import router as rooms_router
from spindecide.routers.recent import router as recent_router

__all__ = ["session_router", "rooms_router", "recent_router"]

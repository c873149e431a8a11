"""Route modules."""

from .auth import router as auth_router
from .health import router as health_router
from .sessions import router as sessions_router
from .transcripts import router as transcripts_router
from .uploads import router as uploads_router

__all__ = ["auth_router", "health_router", "sessions_router", "transcripts_router", "uploads_router"]

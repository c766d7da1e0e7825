"""API routes package.

This package contains all FastAPI route modules organized by domain.
"""

from climbscan.routes.analyze import router as analyze_router
from climbscan.routes.health import router as health_router
from climbscan.routes.session import router as session_router

__all__ = ["analyze_router", "health_router", "session_router"]

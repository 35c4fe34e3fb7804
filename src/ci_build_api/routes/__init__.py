from ci_build_api.routes.builds import router as builds_router
from ci_build_api.routes.jobs import router as jobs_router
from ci_build_api.routes.repositories import router as repositories_router

__all__ = [
    "builds_router",
    "jobs_router",
    "repositories_router",
]

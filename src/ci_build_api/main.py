from contextlib import asynccontextmanager

from fastapi import FastAPI

from ci_build_api.db import engine
from ci_build_api.models import Base
from ci_build_api.routes import builds_router, jobs_router, repositories_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables on startup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield


app = FastAPI(
    title="CI Build API",
    description="API for creating, tracking and requeueing CI builds",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(repositories_router, prefix="/api/v1")
app.include_router(builds_router, prefix="/api/v1")
app.include_router(jobs_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    return {"status": "healthy"}

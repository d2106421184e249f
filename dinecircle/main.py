from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dinecircle.core import database
from dinecircle.core.logging import configure_logging
from dinecircle.core.settings import settings
from dinecircle.domains.admin.routes import router as admin_router
from dinecircle.domains.auth.routes import router as auth_router
from dinecircle.domains.groups.routes import router as groups_router
from dinecircle.domains.reviews.routes import router as reviews_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    configure_logging()
    await database.connect()
    yield
    # Shutdown
    await database.disconnect()


app = FastAPI(
    title="DineCircle API",
    description="Permissions, audit trail and review visibility for DineCircle",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL] if settings.FRONTEND_URL else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(groups_router, prefix="/api")
app.include_router(reviews_router, prefix="/api")


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "DineCircle API is running"}


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}

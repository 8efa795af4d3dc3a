from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.database import create_db_and_tables
from app.core.errors import register_exception_handlers
from app.core.rate_limit import limiter
from app.core.request_id import RequestIdMiddleware, configure_logging
from app.routers import auth


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if settings.auto_create_db:
        create_db_and_tables()
    yield


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Account tokens for Psicoreinventar: email verification, password reset and doctor registration",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)

register_exception_handlers(app)

app.include_router(auth.router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
    }


@app.get("/health")
def health_check():
    return {"status": "healthy", "app": settings.app_name}

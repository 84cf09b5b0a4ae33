import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.database import engine
from app.exceptions import BoardError, StorageUnavailable
from app.middleware import TimingMiddleware
from app.routers import accounts, auth, posts

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting community board with %s storage", settings.STORAGE_BACKEND)
    yield
    await engine.dispose()

app = FastAPI(
    title="Community Board API",
    description="Accounts, posts and comments over a JSON-file or relational store",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    # Identity cookies must cross origins, so origins are listed explicitly.
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error mapping
@app.exception_handler(BoardError)
async def board_error_handler(request: Request, exc: BoardError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": StorageUnavailable.detail})

# Routers
app.include_router(accounts.router)
app.include_router(auth.router)
app.include_router(posts.router)

# Uploaded images
Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

@app.get("/health")
async def health():
    return {"status": "healthy", "storage": settings.STORAGE_BACKEND, "version": "1.0.0"}

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request

from app.internal.env_settings import Settings
from app.routers.api import auth, books, user_books, users
from app.util.db import create_db_and_tables
from app.util.log import bind_request_context, logger, setup_logging


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = Settings()
    setup_logging(
        log_level=settings.app.log_level,
        log_format=settings.app.log_format,
        log_file=settings.app.log_file,
        config_dir=settings.app.config_dir,
    )
    create_db_and_tables()
    logger.info("Application started", version=settings.app.version)
    yield


openapi_enabled = Settings().app.openapi_enabled
app = FastAPI(
    title="Shelf",
    version=Settings().app.version,
    lifespan=lifespan,
    openapi_url="/openapi.json" if openapi_enabled else None,
    docs_url="/docs" if openapi_enabled else None,
    redoc_url=None,
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    bind_request_context(request_id=request_id)
    start = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "Handled request",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - start) * 1000, 1),
    )
    response.headers["X-Request-ID"] = request_id
    return response


api_router = APIRouter(prefix="/api")
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(books.router)
api_router.include_router(user_books.router)


@api_router.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "version": Settings().app.version}


app.include_router(api_router)

"""
LocalBeet inventory sync – FastAPI application entry point.

Run with:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 8000
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from app.api.routes import bill_router, sync_router
from app.core.config import settings
from app.core.database import create_db_and_tables
from app.core.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown hooks."""
    setup_logging()
    logger.info("Starting LocalBeet inventory sync backend …")
    create_db_and_tables()
    logger.info("Database tables ready")
    yield
    logger.info("LocalBeet inventory sync backend shut down")


app = FastAPI(
    title="LocalBeet Inventory Sync API",
    description="Zoho bill → purchase order sync and per-location inventory updates",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS – allow admin UI dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(bill_router)
app.include_router(sync_router)


@app.exception_handler(RequestValidationError)
async def invalid_request(request: Request, exc: RequestValidationError):
    errors = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": "Invalid request", "data": {"errors": errors}},
    )


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": f"Internal server error: {exc}", "data": None},
    )


@app.get("/")
def root():
    return {"message": "LocalBeet Inventory Sync API", "docs": "/docs"}

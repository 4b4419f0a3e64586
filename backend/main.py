from fastapi import FastAPI, Request, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
import time
from typing import Any
import uuid

from api_auth import router as auth_router
from api_graphs import router as graphs_router
from api_users import router as users_router

from config import CORS_ORIGINS
from db_neo4j import close_driver
from db_postgres import init_postgres_db
from errors import GraphServiceError
from services_logging import configure_logging, loggable_body, structured_log_line

logger = configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the Postgres schema on startup; close the Neo4j driver on shutdown."""
    try:
        init_postgres_db()
        logger.info("Postgres schema ready")
    except Exception as e:
        logger.error(f"Postgres schema initialisation failed: {e}", exc_info=True)
        raise

    yield

    close_driver()
    logger.info("Neo4j driver closed")


app = FastAPI(
    title="Graph Backend",
    description="Knowledge graphs built from CSV uploads, stored in Neo4j with metadata in Postgres.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(graphs_router)


@app.middleware("http")
async def request_logging(request: Request, call_next):
    start = time.perf_counter()
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    request.state.request_id = request_id

    body = None
    if request.headers.get("content-type", "").startswith("application/json"):
        body = loggable_body(request.url.path, await request.body())

    response = None
    try:
        response = await call_next(request)
    finally:
        latency_ms = int((time.perf_counter() - start) * 1000)
        status_code = getattr(response, "status_code", 500)
        line = structured_log_line(
            {
                "event": "request",
                "request_id": request_id,
                "route": request.url.path,
                "method": request.method,
                "query": str(request.query_params) or None,
                "body": body,
                "status": status_code,
                "latency_ms": latency_ms,
            }
        )
        if status_code >= 500:
            logger.error(line)
        else:
            logger.info(line)

    if isinstance(response, Response):
        response.headers["x-request-id"] = request_id
    return response


def _log_error_response(request: Request, status_code: int, label: str, detail: Any, exc: Exception) -> None:
    """WARNING for caller errors, ERROR with the traceback for server errors."""
    message = f"{label} on {request.method} {request.url.path}: {detail}"
    extra = {
        "status_code": status_code,
        "method": request.method,
        "path": request.url.path,
        "detail": detail,
    }
    if status_code >= 500:
        logger.error(message, extra=extra, exc_info=exc)
    else:
        logger.warning(message, extra=extra)


# Error translation; every error body is {"detail": ...}
@app.exception_handler(GraphServiceError)
async def graph_service_exception_handler(request: Request, exc: GraphServiceError):
    _log_error_response(request, exc.status_code, type(exc).__name__, exc.detail, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Auth failures and explicit HTTP errors; WWW-Authenticate headers pass through."""
    _log_error_response(request, exc.status_code, f"HTTP {exc.status_code}", exc.detail, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    logger.warning(
        f"Validation error on {request.method} {request.url.path} ({len(errors)} problem(s))",
        extra={"method": request.method, "path": request.url.path},
    )
    return JSONResponse(status_code=422, content={"detail": errors})


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Anything unclassified: full traceback in the log, generic message to the client."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}",
        extra={
            "method": request.method,
            "path": request.url.path,
            "exception_type": type(exc).__name__,
        },
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/")
def read_root():
    return {"status": "ok", "message": "Graph backend is running"}

"""
Attendance Ops - FastAPI application.

Wires together:
- JSON logging (app.logging_config), configured before anything logs
- Request tracing: every request carries an X-Request-ID, taken from the
  caller when supplied, and every log line written while serving it
  includes that id
- CORS for the import dashboard
- The import routes (app.routes.imports) and a health check

Schema: SQLite databases are created on the fly; PostgreSQL is managed
by the Alembic migrations in migrations/versions.

Run with the `attendance-ops` console script (or `python -m app.main`);
HOST and PORT default to 0.0.0.0:8000.
"""

import os
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.logging_config import (
    setup_logging, get_logger, log_with_context,
    request_id_var, generate_request_id
)
from app.routes import imports
from app.database import DATABASE_URL, create_tables

# Registers every table on Base.metadata before create_tables runs
from app.models import Module, Program, ProgramModule, Student, MeetingSession, Attendance, Enrollment  # noqa: F401

VERSION = "1.0.0"
REQUEST_ID_HEADER = "X-Request-ID"

setup_logging()
logger = get_logger("http")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if DATABASE_URL.startswith("sqlite"):
        log_with_context(logger, "INFO", "SQLite database, creating tables directly",
                         extra_data={"database_url": DATABASE_URL})
        create_tables()
    yield


app = FastAPI(
    title="Attendance Ops",
    description=(
        "Imports meeting attendance exports, module master lists and enrollment "
        "rosters, and reconciles them into cohort sessions and per-student "
        "attendance records."
    ),
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)


@app.middleware("http")
async def trace_requests(request: Request, call_next):
    """Bind a request id for the request's log lines and echo it back."""
    req_id = generate_request_id(request.headers.get(REQUEST_ID_HEADER))
    token = request_id_var.set(req_id)
    started = time.perf_counter()

    log_with_context(logger, "INFO", f"{request.method} {request.url.path}",
                     extra_data={
                         "client": request.client.host if request.client else "unknown",
                         "content_length": request.headers.get("content-length"),
                     })
    try:
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = req_id
        log_with_context(logger, "INFO",
                         f"{request.method} {request.url.path} -> {response.status_code}",
                         extra_data={
                             "status_code": response.status_code,
                             "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                         })
        return response
    finally:
        request_id_var.reset(token)


app.include_router(imports.router, tags=["Imports"])


@app.get("/health", tags=["Health"])
def health_check():
    return {"status": "healthy", "service": "attendance-ops-backend", "version": VERSION}


@app.get("/", tags=["Root"])
def root():
    return {
        "service": "Attendance Ops",
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "import_attendance": "POST /api/import/attendance",
            "import_modules": "POST /api/import/modules",
            "list_modules": "GET /api/import/modules",
            "import_enrollments": "POST /api/import/enrollments",
        },
    }


def run():
    """Serve the app with uvicorn; HOST and PORT come from the environment."""
    uvicorn.run(
        "app.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    run()

# memorial/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from memorial.api.v1.router import api_router
from memorial.core.config import settings
from memorial.core.errors import DependencyFailure, InvalidInput, MemorialError
from memorial.core.logging_utils import add_log_fields, logging_middleware, setup_logging
from memorial.db.base import Base, engine
from memorial.security.gate import admin_gate_middleware

# --- Import models so SQLAlchemy registers the tables ---
from memorial.models import approver, message  # noqa: F401

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Registered last runs first: logging wraps the admin gate
app.middleware("http")(admin_gate_middleware)
app.middleware("http")(logging_middleware)


# ---------- Error translation ----------

def _is_admin(request: Request) -> bool:
    return getattr(request.state, "admin_id", None) is not None


@app.exception_handler(MemorialError)
async def memorial_error_handler(request: Request, exc: MemorialError):
    content = {"error": exc.message, "code": exc.code}
    if isinstance(exc, DependencyFailure):
        logger.error("%s dependency failed: %s", exc.dependency, exc.detail)
        # Diagnostics only for authenticated admins
        if _is_admin(request):
            content["detail"] = f"{exc.dependency}: {exc.detail}"
    add_log_fields(request, error=exc.code)
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", InvalidInput.message)
    add_log_fields(request, error="validation_error")
    return JSONResponse(
        status_code=InvalidInput.status_code,
        content={
            "error": f"{field}: {message}" if field else message,
            "code": first.get("type", InvalidInput.code),
        },
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"error": "Internal server error.", "code": "internal_error"}
    if _is_admin(request):
        content["detail"] = repr(exc)
    return JSONResponse(status_code=500, content=content)


app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health")
def health_check():
    return {"status": "ok"}

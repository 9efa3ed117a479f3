# memorial/core/logging_utils.py
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request, Response

from memorial.core.config import settings

logger = logging.getLogger("memorial.access")


def setup_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def logging_middleware(request: Request, call_next: Callable) -> Response:
    request_id = str(uuid.uuid4())
    start = time.perf_counter()

    # handlers add fields here (e.g. moderation outcome)
    request.state.request_id = request_id
    request.state.log_extra = {}

    try:
        response = await call_next(request)
    except Exception:
        latency_ms = (time.perf_counter() - start) * 1000.0
        logger.error(json.dumps({
            "ts": iso_now(),
            "level": "error",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": 500,
            "latency_ms": round(latency_ms, 2),
        }))
        raise

    latency_ms = (time.perf_counter() - start) * 1000.0
    log = {
        "ts": iso_now(),
        "level": "info",
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "status": response.status_code,
        "latency_ms": round(latency_ms, 2),
    }
    if isinstance(getattr(request.state, "log_extra", None), dict):
        log.update(request.state.log_extra)

    logger.info(json.dumps(log))
    response.headers["X-Request-ID"] = request_id
    return response


def add_log_fields(request: Request, **fields) -> None:
    extra = getattr(request.state, "log_extra", None)
    if isinstance(extra, dict):
        extra.update(fields)

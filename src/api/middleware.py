import logging
import time
from typing import Callable
from fastapi import Request, Response

logger = logging.getLogger(__name__)


async def request_logging_middleware(request: Request, call_next: Callable) -> Response:
    """Log method, path, status and latency of every request.

    Request bodies are never logged; webhook bodies can carry the shared secret.
    """
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.exception(f"{request.method} {request.url.path} failed after {elapsed_ms:.1f}ms")
        raise

    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
    return response

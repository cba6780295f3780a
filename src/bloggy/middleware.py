import time

import structlog
from fastapi import Request

logger = structlog.get_logger(__name__)


async def log_requests(request: Request, call_next):
    """Log every request with its outcome and timing"""
    start_time = time.time()

    response = await call_next(request)

    process_time = time.time() - start_time
    logger.info("http_request",
                method=request.method,
                url=str(request.url),
                status_code=response.status_code,
                process_time=process_time,
                ip=request.client.host if request.client else None)

    response.headers["X-Process-Time"] = str(process_time)
    return response

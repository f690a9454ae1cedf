"""
Request logging middleware
"""
from fastapi import Request
from typing import Callable
import logging
import time

logger = logging.getLogger(__name__)


def route_area(request: Request) -> str:
    """Tag of the matched router (Notifications, Categories, Notes, Debts)."""
    route = request.scope.get("route")
    tags = getattr(route, "tags", None)
    return tags[0] if tags else "-"


async def logging_middleware(request: Request, call_next: Callable):
    """
    Log every request with its status and timing.
    Adds an X-Process-Time header to the response.
    """
    start_time = time.time()

    client_ip = request.client.host if request.client else "unknown"
    logger.info(f"📥 {request.method} {request.url.path} from {client_ip}")

    try:
        response = await call_next(request)

        duration = (time.time() - start_time) * 1000  # ms

        status_emoji = "✅" if response.status_code < 400 else "❌"
        logger.info(
            f"{status_emoji} [{route_area(request)}] {request.method} {request.url.path} "
            f"→ {response.status_code} ({duration:.0f}ms)"
        )

        response.headers["X-Process-Time"] = f"{duration:.2f}ms"

        return response

    except Exception as e:
        duration = (time.time() - start_time) * 1000
        logger.error(f"❌ {request.method} {request.url.path} → ERROR ({duration:.0f}ms): {str(e)}")
        raise

import logging
import time

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware:
    """Пишет в лог метод, путь, статус и длительность каждого запроса."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        start_time = time.monotonic()
        response = self.get_response(request)
        duration = time.monotonic() - start_time

        logger.info(
            "%s %s -> %s (%.3fs)",
            request.method, request.path, response.status_code, duration,
        )
        return response

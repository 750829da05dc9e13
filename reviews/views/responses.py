import logging

from django.conf import settings
from rest_framework import status
from rest_framework.response import Response

from ..deadline import Deadline
from ..exceptions import DeadlineExceeded, DomainError, InvalidField, NotFound, StorageError

logger = logging.getLogger(__name__)

# Порядок важен: первое совпадение по иерархии исключений
DOMAIN_ERROR_STATUSES = [
    (NotFound, status.HTTP_404_NOT_FOUND),
    (InvalidField, status.HTTP_400_BAD_REQUEST),
    (DomainError, status.HTTP_409_CONFLICT),
]


def request_deadline() -> Deadline:
    return Deadline.after(settings.REQUEST_TIMEOUT)


def error_response(code: str, message: str, status_code: int) -> Response:
    return Response({
        'error': {
            'code': code,
            'message': message,
        }
    }, status=status_code)


def validation_error(message: str) -> Response:
    return error_response('VALIDATION_ERROR', message, status.HTTP_400_BAD_REQUEST)


def exception_response(exc: Exception, operation: str) -> Response:
    """Переводит исключение сервисного слоя в ответ API."""
    if isinstance(exc, DomainError):
        for error_class, status_code in DOMAIN_ERROR_STATUSES:
            if isinstance(exc, error_class):
                logger.warning("%s rejected: %s (%s)", operation, exc.message, exc.code)
                return error_response(exc.code, exc.message, status_code)

    if isinstance(exc, DeadlineExceeded):
        logger.warning("%s timed out", operation)
        return error_response(exc.code, str(exc), status.HTTP_504_GATEWAY_TIMEOUT)

    if isinstance(exc, StorageError):
        logger.error("%s failed on storage: %s", operation, exc)
    else:
        logger.exception("%s failed", operation)

    return error_response('SERVER_ERROR', 'Internal server error', status.HTTP_500_INTERNAL_SERVER_ERROR)

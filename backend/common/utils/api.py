"""Translate service-layer exceptions into DRF responses."""

import functools
import logging

from rest_framework import status
from rest_framework.response import Response

from services.ride_management.exceptions import (
    ConflictError,
    EngineError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InternalError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def engine_error_response(exc: EngineError) -> Response:
    code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_class, http_status in STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            code = http_status
            break

    if code >= 500:
        logger.error("Service failure: %s", exc.message, exc_info=exc)
        return Response({'error': 'Internal error', 'code': exc.error_code}, status=code)

    body = {'error': exc.message, 'code': exc.error_code}
    if exc.details:
        body['details'] = exc.details
    return Response(body, status=code)


def handles_engine_errors(view):
    """Decorator for DRF views: EngineError -> {"error": ...} with the matching status."""

    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except EngineError as exc:
            return engine_error_response(exc)

    return wrapper


class EngineErrorMixin:
    """APIView mixin with the same EngineError handling as ``handles_engine_errors``."""

    def handle_exception(self, exc):
        if isinstance(exc, EngineError):
            return engine_error_response(exc)
        return super().handle_exception(exc)

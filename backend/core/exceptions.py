"""
API error type and the DRF exception handler.

Every error response has the body ``{"code", "message", "details"}``.
"""
import logging

from django.http import Http404, JsonResponse
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ApiError(exceptions.APIException):
    """Domain error carrying an HTTP status and a machine readable code"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'BAD_REQUEST'
    default_detail = 'Bad request.'

    def __init__(self, status_code, code, message, details=None):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details
        super().__init__(detail=message, code=code)


def error_body(code, message, details=None):
    return {'code': code, 'message': message, 'details': details}


def _flatten_detail(detail):
    if isinstance(detail, list) and detail:
        return _flatten_detail(detail[0])
    if isinstance(detail, dict) and detail:
        return _flatten_detail(next(iter(detail.values())))
    return str(detail)


def api_exception_handler(exc, context):
    if isinstance(exc, ApiError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}")
        return Response(error_body(exc.code, exc.message, exc.details), status=exc.status_code)

    if isinstance(exc, exceptions.ValidationError):
        return Response(
            error_body('VALIDATION_ERROR', 'Invalid request payload.', exc.detail),
            status=status.HTTP_400_BAD_REQUEST,
        )

    response = exception_handler(exc, context)
    if response is None:
        view = context.get('view')
        logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {exc}")
        return Response(
            error_body('INTERNAL_SERVER_ERROR', 'Internal server error.'),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        code = 'UNAUTHORIZED'
    elif isinstance(exc, exceptions.PermissionDenied):
        code = 'FORBIDDEN'
    elif isinstance(exc, (exceptions.NotFound, Http404)):
        code = 'NOT_FOUND'
    elif isinstance(exc, exceptions.MethodNotAllowed):
        code = 'METHOD_NOT_ALLOWED'
    else:
        code = getattr(exc, 'default_code', 'ERROR').upper()

    message = _flatten_detail(getattr(exc, 'detail', str(exc)))
    response.data = error_body(code, message)
    return response


def not_found_view(request, exception=None):
    return JsonResponse(error_body('NOT_FOUND', 'Route not found.'), status=404)


def server_error_view(request):
    return JsonResponse(error_body('INTERNAL_SERVER_ERROR', 'Internal server error.'), status=500)

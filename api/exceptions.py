# api/exceptions.py
"""
Error taxonomy for the JSON API. Every error leaves the API as
{"success": false, "message": ...}; database and cache internals are
logged, never returned.
"""
import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

from algorithms.blood_groups import InvalidBloodGroup
from algorithms.haversine import CoordinateError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = 'Something went wrong. Please try again.'


class InvalidInput(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'invalid_input'


class UpstreamUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Service temporarily unavailable. Please try again.'
    default_code = 'upstream_unavailable'


def error_body(message):
    return {'success': False, 'message': message}


def _message_from_detail(detail):
    """Flatten DRF error details into one readable message"""
    if isinstance(detail, dict):
        for field, value in detail.items():
            message = _message_from_detail(value)
            return message if field == 'non_field_errors' else f"{field}: {message}"
        return ''
    if isinstance(detail, list):
        return _message_from_detail(detail[0]) if detail else ''
    return str(detail)


def api_exception_handler(exc, context):
    if isinstance(exc, (CoordinateError, InvalidBloodGroup)):
        exc = InvalidInput(exc.message)
    elif isinstance(exc, DatabaseError):
        logger.error(f"Database error in {context.get('view')}", exc_info=exc)
        exc = UpstreamUnavailable()

    response = exception_handler(exc, context)
    if response is not None:
        data = response.data
        if isinstance(data, dict) and 'detail' in data:
            data = data['detail']
        response.data = error_body(_message_from_detail(data))
        return response

    logger.error(f"Unhandled API error in {context.get('view')}", exc_info=exc)
    return Response(error_body(GENERIC_ERROR_MESSAGE), status=status.HTTP_500_INTERNAL_SERVER_ERROR)

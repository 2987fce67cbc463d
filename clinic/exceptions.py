"""
API error taxonomy and the DRF exception handler.

Domain code raises one of the exception classes below; the handler turns
every error, typed or not, into the envelope

    {"ok": false, "error": {"code": ..., "message": ...}}

with a status code matching its class.  Database integrity failures map
to 409 so that a lost race on a unique key reads like any other conflict.
"""
from __future__ import annotations

import logging

from django.conf import settings
from django.db import IntegrityError
from django.db.models import ProtectedError
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class ValidationError(exceptions.ValidationError):
    default_code = 'validation_error'


class NotFoundError(exceptions.NotFound):
    default_code = 'not_found'


class ConflictError(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'conflict with the current state of the resource'
    default_code = 'conflict'


class DomainPreconditionError(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'operation not allowed in the current state'
    default_code = 'precondition_failed'


def _envelope(code: str, message, http_status: int) -> Response:
    return Response({'ok': False, 'error': {'code': code, 'message': message}}, status=http_status)


def _message_of(data):
    if isinstance(data, dict):
        if set(data) == {'detail'}:
            return data['detail']
        return data
    if isinstance(data, list) and len(data) == 1:
        return data[0]
    return data


def api_exception_handler(exc, context):
    if isinstance(exc, IntegrityError):
        logger.info('integrity conflict: %s', exc)
        return _envelope('conflict', 'the resource conflicts with an existing record', 409)
    if isinstance(exc, ProtectedError):
        return _envelope('conflict', 'the resource is still referenced by other records', 409)

    resp = drf_exception_handler(exc, context)
    if resp is None:
        view = context.get('view')
        logger.exception('unhandled error in %s', getattr(view, '__class__', type(view)).__name__)
        message = str(exc) if settings.DEBUG else 'internal server error'
        return _envelope('server_error', message, 500)

    code = 'api_error'
    if isinstance(exc, exceptions.APIException):
        codes = exc.get_codes()
        code = codes if isinstance(codes, str) else getattr(exc, 'default_code', code)
        if isinstance(exc, exceptions.ValidationError):
            code = 'validation_error'
    resp.data = {'ok': False, 'error': {'code': code, 'message': _message_of(resp.data)}}
    return resp

import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class Conflict(exceptions.APIException):
    """A workflow invariant blocked the operation (full room, duplicate, already decided).

    ``code`` names the invariant so callers can branch on it; the message
    is for humans.  ``auto_rejected`` is set when the failing approval
    closed the request as a side effect.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Conflict with current state.'
    default_code = 'conflict'

    def __init__(self, detail=None, code=None, *, auto_rejected: bool = False):
        super().__init__(detail, code)
        self.reason = code or self.default_code
        self.auto_rejected = auto_rejected


def _category(exc) -> str:
    if isinstance(exc, Conflict):
        return 'conflict'
    if isinstance(exc, exceptions.ValidationError):
        return 'validation_error'
    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        return 'not_authenticated'
    if isinstance(exc, (exceptions.PermissionDenied, DjangoPermissionDenied)):
        return 'forbidden'
    if isinstance(exc, (exceptions.NotFound, Http404)):
        return 'not_found'
    return 'api_error'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        request = context.get('request')
        logger.exception('unhandled API error on %s', getattr(request, 'path', '?'))
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': 'Server error'}}, status=500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    error = {'code': _category(exc), 'message': detail}
    if isinstance(exc, Conflict):
        error['reason'] = exc.reason
        error['autoRejected'] = exc.auto_rejected
    return Response({'ok': False, 'error': error}, status=resp.status_code)

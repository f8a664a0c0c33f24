"""
API error helpers.

Every error response carries a `message` key so the dashboard can show the
backend message or fall back to a generic one.
"""
import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class BusinessRuleError(APIException):
    """Request is well-formed but violates a domain rule"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request violates a business rule.'
    default_code = 'business_rule'


def _first_message(data):
    if isinstance(data, dict):
        if 'detail' in data:
            return str(data['detail'])
        for field, value in data.items():
            inner = _first_message(value)
            if inner:
                return inner if field == 'non_field_errors' else f"{field}: {inner}"
        return None
    if isinstance(data, (list, tuple)):
        for value in data:
            inner = _first_message(value)
            if inner:
                return inner
        return None
    return str(data) if data is not None else None


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        return None

    data = response.data
    if isinstance(data, dict):
        if 'message' not in data:
            data['message'] = _first_message(data) or 'Request failed.'
    else:
        response.data = {'errors': data, 'message': _first_message(data) or 'Request failed.'}

    if response.status_code >= 500:
        logger.error(f"API error in {context.get('view').__class__.__name__}: {response.data['message']}")
    return response

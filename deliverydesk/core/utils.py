"""Utility functions for audit logging and list pagination"""
import logging
import math

from .models import AuditLog

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 10000


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, update, delete, state_change, ...)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object
        object_reference: Reference identifier (e.g., order number)
    """
    if not action or not model_name or object_id is None:
        logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
        return None

    audit_user = user
    if audit_user is None and request is not None and hasattr(request, 'user'):
        audit_user = request.user

    try:
        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=get_client_ip(request) if request else None,
        )
    except Exception as e:
        # Audit logging must never fail the main operation
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def parse_positive_int(value, default):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def paginate(items, request, default_limit=DEFAULT_PAGE_SIZE):
    """
    Slice a queryset or list by the `page` and `limit` query params.

    Returns (page_items, pagination_dict).
    """
    page = parse_positive_int(request.query_params.get('page'), 1)
    limit = min(parse_positive_int(request.query_params.get('limit'), default_limit), MAX_PAGE_SIZE)

    total = items.count() if hasattr(items, 'count') and not isinstance(items, list) else len(items)
    total_pages = math.ceil(total / limit) if total else 0
    offset = (page - 1) * limit
    page_items = items[offset:offset + limit]

    return page_items, {
        'page': page,
        'limit': limit,
        'total': total,
        'total_pages': total_pages,
        'has_next': page < total_pages,
        'has_prev': page > 1,
    }


def parse_bool(value):
    """Query-string boolean: returns True/False, or None when absent/unrecognised"""
    if value is None:
        return None
    value = str(value).strip().lower()
    if value in ('true', '1', 'yes'):
        return True
    if value in ('false', '0', 'no'):
        return False
    return None

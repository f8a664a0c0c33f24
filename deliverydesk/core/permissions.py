"""
Roles, permission codes and the DRF permission classes that enforce them.
"""
from rest_framework.permissions import BasePermission

ROLE_ADMIN = 'ADMIN'
ROLE_MANAGER = 'MANAGER'
ROLE_STAFF = 'STAFF'

ROLE_CHOICES = [
    (ROLE_ADMIN, 'Admin'),
    (ROLE_MANAGER, 'Manager'),
    (ROLE_STAFF, 'Staff'),
]

RESOURCES = ['products', 'orders', 'categories', 'drivers', 'staff']
ACTIONS = ['view', 'create', 'edit', 'delete']

PERMISSION_CATALOG = [
    {'id': 'view_dashboard', 'name': 'View Dashboard', 'description': 'Access dashboard statistics and charts', 'category': 'dashboard'},
] + [
    {
        'id': f'{action}_{resource}',
        'name': f'{action.title()} {resource.title()}',
        'description': f'{action.title()} {resource}',
        'category': resource,
    }
    for resource in RESOURCES
    for action in ACTIONS
]

ALL_PERMISSION_CODES = [p['id'] for p in PERMISSION_CATALOG]

ROLE_PERMISSIONS = {
    ROLE_ADMIN: ALL_PERMISSION_CODES,
    ROLE_MANAGER: [
        'view_dashboard',
        'view_products', 'create_products', 'edit_products',
        'view_orders', 'create_orders', 'edit_orders',
        'view_categories', 'create_categories', 'edit_categories',
        'view_drivers', 'create_drivers', 'edit_drivers',
    ],
    ROLE_STAFF: ['view_products', 'view_orders', 'view_categories', 'view_drivers'],
}

METHOD_ACTIONS = {
    'GET': 'view',
    'HEAD': 'view',
    'OPTIONS': 'view',
    'POST': 'create',
    'PUT': 'edit',
    'PATCH': 'edit',
    'DELETE': 'delete',
}


def default_permissions_for_role(role):
    return list(ROLE_PERMISSIONS.get(role, []))


def permission_for(**method_codes):
    """
    Build a permission class from a method -> code mapping.

    Usage:
        @permission_classes([IsAuthenticated, permission_for(GET='view_orders', PUT='edit_orders')])
    Methods missing from the mapping are allowed for any authenticated user.
    """
    class MethodCodePermission(BasePermission):
        message = 'You do not have permission to perform this action.'

        def has_permission(self, request, view):
            user = request.user
            if not user or not user.is_authenticated:
                return False
            code = method_codes.get(request.method)
            if code is None:
                return True
            return user.has_code(code)

    return MethodCodePermission


def crud_permission(resource):
    """Map HTTP methods onto {view,create,edit,delete}_<resource>"""
    return permission_for(**{
        method: f'{action}_{resource}' for method, action in METHOD_ACTIONS.items()
    })


class IsAdminRole(BasePermission):
    message = 'Only administrators can perform this action.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_admin_role)

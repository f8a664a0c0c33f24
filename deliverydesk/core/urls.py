from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView, signup, user_me,
    update_profile, change_password,
    staff_list_create, staff_detail, staff_toggle_status,
    permission_list, role_permissions,
    audit_log_list,
)

urlpatterns = [
    # Auth endpoints
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/signup/', signup, name='signup'),
    path('auth/me/', user_me, name='user-me'),
    path('auth/profile/', update_profile, name='update-profile'),
    path('auth/change-password/', change_password, name='change-password'),

    # Staff endpoints
    path('staff/', staff_list_create, name='staff-list-create'),
    path('staff/permissions/list/', permission_list, name='staff-permission-list'),
    path('staff/roles/<str:role>/permissions/', role_permissions, name='staff-role-permissions'),
    path('staff/<int:pk>/', staff_detail, name='staff-detail'),
    path('staff/<int:pk>/toggle-status/', staff_toggle_status, name='staff-toggle-status'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
]

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, AuditLog


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['email', 'name', 'role', 'is_active', 'created_at']
    list_filter = ['role', 'is_active', 'created_at']
    search_fields = ['email', 'name', 'phone']
    ordering = ['email']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Dashboard access', {'fields': ('name', 'phone', 'role', 'permissions', 'profile_picture')}),
    )


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['action', 'model_name', 'object_id', 'object_reference', 'user', 'created_at']
    list_filter = ['action', 'model_name', 'created_at']
    search_fields = ['object_id', 'object_name', 'object_reference']
    ordering = ['-created_at']
    readonly_fields = ['created_at']

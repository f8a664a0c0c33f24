from django.contrib.auth.models import AbstractUser
from django.db import models

from .permissions import ROLE_CHOICES, ROLE_ADMIN, ROLE_STAFF, default_permissions_for_role


class User(AbstractUser):
    """Dashboard account (admin, manager or staff member)"""
    email = models.EmailField(unique=True)
    name = models.CharField(max_length=200, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_STAFF, db_index=True)
    permissions = models.JSONField(default=list, blank=True)  # permission codes, e.g. ["view_orders"]
    profile_picture = models.URLField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    def __str__(self):
        return self.name or self.email

    @property
    def is_admin_role(self):
        return self.role == ROLE_ADMIN

    def has_code(self, code):
        """ADMIN bypasses every check; others need the code in their permission list"""
        if not self.is_active:
            return False
        if self.role == ROLE_ADMIN:
            return True
        return code in (self.permissions or [])

    def effective_permissions(self):
        if self.role == ROLE_ADMIN:
            return default_permissions_for_role(ROLE_ADMIN)
        return list(self.permissions or [])

    class Meta:
        db_table = 'users'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('state_change', 'Order State Changed'),
        ('driver_assign', 'Driver Assigned'),
        ('print', 'Print Status Changed'),
        ('stock_adjust', 'Stock Adjustment'),
        ('variant_generate', 'Variants Generated'),
        ('blacklist_add', 'Phone Blacklisted'),
        ('blacklist_remove', 'Phone Removed From Blacklist'),
        ('login', 'Login'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., product name, customer name)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., order number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_9f1c2e_idx'),
            models.Index(fields=['action'], name='audit_logs_action_5b7d41_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_n_3e8a90_idx'),
            models.Index(fields=['object_reference'], name='audit_logs_object__c42d17_idx'),
        ]

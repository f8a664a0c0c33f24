from rest_framework import serializers
from .models import Driver


class DriverSerializer(serializers.ModelSerializer):
    order_count = serializers.SerializerMethodField()

    class Meta:
        model = Driver
        fields = ['id', 'name', 'phone', 'email', 'address', 'license_number', 'is_active',
                  'order_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_order_count(self, obj):
        annotated = getattr(obj, 'annotated_order_count', None)
        if annotated is not None:
            return annotated
        return obj.orders.count()

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError('Name is required')
        return value.strip()

    def validate_phone(self, value):
        if not value.strip():
            raise serializers.ValidationError('Phone is required')
        return value.strip()


class DriverOptionSerializer(serializers.ModelSerializer):
    """Slim shape for assignment dropdowns"""
    class Meta:
        model = Driver
        fields = ['id', 'name', 'phone']

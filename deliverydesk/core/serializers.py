from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password

from .models import User, AuditLog
from .permissions import ALL_PERMISSION_CODES, ROLE_STAFF, default_permissions_for_role


class UserSerializer(serializers.ModelSerializer):
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'name', 'phone', 'role', 'permissions',
                  'profile_picture', 'is_active', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_permissions(self, obj):
        return obj.effective_permissions()


class StaffSerializer(serializers.ModelSerializer):
    """Create/update staff accounts; permissions default to the role's set"""
    password = serializers.CharField(write_only=True, required=False, validators=[validate_password])
    permissions = serializers.ListField(child=serializers.CharField(), required=False)
    username = serializers.CharField(required=False)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'name', 'phone', 'role', 'permissions',
                  'profile_picture', 'is_active', 'password', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_permissions(self, value):
        unknown = sorted(set(value) - set(ALL_PERMISSION_CODES))
        if unknown:
            raise serializers.ValidationError(f"Unknown permissions: {', '.join(unknown)}")
        return sorted(set(value), key=ALL_PERMISSION_CODES.index)

    def validate(self, attrs):
        if self.instance is None and not attrs.get('password'):
            raise serializers.ValidationError({'password': 'Password is required'})
        return attrs

    def create(self, validated_data):
        password = validated_data.pop('password')
        role = validated_data.get('role', ROLE_STAFF)
        if 'permissions' not in validated_data:
            validated_data['permissions'] = default_permissions_for_role(role)
        if not validated_data.get('username'):
            validated_data['username'] = validated_data['email']
        user = User(**validated_data)
        user.set_password(password)
        user.save()
        return user

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        if 'role' in validated_data and 'permissions' not in validated_data and validated_data['role'] != instance.role:
            validated_data['permissions'] = default_permissions_for_role(validated_data['role'])
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if password:
            instance.set_password(password)
        instance.save()
        return instance


class SignupSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, validators=[validate_password])
    name = serializers.CharField(max_length=200)

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('A user with this email already exists')
        return value.lower()

    def create(self, validated_data):
        user = User(
            username=validated_data['email'],
            email=validated_data['email'],
            name=validated_data['name'],
            role=ROLE_STAFF,
            permissions=default_permissions_for_role(ROLE_STAFF),
        )
        user.set_password(validated_data['password'])
        user.save()
        return user


class ProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['name', 'phone', 'profile_picture']


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField()
    new_password = serializers.CharField(validators=[validate_password])

    def validate_current_password(self, value):
        user = self.context['request'].user
        if not user.check_password(value):
            raise serializers.ValidationError('Current password is incorrect')
        return value


class AuditLogSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'action', 'model_name', 'object_id', 'object_name',
                  'object_reference', 'changes', 'ip_address', 'created_at']

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404
from django.db.models import Q

from .models import User, AuditLog
from .permissions import (
    PERMISSION_CATALOG, ROLE_PERMISSIONS, IsAdminRole, crud_permission,
)
from .serializers import (
    UserSerializer, StaffSerializer, SignupSerializer, ProfileSerializer,
    ChangePasswordSerializer, AuditLogSerializer,
)
from .utils import create_audit_log, paginate, parse_bool


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        data['user'] = UserSerializer(self.user).data
        create_audit_log(request=self.context.get('request'), user=self.user, action='login',
                         model_name='User', object_id=self.user.id, object_name=self.user.email)
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['role'] = user.role
        token['permissions'] = user.effective_permissions()
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that reports deleted users as an invalid token"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except ObjectDoesNotExist:
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


def _token_response(user, http_status=status.HTTP_200_OK):
    token = CustomTokenObtainPairSerializer.get_token(user)
    return Response({
        'user': UserSerializer(user).data,
        'access': str(token.access_token),
        'refresh': str(token),
    }, status=http_status)


@api_view(['POST'])
@permission_classes([AllowAny])
def signup(request):
    """Self-registration creates a STAFF account with the default staff permissions"""
    serializer = SignupSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        return _token_response(user, status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with role and effective permissions"""
    return Response(UserSerializer(request.user).data)


@api_view(['PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def update_profile(request):
    serializer = ProfileSerializer(request.user, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        return Response(UserSerializer(request.user).data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def change_password(request):
    serializer = ChangePasswordSerializer(data=request.data, context={'request': request})
    if serializer.is_valid():
        request.user.set_password(serializer.validated_data['new_password'])
        request.user.save(update_fields=['password', 'updated_at'])
        return Response({'message': 'Password changed successfully'})
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Staff views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, crud_permission('staff')])
def staff_list_create(request):
    """List staff accounts or create a new one"""
    if request.method == 'GET':
        queryset = User.objects.all().order_by('-created_at')
        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) | Q(email__icontains=search) |
                Q(phone__icontains=search) | Q(role__icontains=search)
            )
        role = request.query_params.get('role')
        if role:
            queryset = queryset.filter(role=role.upper())
        is_active = parse_bool(request.query_params.get('is_active'))
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active)

        page_items, pagination = paginate(queryset, request)
        return Response({
            'staff': StaffSerializer(page_items, many=True).data,
            'pagination': pagination,
        })

    serializer = StaffSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        create_audit_log(request=request, action='create', model_name='User',
                         object_id=user.id, object_name=user.email,
                         changes={'role': user.role})
        return Response(StaffSerializer(user).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, crud_permission('staff')])
def staff_detail(request, pk):
    """Retrieve, update or delete a staff account"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        return Response(StaffSerializer(user).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = StaffSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='User',
                             object_id=user.id, object_name=user.email,
                             changes={k: v for k, v in request.data.items() if k != 'password'})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'message': 'You cannot delete your own account'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='delete', model_name='User',
                         object_id=user.id, object_name=user.email)
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, crud_permission('staff')])
def staff_toggle_status(request, pk):
    user = get_object_or_404(User, pk=pk)
    if user.pk == request.user.pk:
        return Response({'message': 'You cannot deactivate your own account'}, status=status.HTTP_400_BAD_REQUEST)
    user.is_active = not user.is_active
    user.save(update_fields=['is_active', 'updated_at'])
    create_audit_log(request=request, action='update', model_name='User',
                     object_id=user.id, object_name=user.email,
                     changes={'is_active': user.is_active})
    return Response(StaffSerializer(user).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def permission_list(request):
    """Every permission code grouped by category"""
    categories = {}
    for permission in PERMISSION_CATALOG:
        categories.setdefault(permission['category'], []).append(permission)
    return Response({'permissions': PERMISSION_CATALOG, 'categories': categories})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def role_permissions(request, role):
    role = role.upper()
    if role not in ROLE_PERMISSIONS:
        return Response({'message': f'Unknown role: {role}'}, status=status.HTTP_404_NOT_FOUND)
    return Response({'role': role, 'permissions': ROLE_PERMISSIONS[role]})


# AuditLog views
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_log_list(request):
    queryset = AuditLog.objects.select_related('user').all()
    for param, field in (('action', 'action'), ('model_name', 'model_name'), ('object_reference', 'object_reference')):
        value = request.query_params.get(param)
        if value:
            queryset = queryset.filter(**{field: value})
    page_items, pagination = paginate(queryset, request, default_limit=50)
    return Response({
        'logs': AuditLogSerializer(page_items, many=True).data,
        'pagination': pagination,
    })

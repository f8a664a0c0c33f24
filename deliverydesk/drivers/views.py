import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Count, Q
from django.shortcuts import get_object_or_404

from deliverydesk.core.cache_utils import cached_query, DRIVERS_CACHE_TTL, DRIVERS_PREFIX
from deliverydesk.core.permissions import crud_permission
from deliverydesk.core.utils import create_audit_log, paginate, parse_bool
from .models import Driver
from .serializers import DriverSerializer, DriverOptionSerializer

logger = logging.getLogger(__name__)


@cached_query(cache_ttl=DRIVERS_CACHE_TTL, key_prefix=DRIVERS_PREFIX)
def get_active_drivers():
    return list(DriverOptionSerializer(Driver.objects.filter(is_active=True), many=True).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, crud_permission('drivers')])
def driver_list_create(request):
    """List all drivers or create a new driver"""
    if request.method == 'GET':
        queryset = Driver.objects.annotate(annotated_order_count=Count('orders'))
        search = request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) | Q(phone__icontains=search) |
                Q(email__icontains=search) | Q(license_number__icontains=search)
            )
        is_active = parse_bool(request.query_params.get('is_active'))
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active)

        page_items, pagination = paginate(queryset, request)
        return Response({
            'drivers': DriverSerializer(page_items, many=True).data,
            'pagination': pagination,
        })
    else:
        serializer = DriverSerializer(data=request.data)
        if serializer.is_valid():
            driver = serializer.save()
            create_audit_log(request=request, action='create', model_name='Driver',
                             object_id=driver.id, object_name=driver.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def driver_all(request):
    """Active drivers for assignment dropdowns (cached)"""
    return Response(get_active_drivers())


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, crud_permission('drivers')])
def driver_detail(request, pk):
    """Retrieve, update or delete a driver"""
    driver = get_object_or_404(Driver, pk=pk)

    if request.method == 'GET':
        serializer = DriverSerializer(driver)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = DriverSerializer(driver, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Driver',
                             object_id=driver.id, object_name=driver.name, changes=dict(request.data))
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        with transaction.atomic():
            # orders keep the driver's name once the row is gone
            kept = driver.orders.update(deleted_driver_name=driver.name)
            create_audit_log(request=request, action='delete', model_name='Driver',
                             object_id=driver.id, object_name=driver.name,
                             changes={'orders_kept': kept})
            driver.delete()
        logger.info(f"Deleted driver {driver.name}; {kept} orders keep the name")
        return Response(status=status.HTTP_204_NO_CONTENT)

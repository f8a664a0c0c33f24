import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated, AllowAny, BasePermission
from rest_framework.response import Response
from django.db.models import Count, Sum
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone

from deliverydesk.core.permissions import crud_permission, permission_for
from deliverydesk.core.utils import create_audit_log, paginate
from deliverydesk.drivers.models import Driver
from .exports import build_orders_workbook, build_orders_pdf, build_receipt_png
from .filters import OrderFilter, apply_sort
from .models import Order, BlacklistPhone
from .pricing import normalize_phone
from .serializers import (
    OrderSerializer, OrderWriteSerializer, CustomerOrderCreateSerializer, StateChangeSerializer,
    DriverAssignSerializer, PickupProofSerializer, BlacklistPhoneSerializer,
)
from .services import (
    create_order, update_order, change_state, set_driver, delete_order, mark_printed, reset_print,
    get_blacklist_entries, get_blacklisted_phones, is_blacklisted,
)

logger = logging.getLogger(__name__)


def _order_queryset():
    return Order.objects.select_related('driver', 'created_by').prefetch_related('items__variant')


def _filtered_orders(request):
    queryset = OrderFilter(request.query_params, queryset=_order_queryset()).qs
    return apply_sort(queryset, request.query_params)


def _serialize_orders(orders):
    context = {'blacklisted_phones': get_blacklisted_phones()}
    return OrderSerializer(orders, many=True, context=context).data


def _serialize_order(order):
    order = _order_queryset().get(pk=order.pk)
    return OrderSerializer(order, context={'blacklisted_phones': get_blacklisted_phones()}).data


def _split_items(validated_data):
    fields = dict(validated_data)
    items = fields.pop('items', None)
    if items is not None:
        items = [dict(item) for item in items]
    return fields, items


# Orders
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, crud_permission('orders')])
def order_list_create(request):
    """List orders (filtered, sorted, paginated) or create an order"""
    if request.method == 'GET':
        page_items, pagination = paginate(_filtered_orders(request), request)
        return Response({
            'orders': _serialize_orders(page_items),
            'pagination': pagination,
        })
    else:
        serializer = OrderWriteSerializer(data=request.data)
        if serializer.is_valid():
            fields, items = _split_items(serializer.validated_data)
            order = create_order(fields, items, user=request.user)
            create_audit_log(request=request, action='create', model_name='Order',
                             object_id=order.id, object_reference=order.order_number,
                             object_name=order.customer_name,
                             changes={'total_price': str(order.total_price), 'items': len(items)})
            return Response(_serialize_order(order), status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _order_detail_response(request, order):
    if request.method == 'GET':
        return Response(_serialize_order(order))
    elif request.method in ('PUT', 'PATCH'):
        serializer = OrderWriteSerializer(order, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            fields, items = _split_items(serializer.validated_data)
            update_order(order, fields, items)
            changes = {key: str(value) for key, value in fields.items()}
            if items is not None:
                changes['items'] = len(items)
            create_audit_log(request=request, action='update', model_name='Order',
                             object_id=order.id, object_reference=order.order_number,
                             object_name=order.customer_name, changes=changes)
            return Response(_serialize_order(order))
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(request=request, action='delete', model_name='Order',
                         object_id=order.id, object_reference=order.order_number,
                         object_name=order.customer_name, changes={'state': order.state})
        delete_order(order)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, crud_permission('orders')])
def order_detail(request, pk):
    """Retrieve, update (items are replaced) or delete an order"""
    order = get_object_or_404(Order, pk=pk)
    return _order_detail_response(request, order)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, permission_for(PUT='edit_orders')])
def order_state(request, pk):
    order = get_object_or_404(Order, pk=pk)
    serializer = StateChangeSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    changed, previous = change_state(order, serializer.validated_data['state'])
    if changed:
        create_audit_log(request=request, action='state_change', model_name='Order',
                         object_id=order.id, object_reference=order.order_number,
                         changes={'state': {'from': previous, 'to': order.state}})
    return Response(_serialize_order(order))


@api_view(['PUT'])
@permission_classes([IsAuthenticated, permission_for(PUT='edit_orders')])
def order_driver(request, pk):
    """Assign a driver ({driver_id, assigned_at}); driver_id null unassigns"""
    order = get_object_or_404(Order.objects.select_related('driver'), pk=pk)
    serializer = DriverAssignSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    driver_id = serializer.validated_data.get('driver_id')
    driver = get_object_or_404(Driver, pk=driver_id) if driver_id else None
    previous_driver = order.driver_name
    previous_state = order.state
    set_driver(order, driver, serializer.validated_data.get('assigned_at'))
    create_audit_log(request=request, action='driver_assign', model_name='Order',
                     object_id=order.id, object_reference=order.order_number,
                     changes={'driver': {'from': previous_driver, 'to': driver.name if driver else None},
                              'state': {'from': previous_state, 'to': order.state}})
    return Response(_serialize_order(order))


@api_view(['PUT'])
@permission_classes([IsAuthenticated, permission_for(PUT='edit_orders')])
def order_mark_printed(request, pk):
    order = get_object_or_404(Order, pk=pk)
    mark_printed(order)
    create_audit_log(request=request, action='print', model_name='Order',
                     object_id=order.id, object_reference=order.order_number)
    return Response(_serialize_order(order))


@api_view(['PUT'])
@permission_classes([IsAuthenticated, permission_for(PUT='edit_orders')])
def order_reset_print(request, pk):
    order = get_object_or_404(Order, pk=pk)
    reset_print(order)
    create_audit_log(request=request, action='update', model_name='Order',
                     object_id=order.id, object_reference=order.order_number,
                     changes={'is_printed': False})
    return Response(_serialize_order(order))


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_for(POST='edit_orders')])
def order_pickup_proof(request, pk):
    order = get_object_or_404(Order, pk=pk)
    serializer = PickupProofSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    order.pickup_proof = serializer.validated_data['pickup_proof']
    order.save(update_fields=['pickup_proof', 'updated_at'])
    create_audit_log(request=request, action='update', model_name='Order',
                     object_id=order.id, object_reference=order.order_number,
                     changes={'pickup_proof': order.pickup_proof.name})
    return Response(_serialize_order(order))


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_for(GET='view_orders')])
def order_stats_summary(request):
    """Counts per state and money totals for the filtered orders"""
    queryset = OrderFilter(request.query_params, queryset=Order.objects.all()).qs
    by_state = {state: 0 for state, _ in Order.STATE_CHOICES}
    for row in queryset.values('state').annotate(count=Count('id')):
        by_state[row['state']] = row['count']

    totals = queryset.aggregate(
        total_price=Sum('total_price'),
        delivery_price=Sum('delivery_price'),
        company_delivery_price=Sum('company_delivery_price'),
    )
    return Response({
        'total': sum(by_state.values()),
        'by_state': by_state,
        'unpaid': queryset.filter(is_paid=False).count(),
        'unprinted': queryset.filter(is_printed=False).count(),
        'unassigned': queryset.filter(driver__isnull=True, state=Order.STATE_PLACED).count(),
        'total_price': str(totals['total_price'] or 0),
        'delivery_price': str(totals['delivery_price'] or 0),
        'company_delivery_price': str(totals['company_delivery_price'] or 0),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_for(GET='view_orders')])
def order_duplicate_phones(request):
    """Normalized phone numbers that appear on more than one order"""
    queryset = OrderFilter(request.query_params, queryset=Order.objects.all()).qs
    by_phone = {}
    for order_id, phone in queryset.values_list('id', 'customer_phone'):
        normalized = normalize_phone(phone)
        if normalized:
            by_phone.setdefault(normalized, []).append(order_id)

    duplicated = {phone: ids for phone, ids in by_phone.items() if len(ids) > 1}
    orders = {o.id: o for o in _order_queryset().filter(pk__in=[i for ids in duplicated.values() for i in ids])}
    blacklisted = get_blacklisted_phones()
    duplicates = []
    for phone, ids in sorted(duplicated.items(), key=lambda entry: (-len(entry[1]), entry[0])):
        phone_orders = sorted((orders[i] for i in ids), key=lambda o: o.order_at, reverse=True)
        duplicates.append({
            'phone': phone,
            'count': len(ids),
            'is_blacklisted': phone in blacklisted,
            'orders': OrderSerializer(phone_orders, many=True, context={'blacklisted_phones': blacklisted}).data,
        })
    return Response({'duplicates': duplicates, 'total': len(duplicates)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_for(POST='view_orders')])
def order_batch_phone(request):
    """Look up orders for a list of phone numbers ({phone_numbers: [...]})"""
    phone_numbers = request.data.get('phone_numbers')
    if not isinstance(phone_numbers, list) or not phone_numbers:
        return Response({'message': 'phone_numbers must be a non-empty list'}, status=status.HTTP_400_BAD_REQUEST)

    wanted = []
    for phone in phone_numbers:
        normalized = normalize_phone(phone)
        if normalized and normalized not in wanted:
            wanted.append(normalized)

    matches = {phone: [] for phone in wanted}
    for order_id, phone in Order.objects.values_list('id', 'customer_phone'):
        normalized = normalize_phone(phone)
        if normalized in matches:
            matches[normalized].append(order_id)

    orders = {o.id: o for o in _order_queryset().filter(pk__in=[i for ids in matches.values() for i in ids])}
    blacklisted = get_blacklisted_phones()
    results = []
    for phone in wanted:
        phone_orders = sorted((orders[i] for i in matches[phone]), key=lambda o: o.order_at, reverse=True)
        results.append({
            'phone': phone,
            'count': len(phone_orders),
            'is_blacklisted': phone in blacklisted,
            'orders': OrderSerializer(phone_orders, many=True, context={'blacklisted_phones': blacklisted}).data,
        })
    return Response({
        'results': results,
        'found': [r['phone'] for r in results if r['count']],
        'not_found': [r['phone'] for r in results if not r['count']],
    })


def _export_filename(extension):
    return f"orders-{timezone.localdate():%Y-%m-%d}.{extension}"


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_for(GET='view_orders')])
def order_export_excel(request):
    orders = _filtered_orders(request)
    content = build_orders_workbook(orders)
    response = HttpResponse(content, content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
    response['Content-Disposition'] = f'attachment; filename="{_export_filename("xlsx")}"'
    return response


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_for(GET='view_orders')])
def order_export_pdf(request):
    orders = _filtered_orders(request)
    content = build_orders_pdf(orders)
    response = HttpResponse(content, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{_export_filename("pdf")}"'
    return response


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_for(GET='view_orders')])
def order_receipt(request, pk):
    """PNG receipt with the order number barcode; marks the order printed"""
    order = get_object_or_404(_order_queryset(), pk=pk)
    content = build_receipt_png(order)
    mark_printed(order)
    create_audit_log(request=request, action='print', model_name='Order',
                     object_id=order.id, object_reference=order.order_number)
    response = HttpResponse(content, content_type='image/png')
    response['Content-Disposition'] = f'inline; filename="{order.order_number}.png"'
    return response


# Customer (storefront) orders
class CustomerOrderPermission(BasePermission):
    """Anyone may place an order; listing needs view_orders"""

    def has_permission(self, request, view):
        if request.method == 'POST':
            return True
        user = request.user
        return bool(user and user.is_authenticated and user.has_code('view_orders'))


@api_view(['GET', 'POST'])
@permission_classes([CustomerOrderPermission])
def customer_order_list_create(request):
    if request.method == 'GET':
        params = request.query_params.copy()
        params['source'] = Order.SOURCE_CUSTOMER
        queryset = OrderFilter(params, queryset=_order_queryset()).qs
        page_items, pagination = paginate(apply_sort(queryset, params), request)
        return Response({
            'orders': _serialize_orders(page_items),
            'pagination': pagination,
        })
    else:
        serializer = CustomerOrderCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        fields = dict(serializer.validated_data)
        items = fields.pop('items')
        payment_proof = fields.pop('payment_proof', None)
        order = create_order(fields, items, source=Order.SOURCE_CUSTOMER, server_prices=True)
        if payment_proof:
            order.payment_proof = payment_proof
            order.save(update_fields=['payment_proof', 'updated_at'])
        if is_blacklisted(order.customer_phone):
            logger.warning(f"Customer order {order.order_number} placed from blacklisted phone")
        create_audit_log(request=request, action='create', model_name='Order',
                         object_id=order.id, object_reference=order.order_number,
                         object_name=order.customer_name, changes={'source': Order.SOURCE_CUSTOMER})
        return Response(_serialize_order(order), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([AllowAny])
def customer_order_by_number(request, order_number):
    """Public order tracking by order number"""
    order = get_object_or_404(_order_queryset(), order_number=order_number)
    data = OrderSerializer(order, context={'blacklisted_phones': set()}).data
    data.pop('is_blacklisted', None)
    data.pop('created_by', None)
    data.pop('created_by_name', None)
    return Response(data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, crud_permission('orders')])
def customer_order_detail(request, pk):
    order = get_object_or_404(Order, pk=pk, source=Order.SOURCE_CUSTOMER)
    return _order_detail_response(request, order)


# Blacklist
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_for(GET='view_orders', POST='edit_orders')])
def blacklist_list_create(request):
    if request.method == 'GET':
        return Response({'entries': get_blacklist_entries()})
    else:
        serializer = BlacklistPhoneSerializer(data=request.data)
        if serializer.is_valid():
            entry = serializer.save(created_by=request.user)
            create_audit_log(request=request, action='blacklist_add', model_name='BlacklistPhone',
                             object_id=entry.id, object_name=entry.phone, changes={'reason': entry.reason})
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, permission_for(DELETE='edit_orders')])
def blacklist_detail(request, pk):
    entry = get_object_or_404(BlacklistPhone, pk=pk)
    create_audit_log(request=request, action='blacklist_remove', model_name='BlacklistPhone',
                     object_id=entry.id, object_name=entry.phone)
    entry.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def blacklist_check(request):
    phone = normalize_phone(request.query_params.get('phone'))
    if not phone:
        return Response({'message': 'phone is required'}, status=status.HTTP_400_BAD_REQUEST)

    entry = next((e for e in get_blacklist_entries() if e['phone'] == phone), None)
    return Response({
        'phone': phone,
        'is_blacklisted': entry is not None,
        'entry': entry,
    })

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from django.conf import settings
from django.db import transaction
from django.db.models import Count, Prefetch
from django.shortcuts import get_object_or_404

from deliverydesk.core.permissions import crud_permission, permission_for
from deliverydesk.core.utils import create_audit_log, paginate, parse_positive_int
from .filters import ProductFilter, CategoryFilter
from .hierarchy import build_group_forest, build_stock_tree, validate_hierarchy, stock_summary
from .models import Category, Product, ProductOptionGroup, ProductOption, ProductVariant
from .serializers import (
    CategorySerializer, ProductSerializer, ProductDetailSerializer, PublicProductSerializer,
    ProductOptionGroupSerializer, ProductOptionSerializer, ProductVariantSerializer,
)
from .services import (
    group_rows, variant_rows, generate_variants, set_variant_stock,
    bulk_update_variant_stock, validate_stock_for_order,
)

logger = logging.getLogger(__name__)


def _variant_queryset():
    return ProductVariant.objects.select_related('product').prefetch_related('variant_options__option__group')


def _product_detail_queryset():
    return Product.objects.select_related('category').prefetch_related(
        Prefetch('option_groups', queryset=ProductOptionGroup.objects.select_related('parent_group').prefetch_related('options')),
        'variants',
    )


# Category views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, crud_permission('categories')])
def category_list_create(request):
    """List all categories or create a new category"""
    if request.method == 'GET':
        queryset = Category.objects.annotate(annotated_product_count=Count('products'))
        queryset = CategoryFilter(request.query_params, queryset=queryset).qs
        serializer = CategorySerializer(queryset, many=True)
        return Response(serializer.data)
    else:
        serializer = CategorySerializer(data=request.data)
        if serializer.is_valid():
            category = serializer.save()
            create_audit_log(request=request, action='create', model_name='Category',
                             object_id=category.id, object_name=category.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def category_all(request):
    """Active categories for dropdowns"""
    queryset = Category.objects.filter(is_active=True).annotate(annotated_product_count=Count('products'))
    return Response(CategorySerializer(queryset, many=True).data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, crud_permission('categories')])
def category_detail(request, pk):
    """Retrieve, update or delete a category"""
    category = get_object_or_404(Category, pk=pk)

    if request.method == 'GET':
        serializer = CategorySerializer(category)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Category',
                             object_id=category.id, object_name=category.name, changes=dict(request.data))
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(request=request, action='delete', model_name='Category',
                         object_id=category.id, object_name=category.name)
        category.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Product views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, crud_permission('products')])
def product_list_create(request):
    """List all products or create a new product"""
    if request.method == 'GET':
        queryset = Product.objects.select_related('category').prefetch_related('variants').all()

        # Use django-filter for filtering
        filterset = ProductFilter(request.query_params, queryset=queryset)
        queryset = filterset.qs

        page_items, pagination = paginate(queryset, request)
        return Response({
            'products': ProductSerializer(page_items, many=True).data,
            'pagination': pagination,
        })
    else:
        serializer = ProductSerializer(data=request.data)
        if serializer.is_valid():
            product = serializer.save()
            create_audit_log(request=request, action='create', model_name='Product',
                             object_id=product.id, object_name=product.name,
                             changes={'price': str(product.price), 'quantity': product.quantity})
            return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, crud_permission('products')])
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(_product_detail_queryset(), pk=pk)

    if request.method == 'GET':
        return Response(ProductDetailSerializer(product).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Product',
                             object_id=product.id, object_name=product.name, changes=dict(request.data))
            return Response(ProductDetailSerializer(_product_detail_queryset().get(pk=pk)).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(request=request, action='delete', model_name='Product',
                         object_id=product.id, object_name=product.name)
        product.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, permission_for(PATCH='edit_products')])
def product_note(request, pk):
    """Update only the internal note of a product"""
    product = get_object_or_404(Product, pk=pk)
    note = request.data.get('note', '')
    if note is None:
        note = ''
    product.note = str(note)
    product.save(update_fields=['note', 'updated_at'])
    return Response({'id': product.id, 'note': product.note})


# Option group views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, crud_permission('products')])
def option_group_list_create(request, product_id):
    """Option group forest of a product, or create a group"""
    product = get_object_or_404(Product, pk=product_id)

    if request.method == 'GET':
        groups = ProductOptionGroup.objects.filter(product=product).select_related('parent_group').prefetch_related('options')
        rows = ProductOptionGroupSerializer(groups, many=True).data
        return Response({'product_id': product.id, 'groups': build_group_forest(rows)})

    serializer = ProductOptionGroupSerializer(data=request.data, context={'product': product})
    if serializer.is_valid():
        group = serializer.save(product=product)
        product.refresh_has_options()
        create_audit_log(request=request, action='create', model_name='ProductOptionGroup',
                         object_id=group.id, object_name=group.name, object_reference=product.name)
        return Response(ProductOptionGroupSerializer(group).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, crud_permission('products')])
def option_group_detail(request, pk):
    """Retrieve, update or delete an option group; child groups are deleted with it"""
    group = get_object_or_404(ProductOptionGroup.objects.select_related('product', 'parent_group'), pk=pk)

    if request.method == 'GET':
        return Response(ProductOptionGroupSerializer(group).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ProductOptionGroupSerializer(group, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            with transaction.atomic():
                group = serializer.save()
                _refresh_descendant_levels(group)
            create_audit_log(request=request, action='update', model_name='ProductOptionGroup',
                             object_id=group.id, object_name=group.name,
                             object_reference=group.product.name, changes=dict(request.data))
            return Response(ProductOptionGroupSerializer(group).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        product = group.product
        create_audit_log(request=request, action='delete', model_name='ProductOptionGroup',
                         object_id=group.id, object_name=group.name, object_reference=product.name)
        group.delete()
        product.refresh_has_options()
        return Response(status=status.HTTP_204_NO_CONTENT)


def _refresh_descendant_levels(group):
    """Re-save children so their level follows a moved parent"""
    for child in group.child_groups.all():
        child.save(update_fields=['level', 'updated_at'])
        _refresh_descendant_levels(child)


# Option views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, crud_permission('products')])
def option_list_create(request, group_id):
    group = get_object_or_404(ProductOptionGroup, pk=group_id)

    if request.method == 'GET':
        return Response(ProductOptionSerializer(group.options.all(), many=True).data)

    serializer = ProductOptionSerializer(data=request.data)
    if serializer.is_valid():
        option = serializer.save(group=group)
        create_audit_log(request=request, action='create', model_name='ProductOption',
                         object_id=option.id, object_name=option.name, object_reference=group.name)
        return Response(ProductOptionSerializer(option).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, crud_permission('products')])
def option_detail(request, pk):
    option = get_object_or_404(ProductOption.objects.select_related('group'), pk=pk)

    if request.method == 'GET':
        return Response(ProductOptionSerializer(option).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ProductOptionSerializer(option, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='ProductOption',
                             object_id=option.id, object_name=option.name,
                             object_reference=option.group.name, changes=dict(request.data))
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(request=request, action='delete', model_name='ProductOption',
                         object_id=option.id, object_name=option.name, object_reference=option.group.name)
        option.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Hierarchical stock views
@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_for(GET='view_products')])
def hierarchical_stock(request, product_id):
    """Stock tree of a product, from variants when it has any, else from options"""
    product = get_object_or_404(Product, pk=product_id)
    variants = variant_rows(product)
    tree, source = build_stock_tree(group_rows(product), variants)
    return Response({
        'product_id': product.id,
        'tree': tree,
        'variants': [variant for variant in variants if variant['is_active']],
        'total_stock': sum(node['stock'] for node in tree),
        'source': source,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, permission_for(POST='edit_products')])
def product_generate_variants(request, product_id):
    product = get_object_or_404(Product, pk=product_id)
    result = generate_variants(product)
    create_audit_log(request=request, action='variant_generate', model_name='Product',
                     object_id=product.id, object_name=product.name,
                     changes={key: len(value) for key, value in result.items()})
    logger.info(f"Generated variants for product {product.id}: {len(result['created'])} created, {len(result['errors'])} errors")
    return Response(result)


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_for(GET='view_products')])
def product_stock_summary(request, product_id):
    product = get_object_or_404(Product, pk=product_id)
    threshold = parse_positive_int(request.query_params.get('threshold'), settings.LOW_STOCK_THRESHOLD)
    variants = variant_rows(product)
    summary = stock_summary(variants, threshold)
    summary['product_id'] = product.id
    summary['variants'] = variants
    return Response(summary)


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_for(GET='view_products')])
def product_validate_hierarchy(request, product_id):
    product = get_object_or_404(Product, pk=product_id)
    problems = validate_hierarchy(group_rows(product))
    return Response({'product_id': product.id, 'is_valid': not problems, 'problems': problems})


@api_view(['GET'])
@permission_classes([IsAuthenticated, permission_for(GET='view_products')])
def hierarchical_variants(request, product_id):
    product = get_object_or_404(Product, pk=product_id)
    return Response({'product_id': product.id, 'variants': variant_rows(product)})


# Variant views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, crud_permission('products')])
def variant_list_create(request, product_id):
    product = get_object_or_404(Product, pk=product_id)

    if request.method == 'GET':
        variants = _variant_queryset().filter(product=product)
        return Response(ProductVariantSerializer(variants, many=True).data)

    serializer = ProductVariantSerializer(data=request.data, context={'product': product})
    if serializer.is_valid():
        variant = serializer.save(product=product)
        create_audit_log(request=request, action='create', model_name='ProductVariant',
                         object_id=variant.id, object_name=variant.name, object_reference=variant.sku)
        return Response(ProductVariantSerializer(_variant_queryset().get(pk=variant.pk)).data,
                        status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, crud_permission('products')])
def variant_detail(request, pk):
    variant = get_object_or_404(_variant_queryset(), pk=pk)

    if request.method == 'GET':
        return Response(ProductVariantSerializer(variant).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ProductVariantSerializer(variant, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='ProductVariant',
                             object_id=variant.id, object_name=variant.name,
                             object_reference=variant.sku, changes=dict(request.data))
            return Response(ProductVariantSerializer(_variant_queryset().get(pk=pk)).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(request=request, action='delete', model_name='ProductVariant',
                         object_id=variant.id, object_name=variant.name, object_reference=variant.sku)
        variant.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, permission_for(PUT='edit_products')])
def variant_stock_update(request, pk):
    """Set the absolute stock of one variant"""
    variant = get_object_or_404(_variant_queryset(), pk=pk)
    previous = set_variant_stock(variant, request.data.get('stock'))
    create_audit_log(request=request, action='stock_adjust', model_name='ProductVariant',
                     object_id=variant.id, object_name=variant.name, object_reference=variant.sku,
                     changes={'stock': {'old': previous, 'new': variant.stock}})
    return Response(ProductVariantSerializer(variant).data)


@api_view(['PUT'])
@permission_classes([IsAuthenticated, permission_for(PUT='edit_products')])
def variant_bulk_stock_update(request):
    updates = request.data.get('updates')
    if not isinstance(updates, list):
        return Response({'message': 'updates must be a list of {variant_id, stock}'}, status=status.HTTP_400_BAD_REQUEST)

    result = bulk_update_variant_stock(updates)
    for entry in result['results']:
        if entry['success']:
            create_audit_log(request=request, action='stock_adjust', model_name='ProductVariant',
                             object_id=entry['variant_id'],
                             changes={'stock': {'old': entry['previous_stock'], 'new': entry['stock']}})
    logger.info(f"Bulk stock update: {result['successful']} updated, {result['failed']} failed")
    return Response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def validate_stock(request):
    """Check requested quantities against variant stock before placing an order"""
    items = request.data.get('items')
    if not isinstance(items, list):
        return Response({'message': 'items must be a list'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(validate_stock_for_order([item for item in items if isinstance(item, dict)]))


# Public catalog views
@api_view(['GET'])
@permission_classes([AllowAny])
def public_product_list(request):
    """Active products for the storefront"""
    queryset = _product_detail_queryset().filter(is_active=True)
    params = request.query_params.copy()
    params.pop('is_active', None)
    queryset = ProductFilter(params, queryset=queryset).qs

    page_items, pagination = paginate(queryset, request)
    return Response({
        'products': PublicProductSerializer(page_items, many=True).data,
        'pagination': pagination,
    })


@api_view(['GET'])
@permission_classes([AllowAny])
def public_product_detail(request, pk):
    product = get_object_or_404(_product_detail_queryset().filter(is_active=True), pk=pk)
    return Response(PublicProductSerializer(product).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def public_category_list(request):
    queryset = Category.objects.filter(is_active=True).annotate(annotated_product_count=Count('products'))
    return Response(CategorySerializer(queryset, many=True).data)

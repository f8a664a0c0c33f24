import json

from rest_framework import serializers
from .models import Order, OrderItem, BlacklistPhone
from .option_details import normalize_option_details, describe_item
from .pricing import normalize_phone


class OrderItemSerializer(serializers.ModelSerializer):
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    variant_name = serializers.CharField(source='variant.name', read_only=True, default=None)
    description = serializers.SerializerMethodField()

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'product_name', 'variant', 'variant_name', 'quantity', 'price',
                  'weight', 'line_total', 'option_details', 'description']

    def get_description(self, obj):
        return describe_item(obj.product_name, obj.quantity, obj.option_details)

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data['option_details'] = normalize_option_details(instance.option_details)
        return data


class OrderItemInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    variant_id = serializers.IntegerField(required=False, allow_null=True)
    quantity = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True, min_value=0)
    option_details = serializers.JSONField(required=False, allow_null=True)


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    driver_name = serializers.CharField(read_only=True)
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)
    is_blacklisted = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = ['id', 'order_number', 'source', 'customer_name', 'customer_phone', 'customer_location',
                  'province', 'remark', 'state', 'subtotal_price', 'delivery_price', 'company_delivery_price',
                  'total_price', 'is_paid', 'is_printed', 'printed_at', 'driver', 'driver_name',
                  'created_by', 'created_by_name', 'order_at', 'assigned_at', 'completed_at', 'returned_at',
                  'cancelled_at', 'payment_proof', 'pickup_proof', 'is_blacklisted', 'items',
                  'created_at', 'updated_at']
        read_only_fields = fields

    def get_is_blacklisted(self, obj):
        blacklisted = self.context.get('blacklisted_phones')
        if blacklisted is None:
            return BlacklistPhone.objects.filter(phone=normalize_phone(obj.customer_phone)).exists()
        return normalize_phone(obj.customer_phone) in blacklisted


class OrderWriteSerializer(serializers.ModelSerializer):
    """Order fields accepted from the dashboard; items are validated separately"""
    items = OrderItemInputSerializer(many=True, required=False)
    company_delivery_price = serializers.DecimalField(max_digits=10, decimal_places=2, required=False,
                                                      allow_null=True, min_value=0)
    total_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False,
                                           allow_null=True, min_value=0)

    class Meta:
        model = Order
        fields = ['customer_name', 'customer_phone', 'customer_location', 'province', 'remark',
                  'delivery_price', 'company_delivery_price', 'total_price', 'is_paid', 'order_at', 'items']

    def validate_customer_name(self, value):
        if not value.strip():
            raise serializers.ValidationError('Customer name is required')
        return value.strip()

    def validate_customer_phone(self, value):
        if not normalize_phone(value):
            raise serializers.ValidationError('Customer phone is required')
        return value.strip()

    def validate_delivery_price(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Delivery price cannot be negative')
        return value

    def validate(self, attrs):
        if self.instance is None and not attrs.get('items'):
            raise serializers.ValidationError({'items': 'At least one item is required'})
        if 'items' in attrs and not attrs['items']:
            raise serializers.ValidationError({'items': 'At least one item is required'})
        return attrs


class CustomerOrderCreateSerializer(serializers.Serializer):
    """
    Storefront order form (multipart). `items` arrives as a JSON string;
    prices are always computed server side.
    """
    customer_name = serializers.CharField(max_length=200)
    customer_phone = serializers.CharField(max_length=30)
    customer_location = serializers.CharField(required=False, allow_blank=True, default='')
    province = serializers.CharField(max_length=100, required=False, default='Phnom Penh')
    remark = serializers.CharField(required=False, allow_blank=True, default='')
    delivery_price = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, default=0, min_value=0)
    items = serializers.JSONField()
    payment_proof = serializers.ImageField(required=False, allow_null=True)

    def validate_customer_name(self, value):
        if not value.strip():
            raise serializers.ValidationError('Customer name is required')
        return value.strip()

    def validate_customer_phone(self, value):
        if not normalize_phone(value):
            raise serializers.ValidationError('Customer phone is required')
        return value.strip()

    def validate_items(self, value):
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                raise serializers.ValidationError('Items must be valid JSON')
        if not isinstance(value, list) or not value:
            raise serializers.ValidationError('At least one item is required')
        items = OrderItemInputSerializer(data=value, many=True)
        items.is_valid(raise_exception=True)
        return [dict(item, price=None) for item in items.validated_data]


class StateChangeSerializer(serializers.Serializer):
    state = serializers.ChoiceField(choices=Order.STATE_CHOICES)


class DriverAssignSerializer(serializers.Serializer):
    driver_id = serializers.IntegerField(required=False, allow_null=True)
    assigned_at = serializers.DateTimeField(required=False, allow_null=True)


class PickupProofSerializer(serializers.Serializer):
    pickup_proof = serializers.ImageField()


class BlacklistPhoneSerializer(serializers.ModelSerializer):
    created_by_name = serializers.CharField(source='created_by.name', read_only=True, default=None)

    class Meta:
        model = BlacklistPhone
        fields = ['id', 'phone', 'reason', 'created_by', 'created_by_name', 'created_at']
        read_only_fields = ['created_by', 'created_at']

    def validate_phone(self, value):
        normalized = normalize_phone(value)
        if not normalized:
            raise serializers.ValidationError('Phone number is required')
        if BlacklistPhone.objects.filter(phone=normalized).exists():
            raise serializers.ValidationError('This phone number is already blacklisted')
        return normalized

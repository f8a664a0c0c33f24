from rest_framework import serializers
from .models import (
    Category, Product, ProductOptionGroup, ProductOption, ProductVariant, ProductVariantOption,
)
from .hierarchy import resolve_variant_price

PRICED_TYPES = [ProductOption.PRICE_BASE, ProductOption.PRICE_FIXED, ProductOption.PRICE_PERCENTAGE]


class CategorySerializer(serializers.ModelSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'description', 'is_active', 'product_count', 'created_at', 'updated_at']

    def get_product_count(self, obj):
        """Uses the annotated count when the list view provides one"""
        annotated = getattr(obj, 'annotated_product_count', None)
        if annotated is not None:
            return annotated
        return obj.products.count()


class ProductOptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductOption
        fields = ['id', 'group', 'name', 'description', 'image_url', 'price_type', 'price_value',
                  'is_default', 'is_available', 'stock', 'sort_order', 'created_at', 'updated_at']
        read_only_fields = ['group', 'created_at', 'updated_at']

    def validate_stock(self, value):
        if value < 0:
            raise serializers.ValidationError('Stock cannot be negative')
        return value

    def validate(self, attrs):
        price_type = attrs.get('price_type', getattr(self.instance, 'price_type', ProductOption.PRICE_BASE))
        if price_type == ProductOption.PRICE_FREE:
            attrs['price_value'] = None
        elif price_type in PRICED_TYPES:
            price_value = attrs.get('price_value', getattr(self.instance, 'price_value', None))
            if price_value is None:
                raise serializers.ValidationError({'price_value': f'A price value is required for {price_type} options'})
        return attrs


class ProductOptionGroupSerializer(serializers.ModelSerializer):
    options = ProductOptionSerializer(many=True, read_only=True)
    parent_group_name = serializers.CharField(source='parent_group.name', read_only=True, default=None)

    class Meta:
        model = ProductOptionGroup
        fields = ['id', 'product', 'name', 'description', 'selection_type', 'is_required', 'sort_order',
                  'parent_group', 'parent_group_name', 'level', 'is_parent', 'image_url', 'options',
                  'created_at', 'updated_at']
        read_only_fields = ['product', 'level', 'created_at', 'updated_at']

    def validate_parent_group(self, value):
        if value is None:
            return value
        product = self.context.get('product') or getattr(self.instance, 'product', None)
        if product is not None and value.product_id != product.id:
            raise serializers.ValidationError('Parent group must belong to the same product')
        if self.instance is not None:
            # walking up from the new parent must never reach this group
            current = value
            while current is not None:
                if current.pk == self.instance.pk:
                    raise serializers.ValidationError('A group cannot be nested under itself or its descendants')
                current = current.parent_group
        return value


class VariantOptionSerializer(serializers.ModelSerializer):
    group_id = serializers.IntegerField(source='group.id', read_only=True)
    group_name = serializers.CharField(source='group.name', read_only=True)

    class Meta:
        model = ProductOption
        fields = ['id', 'name', 'group_id', 'group_name', 'price_type', 'price_value']


class ProductVariantSerializer(serializers.ModelSerializer):
    options = serializers.SerializerMethodField()
    option_ids = serializers.ListField(child=serializers.IntegerField(), write_only=True, required=False)
    final_price = serializers.SerializerMethodField()

    class Meta:
        model = ProductVariant
        fields = ['id', 'product', 'sku', 'name', 'stock', 'price_adjustment', 'is_active',
                  'options', 'option_ids', 'final_price', 'created_at', 'updated_at']
        read_only_fields = ['product', 'created_at', 'updated_at']

    def get_options(self, obj):
        options = [link.option for link in obj.variant_options.all()]
        options.sort(key=lambda option: (option.group.level, option.group.sort_order, option.id))
        return VariantOptionSerializer(options, many=True).data

    def get_final_price(self, obj):
        has_base = any(link.option.price_type == ProductOption.PRICE_BASE for link in obj.variant_options.all())
        return str(resolve_variant_price(obj.product.price, obj.price_adjustment, has_base))

    def validate_stock(self, value):
        if value < 0:
            raise serializers.ValidationError('Stock cannot be negative')
        return value

    def validate_option_ids(self, value):
        product = self.context.get('product') or getattr(self.instance, 'product', None)
        options = ProductOption.objects.filter(pk__in=value).select_related('group')
        if len(set(value)) != options.count():
            raise serializers.ValidationError('One or more options do not exist')
        if product is not None and any(option.group.product_id != product.id for option in options):
            raise serializers.ValidationError('Options must belong to this product')
        groups = [option.group_id for option in options]
        if len(groups) != len(set(groups)):
            raise serializers.ValidationError('A variant can hold only one option per group')
        return list(set(value))

    def _set_options(self, variant, option_ids):
        variant.variant_options.all().delete()
        ProductVariantOption.objects.bulk_create([
            ProductVariantOption(variant=variant, option_id=option_id) for option_id in option_ids
        ])

    def create(self, validated_data):
        option_ids = validated_data.pop('option_ids', [])
        variant = ProductVariant.objects.create(**validated_data)
        self._set_options(variant, option_ids)
        return variant

    def update(self, instance, validated_data):
        option_ids = validated_data.pop('option_ids', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()
        if option_ids is not None:
            self._set_options(instance, option_ids)
        return instance


class ProductSerializer(serializers.ModelSerializer):
    # For reading: return full nested objects
    category = CategorySerializer(read_only=True)

    # For writing: accept integer IDs
    category_id = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(),
        source='category',
        write_only=True,
        required=False,
        allow_null=True
    )
    total_stock = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'name', 'description', 'price', 'original_price', 'is_on_sale', 'quantity',
                  'weight', 'image_url', 'banner_text', 'banner_color', 'banner_type', 'note',
                  'has_options', 'category', 'category_id', 'is_active', 'total_stock',
                  'created_at', 'updated_at']
        read_only_fields = ['has_options', 'created_at', 'updated_at']

    def get_total_stock(self, obj):
        """Active variant stock when the product has variants, else the product quantity"""
        variants = [variant for variant in obj.variants.all() if variant.is_active]
        if variants:
            return sum(variant.stock for variant in variants)
        return obj.quantity

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError('Price cannot be negative')
        return value

    def validate_quantity(self, value):
        if value < 0:
            raise serializers.ValidationError('Quantity cannot be negative')
        return value

    def validate_weight(self, value):
        if value < 0:
            raise serializers.ValidationError('Weight cannot be negative')
        return value


class ProductDetailSerializer(ProductSerializer):
    """Product with its option groups and options"""
    option_groups = ProductOptionGroupSerializer(many=True, read_only=True)

    class Meta(ProductSerializer.Meta):
        fields = ProductSerializer.Meta.fields + ['option_groups']


class PublicProductSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    option_groups = ProductOptionGroupSerializer(many=True, read_only=True)
    variants = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'name', 'description', 'price', 'original_price', 'is_on_sale', 'weight',
                  'image_url', 'banner_text', 'banner_color', 'banner_type', 'has_options',
                  'category', 'category_name', 'option_groups', 'variants']
        read_only_fields = fields

    def get_variants(self, obj):
        variants = [variant for variant in obj.variants.all() if variant.is_active]
        return ProductVariantSerializer(variants, many=True).data

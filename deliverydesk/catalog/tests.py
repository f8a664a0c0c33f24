"""
Test suite for Catalog module
Tests: option hierarchy logic, variant generation, stock operations, catalog endpoints
"""
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase, SimpleTestCase
from rest_framework import status

from deliverydesk.core.models import AuditLog
from deliverydesk.core.permissions import ROLE_ADMIN, ROLE_STAFF
from deliverydesk.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from deliverydesk.catalog import hierarchy
from deliverydesk.catalog.models import Category, ProductOption, ProductVariant
from deliverydesk.catalog.services import (
    InsufficientStock, generate_variants, reserve_stock, release_stock, group_rows,
)


def option(option_id, name, stock=0, price_type='FREE', price_value=None, is_available=True,
           is_default=False, sort_order=0):
    return {
        'id': option_id, 'name': name, 'stock': stock, 'price_type': price_type,
        'price_value': price_value, 'is_available': is_available, 'is_default': is_default,
        'sort_order': sort_order,
    }


def group(group_id, name, options, parent_group=None, level=1, sort_order=0,
          selection_type='SINGLE', is_required=False):
    return {
        'id': group_id, 'name': name, 'options': options, 'parent_group': parent_group,
        'level': level, 'sort_order': sort_order, 'selection_type': selection_type,
        'is_required': is_required,
    }


class HierarchyForestTests(SimpleTestCase):
    """Group forest, paths and combinations"""

    def setUp(self):
        self.size = group(1, 'Size', [option(10, 'Small', stock=5), option(11, 'Large', stock=3, sort_order=1)])
        self.color = group(2, 'Color', [option(20, 'Red', stock=4), option(21, 'Blue', stock=0, sort_order=1)],
                           parent_group=1, level=2)

    def test_forest_attaches_children(self):
        forest = hierarchy.build_group_forest([self.color, self.size])
        self.assertEqual([g['id'] for g in forest], [1])
        self.assertEqual([g['id'] for g in forest[0]['child_groups']], [2])

    def test_group_with_unknown_parent_is_root(self):
        orphan = group(3, 'Material', [], parent_group=99, level=2)
        forest = hierarchy.build_group_forest([self.size, orphan])
        self.assertEqual(sorted(g['id'] for g in forest), [1, 3])

    def test_group_paths_branch(self):
        material = group(3, 'Material', [option(30, 'Cotton')], parent_group=1, level=2, sort_order=1)
        paths = hierarchy.group_paths([self.size, self.color, material])
        self.assertEqual([[g['id'] for g in path] for path in paths], [[1, 2], [1, 3]])

    def test_single_group_single_path(self):
        paths = hierarchy.group_paths([self.size])
        self.assertEqual(len(paths), 1)

    def test_combinations_cross_product(self):
        combinations = hierarchy.generate_combinations([self.size, self.color])
        names = [' / '.join(o['name'] for o in combo) for combo in combinations]
        self.assertEqual(names, ['Small / Red', 'Small / Blue', 'Large / Red', 'Large / Blue'])

    def test_combinations_skip_unavailable_options(self):
        self.color['options'][1]['is_available'] = False
        combinations = hierarchy.generate_combinations([self.size, self.color])
        self.assertEqual(len(combinations), 2)

    def test_combinations_skip_empty_groups(self):
        self.color['options'] = []
        combinations = hierarchy.generate_combinations([self.size, self.color])
        self.assertEqual([[o['id'] for o in combo] for combo in combinations], [[10], [11]])

    def test_no_combinations_when_every_group_is_empty(self):
        self.assertEqual(hierarchy.generate_combinations([group(1, 'Size', [])]), [])

    def test_combination_key_is_order_independent(self):
        self.assertEqual(hierarchy.combination_key([3, 1, 2]), hierarchy.combination_key([2, 3, 1]))


class HierarchyStockTreeTests(SimpleTestCase):
    """Stock tree built from options and from variants"""

    def setUp(self):
        self.size = group(1, 'Size', [option(10, 'Small', stock=5), option(11, 'Large', stock=3, sort_order=1)])
        self.color = group(2, 'Color', [option(20, 'Red', stock=4), option(21, 'Blue', stock=1, sort_order=1)],
                           parent_group=1, level=2)

    def assertStockSums(self, node):
        if node['children']:
            self.assertEqual(node['stock'], sum(child['stock'] for child in node['children']))
            for child in node['children']:
                self.assertStockSums(child)

    def test_legacy_tree_nests_child_group_under_each_option(self):
        tree, source = hierarchy.build_stock_tree([self.size, self.color], [])
        self.assertEqual(source, hierarchy.SOURCE_OPTIONS)
        self.assertEqual(len(tree), 1)
        root = tree[0]
        self.assertEqual([child['id'] for child in root['children']], ['option-10', 'option-11'])
        small = root['children'][0]
        self.assertEqual(small['type'], hierarchy.NODE_GROUP)
        self.assertEqual(small['children'][0]['id'], '10_2')
        self.assertEqual(small['children'][0]['level'], 3)
        self.assertEqual(small['stock'], 5)
        self.assertEqual(root['stock'], 10)
        self.assertStockSums(root)

    def test_legacy_tree_single_group_uses_option_stock(self):
        tree, _ = hierarchy.build_stock_tree([self.size], [])
        self.assertEqual([leaf['stock'] for leaf in tree[0]['children']], [5, 3])
        self.assertEqual(tree[0]['stock'], 8)

    def test_variant_tree(self):
        variants = [
            {'id': 100, 'name': 'Small / Red', 'stock': 2, 'is_active': True, 'option_ids': [20, 10]},
            {'id': 101, 'name': 'Large / Red', 'stock': 7, 'is_active': True, 'option_ids': [11, 20]},
            {'id': 102, 'name': 'Large / Blue', 'stock': 9, 'is_active': False, 'option_ids': [11, 21]},
        ]
        tree, source = hierarchy.build_stock_tree([self.size, self.color], variants)
        self.assertEqual(source, hierarchy.SOURCE_VARIANTS)
        self.assertEqual([node['id'] for node in tree], ['10', '11'])
        leaf = tree[0]['children'][0]
        self.assertEqual(leaf['id'], '10_20')
        self.assertEqual(leaf['variant_id'], 100)
        self.assertEqual(leaf['stock'], 2)
        self.assertEqual(tree[1]['stock'], 7)
        for node in tree:
            self.assertStockSums(node)

    def test_inactive_variants_fall_back_to_options(self):
        variants = [{'id': 100, 'name': 'Small / Red', 'stock': 2, 'is_active': False, 'option_ids': [10, 20]}]
        _, source = hierarchy.build_stock_tree([self.size, self.color], variants)
        self.assertEqual(source, hierarchy.SOURCE_OPTIONS)


class HierarchyPricingTests(SimpleTestCase):
    """Option price rules"""

    def test_base_replaces_product_price(self):
        price = hierarchy.calculate_price_with_options('10.00', [option(1, 'L', price_type='BASE', price_value='15.00')])
        self.assertEqual(price, Decimal('15.00'))

    def test_second_base_adds(self):
        options = [option(1, 'A', price_type='BASE', price_value='5'), option(2, 'B', price_type='BASE', price_value='3')]
        self.assertEqual(hierarchy.calculate_price_with_options('10', options), Decimal('8.00'))

    def test_fixed_and_percentage(self):
        options = [option(1, 'A', price_type='BASE', price_value='20'), option(2, 'B', price_type='PERCENTAGE', price_value='10'),
                   option(3, 'C', price_type='FIXED', price_value='1.50')]
        self.assertEqual(hierarchy.calculate_price_with_options('10', options), Decimal('23.50'))

    def test_without_base_uses_product_price(self):
        self.assertEqual(hierarchy.calculate_price_with_options('10', [option(1, 'A')]), Decimal('10.00'))
        self.assertEqual(
            hierarchy.calculate_price_with_options('10', [option(1, 'A', price_type='FIXED', price_value='2')]),
            Decimal('12.00'),
        )

    def test_variant_adjustment(self):
        fixed = [option(1, 'A', price_type='FIXED', price_value='2')]
        base = [option(1, 'A', price_type='BASE', price_value='15')]
        self.assertEqual(hierarchy.variant_price_adjustment('10', fixed), Decimal('2.00'))
        self.assertEqual(hierarchy.variant_price_adjustment('10', base), Decimal('15.00'))

    def test_resolve_variant_price(self):
        self.assertEqual(hierarchy.resolve_variant_price('10', '2', False), Decimal('12.00'))
        self.assertEqual(hierarchy.resolve_variant_price('10', '15', True), Decimal('15.00'))


class HierarchyStockTests(SimpleTestCase):
    """Available stock, validation and summaries"""

    def setUp(self):
        self.variants = [
            {'id': 1, 'stock': 2, 'is_active': True, 'option_ids': [10, 20]},
            {'id': 2, 'stock': 7, 'is_active': True, 'option_ids': [11, 20]},
            {'id': 3, 'stock': 1, 'is_active': True, 'option_ids': [10, 21]},
            {'id': 4, 'stock': 50, 'is_active': False, 'option_ids': [11, 21]},
        ]

    def test_available_stock_respects_other_selections(self):
        self.assertEqual(hierarchy.option_available_stock(self.variants, {1: [10]}, 2, 20), 2)
        self.assertEqual(hierarchy.option_available_stock(self.variants, {1: [10], 2: [20]}, 1, 11), 7)

    def test_available_stock_without_selection_sums_variants(self):
        self.assertEqual(hierarchy.option_available_stock(self.variants, {}, 2, 21), 1)

    def test_available_stock_without_variants_uses_option_stock(self):
        self.assertEqual(hierarchy.option_available_stock([], {}, 1, 10, option_stock=6), 6)

    def test_validate_hierarchy_reports_problems(self):
        groups = [
            group(1, 'Size', [option(10, 'S', is_default=True), option(11, 'L', is_default=True)], level=2),
            group(2, 'Color', [], parent_group=99, level=2),
            group(3, 'Fit', [], parent_group=1, level=2, is_required=True),
        ]
        types = {problem['type'] for problem in hierarchy.validate_hierarchy(groups)}
        self.assertEqual(types, {'level_mismatch', 'missing_parent', 'required_without_options', 'multiple_defaults'})

    def test_validate_hierarchy_detects_cycle(self):
        groups = [group(1, 'A', [], parent_group=2, level=2), group(2, 'B', [], parent_group=1, level=3)]
        problems = hierarchy.validate_hierarchy(groups)
        self.assertIn('cycle', {problem['type'] for problem in problems})

    def test_valid_hierarchy(self):
        groups = [group(1, 'Size', [option(10, 'S')]), group(2, 'Color', [option(20, 'Red')], parent_group=1, level=2)]
        self.assertEqual(hierarchy.validate_hierarchy(groups), [])

    def test_stock_summary(self):
        summary = hierarchy.stock_summary(self.variants + [{'id': 5, 'stock': 0, 'is_active': True}], threshold=5)
        self.assertEqual(summary['total_stock'], 10)
        self.assertEqual(summary['active_variants'], 4)
        self.assertEqual(summary['low_stock_count'], 2)
        self.assertEqual(summary['out_of_stock_count'], 1)


class VariantServiceTests(TestCase):
    """Variant generation and stock reservation against the database"""

    def setUp(self):
        self.product = TestDataFactory.create_product(price=Decimal('10.00'))
        self.size = TestDataFactory.create_option_group(self.product, name='Size')
        self.small = TestDataFactory.create_option(self.size, name='Small', stock=5)
        self.large = TestDataFactory.create_option(self.size, name='Large', stock=3, sort_order=1,
                                                   price_type=ProductOption.PRICE_FIXED, price_value=Decimal('2.00'))
        self.color = TestDataFactory.create_option_group(self.product, name='Color', parent_group=self.size)
        self.red = TestDataFactory.create_option(self.color, name='Red', stock=4)

    def test_child_group_level(self):
        self.assertEqual(self.size.level, 1)
        self.assertEqual(self.color.level, 2)
        self.product.refresh_from_db()
        self.assertTrue(self.product.has_options)

    def test_group_rows(self):
        rows = group_rows(self.product)
        self.assertEqual({row['name'] for row in rows}, {'Size', 'Color'})

    def test_generate_variants_creates_combinations(self):
        result = generate_variants(self.product)
        self.assertEqual(len(result['created']), 2)
        small_red = ProductVariant.objects.get(name='Small / Red')
        self.assertEqual(small_red.stock, 4)
        large_red = ProductVariant.objects.get(name='Large / Red')
        self.assertEqual(large_red.price_adjustment, Decimal('2.00'))
        self.assertEqual(large_red.variant_options.count(), 2)

    def test_generate_variants_is_idempotent(self):
        generate_variants(self.product)
        result = generate_variants(self.product)
        self.assertEqual(len(result['created']), 0)
        self.assertEqual(len(result['skipped']), 2)

    def test_generate_variants_updates_changed_price(self):
        generate_variants(self.product)
        self.large.price_value = Decimal('3.00')
        self.large.save()
        result = generate_variants(self.product)
        self.assertEqual([v['name'] for v in result['updated']], ['Large / Red'])

    def test_generate_variants_deactivates_stale(self):
        generate_variants(self.product)
        self.red.is_available = False
        self.red.save()
        result = generate_variants(self.product)
        self.assertEqual(len(result['deactivated']), 2)
        self.assertEqual(len(result['created']), 2)
        self.assertEqual(ProductVariant.objects.filter(product=self.product, is_active=True).count(), 2)

    def test_reserve_and_release_variant_stock(self):
        variant = TestDataFactory.create_variant(self.product, [self.small, self.red], stock=5)
        reserve_stock([{'product_id': self.product.id, 'variant_id': variant.id, 'quantity': 3}])
        variant.refresh_from_db()
        self.assertEqual(variant.stock, 2)
        release_stock([{'product_id': self.product.id, 'variant_id': variant.id, 'quantity': 3}])
        variant.refresh_from_db()
        self.assertEqual(variant.stock, 5)

    def test_reserve_insufficient_stock_changes_nothing(self):
        variant = TestDataFactory.create_variant(self.product, [self.small, self.red], stock=1)
        plain = TestDataFactory.create_product(quantity=10)
        with self.assertRaises(InsufficientStock):
            reserve_stock([
                {'product_id': plain.id, 'variant_id': None, 'quantity': 2},
                {'product_id': self.product.id, 'variant_id': variant.id, 'quantity': 2},
            ])
        variant.refresh_from_db()
        plain.refresh_from_db()
        self.assertEqual(variant.stock, 1)
        self.assertEqual(plain.quantity, 10)

    def test_reserve_plain_product_quantity(self):
        plain = TestDataFactory.create_product(quantity=10)
        reserve_stock([{'product_id': plain.id, 'variant_id': None, 'quantity': 4}])
        plain.refresh_from_db()
        self.assertEqual(plain.quantity, 6)


class CatalogAPITests(TestCase):
    """Catalog endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_user(role=ROLE_ADMIN)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_category_crud(self):
        response = self.client.post('/api/v1/categories/', {'name': 'Shoes'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        category_id = response.data['id']
        TestDataFactory.create_product(category=Category.objects.get(pk=category_id))

        response = self.client.get('/api/v1/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['product_count'], 1)

        response = self.client.delete(f'/api/v1/categories/{category_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_duplicate_category_name(self):
        TestDataFactory.create_category(name='Bags')
        response = self.client.post('/api/v1/categories/', {'name': 'Bags'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.data)

    def test_product_list_filters_and_paginates(self):
        TestDataFactory.create_product(name='Red Shirt')
        TestDataFactory.create_product(name='Blue Shirt')
        TestDataFactory.create_product(name='Hat', is_active=False)
        response = self.client.get('/api/v1/products/?search=shirt&limit=1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 2)
        self.assertEqual(len(response.data['products']), 1)

        response = self.client.get('/api/v1/products/?is_active=false')
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_create_product_and_audit(self):
        category = TestDataFactory.create_category()
        response = self.client.post('/api/v1/products/', {
            'name': 'Mug', 'price': '4.50', 'quantity': 12, 'weight': '0.400', 'category_id': category.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['category']['id'], category.id)
        self.assertTrue(AuditLog.objects.filter(model_name='Product', action='create').exists())

    def test_negative_price_rejected(self):
        response = self.client.post('/api/v1/products/', {'name': 'Bad', 'price': '-1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_staff_cannot_create_product(self):
        staff = TestDataFactory.create_user(role=ROLE_STAFF)
        client = AuthenticatedAPIClient().authenticate_user(staff)
        response = client.post('/api/v1/products/', {'name': 'Mug', 'price': '4.50'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_product_note(self):
        product = TestDataFactory.create_product()
        response = self.client.patch(f'/api/v1/products/{product.id}/note/', {'note': 'Fragile'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertEqual(product.note, 'Fragile')

    def test_option_group_and_option_endpoints(self):
        product = TestDataFactory.create_product()
        response = self.client.post(f'/api/v1/product-options/{product.id}/groups/', {'name': 'Size'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        size_id = response.data['id']
        response = self.client.post(f'/api/v1/product-options/{product.id}/groups/',
                                    {'name': 'Color', 'parent_group': size_id}, format='json')
        self.assertEqual(response.data['level'], 2)

        response = self.client.post(f'/api/v1/product-options/groups/{size_id}/options/',
                                    {'name': 'Small', 'price_type': 'FREE', 'price_value': '3.00', 'stock': 4}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['price_value'])

        response = self.client.post(f'/api/v1/product-options/groups/{size_id}/options/',
                                    {'name': 'Large', 'price_type': 'BASE'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(f'/api/v1/product-options/{product.id}/groups/')
        self.assertEqual(len(response.data['groups']), 1)
        self.assertEqual(response.data['groups'][0]['child_groups'][0]['name'], 'Color')

        product.refresh_from_db()
        self.assertTrue(product.has_options)
        self.client.delete(f'/api/v1/product-options/groups/{size_id}/')
        product.refresh_from_db()
        self.assertFalse(product.has_options)

    def test_group_cannot_be_nested_under_descendant(self):
        product = TestDataFactory.create_product()
        parent = TestDataFactory.create_option_group(product, name='Size')
        child = TestDataFactory.create_option_group(product, name='Color', parent_group=parent)
        response = self.client.patch(f'/api/v1/product-options/groups/{parent.id}/',
                                     {'parent_group': child.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_generate_variants_and_hierarchical_stock(self):
        product = TestDataFactory.create_product()
        size = TestDataFactory.create_option_group(product, name='Size')
        TestDataFactory.create_option(size, name='Small', stock=5)
        TestDataFactory.create_option(size, name='Large', stock=3, sort_order=1)

        response = self.client.get(f'/api/v1/product-options/{product.id}/hierarchical-stock/')
        self.assertEqual(response.data['source'], 'options')
        self.assertEqual(response.data['total_stock'], 8)

        response = self.client.post(f'/api/v1/product-options/{product.id}/generate-variants/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['created']), 2)

        response = self.client.get(f'/api/v1/product-options/{product.id}/hierarchical-stock/')
        self.assertEqual(response.data['source'], 'variants')
        self.assertEqual(response.data['total_stock'], 8)
        self.assertEqual(len(response.data['variants']), 2)

    def test_variant_stock_update(self):
        product = TestDataFactory.create_product()
        size = TestDataFactory.create_option_group(product, name='Size')
        small = TestDataFactory.create_option(size, name='Small')
        variant = TestDataFactory.create_variant(product, [small], stock=3)

        response = self.client.put(f'/api/v1/product-options/variants/{variant.id}/stock/', {'stock': -1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.put(f'/api/v1/product-options/variants/{variant.id}/stock/', {'stock': 9}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stock'], 9)
        self.assertTrue(AuditLog.objects.filter(action='stock_adjust', object_id=str(variant.id)).exists())

    def test_bulk_stock_update_applies_independently(self):
        product = TestDataFactory.create_product()
        size = TestDataFactory.create_option_group(product, name='Size')
        variant = TestDataFactory.create_variant(product, [TestDataFactory.create_option(size, name='S')], stock=1)
        response = self.client.put('/api/v1/product-options/variants/bulk-update-stock/', {'updates': [
            {'variant_id': variant.id, 'stock': 6},
            {'variant_id': variant.id + 999, 'stock': 2},
            {'variant_id': variant.id, 'stock': 'abc'},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['successful'], 1)
        self.assertEqual(response.data['failed'], 2)
        variant.refresh_from_db()
        self.assertEqual(variant.stock, 6)

    def test_validate_stock(self):
        product = TestDataFactory.create_product()
        size = TestDataFactory.create_option_group(product, name='Size')
        variant = TestDataFactory.create_variant(product, [TestDataFactory.create_option(size, name='S')], stock=2)
        response = self.client.post('/api/v1/product-options/validate-stock/', {'items': [
            {'product_id': product.id, 'variant_id': variant.id, 'quantity': 3},
        ]}, format='json')
        self.assertFalse(response.data['is_valid'])
        self.assertEqual(response.data['results'][0]['available_stock'], 2)

    def test_validate_stock_with_non_numeric_variant_id(self):
        response = self.client.post('/api/v1/product-options/validate-stock/', {'items': [
            {'variant_id': 'abc', 'quantity': 1},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_valid'])
        self.assertEqual(response.data['results'][0]['available_stock'], 0)

    def test_stock_summary_and_validation_endpoints(self):
        product = TestDataFactory.create_product()
        size = TestDataFactory.create_option_group(product, name='Size')
        TestDataFactory.create_variant(product, [TestDataFactory.create_option(size, name='S')], stock=0)
        TestDataFactory.create_variant(product, [TestDataFactory.create_option(size, name='L')], stock=3)

        response = self.client.get(f'/api/v1/product-options/{product.id}/stock-summary/?threshold=5')
        self.assertEqual(response.data['total_stock'], 3)
        self.assertEqual(response.data['low_stock_count'], 1)
        self.assertEqual(response.data['out_of_stock_count'], 1)

        response = self.client.get(f'/api/v1/product-options/{product.id}/validate-hierarchy/')
        self.assertTrue(response.data['is_valid'])

    def test_variant_crud(self):
        product = TestDataFactory.create_product(price=Decimal('10.00'))
        size = TestDataFactory.create_option_group(product, name='Size')
        large = TestDataFactory.create_option(size, name='Large', price_type='BASE', price_value=Decimal('15.00'))
        response = self.client.post(f'/api/v1/products/{product.id}/variants/', {
            'sku': 'MUG-L', 'name': 'Large', 'stock': 4, 'price_adjustment': '15.00', 'option_ids': [large.id],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['final_price'], '15.00')

        variant_id = response.data['id']
        response = self.client.patch(f'/api/v1/products/variants/{variant_id}/', {'stock': 2}, format='json')
        self.assertEqual(response.data['stock'], 2)
        response = self.client.delete(f'/api/v1/products/variants/{variant_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_variant_rejects_two_options_from_one_group(self):
        product = TestDataFactory.create_product()
        size = TestDataFactory.create_option_group(product, name='Size')
        a = TestDataFactory.create_option(size, name='S')
        b = TestDataFactory.create_option(size, name='L')
        response = self.client.post(f'/api/v1/products/{product.id}/variants/', {
            'sku': 'X-1', 'name': 'S / L', 'option_ids': [a.id, b.id],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_public_products_without_auth(self):
        TestDataFactory.create_product(name='Visible')
        TestDataFactory.create_product(name='Hidden', is_active=False)
        client = AuthenticatedAPIClient()
        response = client.get('/api/v1/public/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['name'] for p in response.data['products']], ['Visible'])

        response = client.get('/api/v1/public/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_requires_authentication(self):
        client = AuthenticatedAPIClient()
        response = client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class CheckVariantStockCommandTests(TestCase):
    """check_variant_stock management command"""

    def setUp(self):
        self.product = TestDataFactory.create_product(name='Shirt')
        self.size = TestDataFactory.create_option_group(self.product, name='Size')
        self.small = TestDataFactory.create_option(self.size, name='Small', stock=9)
        self.large = TestDataFactory.create_option(self.size, name='Large', stock=1)
        TestDataFactory.create_variant(self.product, [self.small], stock=4)
        TestDataFactory.create_variant(self.product, [self.large], stock=1)

    def test_report_only(self):
        out = StringIO()
        call_command('check_variant_stock', stdout=out)
        self.assertIn('Found 1 mismatched options', out.getvalue())
        self.small.refresh_from_db()
        self.assertEqual(self.small.stock, 9)

    def test_fix_copies_variant_totals(self):
        out = StringIO()
        call_command('check_variant_stock', fix=True, stdout=out)
        self.assertIn('Fixed 1 of 1 mismatched options', out.getvalue())
        self.small.refresh_from_db()
        self.assertEqual(self.small.stock, 4)

        out = StringIO()
        call_command('check_variant_stock', stdout=out)
        self.assertIn('Option stock matches variant stock', out.getvalue())

"""
Option group hierarchy: forest building, variant combinations, stock trees
and option pricing.

Everything here works on plain rows so it can run without the database:

    group   = {'id', 'name', 'parent_group', 'level', 'sort_order', 'selection_type',
               'is_required', 'options': [option, ...]}
    option  = {'id', 'name', 'stock', 'price_type', 'price_value', 'is_available',
               'is_default', 'sort_order'}
    variant = {'id', 'sku', 'name', 'stock', 'is_active', 'price_adjustment',
               'option_ids': [...]}

`services.group_rows` / `services.variant_rows` build these from the models.
"""
from decimal import Decimal, InvalidOperation
from itertools import product as cartesian_product

PRICE_FREE = 'FREE'
PRICE_BASE = 'BASE'
PRICE_FIXED = 'FIXED'
PRICE_PERCENTAGE = 'PERCENTAGE'

NODE_GROUP = 'option-group'
NODE_OPTION = 'option'

SOURCE_VARIANTS = 'variants'
SOURCE_OPTIONS = 'options'


def _decimal(value):
    if value is None or value == '':
        return Decimal('0')
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal('0')


def _sort_key(row):
    return (row.get('sort_order') or 0, row.get('name') or '')


def build_group_forest(groups):
    """
    Attach groups to their parents and return the root groups.

    Roots are groups without a parent (or whose parent is not among `groups`).
    Each returned group is a copy carrying `child_groups`; options and
    children are sorted by (sort_order, name).
    """
    by_id = {}
    for group in groups:
        by_id[group['id']] = dict(
            group,
            options=sorted(group.get('options') or [], key=_sort_key),
            child_groups=[],
        )

    roots = []
    for group in sorted(by_id.values(), key=_sort_key):
        parent_id = group.get('parent_group')
        if parent_id is not None and parent_id in by_id and parent_id != group['id']:
            by_id[parent_id]['child_groups'].append(group)
        else:
            roots.append(group)
    return roots


def group_paths(groups):
    """Root-to-leaf chains of groups"""
    paths = []

    def walk(group, trail, seen):
        if group['id'] in seen:
            return
        trail = trail + [group]
        seen = seen | {group['id']}
        if not group['child_groups']:
            paths.append(trail)
            return
        for child in group['child_groups']:
            walk(child, trail, seen)

    for root in build_group_forest(groups):
        walk(root, [], frozenset())
    return paths


def combination_key(option_ids):
    return tuple(sorted(option_ids))


def generate_combinations(groups):
    """
    Cross product of the available options along every group path.

    Groups with no available options are left out of their path's product.
    Combinations produced by more than one path are returned once.
    """
    combinations = []
    seen = set()
    for path in group_paths(groups):
        option_lists = []
        for group in path:
            available = [option for option in group['options'] if option.get('is_available', True)]
            if available:
                option_lists.append(available)
        if not option_lists:
            continue
        for combination in cartesian_product(*option_lists):
            key = combination_key(option['id'] for option in combination)
            if key in seen:
                continue
            seen.add(key)
            combinations.append(list(combination))
    return combinations


def calculate_price_with_options(base_price, options):
    """
    Price of a product with the given options selected.

    The first BASE option replaces the product price and later BASE options
    add their value. FIXED adds its value, PERCENTAGE adds that percentage of
    the running price and FREE changes nothing.
    """
    price = _decimal(base_price)
    base_applied = False
    for option in options:
        price_type = option.get('price_type')
        value = _decimal(option.get('price_value'))
        if price_type == PRICE_BASE:
            if base_applied:
                price += value
            else:
                price = value
                base_applied = True
        elif price_type == PRICE_FIXED:
            price += value
        elif price_type == PRICE_PERCENTAGE:
            price += price * value / Decimal('100')
    return price.quantize(Decimal('0.01'))


def has_base_option(options):
    return any(option.get('price_type') == PRICE_BASE for option in options)


def variant_price_adjustment(base_price, options):
    """Absolute price when a BASE option is present, otherwise the delta from the product price"""
    price = calculate_price_with_options(base_price, options)
    if has_base_option(options):
        return price
    return (price - _decimal(base_price)).quantize(Decimal('0.01'))


def resolve_variant_price(base_price, price_adjustment, variant_has_base):
    if variant_has_base:
        return _decimal(price_adjustment).quantize(Decimal('0.01'))
    return (_decimal(base_price) + _decimal(price_adjustment)).quantize(Decimal('0.01'))


def option_available_stock(variants, selections, group_id, option_id, option_stock=0):
    """
    Stock available if `option_id` were picked in `group_id`, given the
    options already selected in the other groups.

    `selections` maps group id -> list of selected option ids.
    """
    if not variants:
        return option_stock or 0

    required = {option_id}
    for selected_group, option_ids in (selections or {}).items():
        if str(selected_group) == str(group_id):
            continue
        required.update(option_ids or [])

    total = 0
    for variant in variants:
        if not variant.get('is_active', True):
            continue
        if required.issubset(set(variant.get('option_ids') or [])):
            total += variant.get('stock') or 0
    return total


def _node(node_id, name, node_type, level, parent_id, children=None, stock=0, variant_id=None):
    children = children or []
    if children:
        stock = sum(child['stock'] for child in children)
    return {
        'id': node_id,
        'name': name,
        'type': node_type,
        'stock': stock,
        'level': level,
        'parent_id': parent_id,
        'variant_id': variant_id,
        'children': children,
    }


def _option_leaf(option, parent_id, level):
    return _node(f"option-{option['id']}", option['name'], NODE_OPTION, level, parent_id,
                 stock=option.get('stock') or 0)


def _legacy_group_node(group):
    group_node_id = f"group-{group['id']}"
    level = group.get('level') or 1
    options = group['options']
    nested = None
    if options:
        nested = next((child for child in group['child_groups'] if child['options']), None)

    children = []
    if nested is not None:
        # every option of this group holds its own copy of the child group's options
        for option in options:
            synthetic_id = f"{option['id']}_{nested['id']}"
            leaves = [_option_leaf(child_option, synthetic_id, level + 3) for child_option in nested['options']]
            synthetic = _node(synthetic_id, nested['name'], NODE_GROUP, level + 2,
                              f"option-{option['id']}", leaves)
            children.append(_node(f"option-{option['id']}", option['name'], NODE_GROUP,
                                  level + 1, group_node_id, [synthetic]))
    else:
        children.extend(_legacy_group_node(child) for child in group['child_groups'])
        children.extend(_option_leaf(option, group_node_id, level + 1) for option in options)

    parent_id = f"group-{group['parent_group']}" if group.get('parent_group') else None
    return _node(group_node_id, group['name'], NODE_GROUP, level, parent_id, children)


def _variant_tree(groups, variants):
    option_index = {}
    for group in groups:
        for option in group.get('options') or []:
            option_index[option['id']] = (group.get('level') or 1, group.get('sort_order') or 0, option)

    roots = []
    nodes = {}
    own_variants = {}

    for variant in variants:
        path = sorted(
            (option_index[option_id] for option_id in variant.get('option_ids') or [] if option_id in option_index),
            key=lambda entry: (entry[0], entry[1], entry[2]['id']),
        )
        if not path:
            continue
        trail = []
        parent = None
        for level, _, option in path:
            trail.append(str(option['id']))
            node_id = '_'.join(trail)
            node = nodes.get(node_id)
            if node is None:
                node = {
                    'id': node_id,
                    'name': option['name'],
                    'type': NODE_OPTION,
                    'level': level,
                    'parent_id': parent['id'] if parent else None,
                    'children': [],
                }
                nodes[node_id] = node
                (parent['children'] if parent else roots).append(node)
            parent = node
        own_variants.setdefault(parent['id'], []).append(variant)

    def finalize(node):
        children = [finalize(child) for child in node['children']]
        variants_here = own_variants.get(node['id'], [])
        if not children and len(variants_here) == 1:
            variant = variants_here[0]
            return _node(node['id'], node['name'], node['type'], node['level'], node['parent_id'],
                         stock=variant.get('stock') or 0, variant_id=variant['id'])
        # a variant ending on an inner node gets its own leaf
        for variant in variants_here:
            children.append(_node(f"{node['id']}_v{variant['id']}", variant.get('name') or node['name'],
                                  NODE_OPTION, node['level'] + 1, node['id'],
                                  stock=variant.get('stock') or 0, variant_id=variant['id']))
        return _node(node['id'], node['name'], node['type'], node['level'], node['parent_id'], children)

    return [finalize(root) for root in roots]


def build_stock_tree(groups, variants):
    """
    Display tree of stock for a product.

    Returns (tree, source). With active variants the tree follows the variant
    option paths and leaves carry variant stock; otherwise it is built from
    the option groups and leaves carry option stock. Every inner node's stock
    is the sum of its children.
    """
    active = [variant for variant in variants or [] if variant.get('is_active', True)]
    if active:
        tree = _variant_tree(groups, active)
        if tree:
            return tree, SOURCE_VARIANTS
    forest = build_group_forest(groups)
    roots = [group for group in forest if (group.get('level') or 1) == 1]
    return [_legacy_group_node(group) for group in roots], SOURCE_OPTIONS


def validate_hierarchy(groups):
    """Structural problems in a product's option groups, as a list of dicts"""
    problems = []
    by_id = {group['id']: group for group in groups}

    for group in groups:
        group_id = group['id']
        parent_id = group.get('parent_group')
        level = group.get('level') or 0

        if parent_id is not None and parent_id not in by_id:
            problems.append({'type': 'missing_parent', 'group_id': group_id,
                             'message': f"Group '{group['name']}' references a parent group that does not belong to this product"})
        elif parent_id is None and level != 1:
            problems.append({'type': 'level_mismatch', 'group_id': group_id,
                             'message': f"Root group '{group['name']}' has level {level}, expected 1"})
        elif parent_id is not None:
            expected = (by_id[parent_id].get('level') or 0) + 1
            if level != expected:
                problems.append({'type': 'level_mismatch', 'group_id': group_id,
                                 'message': f"Group '{group['name']}' has level {level}, expected {expected}"})

        seen = {group_id}
        current = parent_id
        while current is not None and current in by_id:
            if current in seen:
                problems.append({'type': 'cycle', 'group_id': group_id,
                                 'message': f"Group '{group['name']}' is part of a parent cycle"})
                break
            seen.add(current)
            current = by_id[current].get('parent_group')

        options = group.get('options') or []
        if group.get('is_required') and not any(option.get('is_available', True) for option in options):
            problems.append({'type': 'required_without_options', 'group_id': group_id,
                             'message': f"Required group '{group['name']}' has no available options"})

        if group.get('selection_type') == 'SINGLE':
            defaults = [option for option in options if option.get('is_default')]
            if len(defaults) > 1:
                problems.append({'type': 'multiple_defaults', 'group_id': group_id,
                                 'message': f"Single-choice group '{group['name']}' has {len(defaults)} default options"})

        for option in options:
            if (option.get('stock') or 0) < 0:
                problems.append({'type': 'negative_stock', 'group_id': group_id, 'option_id': option['id'],
                                 'message': f"Option '{option['name']}' has negative stock"})
    return problems


def stock_summary(variants, threshold=10):
    active = [variant for variant in variants if variant.get('is_active', True)]
    low_stock = [variant for variant in active if 0 < (variant.get('stock') or 0) <= threshold]
    out_of_stock = [variant for variant in active if (variant.get('stock') or 0) <= 0]
    return {
        'total_stock': sum(variant.get('stock') or 0 for variant in active),
        'total_variants': len(variants),
        'active_variants': len(active),
        'threshold': threshold,
        'low_stock_variants': low_stock,
        'out_of_stock_variants': out_of_stock,
        'low_stock_count': len(low_stock),
        'out_of_stock_count': len(out_of_stock),
    }

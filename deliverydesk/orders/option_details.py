"""
Option selections stored on order items.

Stored shape:
    {"variant_id": 12, "selections": [
        {"group_id": 1, "group_name": "Size", "selection_type": "SINGLE",
         "selected_options": [{"id": 3, "name": "Large", "price_type": "FIXED", "price_value": "1.50"}]}
    ]}

Older rows hold the selections list directly and may use camelCase keys;
normalize_option_details converts both to the stored shape.
"""

GROUP_KEYS = {
    'groupId': 'group_id',
    'groupName': 'group_name',
    'selectionType': 'selection_type',
    'selectedOptions': 'selected_options',
}
OPTION_KEYS = {
    'priceType': 'price_type',
    'priceValue': 'price_value',
}


def _rename(row, mapping):
    return {mapping.get(key, key): value for key, value in row.items()}


def _normalize_group(group):
    if not isinstance(group, dict):
        return None
    group = _rename(group, GROUP_KEYS)
    options = group.get('selected_options')
    if not isinstance(options, list):
        options = []
    group['selected_options'] = [_rename(option, OPTION_KEYS) for option in options if isinstance(option, dict)]
    return group


def normalize_option_details(value):
    if value in (None, '', [], {}):
        return None
    if isinstance(value, list):
        value = {'selections': value}
    if not isinstance(value, dict):
        return None

    details = _rename(value, {'variantId': 'variant_id'})
    selections = details.get('selections')
    if not isinstance(selections, list):
        selections = []
    details['selections'] = [g for g in (_normalize_group(group) for group in selections) if g is not None]
    return details


def format_selections(value):
    """'Size: Large | Toppings: Cheese, Ham'; empty string when nothing is selected"""
    details = normalize_option_details(value)
    if not details:
        return ''
    parts = []
    for group in details['selections']:
        names = [str(option.get('name') or '').strip() for option in group['selected_options']]
        names = [name for name in names if name]
        if names:
            parts.append(f"{group.get('group_name') or 'Option'}: {', '.join(names)}")
    return ' | '.join(parts)


def describe_item(name, quantity, option_details=None):
    text = f"{name} (x{quantity})"
    selections = format_selections(option_details)
    if selections:
        text += f" [{selections}]"
    return text

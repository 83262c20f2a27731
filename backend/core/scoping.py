"""
Naming conventions that encode tenant ownership inside shared name columns.

Items and categories carry a ``_tenant_<id>`` suffix, locations carry a
``<tenant code>::`` prefix and an optional ``INACTIVE - `` marker. Categories
additionally start with their item type (``GAS - Elpiji``).
"""

ITEM_TENANT_MARKER = '_tenant_'
LOCATION_TENANT_DELIMITER = '::'
INACTIVE_LOCATION_MARKER = 'INACTIVE - '
CATEGORY_TYPE_DELIMITER = ' - '

ITEM_TYPE_CONSUMABLE = 'CONSUMABLE'
ITEM_TYPE_ASSET = 'ASSET'
ITEM_TYPE_GAS = 'GAS'
ITEM_TYPES = (ITEM_TYPE_CONSUMABLE, ITEM_TYPE_ASSET, ITEM_TYPE_GAS)


# Items (and categories)

def tenant_item_suffix(tenant_id):
    return f"{ITEM_TENANT_MARKER}{tenant_id}"


def to_tenant_scoped_item_name(name, tenant_id=None):
    base = (name or '').strip()
    if not tenant_id:
        return base
    return f"{base}{tenant_item_suffix(tenant_id)}"


def from_tenant_scoped_item_name(name):
    if not name:
        return name
    marker_index = name.rfind(ITEM_TENANT_MARKER)
    if marker_index < 0:
        return name
    return name[:marker_index]


def is_item_owned_by_tenant(name, tenant_id=None):
    if not tenant_id:
        return True
    return (name or '').endswith(tenant_item_suffix(tenant_id))


def tenant_id_from_item_name(name):
    """Return the tenant id encoded in a scoped name, or None"""
    if not name:
        return None
    marker_index = name.rfind(ITEM_TENANT_MARKER)
    if marker_index < 0:
        return None
    return name[marker_index + len(ITEM_TENANT_MARKER):] or None


# Locations

def tenant_location_prefix(tenant_code):
    return f"{tenant_code}{LOCATION_TENANT_DELIMITER}"


def to_tenant_location_name(tenant_code, name, active=True):
    base = strip_location_markers(name)
    if not active:
        base = f"{INACTIVE_LOCATION_MARKER}{base}"
    if not tenant_code:
        return base
    return f"{tenant_location_prefix(tenant_code)}{base}"


def is_inactive_location_name(name):
    name = name or ''
    return (
        name.startswith(INACTIVE_LOCATION_MARKER)
        or f"{LOCATION_TENANT_DELIMITER}{INACTIVE_LOCATION_MARKER}" in name
    )


def is_location_owned_by_tenant(name, tenant_code):
    return bool(tenant_code) and (name or '').startswith(tenant_location_prefix(tenant_code))


def strip_location_markers(name):
    value = (name or '').strip()
    if LOCATION_TENANT_DELIMITER in value:
        value = value.split(LOCATION_TENANT_DELIMITER, 1)[1]
    if value.startswith(INACTIVE_LOCATION_MARKER):
        value = value[len(INACTIVE_LOCATION_MARKER):]
    return value.strip()


def display_location_name(name):
    return strip_location_markers(name)


# Categories

def category_type_from_name(name):
    value = from_tenant_scoped_item_name(name) or ''
    head, sep, _ = value.partition(CATEGORY_TYPE_DELIMITER)
    if sep and head in ITEM_TYPES:
        return head
    upper = value.upper()
    if ITEM_TYPE_GAS in upper:
        return ITEM_TYPE_GAS
    if ITEM_TYPE_ASSET in upper:
        return ITEM_TYPE_ASSET
    return ITEM_TYPE_CONSUMABLE


def to_category_name(item_type, name, tenant_id=None):
    label = f"{item_type}{CATEGORY_TYPE_DELIMITER}{(name or '').strip()}"
    return to_tenant_scoped_item_name(label, tenant_id)


def display_category_name(name):
    value = from_tenant_scoped_item_name(name) or ''
    head, sep, rest = value.partition(CATEGORY_TYPE_DELIMITER)
    if sep and head in ITEM_TYPES:
        return rest.strip()
    return value.strip()

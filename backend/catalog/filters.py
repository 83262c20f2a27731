import django_filters
from django.db.models import Q

from backend.core.scoping import ITEM_TYPES
from .models import Category, Item
from .services import scoped_display_name


def parse_bool(value):
    """Interpret 'true'/'false' style query values; None when unset"""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes')


class CategoryFilter(django_filters.FilterSet):
    """Filters for tenant category lists"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    type = django_filters.ChoiceFilter(method='filter_type', choices=[(t, t) for t in ITEM_TYPES])
    is_active = django_filters.CharFilter(method='filter_is_active', label='Active')

    class Meta:
        model = Category
        fields = ['search', 'type', 'is_active']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.annotate(display_label=scoped_display_name()).filter(display_label__icontains=value)

    def filter_type(self, queryset, name, value):
        # Type lives in the name prefix (or a keyword for legacy names)
        matching = [category.pk for category in queryset if category.item_type == value]
        return queryset.filter(pk__in=matching)

    def filter_is_active(self, queryset, name, value):
        is_active = parse_bool(value)
        if is_active is None:
            return queryset
        return queryset.filter(is_active=is_active)


class ItemFilter(django_filters.FilterSet):
    """Filters for tenant item lists"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    type = django_filters.ChoiceFilter(field_name='item_type', choices=[(t, t) for t in ITEM_TYPES])
    category_id = django_filters.UUIDFilter(field_name='category_id', lookup_expr='exact')
    is_active = django_filters.CharFilter(method='filter_is_active', label='Active')

    class Meta:
        model = Item
        fields = ['search', 'type', 'category_id', 'is_active']

    def filter_search(self, queryset, name, value):
        """Match the item name, SKU or unit"""
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.annotate(display_label=scoped_display_name()).filter(
            Q(display_label__icontains=value) | Q(sku__icontains=value) | Q(unit__icontains=value)
        )

    def filter_is_active(self, queryset, name, value):
        is_active = parse_bool(value)
        if is_active is None:
            return queryset
        return queryset.filter(is_active=is_active)

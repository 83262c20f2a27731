from rest_framework import serializers

from backend.core.scoping import ITEM_TYPES
from .models import Category, Item

TYPE_CHOICES = list(ITEM_TYPES)


class CategorySerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='display_name', read_only=True)
    type = serializers.CharField(source='item_type', read_only=True)
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ['id', 'name', 'type', 'is_active', 'item_count', 'created_at', 'updated_at']

    def get_item_count(self, obj):
        count = getattr(obj, 'annotated_item_count', None)
        if count is not None:
            return count
        return obj.items.count()


class CategoryWriteSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=200)
    type = serializers.ChoiceField(choices=TYPE_CHOICES)
    is_active = serializers.BooleanField(required=False, default=True)

    def validate_name(self, value):
        return value.strip()


class CategoryStatusSerializer(serializers.Serializer):
    is_active = serializers.BooleanField()


class CategoryBulkActionSerializer(serializers.Serializer):
    ACTION_CHOICES = ['activate', 'deactivate', 'delete']

    ids = serializers.ListField(child=serializers.UUIDField(), min_length=1)
    action = serializers.ChoiceField(choices=ACTION_CHOICES)


class CategorySummarySerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='display_name', read_only=True)
    type = serializers.CharField(source='item_type', read_only=True)

    class Meta:
        model = Category
        fields = ['id', 'name', 'type']


class ItemSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='display_name', read_only=True)
    category = CategorySummarySerializer(read_only=True)
    type = serializers.CharField(source='item_type', read_only=True)

    class Meta:
        model = Item
        fields = ['id', 'name', 'sku', 'category_id', 'category', 'type', 'unit', 'min_stock',
                  'reorder_qty', 'is_active', 'created_at', 'updated_at']


class ItemCreateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=200)
    sku = serializers.CharField(min_length=1, max_length=100)
    category_id = serializers.UUIDField()
    type = serializers.ChoiceField(choices=TYPE_CHOICES, required=False)
    unit = serializers.CharField(min_length=1, max_length=30)
    min_stock = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=0, default=0)
    reorder_qty = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=0, default=0)
    is_active = serializers.BooleanField(required=False, default=True)

    def validate_name(self, value):
        value = value.strip()
        if '_tenant_' in value:
            raise serializers.ValidationError('Item name must not contain "_tenant_".')
        return value

    def validate_sku(self, value):
        return value.strip().upper()


class ItemUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=200, required=False)
    category_id = serializers.UUIDField(required=False)
    type = serializers.ChoiceField(choices=TYPE_CHOICES, required=False)
    unit = serializers.CharField(min_length=1, max_length=30, required=False)
    min_stock = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=0, required=False)
    reorder_qty = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=0, required=False)
    is_active = serializers.BooleanField(required=False)

    def validate_name(self, value):
        value = value.strip()
        if '_tenant_' in value:
            raise serializers.ValidationError('Item name must not contain "_tenant_".')
        return value


class ItemBulkActionSerializer(serializers.Serializer):
    ACTION_CHOICES = ['activate', 'deactivate', 'delete', 'set_category']

    ids = serializers.ListField(child=serializers.UUIDField(), min_length=1)
    action = serializers.ChoiceField(choices=ACTION_CHOICES)
    category_id = serializers.UUIDField(required=False)

    def validate(self, attrs):
        if attrs['action'] == 'set_category' and not attrs.get('category_id'):
            raise serializers.ValidationError({'category_id': 'Category is required for set_category.'})
        return attrs

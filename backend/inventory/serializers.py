from rest_framework import serializers

from backend.core.serializers import UserSummarySerializer
from backend.core.utils import PERIODS
from .models import InventoryTransaction, Stock
from .services import stock_status

STOCK_STATUS_CHOICES = ['OUT', 'LOW', 'SAFE']


class StockSerializer(serializers.ModelSerializer):
    item = serializers.SerializerMethodField()
    location = serializers.SerializerMethodField()
    min_stock = serializers.DecimalField(source='item.min_stock', max_digits=12, decimal_places=3, read_only=True)
    status = serializers.SerializerMethodField()

    class Meta:
        model = Stock
        fields = ['id', 'item', 'location', 'qty', 'min_stock', 'status', 'updated_at']

    def get_item(self, obj):
        item = obj.item
        return {
            'id': str(item.id),
            'name': item.display_name,
            'sku': item.sku,
            'unit': item.unit,
            'type': item.item_type,
            'category': item.category.display_name if item.category_id else None,
        }

    def get_location(self, obj):
        return {'id': str(obj.location.id), 'name': obj.location.display_name}

    def get_status(self, obj):
        return stock_status(obj.qty, obj.item.min_stock)


class InventoryTransactionSerializer(serializers.ModelSerializer):
    item = serializers.SerializerMethodField()
    from_location = serializers.SerializerMethodField()
    to_location = serializers.SerializerMethodField()
    created_by = UserSummarySerializer(read_only=True)
    tenant_code = serializers.SerializerMethodField()

    class Meta:
        model = InventoryTransaction
        fields = ['id', 'trx_type', 'item', 'from_location', 'to_location', 'qty', 'reason',
                  'created_by', 'tenant_code', 'created_at']

    def get_item(self, obj):
        return {'id': str(obj.item.id), 'name': obj.item.display_name, 'sku': obj.item.sku, 'unit': obj.item.unit}

    def _location(self, location):
        if location is None:
            return None
        return {'id': str(location.id), 'name': location.display_name}

    def get_from_location(self, obj):
        return self._location(obj.from_location)

    def get_to_location(self, obj):
        return self._location(obj.to_location)

    def get_tenant_code(self, obj):
        return self.context.get('tenant_code')


class TransactionCreateSerializer(serializers.Serializer):
    trx_type = serializers.ChoiceField(choices=InventoryTransaction.TYPE_CHOICES)
    item_id = serializers.UUIDField()
    qty = serializers.DecimalField(max_digits=12, decimal_places=3)
    from_location_id = serializers.UUIDField(required=False, allow_null=True)
    to_location_id = serializers.UUIDField(required=False, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')


class AdjustmentRowSerializer(serializers.Serializer):
    item_id = serializers.UUIDField()
    qty = serializers.DecimalField(max_digits=12, decimal_places=3)


class BulkAdjustSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')
    location_id = serializers.UUIDField()
    adjustments = AdjustmentRowSerializer(many=True)


class TransactionQuerySerializer(serializers.Serializer):
    period = serializers.ChoiceField(choices=PERIODS, required=False)
    trx_type = serializers.ChoiceField(choices=InventoryTransaction.TYPE_CHOICES, required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def to_internal_value(self, data):
        data = data.copy()
        for public, internal in (('from', 'date_from'), ('to', 'date_to')):
            if public in data and internal not in data:
                data[internal] = data[public]
        return super().to_internal_value(data)


class StockQuerySerializer(serializers.Serializer):
    search = serializers.CharField(required=False, allow_blank=True)
    location_id = serializers.UUIDField(required=False)
    status = serializers.ChoiceField(choices=STOCK_STATUS_CHOICES, required=False)

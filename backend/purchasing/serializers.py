from rest_framework import serializers

from backend.core.serializers import UserSummarySerializer
from backend.core.utils import PERIODS
from .models import PurchaseRequest, PurchaseRequestItem, PurchaseRequestStatusHistory


class PurchaseRequestItemSerializer(serializers.ModelSerializer):
    subtotal = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseRequestItem
        fields = ['id', 'item_id', 'item_name', 'qty', 'unit_price', 'subtotal']

    def get_subtotal(self, obj):
        return str(obj.get_line_total())


class PurchaseRequestStatusHistorySerializer(serializers.ModelSerializer):
    changed_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = PurchaseRequestStatusHistory
        fields = ['id', 'status', 'note', 'changed_by', 'created_at']


class PurchaseRequestSerializer(serializers.ModelSerializer):
    requested_by = UserSummarySerializer(read_only=True)
    approved_by = UserSummarySerializer(read_only=True)
    tenant_code = serializers.CharField(source='tenant.code', read_only=True)
    item_count = serializers.SerializerMethodField()
    total_amount = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseRequest
        fields = ['id', 'pr_number', 'tenant_id', 'tenant_code', 'status', 'notes', 'requested_by',
                  'approved_by', 'item_count', 'total_amount', 'created_at', 'updated_at']

    def get_item_count(self, obj):
        return len(obj.items.all())

    def get_total_amount(self, obj):
        return str(obj.get_total())


class PurchaseRequestDetailSerializer(PurchaseRequestSerializer):
    items = PurchaseRequestItemSerializer(many=True, read_only=True)
    history = serializers.SerializerMethodField()

    class Meta(PurchaseRequestSerializer.Meta):
        fields = PurchaseRequestSerializer.Meta.fields + ['items', 'history']

    def get_history(self, obj):
        entries = sorted(obj.history.all(), key=lambda entry: entry.created_at)
        return PurchaseRequestStatusHistorySerializer(entries, many=True).data


class PurchaseRequestLineSerializer(serializers.Serializer):
    item_id = serializers.UUIDField(required=False, allow_null=True)
    item_name = serializers.CharField(min_length=2, max_length=255)
    qty = serializers.DecimalField(max_digits=12, decimal_places=3)
    unit_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, default=0)

    def validate_qty(self, value):
        if value <= 0:
            raise serializers.ValidationError('Quantity must be greater than zero.')
        return value


class PurchaseRequestCreateSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    items = PurchaseRequestLineSerializer(many=True, allow_empty=False)


class PurchaseRequestStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PurchaseRequest.STATUS_CHOICES)
    note = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')


class PurchaseRequestBulkStatusSerializer(PurchaseRequestStatusSerializer):
    ids = serializers.ListField(child=serializers.UUIDField(), min_length=1)


class PurchaseRequestQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PurchaseRequest.STATUS_CHOICES, required=False)
    period = serializers.ChoiceField(choices=PERIODS, required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def to_internal_value(self, data):
        data = data.copy()
        for public, internal in (('from', 'date_from'), ('to', 'date_to')):
            if public in data and internal not in data:
                data[internal] = data[public]
        return super().to_internal_value(data)

from rest_framework import serializers

from backend.core.utils import PERIODS
from .models import ChecklistRun, ChecklistRunItem

ITEM_TYPE_FILTERS = ['ALL', 'CONSUMABLE', 'GAS', 'ASSET']


class ChecklistLineSubmitSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    result = serializers.ChoiceField(choices=ChecklistRunItem.RESULT_CHOICES)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    condition_percent = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=100)


class ChecklistSubmitSerializer(serializers.Serializer):
    run_id = serializers.UUIDField()
    status = serializers.ChoiceField(choices=ChecklistRun.STATUS_CHOICES)
    items = ChecklistLineSubmitSerializer(many=True)


class ChecklistRunExportSerializer(serializers.Serializer):
    run_id = serializers.UUIDField(required=False, allow_null=True)


class ChecklistMonitoringQuerySerializer(serializers.Serializer):
    period = serializers.ChoiceField(choices=PERIODS, required=False)
    item_type = serializers.ChoiceField(choices=ITEM_TYPE_FILTERS, required=False, default='ALL')
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def to_internal_value(self, data):
        data = data.copy()
        for public, internal in (('from', 'date_from'), ('to', 'date_to')):
            if public in data and internal not in data:
                data[internal] = data[public]
        return super().to_internal_value(data)

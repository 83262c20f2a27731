from rest_framework import serializers
from .models import Location


class LocationSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='display_name', read_only=True)
    is_active = serializers.BooleanField(read_only=True)

    class Meta:
        model = Location
        fields = ['id', 'name', 'description', 'is_active', 'created_at', 'updated_at']


class LocationCreateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def validate_name(self, value):
        value = value.strip()
        if '::' in value:
            raise serializers.ValidationError('Location name must not contain "::".')
        return value

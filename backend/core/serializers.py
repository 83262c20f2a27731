from rest_framework import serializers
from .models import User, AuditLog
from .utils import normalize_diff, audit_summary, redact_sensitive


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'name', 'email', 'phone', 'role', 'is_active', 'last_login', 'created_at', 'updated_at']
        read_only_fields = ['last_login', 'created_at', 'updated_at']


class UserSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'name']


class UserCreateSerializer(serializers.ModelSerializer):
    username = serializers.CharField(min_length=3, max_length=150)
    name = serializers.CharField(min_length=2, max_length=150)
    password = serializers.CharField(write_only=True, min_length=8)
    role = serializers.ChoiceField(choices=User.ROLE_CHOICES, default=User.ROLE_STAFF)

    class Meta:
        model = User
        fields = ['username', 'name', 'email', 'phone', 'password', 'role']

    def validate_username(self, value):
        return value.strip()

    def create(self, validated_data):
        password = validated_data.pop('password')
        user = User(**validated_data, is_active=True)
        user.set_password(password)
        user.save()
        return user


class UserStatusSerializer(serializers.Serializer):
    is_active = serializers.BooleanField()


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField(min_length=3)
    password = serializers.CharField(min_length=6, trim_whitespace=False)


class RefreshRequestSerializer(serializers.Serializer):
    refresh = serializers.CharField(required=False, allow_blank=True)


class SelectTenantSerializer(serializers.Serializer):
    tenant_id = serializers.UUIDField()


class SelectLocationSerializer(serializers.Serializer):
    location_id = serializers.UUIDField(allow_null=True)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(trim_whitespace=False)
    new_password = serializers.CharField(min_length=8, trim_whitespace=False)

    def validate(self, attrs):
        if attrs['current_password'] == attrs['new_password']:
            raise serializers.ValidationError({'new_password': 'New password must differ from the current one.'})
        return attrs


class AuditLogSerializer(serializers.ModelSerializer):
    actor = UserSummarySerializer(read_only=True)
    tenant_code = serializers.SerializerMethodField()
    diff = serializers.SerializerMethodField()
    changes = serializers.SerializerMethodField()
    summary = serializers.SerializerMethodField()

    class Meta:
        model = AuditLog
        fields = ['id', 'actor', 'tenant_id', 'tenant_code', 'entity_type', 'entity_id', 'action',
                  'diff', 'changes', 'summary', 'ip_address', 'created_at']

    def get_tenant_code(self, obj):
        return obj.tenant.code if obj.tenant_id and obj.tenant else None

    def get_diff(self, obj):
        return redact_sensitive(obj.diff or {})

    def get_changes(self, obj):
        return normalize_diff(obj.diff)

    def get_summary(self, obj):
        return audit_summary(obj)


class AuditLogQuerySerializer(serializers.Serializer):
    SORT_CHOICES = ['created_at:desc', 'created_at:asc']

    tenant_id = serializers.UUIDField(required=False)
    entity_type = serializers.CharField(required=False)
    action = serializers.CharField(required=False)
    actor_id = serializers.UUIDField(required=False)
    search = serializers.CharField(required=False, allow_blank=True)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    page_size = serializers.IntegerField(required=False, min_value=1, max_value=100, default=25)
    sort = serializers.ChoiceField(choices=SORT_CHOICES, required=False, default='created_at:desc')

    def to_internal_value(self, data):
        data = data.copy()
        for public, internal in (('from', 'date_from'), ('to', 'date_to')):
            if public in data and internal not in data:
                data[internal] = data[public]
        return super().to_internal_value(data)

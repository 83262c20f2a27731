import re

from rest_framework import serializers

from .models import Tenant, TenantMembership, TenantTelegramSetting

TENANT_CODE_PATTERN = re.compile(r'^[a-z0-9-]+$')


class TenantSerializer(serializers.ModelSerializer):
    member_count = serializers.IntegerField(read_only=True, required=False)
    location_count = serializers.SerializerMethodField()
    status = serializers.SerializerMethodField()

    class Meta:
        model = Tenant
        fields = ['id', 'code', 'name', 'is_active', 'status', 'deleted_at', 'member_count',
                  'location_count', 'created_at', 'updated_at']
        read_only_fields = ['id', 'is_active', 'deleted_at', 'created_at', 'updated_at']

    def get_status(self, obj):
        if obj.deleted_at:
            return 'deleted'
        return 'active' if obj.is_active else 'inactive'

    def get_location_count(self, obj):
        counts = self.context.get('location_counts')
        if counts is None:
            return None
        return counts.get(obj.code, 0)


class TenantCreateSerializer(serializers.Serializer):
    code = serializers.CharField(min_length=3, max_length=50)
    name = serializers.CharField(min_length=2, max_length=200)

    def validate_code(self, value):
        value = value.strip().lower()
        if not TENANT_CODE_PATTERN.match(value):
            raise serializers.ValidationError('Use lowercase letters, digits and dashes only.')
        return value


class TenantUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=200)


class TenantStatusSerializer(serializers.Serializer):
    is_active = serializers.BooleanField()


class BulkTenantActionSerializer(serializers.Serializer):
    ACTION_CHOICES = ['activate', 'deactivate', 'delete', 'restore']

    ids = serializers.ListField(child=serializers.UUIDField(), min_length=1)
    action = serializers.ChoiceField(choices=ACTION_CHOICES)


class TenantMemberSerializer(serializers.ModelSerializer):
    user_id = serializers.UUIDField(source='user.id', read_only=True)
    username = serializers.CharField(source='user.username', read_only=True)
    name = serializers.CharField(source='user.name', read_only=True)
    email = serializers.CharField(source='user.email', read_only=True)
    is_active = serializers.BooleanField(source='user.is_active', read_only=True)

    class Meta:
        model = TenantMembership
        fields = ['id', 'user_id', 'username', 'name', 'email', 'is_active', 'role', 'position',
                  'is_default', 'can_view', 'can_edit', 'created_at']


class TenantUserCreateSerializer(serializers.Serializer):
    username = serializers.CharField(min_length=3, max_length=150)
    name = serializers.CharField(min_length=2, max_length=150)
    email = serializers.EmailField(required=False, allow_blank=True)
    password = serializers.CharField(min_length=8, write_only=True, trim_whitespace=False)
    role = serializers.ChoiceField(choices=TenantMembership.TENANT_ROLE_CHOICES, default='STAFF')
    position = serializers.CharField(required=False, allow_blank=True, max_length=100)
    can_view = serializers.BooleanField(default=True)
    can_edit = serializers.BooleanField(default=False)

    def validate_username(self, value):
        return value.strip()


class TenantUserUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=150, required=False)
    email = serializers.EmailField(required=False, allow_blank=True)
    role = serializers.ChoiceField(choices=TenantMembership.TENANT_ROLE_CHOICES, required=False)
    position = serializers.CharField(required=False, allow_blank=True, max_length=100)
    is_active = serializers.BooleanField(required=False)
    can_view = serializers.BooleanField(required=False)
    can_edit = serializers.BooleanField(required=False)
    password = serializers.CharField(min_length=8, write_only=True, required=False, trim_whitespace=False)


class BulkTenantUserActionSerializer(serializers.Serializer):
    ACTION_CHOICES = ['activate', 'deactivate', 'remove']

    user_ids = serializers.ListField(child=serializers.UUIDField(), min_length=1)
    action = serializers.ChoiceField(choices=ACTION_CHOICES)


class TenantLocationCreateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, max_length=255)


class TenantLocationUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=200, required=False)
    description = serializers.CharField(required=False, allow_blank=True, max_length=255)
    is_active = serializers.BooleanField(required=False)


class TelegramSettingSerializer(serializers.ModelSerializer):
    bot_token = serializers.CharField(required=False, allow_blank=True, write_only=True, max_length=255)
    bot_token_masked = serializers.SerializerMethodField()
    has_bot_token = serializers.SerializerMethodField()

    class Meta:
        model = TenantTelegramSetting
        fields = ['is_enabled', 'bot_token', 'bot_token_masked', 'has_bot_token', 'chat_id',
                  'send_on_checklist_export', 'send_on_transaction_export', 'updated_at']
        read_only_fields = ['updated_at']

    def get_bot_token_masked(self, obj):
        token = obj.bot_token or ''
        if not token:
            return ''
        return f"{token[:4]}...{token[-4:]}" if len(token) > 8 else '****'

    def get_has_bot_token(self, obj):
        return bool(obj.bot_token)

    def validate(self, attrs):
        is_enabled = attrs.get('is_enabled', getattr(self.instance, 'is_enabled', False))
        bot_token = attrs.get('bot_token', getattr(self.instance, 'bot_token', ''))
        chat_id = attrs.get('chat_id', getattr(self.instance, 'chat_id', ''))
        if is_enabled and (not bot_token or not chat_id):
            raise serializers.ValidationError('Bot token and chat id are required to enable Telegram.')
        return attrs

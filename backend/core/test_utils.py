"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.db import connections
from rest_framework.test import APIClient
from backend.core.scoping import ITEM_TYPE_CONSUMABLE, to_category_name, to_tenant_location_name, to_tenant_scoped_item_name
from backend.core.views import issue_tokens
from backend.tenants.models import Tenant, TenantMembership, TenantTelegramSetting
from backend.locations.models import Location
from backend.catalog.models import Category, Item
from backend.inventory.models import Stock
from backend.purchasing.models import PurchaseRequest, PurchaseRequestItem, PurchaseRequestStatusHistory
from decimal import Decimal
import random
import string
import threading

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, password='testpass123', role=User.ROLE_STAFF, name=None, is_active=True):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        user = User.objects.create_user(
            username=username,
            email=f'{username}@test.com',
            password=password,
            name=name or f'User {username}',
            role=role,
        )
        if not is_active:
            user.is_active = False
            user.save(update_fields=['is_active'])
        return user

    @staticmethod
    def create_tenant(code=None, name=None, is_active=True):
        """Create a test tenant"""
        if not code:
            code = f'tenant-{TestDataFactory.random_string(6).lower()}'
        return Tenant.objects.create(code=code, name=name or f'Tenant {code}', is_active=is_active)

    @staticmethod
    def create_membership(user, tenant, role='STAFF', can_view=True, can_edit=True, is_default=True):
        """Add a user to a tenant"""
        return TenantMembership.objects.create(
            user=user,
            tenant=tenant,
            role=role,
            can_view=can_view,
            can_edit=can_edit,
            is_default=is_default,
        )

    @staticmethod
    def create_location(tenant, name=None, active=True):
        """Create a tenant location (stored with the tenant prefix)"""
        if not name:
            name = f'Gudang {TestDataFactory.random_string(5)}'
        return Location.objects.create(name=to_tenant_location_name(tenant.code, name, active=active))

    @staticmethod
    def create_category(tenant, item_type=ITEM_TYPE_CONSUMABLE, name=None):
        """Create a tenant category"""
        if not name:
            name = f'Category {TestDataFactory.random_string(5)}'
        return Category.objects.create(name=to_category_name(item_type, name, tenant.id))

    @staticmethod
    def create_item(tenant, category=None, name=None, sku=None, min_stock=Decimal('5'), unit='pcs',
                    item_type=ITEM_TYPE_CONSUMABLE, is_active=True):
        """Create a tenant item"""
        if category is None:
            category = TestDataFactory.create_category(tenant, item_type)
        if not name:
            name = f'Item {TestDataFactory.random_string(6)}'
        if not sku:
            sku = f'SKU-{TestDataFactory.random_string(8).upper()}'
        return Item.objects.create(
            name=to_tenant_scoped_item_name(name, tenant.id),
            sku=sku,
            category=category,
            item_type=item_type,
            unit=unit,
            min_stock=min_stock,
            is_active=is_active,
        )

    @staticmethod
    def create_stock(item, location, qty=Decimal('0')):
        """Create or overwrite the stock row for an item at a location"""
        stock, _ = Stock.objects.update_or_create(item=item, location=location, defaults={'qty': qty})
        return stock

    @staticmethod
    def create_telegram_setting(tenant, enabled=True, bot_token='123456:test-bot-token', chat_id='-1001234567'):
        """Create the tenant Telegram settings"""
        setting, _ = TenantTelegramSetting.objects.update_or_create(
            tenant=tenant,
            defaults={'is_enabled': enabled, 'bot_token': bot_token, 'chat_id': chat_id},
        )
        return setting

    @staticmethod
    def create_purchase_request(tenant, user, status=PurchaseRequest.STATUS_DRAFT, items=None, pr_number=None):
        """Create a purchase request with lines, bypassing the API"""
        if not pr_number:
            pr_number = f'PR-TEST-{TestDataFactory.random_string(8).upper()}'
        purchase_request = PurchaseRequest.objects.create(
            pr_number=pr_number,
            tenant=tenant,
            status=status,
            requested_by=user,
        )
        for item_name, qty, unit_price in items or [('Beras 5kg', Decimal('2'), Decimal('65000'))]:
            PurchaseRequestItem.objects.create(
                purchase_request=purchase_request,
                item_name=item_name,
                qty=qty,
                unit_price=unit_price,
            )
        PurchaseRequestStatusHistory.objects.create(
            purchase_request=purchase_request, status=status, note='PR created', changed_by=user,
        )
        return purchase_request


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user, tenant=None, location=None):
        """Authenticate as user with an optional session tenant and location"""
        refresh = issue_tokens(
            user,
            tenant_id=tenant.id if tenant else None,
            location_id=location.id if location else None,
        )
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return refresh

    def logout(self):
        """Clear authentication"""
        self.credentials()


def run_concurrently(*calls):
    """
    Run each callable in its own thread, released together by a barrier.

    Every thread closes its database connection when done. Returns the
    results in call order (None where a call raised).
    """
    barrier = threading.Barrier(len(calls))
    results = [None] * len(calls)

    def worker(index, call):
        try:
            barrier.wait()
            results[index] = call()
        finally:
            connections.close_all()

    threads = [threading.Thread(target=worker, args=(index, call)) for index, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return results

"""
Model tests for BundleHub.

Tests cover:
- User creation with email login and role helpers
- Bundle pricing tiers and provider consistency
- Order status derived from item statuses
- SiteSettings singleton and rate lookups
"""

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from core.models import User, Bundle, Order, OrderItem, SiteSettings, Provider, Package
from core.exceptions import PricingValidationError

from .helpers import make_user, make_catalog


class UserModelTests(TestCase):
    """Tests for custom User model."""

    def test_create_user_with_email(self):
        user = User.objects.create_user(
            email='Test@Example.com',
            password='testpass123',
            full_name='Test User'
        )

        self.assertEqual(user.email, 'Test@example.com')
        self.assertTrue(user.check_password('testpass123'))
        self.assertEqual(user.user_type, 'agent')
        self.assertEqual(user.wallet_balance, Decimal('0.00'))

    def test_create_superuser(self):
        admin = User.objects.create_superuser(email='root@example.com', password='adminpass123')

        self.assertEqual(admin.user_type, 'super_admin')
        self.assertTrue(admin.is_admin)
        self.assertTrue(admin.is_verified)

    def test_business_users_are_their_own_tenant(self):
        agent = make_user()
        admin = make_user('admin@example.com', user_type='admin', tenant=agent)

        self.assertEqual(agent.tenant_id_for_scope(), agent.pk)
        self.assertEqual(admin.tenant_id_for_scope(), agent.pk)
        self.assertTrue(agent.is_business)
        self.assertFalse(admin.is_business)

    def test_display_name_priority(self):
        user = make_user(full_name='Ama Mensah')
        self.assertEqual(user.display_name, 'Ama Mensah')
        user.business_name = 'Ama Data'
        self.assertEqual(user.display_name, 'Ama Data')

    def test_to_dict_hides_password(self):
        data = make_user().to_dict()
        self.assertNotIn('password', data)
        self.assertEqual(data['wallet_balance'], '0.00')


class BundleModelTests(TestCase):

    def setUp(self):
        self.provider, self.package, self.bundle, _ = make_catalog(pricing_tiers={'agent': 8, 'default': 9})

    def test_provider_follows_package(self):
        self.assertEqual(self.bundle.provider, self.provider)

    def test_price_for_user_type(self):
        self.assertEqual(self.bundle.get_price_for_user_type('agent'), Decimal('8.00'))
        self.assertEqual(self.bundle.get_price_for_user_type('super_dealer'), Decimal('9.00'))

    def test_invalid_tiers_rejected_on_save(self):
        self.bundle.pricing_tiers = {'agent': -5}
        with self.assertRaises(PricingValidationError):
            self.bundle.save()

    def test_clean_reports_tier_errors_per_field(self):
        self.bundle.pricing_tiers = {'manager': 5}
        with self.assertRaises(ValidationError) as ctx:
            self.bundle.clean()
        self.assertIn('pricing_tiers', ctx.exception.message_dict)

    def test_package_from_other_provider_rejected(self):
        other = Provider.objects.create(name='Telecel', code='TELECEL')
        self.bundle.package = Package.objects.create(name='Telecel Daily', provider=other)
        with self.assertRaises(ValidationError):
            self.bundle.clean()

    def test_soft_delete_hides_from_alive(self):
        self.bundle.soft_delete()
        self.assertFalse(Bundle.objects.alive().filter(pk=self.bundle.pk).exists())
        self.assertFalse(self.bundle.is_active)

    def test_unlimited_validity(self):
        self.bundle.validity = None
        self.assertTrue(self.bundle.is_unlimited)
        self.assertEqual(self.bundle.to_dict()['validity'], 'unlimited')


class OrderStatusFromItemsTests(TestCase):

    def setUp(self):
        self.agent = make_user()
        _, _, self.bundle, _ = make_catalog()
        self.order = Order.objects.create(tenant=self.agent, created_by=self.agent, order_type='bulk')

    def _items(self, *statuses):
        for status in statuses:
            OrderItem.objects.create(
                order=self.order,
                bundle=self.bundle,
                customer_phone='0241234567',
                unit_price=Decimal('10'),
                total_price=Decimal('10'),
                processing_status=status,
            )

    def test_order_number_assigned_on_save(self):
        self.assertRegex(self.order.order_number, r'^ORD-[0-9A-Z]{4}$')

    def test_all_completed(self):
        self._items('completed', 'completed')
        self.assertEqual(self.order.update_status_from_items(), 'completed')
        self.assertIsNotNone(self.order.completed_at)
        self.assertEqual(self.order.successful_items, 2)

    def test_all_failed(self):
        self._items('failed', 'failed')
        self.assertEqual(self.order.update_status_from_items(), 'failed')

    def test_any_processing(self):
        self._items('completed', 'processing')
        self.assertEqual(self.order.update_status_from_items(), 'processing')

    def test_finished_mix_is_partial(self):
        self._items('completed', 'failed')
        self.assertEqual(self.order.update_status_from_items(), 'partially_completed')
        self.assertEqual(self.order.processed_items, 2)

    def test_pending_items_leave_status_alone(self):
        self._items('completed', 'pending')
        self.assertEqual(self.order.update_status_from_items(), 'pending')


class SiteSettingsTests(TestCase):

    def test_singleton(self):
        first = SiteSettings.get_instance()
        second = SiteSettings.get_instance()
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(SiteSettings.objects.count(), 1)

    def test_commission_rate_fallbacks(self):
        site = SiteSettings.get_instance()
        self.assertEqual(site.get_commission_rate('dealer'), Decimal('10.0'))
        self.assertEqual(site.get_commission_rate('admin'), Decimal('1.0'))

        site.commission_rates = {'agent': 6}
        self.assertEqual(site.get_commission_rate('agent'), Decimal('6'))
        self.assertEqual(site.get_commission_rate('super_agent'), Decimal('7.5'))

    def test_minimum_top_up(self):
        site = SiteSettings.get_instance()
        self.assertEqual(site.get_minimum_top_up('dealer'), Decimal('100'))

    def test_api_keys_are_masked(self):
        site = SiteSettings.get_instance()
        site.api_keys = {'MTN': 'secret-key-1234'}
        self.assertEqual(site.to_dict(include_api=True)['api_keys']['MTN'], '****1234')
        self.assertNotIn('api_keys', site.to_dict())

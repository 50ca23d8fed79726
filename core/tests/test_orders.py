"""
Tests for order placement and fulfilment.

Covers:
- Single orders paid from the wallet or saved as drafts
- Bulk uploads (all-or-nothing on bad rows)
- Item processing with refunds and commission updates
- Cancellation and delivery reports
"""

from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from core import order_service
from core.exceptions import (
    ValidationError, InsufficientBalanceError, SiteClosedError, PermissionDeniedError, NotFoundError,
    ConflictError,
)
from core.models import Order, SiteSettings, WalletTransaction, CommissionRecord

from .helpers import make_user, make_admin, make_catalog


class SingleOrderTests(TestCase):

    def setUp(self):
        self.agent = make_user(balance='100.00')
        self.provider, self.package, self.bundle, _ = make_catalog(pricing_tiers={'agent': 8})

    def test_paid_order_debits_tier_price(self):
        order = order_service.create_single_order(self.agent, self.bundle.pk, '0241234567', quantity=2)

        self.assertEqual(order.status, 'pending')
        self.assertEqual(order.payment_status, 'paid')
        self.assertEqual(order.total, Decimal('16.00'))
        self.agent.refresh_from_db()
        self.assertEqual(self.agent.wallet_balance, Decimal('84.00'))
        self.assertTrue(WalletTransaction.objects.filter(related_order=order, transaction_type='order').exists())

    def test_short_balance_creates_draft(self):
        self.agent.wallet_balance = Decimal('5.00')
        self.agent.save()

        order = order_service.create_single_order(self.agent, self.bundle.pk, '0241234567')

        self.assertEqual(order.status, 'draft')
        self.assertEqual(order.payment_status, 'pending')
        self.agent.refresh_from_db()
        self.assertEqual(self.agent.wallet_balance, Decimal('5.00'))

    def test_afa_bundles_use_their_own_prefix(self):
        _, _, afa_bundle, _ = make_catalog(code='AFA')
        order = order_service.create_single_order(self.agent, afa_bundle.pk, '0241234567')
        self.assertTrue(order.order_number.startswith('AFA-'))

    def test_closed_site_rejects_orders(self):
        site = SiteSettings.get_instance()
        site.is_site_open = False
        site.custom_message = 'Back at 8am'
        site.save()

        with self.assertRaises(SiteClosedError) as ctx:
            order_service.create_single_order(self.agent, self.bundle.pk, '0241234567')
        self.assertEqual(ctx.exception.message, 'Back at 8am')

    def test_admins_cannot_order(self):
        with self.assertRaises(PermissionDeniedError):
            order_service.create_single_order(make_admin(), self.bundle.pk, '0241234567')

    def test_inactive_bundle_not_found(self):
        self.bundle.soft_delete()
        with self.assertRaises(NotFoundError):
            order_service.create_single_order(self.agent, self.bundle.pk, '0241234567')


class BulkOrderTests(TestCase):

    def setUp(self):
        self.agent = make_user(balance='100.00')
        self.provider, self.package, self.small, self.large = make_catalog()

    def test_rows_matched_to_bundles_by_volume(self):
        order = order_service.create_bulk_order(self.agent, self.package.pk, '0241234567,1GB\n0551234567,5GB')

        self.assertEqual(order.order_type, 'bulk')
        self.assertEqual(order.total_items, 2)
        self.assertEqual(order.total, Decimal('50.00'))
        self.assertEqual(order.status, 'pending')
        self.assertEqual(
            sorted(order.items.values_list('bundle_id', flat=True)),
            sorted([self.small.pk, self.large.pk]),
        )

    def test_any_bad_row_rejects_upload(self):
        with self.assertRaises(ValidationError) as ctx:
            order_service.create_bulk_order(self.agent, self.package.pk, '0241234567,1GB\n0551234567,3GB\nnope')

        fields = [err['field'] for err in ctx.exception.errors]
        self.assertEqual(sorted(fields), ['rows[2]', 'rows[3]'])
        self.assertFalse(Order.objects.exists())

    def test_empty_upload_rejected(self):
        with self.assertRaises(ValidationError):
            order_service.create_bulk_order(self.agent, self.package.pk, '\n\n')


class DraftProcessingTests(TestCase):

    def setUp(self):
        self.agent = make_user(balance='0.00')
        _, _, self.bundle, _ = make_catalog()
        self.first = order_service.create_single_order(self.agent, self.bundle.pk, '0241234567')
        self.second = order_service.create_single_order(self.agent, self.bundle.pk, '0551234567')

    def test_all_or_nothing(self):
        self.agent.wallet_balance = Decimal('15.00')
        self.agent.save()

        with self.assertRaises(InsufficientBalanceError):
            order_service.process_draft_orders(self.agent)
        self.assertEqual(Order.objects.filter(status='draft').count(), 2)

    def test_pays_every_draft(self):
        self.agent.wallet_balance = Decimal('20.00')
        self.agent.save()

        result = order_service.process_draft_orders(self.agent)

        self.assertEqual(result['processed'], 2)
        self.assertEqual(result['total'], Decimal('20.00'))
        self.assertFalse(Order.objects.filter(status='draft').exists())

    def test_cancelling_a_draft_deletes_it(self):
        self.assertIsNone(order_service.cancel_order(self.first.pk, self.agent))
        self.assertFalse(Order.objects.filter(pk=self.first.pk).exists())


class FulfilmentTests(TestCase):

    def setUp(self):
        self.agent = make_user(balance='100.00')
        self.admin = make_admin()
        _, self.package, self.small, self.large = make_catalog()
        self.order = order_service.create_bulk_order(self.agent, self.package.pk, '0241234567,1GB\n0551234567,5GB')
        self.items = list(self.order.items.order_by('id'))

    def test_item_transitions_are_strict(self):
        with self.assertRaises(ValidationError):
            order_service.process_order_item(self.order.pk, self.items[0].pk, 'completed', self.admin)

    def test_failed_item_is_refunded_once(self):
        order_service.process_order_item(self.order.pk, self.items[0].pk, 'processing', self.admin)
        order_service.process_order_item(self.order.pk, self.items[0].pk, 'failed', self.admin, 'Number not on network')

        self.agent.refresh_from_db()
        self.assertEqual(self.agent.wallet_balance, Decimal('60.00'))
        item = self.order.items.get(pk=self.items[0].pk)
        self.assertTrue(item.refunded)
        self.assertEqual(item.processing_error, 'Number not on network')

    def test_partial_completion(self):
        order_service.process_order_item(self.order.pk, self.items[0].pk, 'processing', self.admin)
        order_service.process_order_item(self.order.pk, self.items[0].pk, 'completed', self.admin)
        order_service.process_order_item(self.order.pk, self.items[1].pk, 'processing', self.admin)
        order = order_service.process_order_item(self.order.pk, self.items[1].pk, 'failed', self.admin)

        self.assertEqual(order.status, 'partially_completed')
        self.assertEqual(order.successful_items, 1)
        self.assertEqual(order.failed_items, 1)

    def test_bulk_fail_refunds_everything(self):
        order = order_service.process_bulk_order(self.order.pk, 'fail', self.admin)

        self.assertEqual(order.status, 'failed')
        self.assertEqual(order.payment_status, 'refunded')
        self.agent.refresh_from_db()
        self.assertEqual(self.agent.wallet_balance, Decimal('100.00'))

    def test_completion_updates_running_commission(self):
        order_service.process_bulk_order(self.order.pk, 'complete', self.admin)

        record = CommissionRecord.objects.get(agent=self.agent, period='monthly', is_final=False)
        self.assertEqual(record.total_orders, 1)
        self.assertEqual(record.total_revenue, Decimal('50.00'))
        self.assertEqual(record.amount, Decimal('2.50'))

    def test_unpaid_orders_cannot_be_processed(self):
        self.agent.wallet_balance = Decimal('0.00')
        self.agent.save()
        draft = order_service.create_single_order(self.agent, self.small.pk, '0271234567')
        with self.assertRaises(ValidationError):
            order_service.process_bulk_order(draft.pk, 'process', self.admin)


class CancelAndReportTests(TestCase):

    def setUp(self):
        self.agent = make_user(balance='100.00')
        self.admin = make_admin()
        _, _, self.bundle, _ = make_catalog()
        self.order = order_service.create_single_order(self.agent, self.bundle.pk, '0241234567')

    def test_cancel_paid_order_refunds(self):
        order = order_service.cancel_order(self.order.pk, self.agent, 'Wrong number')

        self.assertEqual(order.status, 'cancelled')
        self.assertEqual(order.payment_status, 'refunded')
        self.assertEqual(order.items.get().processing_status, 'cancelled')
        self.agent.refresh_from_db()
        self.assertEqual(self.agent.wallet_balance, Decimal('100.00'))

    def test_other_tenants_cannot_see_order(self):
        other = make_user('other@example.com')
        with self.assertRaises(NotFoundError):
            order_service.cancel_order(self.order.pk, other)

    def test_report_within_window(self):
        order_service.update_order_status(self.order.pk, 'completed', self.admin)
        order = order_service.report_order(self.order.pk, self.agent, 'Not received')

        self.assertTrue(order.reported)
        self.assertEqual(order.reception_status, 'not_received')

    def test_report_after_window_rejected(self):
        order_service.update_order_status(self.order.pk, 'completed', self.admin)
        Order.objects.filter(pk=self.order.pk).update(completed_at=timezone.now() - timedelta(hours=3))

        with self.assertRaises(ValidationError):
            order_service.report_order(self.order.pk, self.agent)

    def test_only_completed_orders_reported(self):
        with self.assertRaises(ValidationError):
            order_service.report_order(self.order.pk, self.agent)

    def test_resolving_a_report(self):
        order_service.update_order_status(self.order.pk, 'completed', self.admin)
        order_service.report_order(self.order.pk, self.agent)
        order = order_service.update_reception_status(self.order.pk, 'resolved', self.admin)

        self.assertEqual(order.reception_status, 'resolved')
        self.assertIsNotNone(order.resolved_at)

    def test_admin_cannot_mark_order_failed(self):
        with self.assertRaises(ValidationError):
            order_service.update_order_status(self.order.pk, 'failed', self.admin)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'pending')

    def test_admin_cancel_refunds_paid_order(self):
        order = order_service.update_order_status(self.order.pk, 'cancelled', self.admin, 'Provider outage')

        self.assertEqual(order.status, 'cancelled')
        self.assertEqual(order.payment_status, 'refunded')
        self.assertEqual(order.items.get().processing_status, 'cancelled')
        self.agent.refresh_from_db()
        self.assertEqual(self.agent.wallet_balance, Decimal('100.00'))
        refund = WalletTransaction.objects.get(related_order=order, transaction_type='refund')
        self.assertEqual(refund.approved_by, self.admin)

    def test_admin_cancel_twice_refunds_once(self):
        order_service.update_order_status(self.order.pk, 'cancelled', self.admin)
        order_service.update_order_status(self.order.pk, 'cancelled', self.admin)

        self.assertEqual(WalletTransaction.objects.filter(related_order=self.order, transaction_type='refund').count(), 1)
        self.agent.refresh_from_db()
        self.assertEqual(self.agent.wallet_balance, Decimal('100.00'))


class DuplicateOrderTests(TestCase):

    def setUp(self):
        self.agent = make_user(balance='200.00')
        _, self.package, self.small, self.large = make_catalog()
        self.first = order_service.create_single_order(self.agent, self.small.pk, '0241234567')

    def test_same_recipient_and_bundle_is_blocked(self):
        with self.assertRaises(ConflictError) as ctx:
            order_service.create_single_order(self.agent, self.small.pk, '+233241234567')

        duplicates = ctx.exception.data['duplicates']
        self.assertEqual(len(duplicates), 1)
        self.assertEqual(duplicates[0]['order_number'], self.first.order_number)
        self.assertEqual(Order.objects.count(), 1)

    def test_force_override_places_order(self):
        order = order_service.create_single_order(self.agent, self.small.pk, '0241234567', force_override=True)

        self.assertNotEqual(order.pk, self.first.pk)

    def test_other_bundle_or_phone_allowed(self):
        order_service.create_single_order(self.agent, self.large.pk, '0241234567')
        order_service.create_single_order(self.agent, self.small.pk, '0551234567')

        self.assertEqual(Order.objects.count(), 3)

    def test_window_expires(self):
        Order.objects.filter(pk=self.first.pk).update(created_at=timezone.now() - timedelta(minutes=6))

        order_service.create_single_order(self.agent, self.small.pk, '0241234567')

        self.assertEqual(Order.objects.count(), 2)

    def test_cancelled_orders_do_not_count(self):
        order_service.cancel_order(self.first.pk, self.agent)

        order_service.create_single_order(self.agent, self.small.pk, '0241234567')

    def test_bulk_lists_every_repeated_row(self):
        with self.assertRaises(ConflictError) as ctx:
            order_service.create_bulk_order(self.agent, self.package.pk, '0241234567,1GB\n0551234567,5GB')

        self.assertEqual([d['customer_phone'] for d in ctx.exception.data['duplicates']], ['0241234567'])
        self.assertEqual(ctx.exception.message, '1 of 2 rows repeat orders from the last 5 minutes')

        order = order_service.create_bulk_order(
            self.agent, self.package.pk, '0241234567,1GB\n0551234567,5GB', force_override=True
        )
        self.assertEqual(order.total_items, 2)

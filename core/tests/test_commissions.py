"""
Tests for commission calculation, generation, finalization and payout.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from core import commission_service
from core.exceptions import ValidationError
from core.models import Order, CommissionRecord, SiteSettings

from .helpers import make_user, make_admin


def completed_order(agent, total, when):
    return Order.objects.create(
        tenant=agent,
        created_by=agent,
        total=Decimal(total),
        subtotal=Decimal(total),
        status=Order.Status.COMPLETED,
        payment_status=Order.PaymentStatus.PAID,
        completed_at=when,
    )


def at(day, hour=12):
    return timezone.make_aware(datetime(day.year, day.month, day.day, hour))


class CalculationTests(TestCase):

    def setUp(self):
        self.agent = make_user()
        self.dealer = make_user('dealer@example.com', user_type='dealer')
        self.day = date(2025, 3, 10)

    def test_rate_applied_to_completed_revenue(self):
        completed_order(self.agent, '100.00', at(self.day))
        completed_order(self.agent, '33.33', at(self.day))
        start, end = commission_service.day_bounds(self.day)

        values = commission_service.calculate_commission(self.agent, start, end)

        self.assertEqual(values['total_orders'], 2)
        self.assertEqual(values['commission_rate'], Decimal('5.0'))
        self.assertEqual(values['amount'], Decimal('6.67'))

    def test_other_statuses_and_days_ignored(self):
        completed_order(self.dealer, '100.00', at(self.day))
        completed_order(self.dealer, '100.00', at(self.day + timedelta(days=1)))
        Order.objects.create(tenant=self.dealer, total=Decimal('500'), status=Order.Status.PENDING)
        start, end = commission_service.day_bounds(self.day)

        values = commission_service.calculate_commission(self.dealer, start, end)

        self.assertEqual(values['total_orders'], 1)
        self.assertEqual(values['amount'], Decimal('10.00'))

    def test_rates_follow_site_settings(self):
        commission_service.update_commission_rates({'agent': 6})
        self.assertEqual(commission_service.get_commission_rate('agent'), Decimal('6'))

    def test_invalid_rates_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            commission_service.update_commission_rates({'admin': 5, 'agent': 150})
        self.assertEqual(len(ctx.exception.errors), 2)
        self.assertNotIn('admin', SiteSettings.get_instance().commission_rates)

    def test_non_finite_rates_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            commission_service.update_commission_rates({'agent': 'NaN', 'dealer': 'Infinity', 'default': 'abc'})

        self.assertEqual([e['message'] for e in ctx.exception.errors], ['Rate must be a number'] * 3)


class GenerationTests(TestCase):

    def setUp(self):
        self.agent = make_user()
        self.idle = make_user('idle@example.com')
        self.day = date(2025, 3, 10)
        completed_order(self.agent, '200.00', at(self.day))

    def test_daily_records_for_active_agents(self):
        summary = commission_service.generate_daily_commissions(self.day)

        self.assertEqual(summary['created'], 1)
        self.assertEqual(summary['skipped'], 1)
        record = CommissionRecord.objects.get(agent=self.agent, period='daily')
        self.assertEqual(record.amount, Decimal('10.00'))

    def test_generation_is_idempotent(self):
        commission_service.generate_daily_commissions(self.day)
        summary = commission_service.generate_daily_commissions(self.day)

        self.assertEqual(summary['updated'], 1)
        self.assertEqual(CommissionRecord.objects.filter(period='daily').count(), 1)

    def test_finalize_month_replaces_dailies(self):
        commission_service.generate_daily_commissions(self.day)
        completed_order(self.agent, '100.00', at(date(2025, 3, 20)))

        summary = commission_service.finalize_month_commissions(2025, 3)

        self.assertEqual(summary['finalized'], 1)
        self.assertFalse(CommissionRecord.objects.filter(period='daily').exists())
        record = CommissionRecord.objects.get(agent=self.agent, period='monthly')
        self.assertTrue(record.is_final)
        self.assertEqual(record.total_orders, 2)
        self.assertEqual(record.amount, Decimal('15.00'))

    def test_finalize_reuses_running_record(self):
        start, end = commission_service.month_bounds(2025, 3)
        values = commission_service.calculate_commission(self.agent, start, end)
        running = commission_service.create_commission_record(self.agent, 'monthly', start, end, values)

        commission_service.finalize_month_commissions(2025, 3)

        running.refresh_from_db()
        self.assertTrue(running.is_final)
        self.assertIsNotNone(running.finalized_at)
        self.assertEqual(CommissionRecord.objects.filter(period='monthly').count(), 1)

    def test_previous_month_wraps_year(self):
        self.assertEqual(commission_service.previous_month(date(2025, 1, 15)), (2024, 12))


class PayoutTests(TestCase):

    def setUp(self):
        self.agent = make_user(balance='0.00')
        self.admin = make_admin()
        completed_order(self.agent, '200.00', at(date(2025, 3, 10)))
        commission_service.finalize_month_commissions(2025, 3)
        self.record = CommissionRecord.objects.get(agent=self.agent)

    def test_pay_credits_wallet(self):
        record = commission_service.pay_commission(self.record.pk, self.admin, 'MOMO-1')

        self.assertEqual(record.status, 'paid')
        self.assertEqual(record.payment_reference, 'MOMO-1')
        self.agent.refresh_from_db()
        self.assertEqual(self.agent.wallet_balance, Decimal('10.00'))

    def test_cannot_pay_twice(self):
        commission_service.pay_commission(self.record.pk, self.admin)
        with self.assertRaises(ValidationError):
            commission_service.pay_commission(self.record.pk, self.admin)

    def test_running_records_not_payable(self):
        start, end = commission_service.month_bounds(2025, 4)
        values = {'total_orders': 1, 'total_revenue': Decimal('10'), 'commission_rate': Decimal('5'), 'amount': Decimal('0.50')}
        running = commission_service.create_commission_record(self.agent, 'monthly', start, end, values)
        with self.assertRaises(ValidationError):
            commission_service.pay_commission(running.pk, self.admin)

    def test_rejected_records_not_payable(self):
        commission_service.reject_commission(self.record.pk, self.admin, 'Disputed sales')
        with self.assertRaises(ValidationError):
            commission_service.pay_commission(self.record.pk, self.admin)

    def test_batch_reports_each_failure(self):
        result = commission_service.pay_multiple([self.record.pk, 9999], self.admin)

        self.assertEqual(result['succeeded'], [self.record.pk])
        self.assertEqual(result['failed'][0]['id'], 9999)

    def test_statistics(self):
        commission_service.pay_commission(self.record.pk, self.admin)
        stats = commission_service.get_statistics(CommissionRecord.objects.all())

        self.assertEqual(stats['paid_records'], 1)
        self.assertEqual(Decimal(stats['paid_amount']), Decimal('10'))

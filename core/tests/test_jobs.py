"""
Tests for background jobs, the scheduler's timing rules and the
management commands that wrap them.
"""

from datetime import datetime, time, timedelta, timezone as dt_timezone
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, SimpleTestCase
from django.utils import timezone

from core import jobs, order_service
from core.models import Notification, Order
from core.scheduler import Job, Scheduler, next_daily_run, next_monthly_run, default_jobs

from .helpers import make_user, make_catalog


def utc(*args):
    return datetime(*args, tzinfo=dt_timezone.utc)


class NotificationCleanupTests(TestCase):

    def setUp(self):
        self.user = make_user()
        self.now = timezone.now()

    def note(self, age, is_read=False):
        notification = Notification.objects.create(user=self.user, title='t', message='m', is_read=is_read)
        Notification.objects.filter(pk=notification.pk).update(created_at=self.now - age)
        return notification

    def test_deletes_old_notifications(self):
        old = self.note(timedelta(days=4))
        recent = self.note(timedelta(days=1))
        recent_read = self.note(timedelta(days=2), is_read=True)

        self.assertEqual(jobs.cleanup_notifications(self.now), 1)

        remaining = set(Notification.objects.values_list('pk', flat=True))
        self.assertEqual(remaining, {recent.pk, recent_read.pk})
        self.assertNotIn(old.pk, remaining)

    def test_command(self):
        self.note(timedelta(days=10), is_read=True)
        out = StringIO()

        call_command('cleanup_notifications', stdout=out)

        self.assertFalse(Notification.objects.exists())
        self.assertIn('1', out.getvalue())


class ReportedOrderCleanupTests(TestCase):

    def setUp(self):
        self.agent = make_user(balance='100.00')
        _, _, self.bundle, _ = make_catalog()
        self.now = timezone.now()

    def reported_order(self, reception_status, reported_at=None, resolved_at=None):
        order = order_service.create_single_order(self.agent, self.bundle.pk, '0241234567', force_override=True)
        Order.objects.filter(pk=order.pk).update(
            reported=True,
            reception_status=reception_status,
            reported_at=reported_at,
            resolved_at=resolved_at,
        )
        return order

    def test_stale_report_is_auto_closed(self):
        stale = self.reported_order(Order.ReceptionStatus.NOT_RECEIVED, reported_at=self.now - timedelta(hours=25))
        fresh = self.reported_order(Order.ReceptionStatus.CHECKING, reported_at=self.now - timedelta(hours=2))

        self.assertEqual(jobs.cleanup_reported_orders(self.now), 1)

        stale.refresh_from_db()
        self.assertFalse(stale.reported)
        self.assertEqual(stale.reception_status, Order.ReceptionStatus.RECEIVED)
        self.assertEqual(stale.resolved_at, self.now)
        self.assertIn(jobs.AUTO_RESOLVE_NOTE, stale.notes)
        fresh.refresh_from_db()
        self.assertTrue(fresh.reported)

    def test_resolved_report_released_after_grace(self):
        done = self.reported_order(
            Order.ReceptionStatus.RESOLVED,
            reported_at=self.now - timedelta(hours=1),
            resolved_at=self.now - timedelta(minutes=11),
        )
        just_done = self.reported_order(
            Order.ReceptionStatus.RESOLVED,
            reported_at=self.now - timedelta(hours=1),
            resolved_at=self.now - timedelta(minutes=2),
        )

        self.assertEqual(jobs.cleanup_reported_orders(self.now), 1)

        done.refresh_from_db()
        just_done.refresh_from_db()
        self.assertFalse(done.reported)
        self.assertEqual(done.reception_status, Order.ReceptionStatus.RESOLVED)
        self.assertTrue(just_done.reported)


class CommandTests(TestCase):

    def test_generate_commissions_rejects_bad_date(self):
        err = StringIO()

        call_command('generate_commissions', '--date', '18/10/2026', stderr=err)

        self.assertIn('Invalid date format', err.getvalue())

    def test_generate_commissions_for_day(self):
        out = StringIO()

        call_command('generate_commissions', '--date', '2026-10-17', stdout=out)

        self.assertIn('2026-10-17', out.getvalue())

    def test_finalize_needs_year_and_month_together(self):
        with self.assertRaises(CommandError):
            call_command('finalize_commissions', '--year', '2026')

    def test_finalize_rejects_bad_month(self):
        with self.assertRaises(CommandError):
            call_command('finalize_commissions', '--year', '2026', '--month', '13')


class ScheduleRuleTests(SimpleTestCase):

    def test_daily_later_today(self):
        self.assertEqual(next_daily_run(utc(2026, 10, 18, 0, 1), time(0, 5)), utc(2026, 10, 18, 0, 5))

    def test_daily_rolls_to_tomorrow(self):
        self.assertEqual(next_daily_run(utc(2026, 10, 18, 0, 5), time(0, 5)), utc(2026, 10, 19, 0, 5))

    def test_monthly_next_month(self):
        self.assertEqual(next_monthly_run(utc(2026, 10, 18, 9, 0), 1, time(0, 1)), utc(2026, 11, 1, 0, 1))

    def test_monthly_same_day_before_time(self):
        self.assertEqual(next_monthly_run(utc(2026, 11, 1, 0, 0), 1, time(0, 1)), utc(2026, 11, 1, 0, 1))

    def test_monthly_wraps_year(self):
        self.assertEqual(next_monthly_run(utc(2026, 12, 5, 12, 0), 1, time(0, 1)), utc(2027, 1, 1, 0, 1))


class JobTests(SimpleTestCase):

    def test_needs_exactly_one_timing_rule(self):
        with self.assertRaises(ValueError):
            Job('bad', lambda: None)
        with self.assertRaises(ValueError):
            Job('bad', lambda: None, interval=timedelta(minutes=1), next_run=lambda now: now)

    def test_delay(self):
        now = utc(2026, 10, 18, 0, 0)
        interval_job = Job('a', lambda: None, interval=timedelta(minutes=5))
        rule_job = Job('b', lambda: None, next_run=lambda n: n + timedelta(seconds=90))

        self.assertEqual(interval_job.delay(now), 300)
        self.assertEqual(rule_job.delay(now), 90)

    @mock.patch('core.scheduler.close_old_connections')
    def test_run_logs_failures(self, _close):
        job = Job('boom', mock.Mock(side_effect=RuntimeError('db down')), interval=timedelta(minutes=1))

        with self.assertLogs('core.jobs', level='ERROR'):
            self.assertIsNone(job.run())

    def test_default_jobs(self):
        names = [job.name for job in default_jobs()]

        self.assertEqual(names, [
            'cleanup_notifications',
            'cleanup_reported_orders',
            'expire_announcements',
            'generate_commissions',
            'finalize_commissions',
        ])

    @mock.patch('core.scheduler.threading.Timer')
    def test_scheduler_arms_and_stops(self, timer_cls):
        scheduler = Scheduler([Job('a', lambda: None, interval=timedelta(minutes=5))])

        scheduler.start()
        timer_cls.assert_called_once()
        self.assertEqual(timer_cls.call_args.args[0], 300)

        scheduler.stop()
        timer_cls.return_value.cancel.assert_called_once()
        self.assertTrue(scheduler.wait(0))

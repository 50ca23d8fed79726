"""
Tests for the wallet ledger and top-up requests.
"""

from decimal import Decimal
from unittest import mock

from django.test import TestCase

from core import wallet_service
from core.exceptions import ValidationError, InsufficientBalanceError, ConflictError
from core.models import WalletTransaction, Notification

from .helpers import make_user, make_admin


class CreditDebitTests(TestCase):

    def setUp(self):
        self.agent = make_user(balance='50.00')

    def test_credit_records_balance_after(self):
        txn = wallet_service.credit_wallet(self.agent, '25.5', 'Manual credit')

        self.agent.refresh_from_db()
        self.assertEqual(self.agent.wallet_balance, Decimal('75.50'))
        self.assertEqual(txn.balance_after, Decimal('75.50'))
        self.assertEqual(txn.transaction_type, 'credit')
        self.assertTrue(txn.reference.startswith('TXN'))

    def test_debit_reduces_balance(self):
        wallet_service.debit_wallet(self.agent, 20, 'Order', transaction_type='order')

        self.agent.refresh_from_db()
        self.assertEqual(self.agent.wallet_balance, Decimal('30.00'))

    def test_debit_beyond_balance_fails_without_writes(self):
        with self.assertRaises(InsufficientBalanceError) as ctx:
            wallet_service.debit_wallet(self.agent, 80)

        self.assertEqual(ctx.exception.data['available'], '50.00')
        self.agent.refresh_from_db()
        self.assertEqual(self.agent.wallet_balance, Decimal('50.00'))
        self.assertFalse(WalletTransaction.objects.exists())

    def test_non_positive_amounts_rejected(self):
        for amount in (0, -5, 'abc'):
            with self.subTest(amount=amount):
                with self.assertRaises(ValidationError):
                    wallet_service.credit_wallet(self.agent, amount)

    def test_admins_have_no_wallet(self):
        with self.assertRaises(ValidationError):
            wallet_service.credit_wallet(make_admin(), 10)

    def test_balance_update_published_after_commit(self):
        with mock.patch('core.wallet_service.realtime.publish_to_user') as publish:
            with self.captureOnCommitCallbacks(execute=True):
                wallet_service.credit_wallet(self.agent, 10)

        publish.assert_called_once()
        user_id, message_type, payload = publish.call_args.args
        self.assertEqual((user_id, message_type), (self.agent.pk, 'wallet_update'))
        self.assertEqual(payload['balance'], Decimal('60.00'))

    def test_admin_adjust_notifies_user(self):
        admin = make_admin()
        wallet_service.admin_adjust(self.agent, 5, 'debit', '', admin)

        self.agent.refresh_from_db()
        self.assertEqual(self.agent.wallet_balance, Decimal('45.00'))
        self.assertTrue(Notification.objects.filter(user=self.agent).exists())


class TopUpRequestTests(TestCase):

    def setUp(self):
        self.agent = make_user(balance='0.00')
        self.admin = make_admin()

    def test_request_is_pending_and_admins_notified(self):
        txn = wallet_service.create_top_up_request(self.agent, 100)

        self.assertEqual(txn.status, 'pending')
        self.assertEqual(txn.transaction_type, 'top_up')
        self.assertTrue(Notification.objects.filter(user=self.admin).exists())
        self.agent.refresh_from_db()
        self.assertEqual(self.agent.wallet_balance, Decimal('0.00'))

    def test_below_minimum_rejected(self):
        with self.assertRaises(ValidationError):
            wallet_service.create_top_up_request(self.agent, 5)

    def test_one_pending_request_at_a_time(self):
        wallet_service.create_top_up_request(self.agent, 100)
        with self.assertRaises(ConflictError):
            wallet_service.create_top_up_request(self.agent, 50)

    def test_approval_credits_wallet(self):
        txn = wallet_service.create_top_up_request(self.agent, 100)
        wallet_service.process_top_up_request(txn.pk, True, self.admin, notes='Paid by MoMo')

        txn.refresh_from_db()
        self.agent.refresh_from_db()
        self.assertEqual(txn.status, 'completed')
        self.assertEqual(txn.approved_by, self.admin)
        self.assertEqual(txn.metadata['notes'], 'Paid by MoMo')
        self.assertEqual(self.agent.wallet_balance, Decimal('100.00'))

    def test_rejection_leaves_balance(self):
        txn = wallet_service.create_top_up_request(self.agent, 100)
        wallet_service.process_top_up_request(txn.pk, False, self.admin)

        txn.refresh_from_db()
        self.agent.refresh_from_db()
        self.assertEqual(txn.status, 'rejected')
        self.assertEqual(self.agent.wallet_balance, Decimal('0.00'))

    def test_cannot_process_twice(self):
        txn = wallet_service.create_top_up_request(self.agent, 100)
        wallet_service.process_top_up_request(txn.pk, True, self.admin)
        with self.assertRaises(ValidationError):
            wallet_service.process_top_up_request(txn.pk, True, self.admin)

    def test_wallet_info_totals(self):
        wallet_service.credit_wallet(self.agent, 30)
        wallet_service.debit_wallet(self.agent, 10)
        info = wallet_service.get_wallet_info(self.agent)

        self.assertEqual(Decimal(info['balance']), Decimal('20'))
        self.assertEqual(Decimal(info['total_credits']), Decimal('30'))
        self.assertEqual(Decimal(info['total_debits']), Decimal('10'))
        self.assertIsNone(info['pending_top_up'])

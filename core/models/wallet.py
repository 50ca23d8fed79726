"""
Wallet ledger model for BundleHub.

Every change to User.wallet_balance has a matching WalletTransaction.
Top-up requests are also stored here with status=pending until an admin
approves or rejects them.
"""

import secrets
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from ..managers import WalletTransactionQuerySet


def generate_reference():
    """TXN + timestamp + random tail, e.g. TXN20250101123045A1B2C3."""
    return f"TXN{timezone.now():%Y%m%d%H%M%S}{secrets.token_hex(3).upper()}"


class WalletTransaction(models.Model):
    """
    One ledger entry. balance_after is the wallet balance right after the
    entry was applied (the current balance for pending/rejected requests).
    """

    class TransactionType(models.TextChoices):
        CREDIT = 'credit', 'Credit'
        DEBIT = 'debit', 'Debit'
        TOP_UP = 'top_up', 'Top-up'
        ORDER = 'order', 'Order Payment'
        COMMISSION = 'commission', 'Commission Payout'
        REFUND = 'refund', 'Refund'

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'
        COMPLETED = 'completed', 'Completed'

    CREDIT_TYPES = (TransactionType.CREDIT, TransactionType.TOP_UP, TransactionType.COMMISSION, TransactionType.REFUND)
    DEBIT_TYPES = (TransactionType.DEBIT, TransactionType.ORDER)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='wallet_transactions'
    )
    transaction_type = models.CharField(
        'type',
        max_length=12,
        choices=TransactionType.choices,
        db_index=True
    )
    amount = models.DecimalField(
        'amount',
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    balance_after = models.DecimalField(
        'balance after',
        max_digits=12,
        decimal_places=2
    )
    description = models.CharField(
        'description',
        max_length=255,
        blank=True
    )
    reference = models.CharField(
        'reference',
        max_length=40,
        unique=True,
        default=generate_reference
    )
    related_order = models.ForeignKey(
        'Order',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='wallet_transactions'
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approved_wallet_transactions'
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(
        'status',
        max_length=10,
        choices=Status.choices,
        default=Status.COMPLETED,
        db_index=True
    )
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = WalletTransactionQuerySet.as_manager()

    class Meta:
        verbose_name = 'wallet transaction'
        verbose_name_plural = 'wallet transactions'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', '-created_at']),
            models.Index(fields=['transaction_type', 'status']),
        ]

    def __str__(self):
        return f"{self.reference} {self.transaction_type} {self.amount}"

    @property
    def is_credit(self):
        return self.transaction_type in self.CREDIT_TYPES

    def to_dict(self):
        return {
            'id': self.pk,
            'user_id': self.user_id,
            'type': self.transaction_type,
            'amount': str(self.amount),
            'balance_after': str(self.balance_after),
            'description': self.description,
            'reference': self.reference,
            'related_order': self.related_order_id,
            'approved_by': self.approved_by_id,
            'status': self.status,
            'metadata': self.metadata,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'processed_at': self.processed_at.isoformat() if self.processed_at else None,
        }

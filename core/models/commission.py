"""
Commission model for BundleHub.

Daily records are generated from completed orders, a running record for
the current month is kept up to date as orders complete, and on the 1st
the previous month is rolled up into one final monthly record per agent.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models


class CommissionRecord(models.Model):
    """Commission owed to a business user for one period."""

    class Period(models.TextChoices):
        DAILY = 'daily', 'Daily'
        WEEKLY = 'weekly', 'Weekly'
        MONTHLY = 'monthly', 'Monthly'

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        APPROVED = 'approved', 'Approved'
        PAID = 'paid', 'Paid'
        REJECTED = 'rejected', 'Rejected'
        CANCELLED = 'cancelled', 'Cancelled'

    agent = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='commissions'
    )
    tenant = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='tenant_commissions'
    )
    period = models.CharField(
        'period',
        max_length=10,
        choices=Period.choices,
        default=Period.MONTHLY
    )
    period_start = models.DateTimeField('period start')
    period_end = models.DateTimeField('period end')

    total_orders = models.PositiveIntegerField(default=0)
    total_revenue = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal('0.00')
    )
    commission_rate = models.DecimalField(
        'rate (%)',
        max_digits=5,
        decimal_places=2
    )
    amount = models.DecimalField(
        'commission amount',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    source_order = models.ForeignKey(
        'Order',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='commission_records',
        help_text='Latest order that updated this record'
    )

    status = models.CharField(
        'status',
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    is_final = models.BooleanField(
        'final',
        default=False,
        help_text='Finalized records no longer change'
    )
    finalized_at = models.DateTimeField(null=True, blank=True)

    paid_at = models.DateTimeField(null=True, blank=True)
    paid_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='paid_commissions'
    )
    payment_reference = models.CharField(max_length=50, blank=True)

    rejected_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='rejected_commissions'
    )
    rejection_reason = models.TextField(blank=True)
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'commission record'
        verbose_name_plural = 'commission records'
        ordering = ['-period_start', '-created_at']
        indexes = [
            models.Index(fields=['agent', 'period', 'period_start']),
            models.Index(fields=['status', 'is_final']),
        ]

    def __str__(self):
        return f"{self.agent} {self.period} {self.period_start:%Y-%m-%d}: {self.amount}"

    def to_dict(self):
        return {
            'id': self.pk,
            'agent_id': self.agent_id,
            'agent_name': self.agent.display_name,
            'tenant_id': self.tenant_id,
            'period': self.period,
            'period_start': self.period_start.isoformat(),
            'period_end': self.period_end.isoformat(),
            'total_orders': self.total_orders,
            'total_revenue': str(self.total_revenue),
            'commission_rate': str(self.commission_rate),
            'amount': str(self.amount),
            'status': self.status,
            'is_final': self.is_final,
            'finalized_at': self.finalized_at.isoformat() if self.finalized_at else None,
            'paid_at': self.paid_at.isoformat() if self.paid_at else None,
            'payment_reference': self.payment_reference,
            'rejection_reason': self.rejection_reason,
        }

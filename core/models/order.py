"""
Order models for BundleHub.

An Order has one line item for single and storefront orders and many for
bulk orders. Each item moves through its own processing status; the order
status is derived from the items.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from ..managers import OrderQuerySet


# =============================================================================
# ORDER MODEL
# =============================================================================

class Order(models.Model):
    """
    A purchase of one or more bundles for end customers.
    """

    class OrderType(models.TextChoices):
        SINGLE = 'single', 'Single'
        BULK = 'bulk', 'Bulk'
        STOREFRONT = 'storefront', 'Storefront'

    class Status(models.TextChoices):
        DRAFT = 'draft', 'Draft'
        PENDING = 'pending', 'Pending'
        PENDING_PAYMENT = 'pending_payment', 'Awaiting Payment'
        CONFIRMED = 'confirmed', 'Confirmed'
        PROCESSING = 'processing', 'Processing'
        PARTIALLY_COMPLETED = 'partially_completed', 'Partially Completed'
        COMPLETED = 'completed', 'Completed'
        CANCELLED = 'cancelled', 'Cancelled'
        FAILED = 'failed', 'Failed'

    class PaymentStatus(models.TextChoices):
        PENDING = 'pending', 'Pending'
        PAID = 'paid', 'Paid'
        FAILED = 'failed', 'Failed'
        REFUNDED = 'refunded', 'Refunded'

    class PaymentMethod(models.TextChoices):
        WALLET = 'wallet', 'Wallet'
        STOREFRONT = 'storefront', 'Storefront (customer pays agent)'

    class ReceptionStatus(models.TextChoices):
        NOT_RECEIVED = 'not_received', 'Not Received'
        RECEIVED = 'received', 'Received'
        CHECKING = 'checking', 'Checking'
        RESOLVED = 'resolved', 'Resolved'

    CANCELLABLE_STATUSES = (Status.DRAFT, Status.PENDING, Status.CONFIRMED)

    order_number = models.CharField(
        'order number',
        max_length=12,
        unique=True,
        help_text='e.g., ORD-7K2Q'
    )
    order_type = models.CharField(
        'order type',
        max_length=12,
        choices=OrderType.choices,
        default=OrderType.SINGLE
    )

    # Ownership
    tenant = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='tenant_orders',
        help_text='Business account the order is billed to'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='created_orders'
    )
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='processed_orders'
    )

    # Amounts
    subtotal = models.DecimalField(
        'subtotal',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )
    total = models.DecimalField(
        'total',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text='Amount charged to the wallet'
    )

    # State
    status = models.CharField(
        'status',
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    payment_status = models.CharField(
        'payment status',
        max_length=10,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING
    )
    payment_method = models.CharField(
        'payment method',
        max_length=12,
        choices=PaymentMethod.choices,
        default=PaymentMethod.WALLET
    )

    # Bulk progress counters
    total_items = models.PositiveIntegerField(default=0)
    processed_items = models.PositiveIntegerField(default=0)
    successful_items = models.PositiveIntegerField(default=0)
    failed_items = models.PositiveIntegerField(default=0)

    # Reception reports
    reception_status = models.CharField(
        'reception status',
        max_length=15,
        choices=ReceptionStatus.choices,
        blank=True,
        help_text='Set when the customer reports a delivery problem'
    )
    reported = models.BooleanField(
        'reported',
        default=False,
        db_index=True
    )
    reported_at = models.DateTimeField(null=True, blank=True)
    report_reason = models.TextField(blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    # Storefront orders
    storefront = models.ForeignKey(
        'AgentStorefront',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders'
    )
    customer_name = models.CharField(max_length=150, blank=True)
    customer_phone = models.CharField(max_length=20, blank=True)
    customer_email = models.EmailField(blank=True)
    payment_type = models.CharField(
        'storefront payment type',
        max_length=30,
        blank=True,
        help_text='e.g., momo, bank_transfer'
    )
    payment_reference = models.CharField(max_length=100, blank=True)
    payment_verified = models.BooleanField(default=False)
    payment_verified_at = models.DateTimeField(null=True, blank=True)
    verification_notes = models.TextField(blank=True)
    storefront_total = models.DecimalField(
        'customer total',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text='What the storefront customer pays the agent'
    )
    storefront_markup = models.DecimalField(
        'agent markup',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00')
    )

    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    objects = OrderQuerySet.as_manager()

    class Meta:
        verbose_name = 'order'
        verbose_name_plural = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'status', '-created_at']),
            models.Index(fields=['reported', 'reception_status']),
        ]

    def __str__(self):
        return f"{self.order_number} ({self.get_status_display()})"

    def save(self, *args, **kwargs):
        if not self.order_number:
            from ..codes import generate_order_number
            self.order_number = generate_order_number()
        super().save(*args, **kwargs)

    @property
    def is_paid(self):
        return self.payment_status == self.PaymentStatus.PAID

    def update_status_from_items(self, save=True):
        """
        Derive the order status and bulk counters from the items.

        All completed -> completed, all failed -> failed, all cancelled ->
        cancelled, any processing -> processing, a finished mix of completed
        and failed/cancelled -> partially_completed. Otherwise unchanged.
        """
        statuses = list(self.items.values_list('processing_status', flat=True))
        if not statuses:
            return self.status

        item_status = OrderItem.ProcessingStatus
        completed = statuses.count(item_status.COMPLETED)
        failed = statuses.count(item_status.FAILED)
        cancelled = statuses.count(item_status.CANCELLED)
        processing = statuses.count(item_status.PROCESSING)
        pending = statuses.count(item_status.PENDING)
        total = len(statuses)

        self.total_items = total
        self.successful_items = completed
        self.failed_items = failed
        self.processed_items = completed + failed

        if completed == total:
            self.status = self.Status.COMPLETED
            self.completed_at = self.completed_at or timezone.now()
        elif failed == total:
            self.status = self.Status.FAILED
        elif cancelled == total:
            self.status = self.Status.CANCELLED
        elif processing:
            self.status = self.Status.PROCESSING
        elif completed and not pending:
            self.status = self.Status.PARTIALLY_COMPLETED
            self.completed_at = self.completed_at or timezone.now()

        if save:
            self.save()
        return self.status

    def to_dict(self, include_items=True):
        data = {
            'id': self.pk,
            'order_number': self.order_number,
            'order_type': self.order_type,
            'tenant_id': self.tenant_id,
            'created_by': self.created_by_id,
            'processed_by': self.processed_by_id,
            'subtotal': str(self.subtotal),
            'total': str(self.total),
            'status': self.status,
            'payment_status': self.payment_status,
            'payment_method': self.payment_method,
            'total_items': self.total_items,
            'processed_items': self.processed_items,
            'successful_items': self.successful_items,
            'failed_items': self.failed_items,
            'reception_status': self.reception_status or None,
            'reported': self.reported,
            'reported_at': self.reported_at.isoformat() if self.reported_at else None,
            'resolved_at': self.resolved_at.isoformat() if self.resolved_at else None,
            'notes': self.notes,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }
        if self.order_type == self.OrderType.STOREFRONT:
            data['storefront'] = {
                'storefront_id': self.storefront_id,
                'customer_name': self.customer_name,
                'customer_phone': self.customer_phone,
                'customer_email': self.customer_email,
                'payment_type': self.payment_type,
                'payment_reference': self.payment_reference,
                'payment_verified': self.payment_verified,
                'customer_total': str(self.storefront_total),
                'markup': str(self.storefront_markup),
            }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items.select_related('bundle')]
        return data


# =============================================================================
# ORDER ITEM MODEL
# =============================================================================

class OrderItem(models.Model):
    """One bundle delivered to one phone number."""

    class ProcessingStatus(models.TextChoices):
        PENDING = 'pending', 'Pending'
        PROCESSING = 'processing', 'Processing'
        COMPLETED = 'completed', 'Completed'
        FAILED = 'failed', 'Failed'
        CANCELLED = 'cancelled', 'Cancelled'

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='items'
    )
    bundle = models.ForeignKey(
        'Bundle',
        on_delete=models.PROTECT,
        related_name='order_items'
    )
    customer_phone = models.CharField(
        'recipient phone',
        max_length=20
    )
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    customer_unit_price = models.DecimalField(
        'customer unit price',
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text='Storefront price the customer pays (unit_price is the tier cost)'
    )
    processing_status = models.CharField(
        'processing status',
        max_length=12,
        choices=ProcessingStatus.choices,
        default=ProcessingStatus.PENDING,
        db_index=True
    )
    processing_error = models.TextField(blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    refunded = models.BooleanField(default=False)

    class Meta:
        verbose_name = 'order item'
        verbose_name_plural = 'order items'
        ordering = ['id']

    def __str__(self):
        return f"{self.bundle.name} -> {self.customer_phone}"

    def to_dict(self):
        return {
            'id': self.pk,
            'bundle_id': self.bundle_id,
            'bundle_name': self.bundle.name,
            'data_volume': str(self.bundle.data_volume),
            'data_unit': self.bundle.data_unit,
            'customer_phone': self.customer_phone,
            'quantity': self.quantity,
            'unit_price': str(self.unit_price),
            'total_price': str(self.total_price),
            'processing_status': self.processing_status,
            'processing_error': self.processing_error,
            'processed_at': self.processed_at.isoformat() if self.processed_at else None,
        }

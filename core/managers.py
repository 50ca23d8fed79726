"""
Custom managers for BundleHub models.

Provides specialized querysets and manager methods for:
- User creation with email-based authentication
- Catalogue filtering (active, not soft-deleted)
- Order filtering by tenant, status and period
- Wallet ledger aggregation
"""

from decimal import Decimal

from django.contrib.auth.models import BaseUserManager
from django.db import models
from django.db.models import Sum, Count, Q
from django.db.models.functions import Coalesce


class UserManager(BaseUserManager):
    """
    Custom manager for User model where email is the unique identifier
    for authentication instead of username.
    """

    def create_user(self, email, password=None, **extra_fields):
        """
        Create and save a user with the given email and password.
        """
        if not email:
            raise ValueError('The Email field must be set')

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """
        Create and save a super admin with the given email and password.
        """
        extra_fields.setdefault('user_type', 'super_admin')
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('is_verified', True)
        extra_fields.setdefault('status', 'active')

        if extra_fields.get('user_type') != 'super_admin':
            raise ValueError('Superuser must have user_type=super_admin.')

        return self.create_user(email, password, **extra_fields)

    def admins(self):
        """Active admin and super admin accounts."""
        return self.filter(user_type__in=['admin', 'super_admin'], is_active=True)

    def business_users(self):
        return self.filter(user_type__in=['agent', 'super_agent', 'dealer', 'super_dealer'])


# =============================================================================
# CATALOGUE
# =============================================================================

class CatalogQuerySet(models.QuerySet):
    """
    Shared QuerySet for Provider, Package and Bundle.
    All three use soft delete plus an active flag.
    """

    def alive(self):
        """Exclude soft-deleted rows."""
        return self.filter(is_deleted=False)

    def active(self):
        """Rows that are sellable right now."""
        return self.filter(is_active=True, is_deleted=False)


# =============================================================================
# ORDERS
# =============================================================================

class OrderQuerySet(models.QuerySet):
    """
    Custom QuerySet for Order model with common filtering.
    """

    def for_tenant(self, tenant_id):
        """Orders owned by a tenant (a business user and its sub-accounts)."""
        return self.filter(tenant_id=tenant_id)

    def for_user(self, user):
        """Orders a user may see: admins see all, others their tenant's."""
        if user.is_admin:
            return self
        return self.filter(tenant_id=user.tenant_id_for_scope())

    def completed(self):
        return self.filter(status='completed')

    def drafts(self):
        return self.filter(status='draft')

    def reported(self):
        return self.filter(reported=True)

    def in_period(self, start, end):
        """Orders created within [start, end)."""
        return self.filter(created_at__gte=start, created_at__lt=end)

    def revenue(self):
        """
        Total and count for the queryset.
        Returns dict with total_revenue and total_orders.
        """
        return self.aggregate(
            total_revenue=Coalesce(Sum('total'), Decimal('0')),
            total_orders=Count('id'),
        )


# =============================================================================
# WALLET LEDGER
# =============================================================================

class WalletTransactionQuerySet(models.QuerySet):
    """
    Custom QuerySet for WalletTransaction model.
    """

    def for_user(self, user):
        return self.filter(user=user)

    def pending_top_ups(self):
        return self.filter(transaction_type='top_up', status='pending')

    def in_date_range(self, start_date, end_date):
        """Filter ledger entries within a date range (inclusive dates)."""
        return self.filter(created_at__date__gte=start_date, created_at__date__lte=end_date)

    def calculate_totals(self):
        """
        Sum completed credits and debits.
        Returns dict with total_credits, total_debits, count.
        """
        credit_types = ['credit', 'top_up', 'commission', 'refund']
        debit_types = ['debit', 'order']
        return self.exclude(status__in=['pending', 'rejected']).aggregate(
            total_credits=Coalesce(
                Sum('amount', filter=Q(transaction_type__in=credit_types)),
                Decimal('0')
            ),
            total_debits=Coalesce(
                Sum('amount', filter=Q(transaction_type__in=debit_types)),
                Decimal('0')
            ),
            count=Count('id'),
        )

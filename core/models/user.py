"""
User model for BundleHub.

Custom User model where email is the unique identifier for authentication.
The user_type field drives pricing tiers, wallet access and tenant scope.
"""

from decimal import Decimal

from django.db import models
from django.contrib.auth.models import AbstractBaseUser
from django.core.validators import RegexValidator, MinValueValidator
from django.utils import timezone

from ..managers import UserManager
from .. import user_types


# =============================================================================
# VALIDATORS
# =============================================================================

phone_validator = RegexValidator(
    regex=r'^\+?[0-9]{9,15}$',
    message='Phone number must be 9-15 digits, optionally starting with +'
)


# =============================================================================
# USER MODEL
# =============================================================================

class User(AbstractBaseUser):
    """
    Platform account. Admins manage the catalogue and approve money movements;
    business users (agents, dealers) hold a wallet and resell bundles.
    """

    class UserType(models.TextChoices):
        ADMIN = 'admin', 'Admin'
        SUPER_ADMIN = 'super_admin', 'Super Admin'
        AGENT = 'agent', 'Agent'
        SUPER_AGENT = 'super_agent', 'Super Agent'
        DEALER = 'dealer', 'Dealer'
        SUPER_DEALER = 'super_dealer', 'Super Dealer'

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending Approval'
        ACTIVE = 'active', 'Active'
        REJECTED = 'rejected', 'Rejected'
        SUSPENDED = 'suspended', 'Suspended'

    class SubscriptionStatus(models.TextChoices):
        ACTIVE = 'active', 'Active'
        INACTIVE = 'inactive', 'Inactive'
        SUSPENDED = 'suspended', 'Suspended'

    # Primary identification
    email = models.EmailField(
        'email address',
        unique=True,
        db_index=True,
        help_text='Primary login identifier'
    )

    # Profile information
    full_name = models.CharField(
        'full name',
        max_length=150,
        help_text='Full name for records'
    )
    phone = models.CharField(
        'phone number',
        max_length=20,
        blank=True,
        validators=[phone_validator],
        help_text='With or without country code, e.g., 0241234567'
    )
    business_name = models.CharField(
        'business name',
        max_length=150,
        blank=True,
        help_text='Trading name shown on receipts and storefronts'
    )

    # Role and tenancy
    user_type = models.CharField(
        'user type',
        max_length=20,
        choices=UserType.choices,
        default=UserType.AGENT,
        db_index=True
    )
    tenant = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='sub_accounts',
        help_text='Owning business account. Business users are their own tenant.'
    )
    agent_code = models.CharField(
        'agent code',
        max_length=10,
        unique=True,
        null=True,
        blank=True,
        help_text='Public reseller code, e.g., BLA-042 (business users only)'
    )

    # Account state
    status = models.CharField(
        'status',
        max_length=15,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True
    )
    subscription_status = models.CharField(
        'subscription status',
        max_length=15,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.ACTIVE
    )
    is_verified = models.BooleanField(
        'verified',
        default=False,
        help_text='Has an admin verified this account?'
    )
    is_active = models.BooleanField(
        'active',
        default=True,
        help_text='Account is active and can log in'
    )

    # Wallet
    wallet_balance = models.DecimalField(
        'wallet balance',
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))],
        help_text='Only changed through the wallet ledger'
    )

    token_version = models.PositiveIntegerField(
        'token version',
        default=0,
        help_text='Bumped on logout to revoke issued API tokens'
    )

    # Timestamps
    date_joined = models.DateTimeField(
        'date joined',
        default=timezone.now
    )
    last_login = models.DateTimeField(
        'last login',
        blank=True,
        null=True
    )
    updated_at = models.DateTimeField(
        'updated at',
        auto_now=True
    )

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['full_name']

    class Meta:
        verbose_name = 'user'
        verbose_name_plural = 'users'
        ordering = ['-date_joined']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(wallet_balance__gte=0),
                name='user_wallet_balance_non_negative'
            ),
        ]

    def __str__(self):
        return self.display_name

    @property
    def display_name(self):
        """Return the best available display name."""
        if self.business_name:
            return self.business_name
        if self.full_name:
            return self.full_name
        return self.email.split('@')[0]

    def get_full_name(self):
        return self.full_name or self.display_name

    def get_short_name(self):
        return self.display_name

    @property
    def is_admin(self):
        return user_types.is_admin_user(self.user_type)

    @property
    def is_business(self):
        return user_types.is_business_user(self.user_type)

    def tenant_id_for_scope(self):
        """Business users are their own tenant; everyone else uses tenant_id."""
        return user_types.get_tenant_id(self)

    def to_dict(self):
        return {
            'id': self.pk,
            'email': self.email,
            'full_name': self.full_name,
            'phone': self.phone,
            'business_name': self.business_name,
            'user_type': self.user_type,
            'tenant_id': self.tenant_id_for_scope(),
            'agent_code': self.agent_code,
            'status': self.status,
            'subscription_status': self.subscription_status,
            'is_verified': self.is_verified,
            'is_active': self.is_active,
            'wallet_balance': str(self.wallet_balance),
            'date_joined': self.date_joined.isoformat(),
            'last_login': self.last_login.isoformat() if self.last_login else None,
        }

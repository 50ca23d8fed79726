"""
Catalogue models for BundleHub.

Provider -> Package -> Bundle. All three are soft-deleted so historical
orders keep pointing at what was sold.
"""

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from ..managers import CatalogQuerySet
from ..exceptions import PricingValidationError
from .. import pricing


class SoftDeleteModel(models.Model):
    """Common is_active / soft-delete fields for catalogue rows."""

    is_active = models.BooleanField(
        'active',
        default=True,
        help_text='Is this available for sale?'
    )
    is_deleted = models.BooleanField(
        'deleted',
        default=False,
        help_text='Soft-deleted rows are hidden but kept for order history'
    )
    deleted_at = models.DateTimeField(
        'deleted at',
        null=True,
        blank=True
    )
    created_at = models.DateTimeField(
        'created at',
        auto_now_add=True
    )
    updated_at = models.DateTimeField(
        'updated at',
        auto_now=True
    )

    objects = CatalogQuerySet.as_manager()

    class Meta:
        abstract = True

    def soft_delete(self):
        self.is_deleted = True
        self.is_active = False
        self.deleted_at = timezone.now()
        self.save(update_fields=['is_deleted', 'is_active', 'deleted_at', 'updated_at'])


# =============================================================================
# PROVIDER MODEL
# =============================================================================

class Provider(SoftDeleteModel):
    """
    Telecom network selling the bundles (MTN, Telecel, AirtelTigo).
    AFA is MTN's special registration product, sold as its own provider.
    """

    class Code(models.TextChoices):
        MTN = 'MTN', 'MTN'
        TELECEL = 'TELECEL', 'Telecel'
        AT = 'AT', 'AirtelTigo'
        AFA = 'AFA', 'MTN AFA'

    name = models.CharField(
        'provider name',
        max_length=100,
        help_text='e.g., MTN Ghana'
    )
    code = models.CharField(
        'provider code',
        max_length=10,
        choices=Code.choices,
        unique=True
    )
    description = models.TextField(
        'description',
        blank=True
    )
    logo_url = models.URLField(
        'logo URL',
        max_length=500,
        blank=True
    )

    class Meta:
        verbose_name = 'provider'
        verbose_name_plural = 'providers'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.code})"

    def to_dict(self):
        return {
            'id': self.pk,
            'name': self.name,
            'code': self.code,
            'description': self.description,
            'logo_url': self.logo_url,
            'is_active': self.is_active,
        }


# =============================================================================
# PACKAGE MODEL
# =============================================================================

class Package(SoftDeleteModel):
    """Group of bundles from one provider, e.g. MTN Monthly."""

    class Category(models.TextChoices):
        DAILY = 'daily', 'Daily'
        WEEKLY = 'weekly', 'Weekly'
        MONTHLY = 'monthly', 'Monthly'
        UNLIMITED = 'unlimited', 'Unlimited'
        CUSTOM = 'custom', 'Custom'
        BIG_TIME = 'big-time', 'Big Time'
        ISHARE_PREMIUM = 'ishare-premium', 'iShare Premium'
        TELECEL = 'telecel', 'Telecel'

    name = models.CharField(
        'package name',
        max_length=100
    )
    provider = models.ForeignKey(
        Provider,
        on_delete=models.PROTECT,
        related_name='packages'
    )
    category = models.CharField(
        'category',
        max_length=20,
        choices=Category.choices,
        default=Category.CUSTOM
    )
    description = models.TextField(
        'description',
        blank=True
    )

    class Meta:
        verbose_name = 'package'
        verbose_name_plural = 'packages'
        ordering = ['provider__name', 'name']

    def __str__(self):
        return f"{self.provider.code} {self.name}"

    def to_dict(self):
        return {
            'id': self.pk,
            'name': self.name,
            'provider_id': self.provider_id,
            'provider_code': self.provider.code,
            'category': self.category,
            'description': self.description,
            'is_active': self.is_active,
        }


# =============================================================================
# BUNDLE MODEL
# =============================================================================

class Bundle(SoftDeleteModel):
    """
    A sellable data bundle. Price depends on the buyer's role through
    pricing_tiers (see core.pricing).
    """

    class DataUnit(models.TextChoices):
        MB = 'MB', 'MB'
        GB = 'GB', 'GB'
        TB = 'TB', 'TB'

    class ValidityUnit(models.TextChoices):
        HOURS = 'hours', 'Hours'
        DAYS = 'days', 'Days'
        WEEKS = 'weeks', 'Weeks'
        MONTHS = 'months', 'Months'
        UNLIMITED = 'unlimited', 'Unlimited'

    name = models.CharField(
        'bundle name',
        max_length=100
    )
    package = models.ForeignKey(
        Package,
        on_delete=models.PROTECT,
        related_name='bundles'
    )
    provider = models.ForeignKey(
        Provider,
        on_delete=models.PROTECT,
        related_name='bundles'
    )
    bundle_code = models.CharField(
        'bundle code',
        max_length=50,
        blank=True,
        help_text='Provider-side product code'
    )
    data_volume = models.DecimalField(
        'data volume',
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    data_unit = models.CharField(
        'data unit',
        max_length=2,
        choices=DataUnit.choices,
        default=DataUnit.GB
    )
    validity = models.PositiveIntegerField(
        'validity',
        null=True,
        blank=True,
        validators=[MinValueValidator(1)],
        help_text='Leave empty for unlimited validity'
    )
    validity_unit = models.CharField(
        'validity unit',
        max_length=10,
        choices=ValidityUnit.choices,
        default=ValidityUnit.DAYS
    )
    price = models.DecimalField(
        'base price',
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    pricing_tiers = models.JSONField(
        'pricing tiers',
        default=dict,
        blank=True,
        help_text='Per-role prices, e.g. {"agent": 8, "default": 9}'
    )
    currency = models.CharField(
        'currency',
        max_length=3,
        default=settings.CURRENCY
    )
    description = models.TextField(
        'description',
        blank=True
    )

    class Meta:
        verbose_name = 'bundle'
        verbose_name_plural = 'bundles'
        ordering = ['provider__name', 'data_unit', 'data_volume']
        indexes = [
            models.Index(fields=['package', 'is_active']),
            models.Index(fields=['data_volume', 'data_unit']),
        ]

    def __str__(self):
        return f"{self.name} - {self.currency} {self.price}"

    def clean(self):
        try:
            self.pricing_tiers = pricing.validate_pricing_tiers(self.pricing_tiers)
        except PricingValidationError as e:
            raise ValidationError({'pricing_tiers': [err['message'] for err in e.errors]})
        if self.package_id and self.provider_id and self.package.provider_id != self.provider_id:
            raise ValidationError({'package': 'Package belongs to a different provider'})

    def save(self, *args, **kwargs):
        self.pricing_tiers = pricing.validate_pricing_tiers(self.pricing_tiers)
        if not self.provider_id and self.package_id:
            self.provider_id = self.package.provider_id
        super().save(*args, **kwargs)

    @property
    def is_unlimited(self):
        return self.validity is None or self.validity_unit == self.ValidityUnit.UNLIMITED

    @property
    def volume_label(self):
        volume = self.data_volume.normalize()
        return f"{volume:f}{self.data_unit}"

    def get_price_for_user_type(self, user_type):
        return pricing.resolve_price(self, user_type)

    def to_dict(self, user_type=None):
        data = {
            'id': self.pk,
            'name': self.name,
            'package_id': self.package_id,
            'provider_id': self.provider_id,
            'provider_code': self.provider.code,
            'bundle_code': self.bundle_code,
            'data_volume': str(self.data_volume),
            'data_unit': self.data_unit,
            'validity': self.validity if not self.is_unlimited else 'unlimited',
            'validity_unit': self.validity_unit,
            'price': str(self.price),
            'pricing_tiers': self.pricing_tiers,
            'currency': self.currency,
            'is_active': self.is_active,
        }
        if user_type:
            data['user_price'] = str(self.get_price_for_user_type(user_type))
        return data

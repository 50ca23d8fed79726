"""
Storefront models for BundleHub.

AgentStorefront - a business user's public shop at /store/<business_name>/
StorefrontPricing - the agent's retail price for one bundle
"""

from decimal import Decimal

from django.conf import settings
from django.core.validators import RegexValidator
from django.db import models


business_name_validator = RegexValidator(
    regex=r'^[a-z0-9_-]+$',
    message='Use lowercase letters, numbers, underscores and hyphens only'
)


# =============================================================================
# STOREFRONT MODEL
# =============================================================================

class AgentStorefront(models.Model):
    """
    One public shop per business user. Must be approved (manually or via
    auto-approval) before customers can reach it.
    """

    agent = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='storefront'
    )
    business_name = models.SlugField(
        'store handle',
        max_length=50,
        unique=True,
        validators=[business_name_validator],
        help_text='Used in the public URL'
    )
    display_name = models.CharField('display name', max_length=100)
    description = models.TextField('description', blank=True)

    contact_phone = models.CharField(max_length=20, blank=True)
    contact_email = models.EmailField(blank=True)
    contact_whatsapp = models.CharField(max_length=20, blank=True)
    payment_methods = models.JSONField(
        'payment methods',
        default=list,
        blank=True,
        help_text='e.g. [{"type": "momo", "details": {"number": "024..."}}]'
    )

    is_active = models.BooleanField(default=False)
    is_approved = models.BooleanField(default=False)
    approved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approved_storefronts'
    )
    suspended_by_admin = models.BooleanField(default=False)
    suspended_at = models.DateTimeField(null=True, blank=True)
    suspension_reason = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'storefront'
        verbose_name_plural = 'storefronts'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['is_active', 'is_approved']),
        ]

    def __str__(self):
        return f"{self.display_name} (/store/{self.business_name})"

    def save(self, *args, **kwargs):
        self.business_name = (self.business_name or '').strip().lower()
        super().save(*args, **kwargs)

    @property
    def is_public(self):
        return self.is_active and self.is_approved and not self.suspended_by_admin

    @classmethod
    def find_public(cls, business_name):
        return cls.objects.select_related('agent').filter(
            business_name=(business_name or '').lower(),
            is_active=True,
            is_approved=True,
            suspended_by_admin=False,
        ).first()

    def to_dict(self):
        return {
            'id': self.pk,
            'agent_id': self.agent_id,
            'business_name': self.business_name,
            'display_name': self.display_name,
            'description': self.description,
            'contact': {
                'phone': self.contact_phone,
                'email': self.contact_email,
                'whatsapp': self.contact_whatsapp,
            },
            'payment_methods': self.payment_methods,
            'is_active': self.is_active,
            'is_approved': self.is_approved,
            'suspended_by_admin': self.suspended_by_admin,
            'suspension_reason': self.suspension_reason,
            'url': f'/store/{self.business_name}',
        }


# =============================================================================
# STOREFRONT PRICING MODEL
# =============================================================================

class StorefrontPricing(models.Model):
    """Agent's retail price for a bundle. Never below the agent's tier price."""

    storefront = models.ForeignKey(
        AgentStorefront,
        on_delete=models.CASCADE,
        related_name='pricing'
    )
    bundle = models.ForeignKey(
        'Bundle',
        on_delete=models.CASCADE,
        related_name='storefront_pricing'
    )
    tier_price = models.DecimalField(max_digits=10, decimal_places=2)
    custom_price = models.DecimalField(max_digits=10, decimal_places=2)
    markup = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    markup_percentage = models.DecimalField(max_digits=7, decimal_places=2, default=Decimal('0.00'))
    has_custom_price = models.BooleanField(default=False)
    is_active = models.BooleanField(
        default=True,
        help_text='Disabled bundles are hidden from the public store'
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'storefront price'
        verbose_name_plural = 'storefront prices'
        constraints = [
            models.UniqueConstraint(fields=['storefront', 'bundle'], name='unique_storefront_bundle_price'),
            models.CheckConstraint(
                condition=models.Q(custom_price__gte=models.F('tier_price')),
                name='storefront_price_not_below_tier'
            ),
        ]

    def __str__(self):
        return f"{self.storefront.business_name}: {self.bundle.name} @ {self.custom_price}"

    @property
    def selling_price(self):
        return self.custom_price if self.has_custom_price else self.tier_price

    def to_dict(self):
        return {
            'bundle_id': self.bundle_id,
            'tier_price': str(self.tier_price),
            'custom_price': str(self.custom_price),
            'markup': str(self.markup),
            'markup_percentage': str(self.markup_percentage),
            'has_custom_price': self.has_custom_price,
            'is_active': self.is_active,
        }

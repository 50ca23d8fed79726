"""
Site-wide settings for BundleHub (singleton row).
"""

from decimal import Decimal

from django.db import models

from ..user_types import BUSINESS_USER_TYPES

DEFAULT_COMMISSION_RATES = {
    'agent': 5.0,
    'super_agent': 7.5,
    'dealer': 10.0,
    'super_dealer': 12.5,
    'default': 1.0,
}

DEFAULT_MINIMUM_TOP_UPS = {
    'agent': 10,
    'super_agent': 50,
    'dealer': 100,
    'super_dealer': 200,
    'default': 10,
}


def default_commission_rates():
    return dict(DEFAULT_COMMISSION_RATES)


def default_minimum_top_ups():
    return dict(DEFAULT_MINIMUM_TOP_UPS)


class SiteSettings(models.Model):
    """
    Admin-editable platform switches. Always use get_instance().
    """

    is_site_open = models.BooleanField(
        'site open',
        default=True,
        help_text='When closed, no new orders are accepted'
    )
    custom_message = models.CharField(
        'closed message',
        max_length=500,
        blank=True,
        default='We are currently closed. Please check back later.'
    )
    require_approval_for_signup = models.BooleanField(
        'require signup approval',
        default=True,
        help_text='New business accounts start as pending'
    )
    auto_approve_storefronts = models.BooleanField(
        'auto-approve storefronts',
        default=False
    )
    commission_rates = models.JSONField(
        'commission rates (%)',
        default=default_commission_rates
    )
    minimum_top_up_amounts = models.JSONField(
        'minimum top-up amounts',
        default=default_minimum_top_ups
    )
    api_endpoint = models.URLField(
        'provider API endpoint',
        max_length=500,
        blank=True
    )
    api_keys = models.JSONField(
        'provider API keys',
        default=dict,
        blank=True,
        help_text='Keyed by provider code'
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'site settings'
        verbose_name_plural = 'site settings'

    def __str__(self):
        return 'Site settings'

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def get_instance(cls):
        instance, _ = cls.objects.get_or_create(pk=1)
        return instance

    def get_commission_rate(self, user_type):
        """Percentage rate for a role, falling back to the default rate."""
        rates = {**DEFAULT_COMMISSION_RATES, **(self.commission_rates or {})}
        if user_type in BUSINESS_USER_TYPES and rates.get(user_type) is not None:
            return Decimal(str(rates[user_type]))
        return Decimal(str(rates['default']))

    def get_minimum_top_up(self, user_type):
        minimums = {**DEFAULT_MINIMUM_TOP_UPS, **(self.minimum_top_up_amounts or {})}
        value = minimums.get(user_type)
        if value is None:
            value = minimums['default']
        return Decimal(str(value))

    def to_dict(self, include_api=False):
        data = {
            'is_site_open': self.is_site_open,
            'custom_message': self.custom_message,
            'require_approval_for_signup': self.require_approval_for_signup,
            'auto_approve_storefronts': self.auto_approve_storefronts,
            'commission_rates': {**DEFAULT_COMMISSION_RATES, **(self.commission_rates or {})},
            'minimum_top_up_amounts': {**DEFAULT_MINIMUM_TOP_UPS, **(self.minimum_top_up_amounts or {})},
        }
        if include_api:
            data['api_endpoint'] = self.api_endpoint
            data['api_keys'] = {code: '****' + key[-4:] if key else '' for code, key in (self.api_keys or {}).items()}
        return data

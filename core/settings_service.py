"""
Site settings service for BundleHub.

Wraps the SiteSettings singleton: open/close switch, signup approval,
storefront auto-approval, wallet minimums and provider API settings.
Commission rates live in core.commission_service.
"""

import logging
from decimal import Decimal, InvalidOperation

from . import realtime
from .exceptions import ValidationError
from .user_types import BUSINESS_USER_TYPES

logger = logging.getLogger('core')


def _site():
    from .models import SiteSettings
    return SiteSettings.get_instance()


def get_settings(include_api=False):
    return _site().to_dict(include_api=include_api)


def get_site_status():
    site = _site()
    return {'is_site_open': site.is_site_open, 'custom_message': site.custom_message}


def toggle_site_status(admin, is_open=None, custom_message=None):
    """
    Open or close ordering. With is_open=None the current state is flipped.
    Connected clients receive site_status_update.
    """
    site = _site()
    site.is_site_open = (not site.is_site_open) if is_open is None else bool(is_open)
    if custom_message is not None:
        site.custom_message = custom_message
    site.save()

    status = get_site_status()
    realtime.broadcast('site_status_update', status)
    logger.warning(f"Site {'opened' if site.is_site_open else 'closed'} by {admin.email}")
    return status


def set_signup_approval(require_approval):
    site = _site()
    site.require_approval_for_signup = bool(require_approval)
    site.save()
    logger.info(f"Signup approval required: {site.require_approval_for_signup}")
    return site.require_approval_for_signup


def set_storefront_auto_approval(auto_approve):
    site = _site()
    site.auto_approve_storefronts = bool(auto_approve)
    site.save()
    return site.auto_approve_storefronts


def get_wallet_settings():
    return {'minimum_top_up_amounts': _site().to_dict()['minimum_top_up_amounts']}


def update_wallet_settings(minimums):
    """Per-role minimum top-up amounts; keys are business roles or 'default'."""
    errors = []
    cleaned = {}
    for key, value in (minimums or {}).items():
        if key not in BUSINESS_USER_TYPES + ('default',):
            errors.append({'field': key, 'message': f'Unknown role: {key}'})
            continue
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError):
            errors.append({'field': key, 'message': 'Amount must be a number'})
            continue
        if amount < 0:
            errors.append({'field': key, 'message': 'Amount cannot be negative'})
            continue
        cleaned[key] = float(amount)
    if errors:
        raise ValidationError(errors=errors)

    site = _site()
    site.minimum_top_up_amounts = {**(site.minimum_top_up_amounts or {}), **cleaned}
    site.save()
    logger.info(f"Minimum top-up amounts updated: {cleaned}")
    return get_wallet_settings()


def update_api_settings(api_endpoint=None, api_keys=None):
    """
    Provider API endpoint and keys. Keys are merged per provider code;
    an empty value removes the key.
    """
    site = _site()
    if api_endpoint is not None:
        site.api_endpoint = api_endpoint
    if api_keys:
        keys = dict(site.api_keys or {})
        for code, key in api_keys.items():
            if key:
                keys[code.upper()] = key
            else:
                keys.pop(code.upper(), None)
        site.api_keys = keys
    site.save()
    logger.info("Provider API settings updated")
    return site.to_dict(include_api=True)

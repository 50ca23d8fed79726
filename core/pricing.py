"""
Tiered pricing for BundleHub bundles.

Every bundle has a base price and an optional per-role pricing_tiers map:

    {'agent': 8, 'super_agent': 7.5, 'dealer': 7, 'super_dealer': 6.5, 'default': 9}

The effective price for a purchase is the tier for the buyer's role, else
the 'default' tier, else the base price.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .exceptions import PricingValidationError
from .user_types import BUSINESS_USER_TYPES

VALID_TIER_KEYS = BUSINESS_USER_TYPES + ('default',)

TWO_PLACES = Decimal('0.01')


def _to_decimal(value):
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _bundle_fields(bundle):
    """Accept a Bundle instance or a plain mapping."""
    if isinstance(bundle, dict):
        return bundle.get('price'), bundle.get('pricing_tiers')
    return bundle.price, getattr(bundle, 'pricing_tiers', None)


def resolve_price(bundle, user_type):
    """
    Return the effective unit price of a bundle for a role.

    Args:
        bundle: Bundle instance or dict with 'price' and optional 'pricing_tiers'
        user_type: Role string, e.g. 'agent'

    Returns:
        Decimal: pricing_tiers[user_type], else pricing_tiers['default'], else price
    """
    price, tiers = _bundle_fields(bundle)
    tiers = tiers or {}

    tier_price = tiers.get(user_type)
    if tier_price is not None:
        return _to_decimal(tier_price)

    default_price = tiers.get('default')
    if default_price is not None:
        return _to_decimal(default_price)

    return _to_decimal(price)


def validate_pricing_tiers(tiers):
    """
    Validate a pricing_tiers map.

    Keys must be business roles or 'default'. Values must be numeric and
    strictly positive; None means "no tier for this role".

    Raises:
        PricingValidationError: with one {'field', 'message'} entry per problem
    """
    if tiers in (None, {}):
        return {}
    if not isinstance(tiers, dict):
        raise PricingValidationError(errors=[
            {'field': 'pricing_tiers', 'message': 'Pricing tiers must be an object'}
        ])

    errors = []
    cleaned = {}
    for key, value in tiers.items():
        field = f'pricing_tiers.{key}'
        if key not in VALID_TIER_KEYS:
            errors.append({'field': field, 'message': f'Invalid pricing tier: {key}'})
            continue
        if value is None:
            cleaned[key] = None
            continue
        if isinstance(value, bool):
            errors.append({'field': field, 'message': 'Price must be a number'})
            continue
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError):
            errors.append({'field': field, 'message': 'Price must be a number'})
            continue
        if not amount.is_finite() or amount <= 0:
            errors.append({'field': field, 'message': 'Price must be greater than zero'})
            continue
        cleaned[key] = float(amount)

    if errors:
        raise PricingValidationError(errors=errors)
    return cleaned


def calculate_total_price(bundle, user_type, quantity=1):
    """Unit price for the role times quantity."""
    return _to_decimal(resolve_price(bundle, user_type) * quantity)


def get_discount_percentage(bundle, user_type):
    """
    Percentage saved against the base price, rounded to 2 places.
    Zero when the role pays base price or more.
    """
    price, _ = _bundle_fields(bundle)
    base = _to_decimal(price)
    if base <= 0:
        return Decimal('0.00')
    effective = resolve_price(bundle, user_type)
    if effective >= base:
        return Decimal('0.00')
    return _to_decimal((base - effective) / base * 100)


def get_pricing_summary(bundle):
    """Effective price and discount for every business role."""
    price, _ = _bundle_fields(bundle)
    summary = {'base_price': str(_to_decimal(price)), 'tiers': {}}
    for user_type in BUSINESS_USER_TYPES:
        summary['tiers'][user_type] = {
            'price': str(resolve_price(bundle, user_type)),
            'discount_percentage': str(get_discount_percentage(bundle, user_type)),
        }
    return summary

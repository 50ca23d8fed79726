"""
Shared fixtures for the BundleHub test suites.
"""

from decimal import Decimal

from core.models import User, Provider, Package, Bundle
from core.tokens import issue_tokens

PASSWORD = 'SecurePass123!'


def make_user(email='agent@example.com', user_type='agent', balance='0.00', **extra):
    extra.setdefault('full_name', email.split('@')[0].title())
    extra.setdefault('status', User.Status.ACTIVE)
    user = User.objects.create_user(email=email, password=PASSWORD, user_type=user_type, **extra)
    if balance:
        user.wallet_balance = Decimal(balance)
        user.save(update_fields=['wallet_balance'])
    return user


def make_admin(email='admin@example.com', user_type='admin'):
    return make_user(email, user_type=user_type, balance=None)


def make_catalog(code='MTN', price='10.00', pricing_tiers=None):
    """One provider with a package holding 1GB and 5GB bundles."""
    provider = Provider.objects.create(name=f'{code} Ghana', code=code)
    package = Package.objects.create(name=f'{code} Monthly', provider=provider, category='monthly')
    small = Bundle.objects.create(
        name='1GB',
        package=package,
        data_volume=Decimal('1'),
        data_unit='GB',
        validity=30,
        price=Decimal(price),
        pricing_tiers=pricing_tiers or {},
    )
    large = Bundle.objects.create(
        name='5GB',
        package=package,
        data_volume=Decimal('5'),
        data_unit='GB',
        validity=30,
        price=Decimal('40.00'),
    )
    return provider, package, small, large


def auth_header(user):
    return {'HTTP_AUTHORIZATION': f"Bearer {issue_tokens(user)['access_token']}"}

"""
Bearer tokens for the BundleHub API.

Tokens are signed with django.core.signing, so nothing is stored server
side. Each token carries the user id, its kind (access/refresh) and the
user's token_version; logout bumps the version, which revokes every
token issued before it.
"""

import logging

from django.conf import settings
from django.core import signing

from .exceptions import AuthenticationError

logger = logging.getLogger('core')

ACCESS = 'access'
REFRESH = 'refresh'

_SALTS = {
    ACCESS: 'core.tokens.access',
    REFRESH: 'core.tokens.refresh',
}


def _max_age(kind):
    if kind == REFRESH:
        return settings.REFRESH_TOKEN_MAX_AGE
    return settings.ACCESS_TOKEN_MAX_AGE


def make_token(user, kind=ACCESS):
    payload = {'uid': user.pk, 'ver': user.token_version}
    return signing.dumps(payload, salt=_SALTS[kind], compress=True)


def issue_tokens(user):
    """Access + refresh pair returned by login, register and refresh."""
    return {
        'access_token': make_token(user, ACCESS),
        'refresh_token': make_token(user, REFRESH),
        'token_type': 'Bearer',
        'expires_in': settings.ACCESS_TOKEN_MAX_AGE,
    }


def authenticate_token(token, kind=ACCESS):
    """
    Resolve a token to an active user.

    Raises:
        AuthenticationError: missing, tampered, expired or revoked token,
            or an inactive account
    """
    from .models import User

    if not token:
        raise AuthenticationError('No token provided')

    try:
        payload = signing.loads(token, salt=_SALTS[kind], max_age=_max_age(kind))
    except signing.SignatureExpired:
        raise AuthenticationError('Token has expired')
    except signing.BadSignature:
        raise AuthenticationError('Invalid token')

    user = User.objects.filter(pk=payload.get('uid')).first()
    if user is None:
        raise AuthenticationError('User no longer exists')
    if payload.get('ver') != user.token_version:
        raise AuthenticationError('Token has been revoked')
    if not user.is_active:
        raise AuthenticationError('Account is deactivated')
    return user


def revoke_tokens(user):
    """Invalidate every token issued to the user so far."""
    user.token_version += 1
    user.save(update_fields=['token_version'])
    logger.info(f"Revoked API tokens for user {user.email}")

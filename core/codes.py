"""
Unique code generation for BundleHub.

Order numbers look like ORD-7K2Q and agent codes like BLA-042. Codes are
random, checked against the database, and retried on collision:

1. Up to 5 random candidates, backing off 2**attempt * 10 ms between tries
2. Then one timestamp-derived candidate
3. Then CodeGenerationError (callers must handle it)

The check and the insert are not atomic. save_order_with_retry covers the
window for orders by regenerating on a unique-constraint failure.
"""

import logging
import secrets
import string
import time

from django.db import IntegrityError, transaction

from .exceptions import CodeGenerationError
from .user_types import BUSINESS_USER_TYPES

logger = logging.getLogger('core.orders')

ORDER_PREFIX = 'ORD'
SPECIAL_ORDER_PREFIX = 'AFA'
AGENT_PREFIX = 'BLA'

ORDER_ALPHABET = string.digits + string.ascii_uppercase
ORDER_SUFFIX_LENGTH = 4
AGENT_SUFFIX_LENGTH = 3

MAX_ATTEMPTS = 5
MAX_SAVE_RETRIES = 3


def normalize_prefix(prefix, default):
    """Custom prefixes are cut to 3 characters and upper-cased."""
    if not prefix:
        return default
    return str(prefix)[:3].upper()


def backoff_seconds(attempt):
    """Delay after the given (1-based) failed attempt."""
    return (2 ** attempt) * 10 / 1000


def _random_suffix(alphabet, length):
    return ''.join(secrets.choice(alphabet) for _ in range(length))


def _timestamp_suffix(length):
    return str(int(time.time() * 1000))[-length:]


def generate_unique_code(make_candidate, exists, make_fallback, max_attempts=MAX_ATTEMPTS, sleep=time.sleep):
    """
    Generic collision-retry loop.

    Args:
        make_candidate: callable returning a fresh random code
        exists: callable(code) -> bool, True if the code is taken
        make_fallback: callable returning the timestamp-derived code
        max_attempts: random candidates to try before falling back
        sleep: injected for tests

    Returns:
        str: a code that was free at the time of the check

    Raises:
        CodeGenerationError: when the fallback is taken too
    """
    for attempt in range(1, max_attempts + 1):
        code = make_candidate()
        if not exists(code):
            return code
        logger.warning(f"Code collision on attempt {attempt}/{max_attempts}: {code}")
        if attempt < max_attempts:
            sleep(backoff_seconds(attempt))

    code = make_fallback()
    if exists(code):
        logger.error(f"Timestamp fallback code {code} is also taken")
        raise CodeGenerationError(f'Could not generate a unique code after {max_attempts} attempts')

    logger.warning(f"Using timestamp fallback code {code}")
    return code


# =============================================================================
# ORDER NUMBERS
# =============================================================================

def order_number_exists(code):
    from .models import Order
    return Order.objects.filter(order_number=code).exists()


def generate_order_number(prefix=ORDER_PREFIX, exists=None, sleep=time.sleep):
    """
    Generate an order number, e.g. ORD-4F9Z or AFA-0B1C for special orders.
    """
    prefix = normalize_prefix(prefix, ORDER_PREFIX)
    return generate_unique_code(
        make_candidate=lambda: f'{prefix}-{_random_suffix(ORDER_ALPHABET, ORDER_SUFFIX_LENGTH)}',
        exists=exists or order_number_exists,
        make_fallback=lambda: f'{prefix}-{_timestamp_suffix(ORDER_SUFFIX_LENGTH)}',
        sleep=sleep,
    )


def save_order_with_retry(order, max_retries=MAX_SAVE_RETRIES):
    """
    Save an order, regenerating its number if another order grabbed it
    between the uniqueness check and the insert.
    """
    prefix = order.order_number.split('-')[0] if order.order_number else ORDER_PREFIX
    for attempt in range(max_retries + 1):
        try:
            with transaction.atomic():
                order.save()
            return order
        except IntegrityError as e:
            if 'order_number' not in str(e) or attempt == max_retries:
                raise
            logger.warning(f"Duplicate order number {order.order_number}, regenerating (retry {attempt + 1})")
            order.order_number = generate_order_number(prefix)
    return order


# =============================================================================
# AGENT CODES
# =============================================================================

def agent_code_exists(code):
    from .models import User
    return User.objects.filter(agent_code=code, user_type__in=BUSINESS_USER_TYPES).exists()


def generate_agent_code(prefix=AGENT_PREFIX, exists=None, sleep=time.sleep):
    """
    Generate an agent code, e.g. BLA-042.
    """
    prefix = normalize_prefix(prefix, AGENT_PREFIX)
    return generate_unique_code(
        make_candidate=lambda: f'{prefix}-{_random_suffix(string.digits, AGENT_SUFFIX_LENGTH)}',
        exists=exists or agent_code_exists,
        make_fallback=lambda: f'{prefix}-{_timestamp_suffix(AGENT_SUFFIX_LENGTH)}',
        sleep=sleep,
    )

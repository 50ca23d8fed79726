"""
Wallet Service for BundleHub.

The only place that changes User.wallet_balance. Every change:
1. Locks the user row (select_for_update inside transaction.atomic)
2. Updates the balance
3. Writes a WalletTransaction with the resulting balance
4. Publishes a wallet_update event once the transaction commits

Also handles top-up requests (created by business users, approved or
rejected by admins) and wallet analytics.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction
from django.db.models import Sum, Count
from django.db.models.functions import TruncDate
from django.utils import timezone

from . import realtime
from . import notification_service
from .exceptions import ValidationError, InsufficientBalanceError, ConflictError, NotFoundError
from .user_types import can_have_wallet

logger = logging.getLogger('core.wallet')

TWO_PLACES = Decimal('0.01')


def to_amount(amount):
    """Parse a positive money amount, rounded to 2 places."""
    try:
        value = Decimal(str(amount)).quantize(TWO_PLACES)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError('Amount must be a number', errors=[
            {'field': 'amount', 'message': 'Amount must be a number'}
        ])
    if value <= 0:
        raise ValidationError('Amount must be greater than zero', errors=[
            {'field': 'amount', 'message': 'Amount must be greater than zero'}
        ])
    return value


def _publish_balance(user_id, txn):
    realtime.publish_to_user(user_id, 'wallet_update', {
        'balance': txn.balance_after,
        'transaction': txn.to_dict(),
    })


def _locked_wallet_owner(user):
    from .models import User

    locked = User.objects.select_for_update().get(pk=user.pk)
    if not can_have_wallet(locked.user_type):
        raise ValidationError(f'{locked.get_user_type_display()} accounts do not have a wallet')
    return locked


# =============================================================================
# CREDIT / DEBIT
# =============================================================================

@transaction.atomic
def credit_wallet(
    user,
    amount,
    description='',
    related_order=None,
    metadata=None,
    transaction_type='credit',
    approved_by=None
):
    """
    Add money to a wallet and record it.

    Returns:
        WalletTransaction: the ledger entry
    """
    from .models import WalletTransaction

    amount = to_amount(amount)
    owner = _locked_wallet_owner(user)
    owner.wallet_balance += amount
    owner.save(update_fields=['wallet_balance', 'updated_at'])

    txn = WalletTransaction.objects.create(
        user=owner,
        transaction_type=transaction_type,
        amount=amount,
        balance_after=owner.wallet_balance,
        description=description,
        related_order=related_order,
        approved_by=approved_by,
        processed_at=timezone.now(),
        status=WalletTransaction.Status.COMPLETED,
        metadata=metadata or {},
    )

    user.wallet_balance = owner.wallet_balance
    logger.info(f"Credited {amount} to {owner.email} ({transaction_type}), balance {owner.wallet_balance} [{txn.reference}]")
    transaction.on_commit(lambda: _publish_balance(owner.pk, txn))
    return txn


@transaction.atomic
def debit_wallet(
    user,
    amount,
    description='',
    related_order=None,
    metadata=None,
    transaction_type='debit',
    approved_by=None
):
    """
    Take money from a wallet and record it.

    Raises:
        InsufficientBalanceError: if the balance is below the amount
    """
    from .models import WalletTransaction

    amount = to_amount(amount)
    owner = _locked_wallet_owner(user)
    if owner.wallet_balance < amount:
        raise InsufficientBalanceError(
            f'Insufficient wallet balance. Required: {amount}, available: {owner.wallet_balance}',
            data={'required': str(amount), 'available': str(owner.wallet_balance)}
        )

    owner.wallet_balance -= amount
    owner.save(update_fields=['wallet_balance', 'updated_at'])

    txn = WalletTransaction.objects.create(
        user=owner,
        transaction_type=transaction_type,
        amount=amount,
        balance_after=owner.wallet_balance,
        description=description,
        related_order=related_order,
        approved_by=approved_by,
        processed_at=timezone.now(),
        status=WalletTransaction.Status.COMPLETED,
        metadata=metadata or {},
    )

    user.wallet_balance = owner.wallet_balance
    logger.info(f"Debited {amount} from {owner.email} ({transaction_type}), balance {owner.wallet_balance} [{txn.reference}]")
    transaction.on_commit(lambda: _publish_balance(owner.pk, txn))
    return txn


def admin_adjust(user, amount, direction, description, admin):
    """
    Manual credit or debit by an admin. The user is notified.
    """
    if direction == 'credit':
        txn = credit_wallet(user, amount, description or 'Wallet top-up by admin', approved_by=admin,
                            metadata={'source': 'admin'})
    elif direction == 'debit':
        txn = debit_wallet(user, amount, description or 'Wallet debit by admin', approved_by=admin,
                           metadata={'source': 'admin'})
    else:
        raise ValidationError(f'Unknown direction: {direction}')

    notification_service.notify_wallet_change(user, txn.amount, direction, txn.description)
    return txn


# =============================================================================
# TOP-UP REQUESTS
# =============================================================================

def get_pending_top_up(user):
    from .models import WalletTransaction
    return WalletTransaction.objects.pending_top_ups().filter(user=user).first()


def create_top_up_request(user, amount, description=''):
    """
    Business user asks an admin to credit their wallet (after paying offline).
    Only one pending request per user at a time.
    """
    from .models import WalletTransaction, SiteSettings

    if not can_have_wallet(user.user_type):
        raise ValidationError('Only business accounts can request a top-up')

    amount = to_amount(amount)
    minimum = SiteSettings.get_instance().get_minimum_top_up(user.user_type)
    if amount < minimum:
        raise ValidationError(f'Minimum top-up amount is {minimum}', errors=[
            {'field': 'amount', 'message': f'Minimum top-up amount is {minimum}'}
        ])

    with transaction.atomic():
        _locked_wallet_owner(user)
        if get_pending_top_up(user):
            raise ConflictError('You already have a pending top-up request')

        txn = WalletTransaction.objects.create(
            user=user,
            transaction_type=WalletTransaction.TransactionType.TOP_UP,
            amount=amount,
            balance_after=user.wallet_balance,
            description=description or 'Wallet top-up request',
            status=WalletTransaction.Status.PENDING,
        )

    logger.info(f"Top-up request {txn.reference} for {amount} by {user.email}")
    notification_service.notify_admins(
        'New top-up request',
        f"{user.display_name} requested a wallet top-up of {amount:,.2f}.",
        metadata={'type': 'top_up_request', 'transaction_id': txn.pk},
    )
    realtime.publish_to_admins('wallet_update', {'event': 'top_up_requested', 'transaction': txn.to_dict()})
    return txn


def process_top_up_request(transaction_id, approve, admin, notes=''):
    """
    Approve (credit the wallet) or reject a pending top-up request.
    """
    from .models import WalletTransaction, User

    with transaction.atomic():
        txn = (
            WalletTransaction.objects.select_for_update()
            .filter(pk=transaction_id, transaction_type=WalletTransaction.TransactionType.TOP_UP)
            .first()
        )
        if txn is None:
            raise NotFoundError('Top-up request not found')
        if txn.status != WalletTransaction.Status.PENDING:
            raise ValidationError(f'Top-up request has already been {txn.status}')

        owner = User.objects.select_for_update().get(pk=txn.user_id)
        txn.approved_by = admin
        txn.processed_at = timezone.now()
        if notes:
            txn.metadata = {**txn.metadata, 'notes': notes}

        if approve:
            owner.wallet_balance += txn.amount
            owner.save(update_fields=['wallet_balance', 'updated_at'])
            txn.status = WalletTransaction.Status.COMPLETED
            txn.balance_after = owner.wallet_balance
        else:
            txn.status = WalletTransaction.Status.REJECTED
            txn.balance_after = owner.wallet_balance
        txn.save()

        transaction.on_commit(lambda: _publish_balance(owner.pk, txn))

    action = 'approved' if approve else 'rejected'
    logger.info(f"Top-up {txn.reference} {action} by {admin.email}")

    if approve:
        notification_service.send_notification(
            owner,
            'Top-up approved',
            f"Your top-up of {txn.amount:,.2f} has been approved. New balance: {owner.wallet_balance:,.2f}.",
            'success',
            metadata={'type': 'top_up', 'transaction_id': txn.pk},
            category='wallet_updates',
        )
    else:
        notification_service.send_notification(
            owner,
            'Top-up rejected',
            f"Your top-up request of {txn.amount:,.2f} was rejected.{' ' + notes if notes else ''}",
            'error',
            metadata={'type': 'top_up', 'transaction_id': txn.pk},
            category='wallet_updates',
        )
    return txn


# =============================================================================
# QUERIES
# =============================================================================

def get_wallet_info(user):
    from .models import WalletTransaction

    totals = WalletTransaction.objects.for_user(user).calculate_totals()
    pending = get_pending_top_up(user)
    return {
        'balance': str(user.wallet_balance),
        'currency': settings.CURRENCY,
        'total_credits': str(totals['total_credits']),
        'total_debits': str(totals['total_debits']),
        'transaction_count': totals['count'],
        'pending_top_up': pending.to_dict() if pending else None,
    }


def filter_transactions(queryset, filters):
    """Apply type/status/date filters from query params."""
    if filters.get('type'):
        queryset = queryset.filter(transaction_type=filters['type'])
    if filters.get('status'):
        queryset = queryset.filter(status=filters['status'])
    if filters.get('start_date'):
        queryset = queryset.filter(created_at__date__gte=filters['start_date'])
    if filters.get('end_date'):
        queryset = queryset.filter(created_at__date__lte=filters['end_date'])
    if filters.get('user_id'):
        queryset = queryset.filter(user_id=filters['user_id'])
    return queryset


def get_wallet_analytics(user, start_date, end_date):
    """
    Totals per type and a per-day series for charts.
    """
    from .models import WalletTransaction

    qs = WalletTransaction.objects.for_user(user).in_date_range(start_date, end_date)
    settled = qs.exclude(status__in=['pending', 'rejected'])

    by_type = {
        row['transaction_type']: {'total': str(row['total']), 'count': row['count']}
        for row in settled.values('transaction_type').annotate(total=Sum('amount'), count=Count('id'))
    }

    daily = []
    rows = (
        settled.annotate(day=TruncDate('created_at'))
        .values('day', 'transaction_type')
        .annotate(total=Sum('amount'))
        .order_by('day')
    )
    per_day = {}
    for row in rows:
        bucket = per_day.setdefault(row['day'], {'credits': Decimal('0'), 'debits': Decimal('0')})
        if row['transaction_type'] in WalletTransaction.CREDIT_TYPES:
            bucket['credits'] += row['total']
        else:
            bucket['debits'] += row['total']
    for day, bucket in sorted(per_day.items()):
        daily.append({'date': day.isoformat(), 'credits': str(bucket['credits']), 'debits': str(bucket['debits'])})

    totals = settled.calculate_totals()
    return {
        'start_date': start_date.isoformat(),
        'end_date': end_date.isoformat(),
        'current_balance': str(user.wallet_balance),
        'total_credits': str(totals['total_credits']),
        'total_debits': str(totals['total_debits']),
        'by_type': by_type,
        'daily': daily,
        'pending_requests': qs.filter(status='pending').count(),
    }

"""
Commission Service for BundleHub.

Commission = revenue of completed orders x role rate / 100, rounded to
2 decimals. Rates come from SiteSettings (agent 5%, super agent 7.5%,
dealer 10%, super dealer 12.5%, default 1%).

Records:
- Running monthly record (is_final=False), refreshed whenever an order completes
- Daily records, generated each night for the previous day
- Final monthly record, produced on the 1st for the previous month; the
  running record is finalized in place and the daily records are deleted

Only final monthly records can be paid out.
"""

import calendar
import logging
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.db import transaction
from django.db.models import Sum, Count, Q
from django.db.models.functions import Coalesce
from django.utils import timezone

from . import realtime
from . import notification_service
from . import wallet_service
from .exceptions import ValidationError, NotFoundError
from .user_types import BUSINESS_USER_TYPES, is_business_user

logger = logging.getLogger('core.commissions')

TWO_PLACES = Decimal('0.01')


# =============================================================================
# PERIOD HELPERS
# =============================================================================

def day_bounds(day):
    """[start, end) of a local calendar day as aware datetimes."""
    start = timezone.make_aware(datetime(day.year, day.month, day.day))
    return start, start + timedelta(days=1)


def month_bounds(year, month):
    """[start, end) of a local calendar month."""
    start = timezone.make_aware(datetime(year, month, 1))
    days = calendar.monthrange(year, month)[1]
    return start, start + timedelta(days=days)


def previous_month(today=None):
    today = today or timezone.localdate()
    first = today.replace(day=1)
    last_month = first - timedelta(days=1)
    return last_month.year, last_month.month


# =============================================================================
# CALCULATION
# =============================================================================

def get_commission_rate(user_type):
    from .models import SiteSettings
    return SiteSettings.get_instance().get_commission_rate(user_type)


def calculate_commission(agent, start, end):
    """
    Commission for one business user over [start, end).

    Returns:
        dict: total_orders, total_revenue, commission_rate, amount
    """
    from .models import Order

    totals = Order.objects.filter(
        tenant_id=agent.tenant_id_for_scope(),
        status=Order.Status.COMPLETED,
        completed_at__gte=start,
        completed_at__lt=end,
    ).aggregate(
        total_revenue=Coalesce(Sum('total'), Decimal('0')),
        total_orders=Count('id'),
    )

    rate = get_commission_rate(agent.user_type)
    amount = (totals['total_revenue'] * rate / 100).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return {
        'total_orders': totals['total_orders'],
        'total_revenue': totals['total_revenue'],
        'commission_rate': rate,
        'amount': amount,
    }


def create_commission_record(agent, period, start, end, values, is_final=False, source_order=None):
    from .models import CommissionRecord

    record = CommissionRecord.objects.create(
        agent=agent,
        tenant_id=agent.tenant_id_for_scope(),
        period=period,
        period_start=start,
        period_end=end,
        total_orders=values['total_orders'],
        total_revenue=values['total_revenue'],
        commission_rate=values['commission_rate'],
        amount=values['amount'],
        is_final=is_final,
        finalized_at=timezone.now() if is_final else None,
        source_order=source_order,
    )
    logger.info(f"Created {period} commission record {record.pk} for {agent.email}: {record.amount}")
    realtime.publish_to_user(agent.pk, 'commission_created', record.to_dict())
    return record


def update_commission_realtime(order):
    """
    Refresh the current month's running record for the order's business user.
    Recomputed from orders, so calling it twice is harmless.
    """
    from .models import CommissionRecord

    agent = order.tenant
    if agent is None or not is_business_user(agent.user_type):
        return None

    now = timezone.localtime()
    start, end = month_bounds(now.year, now.month)
    values = calculate_commission(agent, start, end)

    record = CommissionRecord.objects.filter(
        agent=agent,
        period=CommissionRecord.Period.MONTHLY,
        period_start=start,
        is_final=False,
    ).first()

    if record is None:
        record = create_commission_record(
            agent, CommissionRecord.Period.MONTHLY, start, end, values, source_order=order
        )
    else:
        for field, value in values.items():
            setattr(record, field, value)
        record.source_order = order
        record.save()
        logger.info(f"Updated running commission for {agent.email}: {record.amount} ({record.total_orders} orders)")

    payload = record.to_dict()
    realtime.publish_to_user(agent.pk, 'commission_updated', payload)
    realtime.publish_to_admins('commission_updated', payload)
    return record


# =============================================================================
# SCHEDULED GENERATION
# =============================================================================

def generate_daily_commissions(day=None):
    """
    Create (or refresh) a daily record for every business user with
    completed orders on the given day. Defaults to yesterday.

    Returns:
        dict: created, updated, skipped counts and the day
    """
    from .models import User, CommissionRecord

    day = day or (timezone.localdate() - timedelta(days=1))
    start, end = day_bounds(day)
    summary = {'day': day.isoformat(), 'created': 0, 'updated': 0, 'skipped': 0, 'errors': 0}

    for agent in User.objects.business_users().filter(is_active=True):
        try:
            values = calculate_commission(agent, start, end)
            if not values['total_orders']:
                summary['skipped'] += 1
                continue

            record = CommissionRecord.objects.filter(
                agent=agent,
                period=CommissionRecord.Period.DAILY,
                period_start=start,
            ).first()
            if record is None:
                create_commission_record(agent, CommissionRecord.Period.DAILY, start, end, values)
                summary['created'] += 1
            elif not record.is_final:
                for field, value in values.items():
                    setattr(record, field, value)
                record.save()
                summary['updated'] += 1
            else:
                summary['skipped'] += 1
        except Exception as e:
            logger.error(f"Daily commission failed for {agent.email}: {e}")
            summary['errors'] += 1

    logger.info(f"Daily commissions for {day}: {summary}")
    return summary


def finalize_month_commissions(year=None, month=None):
    """
    Close a month (defaults to last month). One final monthly record per
    business user with completed orders; the month's daily records are
    folded into it and deleted.
    """
    from .models import User, CommissionRecord

    if year is None or month is None:
        year, month = previous_month()
    start, end = month_bounds(year, month)
    label = start.strftime('%B %Y')
    now = timezone.now()
    summary = {'month': label, 'finalized': 0, 'total_amount': Decimal('0.00'), 'errors': 0}

    for agent in User.objects.business_users():
        try:
            with transaction.atomic():
                values = calculate_commission(agent, start, end)
                running = CommissionRecord.objects.select_for_update().filter(
                    agent=agent,
                    period=CommissionRecord.Period.MONTHLY,
                    period_start=start,
                    is_final=False,
                ).first()

                if not values['total_orders'] and running is None:
                    continue

                if running is None:
                    record = create_commission_record(
                        agent, CommissionRecord.Period.MONTHLY, start, end, values, is_final=True
                    )
                else:
                    for field, value in values.items():
                        setattr(running, field, value)
                    running.is_final = True
                    running.finalized_at = now
                    running.save()
                    record = running

                CommissionRecord.objects.filter(
                    agent=agent,
                    period=CommissionRecord.Period.DAILY,
                    period_start__gte=start,
                    period_start__lt=end,
                ).delete()

            summary['finalized'] += 1
            summary['total_amount'] += record.amount

            notification_service.send_notification(
                agent,
                'Monthly commission finalized',
                f"Your commission for {label} has been finalized: {record.amount:,.2f}.",
                'success',
                metadata={'type': 'commission_finalized', 'commission_id': record.pk},
                category='commission_updates',
            )
            realtime.publish_to_user(agent.pk, 'commission_finalized', record.to_dict())
        except Exception as e:
            logger.error(f"Finalization failed for {agent.email}: {e}")
            summary['errors'] += 1

    if summary['finalized']:
        notification_service.notify_admins(
            'Commissions finalized',
            f"{summary['finalized']} commission records finalized for {label}, "
            f"total {summary['total_amount']:,.2f}.",
            metadata={'type': 'commission_finalized', 'month': label},
        )
        realtime.publish_to_admins('commission_finalized', {
            'month': label,
            'count': summary['finalized'],
            'total_amount': summary['total_amount'],
        })

    logger.info(f"Finalized commissions for {label}: {summary}")
    return summary


# =============================================================================
# PAYOUT / REJECTION (admin)
# =============================================================================

def _get_record(record_id, lock=False):
    from .models import CommissionRecord

    qs = CommissionRecord.objects.select_related('agent')
    if lock:
        qs = qs.select_for_update()
    record = qs.filter(pk=record_id).first()
    if record is None:
        raise NotFoundError('Commission record not found')
    return record


def pay_commission(record_id, admin, reference=''):
    """
    Credit the commission to the agent's wallet and mark the record paid.
    """
    from .models import CommissionRecord

    with transaction.atomic():
        record = _get_record(record_id, lock=True)
        if record.status == CommissionRecord.Status.PAID:
            raise ValidationError('Commission has already been paid')
        if record.status in (CommissionRecord.Status.REJECTED, CommissionRecord.Status.CANCELLED):
            raise ValidationError(f'Cannot pay a {record.status} commission')
        if not (record.is_final and record.period == CommissionRecord.Period.MONTHLY):
            raise ValidationError('Only finalized monthly commissions can be paid')
        if record.amount <= 0:
            raise ValidationError('Commission amount must be greater than zero')

        wallet_service.credit_wallet(
            record.agent,
            record.amount,
            f"Commission payout for {record.period_start:%B %Y}",
            transaction_type='commission',
            approved_by=admin,
            metadata={'commission_id': record.pk},
        )
        record.status = CommissionRecord.Status.PAID
        record.paid_at = timezone.now()
        record.paid_by = admin
        record.payment_reference = reference or f'COM-{record.pk}'
        record.save()

    logger.info(f"Commission {record.pk} paid to {record.agent.email}: {record.amount} by {admin.email}")
    notification_service.send_notification(
        record.agent,
        'Commission paid',
        f"{record.amount:,.2f} commission has been credited to your wallet.",
        'success',
        metadata={'type': 'commission_paid', 'commission_id': record.pk},
        category='commission_updates',
    )
    realtime.publish_to_user(record.agent_id, 'commission_paid', record.to_dict())
    return record


def reject_commission(record_id, admin, reason=''):
    from .models import CommissionRecord

    with transaction.atomic():
        record = _get_record(record_id, lock=True)
        if record.status == CommissionRecord.Status.PAID:
            raise ValidationError('Cannot reject a paid commission')
        if record.status == CommissionRecord.Status.REJECTED:
            raise ValidationError('Commission has already been rejected')

        record.status = CommissionRecord.Status.REJECTED
        record.rejected_at = timezone.now()
        record.rejected_by = admin
        record.rejection_reason = reason
        record.save()

    logger.info(f"Commission {record.pk} rejected by {admin.email}: {reason}")
    notification_service.send_notification(
        record.agent,
        'Commission rejected',
        f"Your commission of {record.amount:,.2f} was rejected.{' Reason: ' + reason if reason else ''}",
        'error',
        metadata={'type': 'commission_rejected', 'commission_id': record.pk},
        category='commission_updates',
    )
    return record


def _apply_many(func, record_ids, admin, *args):
    results = {'succeeded': [], 'failed': []}
    for record_id in record_ids:
        try:
            func(record_id, admin, *args)
            results['succeeded'].append(record_id)
        except (ValidationError, NotFoundError) as e:
            results['failed'].append({'id': record_id, 'message': e.message})
    return results


def pay_multiple(record_ids, admin, reference=''):
    return _apply_many(pay_commission, record_ids, admin, reference)


def reject_multiple(record_ids, admin, reason=''):
    return _apply_many(reject_commission, record_ids, admin, reason)


# =============================================================================
# QUERIES & SETTINGS
# =============================================================================

def filter_commissions(queryset, filters):
    if filters.get('status'):
        queryset = queryset.filter(status=filters['status'])
    if filters.get('period'):
        queryset = queryset.filter(period=filters['period'])
    if filters.get('agent_id'):
        queryset = queryset.filter(agent_id=filters['agent_id'])
    if filters.get('is_final') in ('true', 'false'):
        queryset = queryset.filter(is_final=filters['is_final'] == 'true')
    return queryset


def get_statistics(queryset):
    """Totals by status for a commission queryset."""
    zero = Decimal('0')
    stats = queryset.aggregate(
        total_amount=Coalesce(Sum('amount'), zero),
        pending_amount=Coalesce(Sum('amount', filter=Q(status='pending')), zero),
        paid_amount=Coalesce(Sum('amount', filter=Q(status='paid')), zero),
        rejected_amount=Coalesce(Sum('amount', filter=Q(status='rejected')), zero),
        total_records=Count('id'),
        pending_records=Count('id', filter=Q(status='pending')),
        paid_records=Count('id', filter=Q(status='paid')),
        agents=Count('agent', distinct=True),
    )
    return {key: str(value) if isinstance(value, Decimal) else value for key, value in stats.items()}


def get_commission_rates():
    from .models import SiteSettings
    return SiteSettings.get_instance().to_dict()['commission_rates']


def update_commission_rates(rates):
    """
    Update per-role percentage rates. Keys are business roles or 'default';
    values are between 0 and 100.
    """
    from .models import SiteSettings

    errors = []
    cleaned = {}
    for key, value in (rates or {}).items():
        if key not in BUSINESS_USER_TYPES + ('default',):
            errors.append({'field': key, 'message': f'Unknown role: {key}'})
            continue
        try:
            rate = Decimal(str(value))
        except (InvalidOperation, ValueError):
            rate = None
        if rate is None or not rate.is_finite():
            errors.append({'field': key, 'message': 'Rate must be a number'})
            continue
        if rate < 0 or rate > 100:
            errors.append({'field': key, 'message': 'Rate must be between 0 and 100'})
            continue
        cleaned[key] = float(rate)
    if errors:
        raise ValidationError(errors=errors)

    site = SiteSettings.get_instance()
    site.commission_rates = {**(site.commission_rates or {}), **cleaned}
    site.save()
    logger.info(f"Commission rates updated: {cleaned}")
    return site.to_dict()['commission_rates']

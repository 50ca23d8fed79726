"""
Analytics service for BundleHub.

Dashboard numbers for business users and admins, plus the daily
revenue series used by the charts.
"""

import logging
from decimal import Decimal
from datetime import timedelta

from django.db.models import Sum, Count, Q
from django.db.models.functions import TruncDate, Coalesce
from django.utils import timezone

from .commission_service import month_bounds

logger = logging.getLogger('core')


def _percent_change(current, previous):
    if previous > 0:
        return round(float((current - previous) / previous * 100), 1)
    return 0 if current == 0 else 100


def get_agent_analytics(user, days=30):
    """
    Dashboard for a business user (or sub-account): orders by status,
    spend, and commission for the current month.
    """
    from .models import Order, CommissionRecord, WalletTransaction

    today = timezone.localdate()
    since = today - timedelta(days=days)
    orders = Order.objects.for_user(user)
    recent = orders.filter(created_at__date__gte=since)

    by_status = dict(recent.values_list('status').annotate(count=Count('id')))

    spent = recent.filter(payment_status='paid').aggregate(
        total=Coalesce(Sum('total'), Decimal('0'))
    )['total']

    # Previous window of the same length, for comparison
    previous_spent = orders.filter(
        payment_status='paid',
        created_at__date__gte=since - timedelta(days=days),
        created_at__date__lt=since,
    ).aggregate(total=Coalesce(Sum('total'), Decimal('0')))['total']

    month_start, month_end = month_bounds(today.year, today.month)
    agent_id = user.tenant_id_for_scope()
    monthly = CommissionRecord.objects.filter(
        agent_id=agent_id,
        period=CommissionRecord.Period.MONTHLY,
        period_start=month_start,
    ).first()
    commission_totals = CommissionRecord.objects.filter(agent_id=agent_id).aggregate(
        paid=Coalesce(Sum('amount', filter=Q(status='paid')), Decimal('0')),
        pending=Coalesce(Sum('amount', filter=Q(status='pending', period='monthly')), Decimal('0')),
    )

    top_bundles = (
        recent.filter(status='completed')
        .values('items__bundle__name')
        .annotate(count=Count('items'), total=Sum('items__total_price'))
        .order_by('-count')[:5]
    )

    last_top_up = (
        WalletTransaction.objects.filter(user_id=agent_id, transaction_type='top_up', status='completed')
        .order_by('-created_at')
        .first()
    )

    return {
        'period_days': days,
        'total_orders': recent.count(),
        'orders_by_status': {status: by_status.get(status, 0) for status in Order.Status.values},
        'completed_orders': by_status.get('completed', 0),
        'total_spent': str(spent),
        'vs_previous_percent': _percent_change(spent, previous_spent),
        'wallet_balance': str(user.wallet_balance),
        'current_month_commission': str(monthly.amount) if monthly else '0.00',
        'commission_paid': str(commission_totals['paid']),
        'commission_pending': str(commission_totals['pending']),
        'top_bundles': [
            {'name': row['items__bundle__name'], 'count': row['count'], 'total': str(row['total'] or 0)}
            for row in top_bundles if row['items__bundle__name']
        ],
        'last_top_up': last_top_up.to_dict() if last_top_up else None,
        'reported_orders': orders.reported().count(),
    }


def get_admin_summary():
    """Platform-wide counts for the admin dashboard."""
    from .models import User, Order, WalletTransaction, CommissionRecord, AgentStorefront

    today = timezone.localdate()
    users_by_role = dict(User.objects.values_list('user_type').annotate(count=Count('id')))
    users_by_status = dict(User.objects.values_list('status').annotate(count=Count('id')))

    orders = Order.objects.exclude(status='draft')
    revenue = orders.filter(payment_status='paid').revenue()
    today_revenue = orders.filter(payment_status='paid', created_at__date=today).revenue()

    return {
        'users_by_role': {role: users_by_role.get(role, 0) for role in User.UserType.values},
        'users_by_status': {status: users_by_status.get(status, 0) for status in User.Status.values},
        'total_users': sum(users_by_role.values()),
        'pending_approvals': users_by_status.get('pending', 0),
        'total_orders': orders.count(),
        'orders_today': orders.filter(created_at__date=today).count(),
        'pending_orders': orders.filter(status__in=['pending', 'confirmed', 'processing']).count(),
        'completed_orders': orders.completed().count(),
        'reported_orders': orders.reported().count(),
        'total_revenue': str(revenue['total_revenue']),
        'revenue_today': str(today_revenue['total_revenue']),
        'pending_top_ups': WalletTransaction.objects.pending_top_ups().count(),
        'pending_commissions': CommissionRecord.objects.filter(
            status='pending', is_final=True, period='monthly'
        ).count(),
        'total_wallet_balance': str(
            User.objects.aggregate(total=Coalesce(Sum('wallet_balance'), Decimal('0')))['total']
        ),
        'active_storefronts': AgentStorefront.objects.filter(
            is_active=True, is_approved=True, suspended_by_admin=False
        ).count(),
    }


def get_revenue_chart(user=None, days=30):
    """
    Revenue and order count per day for the last `days` days.
    Admins (or user=None) see the whole platform.
    Missing days are filled with zeros.
    """
    from .models import Order

    today = timezone.localdate()
    start = today - timedelta(days=days - 1)

    orders = Order.objects.filter(payment_status='paid', created_at__date__gte=start)
    if user is not None:
        orders = orders.for_user(user)

    rows = (
        orders.annotate(day=TruncDate('created_at'))
        .values('day')
        .annotate(revenue=Sum('total'), count=Count('id'))
        .order_by('day')
    )
    per_day = {row['day']: row for row in rows}

    series = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        row = per_day.get(day)
        series.append({
            'date': day.isoformat(),
            'revenue': str(row['revenue']) if row else '0.00',
            'orders': row['count'] if row else 0,
        })
    return series

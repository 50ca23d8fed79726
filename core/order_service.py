"""
Order Service for BundleHub.

Order placement and fulfilment:
- Single and bulk orders paid from the wallet (draft when the balance is short)
- Item processing: pending -> processing -> completed/failed, with refunds
- Draft payment, cancellation, delivery reports and reception status
- Repeat orders for the same recipient and bundle within DUPLICATE_WINDOW

Commission for completed orders is kept current through
commission_service.update_commission_realtime.
"""

import logging
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from . import realtime
from . import notification_service
from . import wallet_service
from .bulk import parse_bulk_rows
from .codes import generate_order_number, save_order_with_retry, ORDER_PREFIX, SPECIAL_ORDER_PREFIX
from .exceptions import (
    ValidationError, NotFoundError, PermissionDeniedError, ConflictError,
    InsufficientBalanceError, SiteClosedError,
)
from .pricing import resolve_price
from .user_types import can_have_wallet

logger = logging.getLogger('core.orders')

REPORT_WINDOW = timedelta(hours=2)
DUPLICATE_WINDOW = timedelta(minutes=5)

# Allowed item transitions
ITEM_TRANSITIONS = {
    'pending': ('processing', 'cancelled'),
    'processing': ('completed', 'failed'),
}


# =============================================================================
# HELPERS
# =============================================================================

def ensure_site_open():
    """Raise SiteClosedError (503) while an admin has closed the site."""
    from .models import SiteSettings

    site = SiteSettings.get_instance()
    if not site.is_site_open:
        raise SiteClosedError(site.custom_message or None)


def get_order(order_id, user):
    """Fetch an order the user is allowed to see."""
    from .models import Order

    order = Order.objects.for_user(user).select_related('tenant', 'created_by').filter(pk=order_id).first()
    if order is None:
        raise NotFoundError('Order not found')
    return order


def filter_orders(queryset, filters):
    if filters.get('status'):
        queryset = queryset.filter(status=filters['status'])
    if filters.get('order_type'):
        queryset = queryset.filter(order_type=filters['order_type'])
    if filters.get('payment_status'):
        queryset = queryset.filter(payment_status=filters['payment_status'])
    if filters.get('search'):
        queryset = queryset.filter(order_number__icontains=filters['search'])
    if filters.get('start_date'):
        queryset = queryset.filter(created_at__date__gte=filters['start_date'])
    if filters.get('end_date'):
        queryset = queryset.filter(created_at__date__lte=filters['end_date'])
    return queryset


def _order_prefix(bundle):
    """AFA registrations get their own order number series."""
    if bundle.provider.code == 'AFA':
        return SPECIAL_ORDER_PREFIX
    return ORDER_PREFIX


def _require_buyer(user):
    if not can_have_wallet(user.user_type):
        raise PermissionDeniedError('Only business accounts can place orders')
    if user.status != user.Status.ACTIVE:
        raise PermissionDeniedError('Your account is not active yet')


def _pay_from_wallet(order, user):
    """Debit the order total and mark the order as paid and pending."""
    wallet_service.debit_wallet(
        user,
        order.total,
        f'Payment for order {order.order_number}',
        related_order=order,
        transaction_type='order',
        metadata={'order_number': order.order_number, 'order_type': order.order_type},
    )
    order.status = order.Status.PENDING
    order.payment_status = order.PaymentStatus.PAID
    order.save(update_fields=['status', 'payment_status', 'updated_at'])


def normalize_phone(phone):
    """'+233 24 123 4567' and '0241234567' compare equal."""
    cleaned = ''.join(ch for ch in (phone or '') if ch.isdigit() or ch == '+')
    if cleaned.startswith('+233'):
        return '0' + cleaned[4:]
    if cleaned.startswith('233'):
        return '0' + cleaned[3:]
    return cleaned


def find_duplicate_orders(user, recipients, now=None):
    """
    Recent orders by the same user for the same phone and bundle.

    Args:
        recipients: iterable of (customer_phone, bundle) pairs

    Returns:
        list of {'customer_phone', 'bundle', 'order_id', 'order_number', 'minutes_ago'}
    """
    from .models import Order, OrderItem

    now = now or timezone.now()
    wanted = {(normalize_phone(phone), bundle.pk): bundle for phone, bundle in recipients}
    recent = (
        OrderItem.objects
        .filter(
            order__created_by=user,
            order__tenant_id=user.tenant_id_for_scope(),
            order__created_at__gte=now - DUPLICATE_WINDOW,
            bundle_id__in={bundle_id for _, bundle_id in wanted},
        )
        .exclude(order__status__in=[Order.Status.CANCELLED, Order.Status.FAILED])
        .select_related('order')
        .order_by('-order__created_at')
    )

    duplicates = []
    seen = set()
    for item in recent:
        key = (normalize_phone(item.customer_phone), item.bundle_id)
        if key not in wanted or key in seen:
            continue
        seen.add(key)
        duplicates.append({
            'customer_phone': key[0],
            'bundle': wanted[key].name,
            'order_id': item.order_id,
            'order_number': item.order.order_number,
            'minutes_ago': int((now - item.order.created_at).total_seconds() // 60),
        })
    return duplicates


def _reject_duplicates(user, recipients, force_override):
    if force_override:
        return
    duplicates = find_duplicate_orders(user, recipients)
    if not duplicates:
        return

    window = int(DUPLICATE_WINDOW.total_seconds() // 60)
    if len(recipients) == 1:
        first = duplicates[0]
        message = (
            f"Possible duplicate: order {first['order_number']} for {first['customer_phone']} "
            f"({first['bundle']}) was placed {first['minutes_ago']} minute(s) ago"
        )
    else:
        message = f"{len(duplicates)} of {len(recipients)} rows repeat orders from the last {window} minutes"
    logger.warning(f"Duplicate order blocked for {user.email}: {len(duplicates)} match(es)")
    raise ConflictError(message, data={'duplicates': duplicates, 'window_minutes': window})


def _refund_open_items(order, description, admin=None, reason=''):
    """Credit the tenant for every item not yet refunded and mark the order refunded."""
    from .models import Order

    refundable = sum(
        (item.total_price for item in order.items.filter(refunded=False)),
        Decimal('0.00')
    )
    if refundable > 0:
        wallet_service.credit_wallet(
            order.tenant,
            refundable,
            description,
            related_order=order,
            transaction_type='refund',
            approved_by=admin,
            metadata={'reason': reason},
        )
    order.items.filter(refunded=False).update(refunded=True)
    order.payment_status = Order.PaymentStatus.REFUNDED
    return refundable


def _announce_new_order(order):
    payload = order.to_dict(include_items=False)
    realtime.publish_to_user(order.tenant_id, 'order_created', payload)
    realtime.publish_to_admins('order_created', payload)


def _announce_status(order):
    payload = {
        'order_id': order.pk,
        'order_number': order.order_number,
        'status': order.status,
        'payment_status': order.payment_status,
        'processed_items': order.processed_items,
        'total_items': order.total_items,
    }
    realtime.publish_to_user(order.tenant_id, 'order_status_updated', payload)
    realtime.publish_to_admins('order_status_updated', payload)


# =============================================================================
# ORDER PLACEMENT
# =============================================================================

def create_single_order(user, bundle_id, customer_phone, quantity=1, notes='', force_override=False):
    """
    One bundle for one recipient.

    Paid immediately when the wallet covers it (status pending, paid),
    otherwise saved as a draft to be paid later. The same phone and bundle
    ordered again within DUPLICATE_WINDOW raises ConflictError unless
    force_override is set.
    """
    from .models import Order, OrderItem, Bundle

    ensure_site_open()
    _require_buyer(user)

    bundle = Bundle.objects.active().select_related('provider').filter(pk=bundle_id).first()
    if bundle is None:
        raise NotFoundError('Bundle not found or not available')

    _reject_duplicates(user, [(customer_phone, bundle)], force_override)

    unit_price = resolve_price(bundle, user.user_type)
    total = unit_price * quantity

    with transaction.atomic():
        order = Order(
            order_number=generate_order_number(_order_prefix(bundle)),
            order_type=Order.OrderType.SINGLE,
            tenant_id=user.tenant_id_for_scope(),
            created_by=user,
            subtotal=total,
            total=total,
            status=Order.Status.DRAFT,
            total_items=1,
            notes=notes,
        )
        save_order_with_retry(order)
        OrderItem.objects.create(
            order=order,
            bundle=bundle,
            customer_phone=customer_phone,
            quantity=quantity,
            unit_price=unit_price,
            total_price=total,
        )

        user.refresh_from_db(fields=['wallet_balance'])
        if user.wallet_balance >= total:
            _pay_from_wallet(order, user)

    if order.status == Order.Status.DRAFT:
        logger.info(f"Draft order {order.order_number} created by {user.email}: balance {user.wallet_balance} < {total}")
    else:
        logger.info(f"Order {order.order_number} placed by {user.email} for {total}")

    _announce_new_order(order)
    return order


def create_bulk_order(user, package_id, rows, notes='', force_override=False):
    """
    Many recipients in one order. Rows are "phone,volume" lines; each volume
    must match a bundle in the package.

    Any invalid row rejects the whole upload with per-line errors. Rows
    repeating a recent order are reported together as one ConflictError.
    """
    from .models import Order, OrderItem, Package

    ensure_site_open()
    _require_buyer(user)

    package = Package.objects.active().filter(pk=package_id).select_related('provider').first()
    if package is None:
        raise NotFoundError('Package not found or not available')

    parsed, errors = parse_bulk_rows(rows)
    if not parsed and not errors:
        raise ValidationError('No order rows provided', errors=[{'field': 'rows', 'message': 'No order rows provided'}])

    bundles = {
        (bundle.data_volume, bundle.data_unit): bundle
        for bundle in package.bundles.active().select_related('provider')
    }

    lines = []
    for row in parsed:
        bundle = bundles.get((row['data_volume'], row['data_unit']))
        if bundle is None:
            errors.append({
                'line': row['line'],
                'message': f"No {row['data_volume']}{row['data_unit']} bundle in {package.name}",
            })
            continue
        lines.append((row, bundle, resolve_price(bundle, user.user_type)))

    if errors:
        raise ValidationError(
            'Some rows could not be processed',
            errors=[{'field': f"rows[{err['line']}]", 'message': err['message']} for err in errors]
        )

    _reject_duplicates(user, [(row['customer_phone'], bundle) for row, bundle, _ in lines], force_override)

    total =sum((price for _, _, price in lines), Decimal('0.00'))

    with transaction.atomic():
        order = Order(
            order_number=generate_order_number(_order_prefix(lines[0][1])),
            order_type=Order.OrderType.BULK,
            tenant_id=user.tenant_id_for_scope(),
            created_by=user,
            subtotal=total,
            total=total,
            status=Order.Status.DRAFT,
            total_items=len(lines),
            notes=notes,
        )
        save_order_with_retry(order)
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                bundle=bundle,
                customer_phone=row['customer_phone'],
                quantity=1,
                unit_price=price,
                total_price=price,
            )
            for row, bundle, price in lines
        ])

        user.refresh_from_db(fields=['wallet_balance'])
        if user.wallet_balance >= total:
            _pay_from_wallet(order, user)

    logger.info(f"Bulk order {order.order_number} ({len(lines)} items, {total}) by {user.email}: {order.status}")
    _announce_new_order(order)
    return order


def process_draft_orders(user):
    """
    Pay every draft order of the user's tenant at once.
    All-or-nothing: if the wallet cannot cover all drafts, nothing is paid.

    Returns:
        dict: {'processed': int, 'total': Decimal}
    """
    from .models import Order

    ensure_site_open()
    _require_buyer(user)

    with transaction.atomic():
        drafts = list(
            Order.objects.select_for_update()
            .filter(tenant_id=user.tenant_id_for_scope(), status=Order.Status.DRAFT)
            .order_by('created_at')
        )
        if not drafts:
            return {'processed': 0, 'total': Decimal('0.00')}

        total = sum((order.total for order in drafts), Decimal('0.00'))
        user.refresh_from_db(fields=['wallet_balance'])
        if user.wallet_balance < total:
            raise InsufficientBalanceError(
                f'Insufficient balance to process {len(drafts)} draft orders. Required: {total}, available: {user.wallet_balance}',
                data={'required': str(total), 'available': str(user.wallet_balance), 'orders': len(drafts)}
            )

        for order in drafts:
            _pay_from_wallet(order, user)

    logger.info(f"Processed {len(drafts)} draft orders for {user.email}, total {total}")
    for order in drafts:
        _announce_status(order)
    return {'processed': len(drafts), 'total': total}


# =============================================================================
# FULFILMENT (admin)
# =============================================================================

def _transition_item(order, item, new_status, admin, error=''):
    """Move one item and refund it if it failed on a paid order. Caller saves the order."""
    allowed = ITEM_TRANSITIONS.get(item.processing_status, ())
    if new_status not in allowed:
        raise ValidationError(f'Cannot move item from {item.processing_status} to {new_status}')

    item.processing_status = new_status
    if new_status in ('completed', 'failed'):
        item.processed_at = timezone.now()
    if new_status == 'failed':
        item.processing_error = error or 'Delivery failed'

    if new_status == 'failed' and order.is_paid and not item.refunded:
        wallet_service.credit_wallet(
            order.tenant,
            item.total_price,
            f'Refund for failed item on order {order.order_number}',
            related_order=order,
            transaction_type='refund',
            approved_by=admin,
            metadata={'order_item_id': item.pk, 'reason': item.processing_error},
        )
        item.refunded = True

    item.save()


def _after_processing(order, admin, previous_status):
    from .models import Order
    from . import commission_service

    order.processed_by = admin
    order.update_status_from_items(save=False)

    if order.is_paid and order.items.exclude(refunded=True).count() == 0:
        order.payment_status = Order.PaymentStatus.REFUNDED
    order.save()

    _announce_status(order)

    if order.status != previous_status:
        logger.info(f"Order {order.order_number}: {previous_status} -> {order.status}")
        if order.status in (Order.Status.COMPLETED, Order.Status.FAILED, Order.Status.PARTIALLY_COMPLETED):
            notification_service.notify_order_status(order, order.status)
        if order.status == Order.Status.COMPLETED:
            commission_service.update_commission_realtime(order)


def _require_processable(order):
    if not order.is_paid:
        raise ValidationError('Order has not been paid')
    if order.status in (order.Status.CANCELLED, order.Status.DRAFT, order.Status.PENDING_PAYMENT):
        raise ValidationError(f'Cannot process a {order.status} order')


def process_order_item(order_id, item_id, new_status, admin, error=''):
    """
    Advance one item: pending -> processing -> completed/failed.
    The order status is recomputed from all items afterwards.
    """
    from .models import Order

    with transaction.atomic():
        order = Order.objects.select_for_update().select_related('tenant', 'created_by').filter(pk=order_id).first()
        if order is None:
            raise NotFoundError('Order not found')
        _require_processable(order)

        item = order.items.filter(pk=item_id).first()
        if item is None:
            raise NotFoundError('Order item not found')

        previous_status = order.status
        _transition_item(order, item, new_status, admin, error)
        _after_processing(order, admin, previous_status)

    return order


def process_bulk_order(order_id, action, admin, error=''):
    """
    Apply one action to every open item of an order.

    Actions:
        process  - pending -> processing
        complete - pending/processing -> completed
        fail     - pending/processing -> failed (refunded)
    """
    from .models import Order

    if action not in ('process', 'complete', 'fail'):
        raise ValidationError(f'Unknown action: {action}')

    with transaction.atomic():
        order = Order.objects.select_for_update().select_related('tenant', 'created_by').filter(pk=order_id).first()
        if order is None:
            raise NotFoundError('Order not found')
        _require_processable(order)

        previous_status = order.status
        changed = 0
        for item in order.items.filter(processing_status__in=['pending', 'processing']):
            if item.processing_status == 'pending':
                _transition_item(order, item, 'processing', admin)
            if action != 'process':
                _transition_item(order, item, 'completed' if action == 'complete' else 'failed', admin, error)
            changed += 1

        if not changed:
            raise ValidationError('Order has no open items')
        _after_processing(order, admin, previous_status)

    logger.info(f"Bulk action '{action}' applied to {changed} items of {order.order_number} by {admin.email}")
    return order


def update_order_status(order_id, new_status, admin, notes=''):
    """
    Admin override of the order status.

    `failed` is only reached through item processing, which refunds each
    failed item. Cancelling a paid order refunds whatever is not yet refunded.
    """
    from .models import Order
    from . import commission_service

    if new_status not in Order.Status.values:
        raise ValidationError(f'Invalid status: {new_status}')
    if new_status == Order.Status.FAILED:
        raise ValidationError('Orders cannot be set to failed manually. Fail the items instead.')

    with transaction.atomic():
        order = Order.objects.select_for_update().filter(pk=order_id).first()
        if order is None:
            raise NotFoundError('Order not found')

        previous_status = order.status
        if new_status == Order.Status.CANCELLED and previous_status != Order.Status.CANCELLED:
            if order.is_paid:
                _refund_open_items(
                    order, f'Refund for cancelled order {order.order_number}', admin, notes or 'cancelled by admin'
                )
            order.items.filter(processing_status__in=['pending', 'processing']).update(processing_status='cancelled')

        order.status = new_status
        order.processed_by = admin
        if new_status == Order.Status.COMPLETED:
            order.completed_at = order.completed_at or timezone.now()
        if notes:
            order.notes = f"{order.notes}\n{notes}".strip()
        order.save()

    logger.info(f"Order {order.order_number} status set {previous_status} -> {new_status} by {admin.email}")
    _announce_status(order)
    if new_status != previous_status:
        notification_service.notify_order_status(order, new_status)
        if new_status == Order.Status.COMPLETED:
            commission_service.update_commission_realtime(order)
    return order


# =============================================================================
# CANCELLATION & REPORTS
# =============================================================================

def cancel_order(order_id, user, reason=''):
    """
    Cancel a draft, pending or confirmed order.

    Drafts are deleted outright (returns None). Paid orders are refunded to
    the wallet and their pending items cancelled.
    """
    from .models import Order

    with transaction.atomic():
        order = Order.objects.for_user(user).select_for_update().filter(pk=order_id).first()
        if order is None:
            raise NotFoundError('Order not found')
        if order.status not in Order.CANCELLABLE_STATUSES:
            raise ValidationError(f'Cannot cancel an order that is {order.status}')

        if order.status == Order.Status.DRAFT:
            number = order.order_number
            order.delete()
            logger.info(f"Draft order {number} deleted by {user.email}")
            return None

        # Storefront orders are paid from the agent's wallet at verification
        if order.is_paid:
            _refund_open_items(order, f'Refund for cancelled order {order.order_number}', reason=reason or 'cancelled')

        order.items.filter(processing_status='pending').update(processing_status='cancelled')
        order.status = Order.Status.CANCELLED
        if reason:
            order.notes = f"{order.notes}\nCancelled: {reason}".strip()
        order.save()

    logger.info(f"Order {order.order_number} cancelled by {user.email}")
    _announce_status(order)
    return order


def report_order(order_id, user, reason=''):
    """
    Customer says a completed order never arrived. Allowed within 2 hours
    of completion; admins are notified.
    """
    from .models import Order

    order = get_order(order_id, user)
    if order.status != Order.Status.COMPLETED:
        raise ValidationError('Only completed orders can be reported')
    if order.reported:
        raise ConflictError('Order has already been reported')

    completed_at = order.completed_at or order.updated_at
    if timezone.now() - completed_at > REPORT_WINDOW:
        raise ValidationError('Orders can only be reported within 2 hours of completion')

    order.reported = True
    order.reported_at = timezone.now()
    order.reception_status = Order.ReceptionStatus.NOT_RECEIVED
    order.report_reason = reason
    order.resolved_at = None
    order.save()

    logger.warning(f"Order {order.order_number} reported as not received by {user.email}")
    notification_service.notify_admins(
        'Order reported',
        f"Order {order.order_number} was reported as not received. {reason}".strip(),
        'warning',
        metadata={'type': 'order_reported', 'order_id': order.pk, 'order_number': order.order_number},
    )
    _announce_status(order)
    return order


def update_reception_status(order_id, reception_status, admin):
    """Admin follow-up on a delivery report."""
    from .models import Order

    if reception_status not in Order.ReceptionStatus.values:
        raise ValidationError(f'Invalid reception status: {reception_status}')

    order = Order.objects.filter(pk=order_id).select_related('tenant', 'created_by').first()
    if order is None:
        raise NotFoundError('Order not found')
    if order.status != Order.Status.COMPLETED:
        raise ValidationError('Reception status applies to completed orders only')

    order.reception_status = reception_status
    if reception_status == Order.ReceptionStatus.RESOLVED:
        order.resolved_at = timezone.now()
    order.processed_by = admin
    order.save()

    logger.info(f"Order {order.order_number} reception status -> {reception_status} by {admin.email}")
    notification_service.send_notification(
        order.created_by or order.tenant,
        f"Order {order.order_number} update",
        f"Delivery status of order {order.order_number}: {order.get_reception_status_display()}.",
        'success' if reception_status in ('received', 'resolved') else 'info',
        metadata={'type': 'order_update', 'order_id': order.pk},
        category='order_updates',
    )
    _announce_status(order)
    return order

"""
Storefront Service for BundleHub.

Business users run a public shop where customers pick bundles, pay the
agent directly (e.g. mobile money) and the agent confirms the payment.

Order flow:
1. Customer places order -> status pending_payment, total = agent's tier cost
2. Agent verifies payment -> wallet debited at tier cost, order pending/paid
3. Admin processes the order like any other
Rejecting an order refunds the agent if the wallet was already debited.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction
from django.db.models import Sum, Count, Q
from django.db.models.functions import Coalesce
from django.utils import timezone

from . import notification_service
from . import realtime
from . import wallet_service
from .codes import generate_order_number, save_order_with_retry
from .exceptions import (
    ValidationError, NotFoundError, PermissionDeniedError, ConflictError, InsufficientBalanceError,
)
from .order_service import ensure_site_open
from .pricing import resolve_price
from .user_types import is_business_user

logger = logging.getLogger('core.storefront')

TWO_PLACES = Decimal('0.01')


def _quantize(value):
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


# =============================================================================
# STOREFRONT MANAGEMENT (agent)
# =============================================================================

def create_storefront(user, data):
    """
    Create the user's storefront. Auto-approved when the site setting says so;
    super admins are told either way.
    """
    from .models import AgentStorefront, SiteSettings

    if not is_business_user(user.user_type):
        raise PermissionDeniedError('Only business accounts can open a storefront')
    if not user.is_active or user.status != user.Status.ACTIVE:
        raise PermissionDeniedError('Your account is not active')
    if AgentStorefront.objects.filter(agent=user).exists():
        raise ConflictError('You already have a storefront')

    business_name = data['business_name'].lower()
    if AgentStorefront.objects.filter(business_name=business_name).exists():
        raise ConflictError('That store name is already taken')

    auto_approve = SiteSettings.get_instance().auto_approve_storefronts
    storefront = AgentStorefront.objects.create(
        agent=user,
        business_name=business_name,
        display_name=data['display_name'],
        description=data.get('description', ''),
        contact_phone=data.get('contact_phone', ''),
        contact_email=data.get('contact_email', ''),
        contact_whatsapp=data.get('contact_whatsapp', ''),
        payment_methods=data.get('payment_methods') or [],
        is_approved=auto_approve,
        is_active=auto_approve,
        approved_at=timezone.now() if auto_approve else None,
    )

    logger.info(f"Storefront '{storefront.business_name}' created by {user.email} (auto-approved={auto_approve})")
    notification_service.notify_admins(
        'New storefront created',
        f"{user.display_name} created the storefront \"{storefront.display_name}\""
        f"{' (auto-approved)' if auto_approve else ' - awaiting approval'}",
        metadata={'type': 'storefront_created', 'storefront_id': storefront.pk},
        super_admins_only=True,
    )
    return storefront


def get_agent_storefront(user):
    from .models import AgentStorefront

    storefront = AgentStorefront.objects.filter(agent=user).first()
    if storefront is None:
        raise NotFoundError('You do not have a storefront yet')
    return storefront


UPDATABLE_FIELDS = (
    'display_name', 'description', 'contact_phone', 'contact_email',
    'contact_whatsapp', 'payment_methods',
)


def update_storefront(user, data):
    storefront = get_agent_storefront(user)
    for field in UPDATABLE_FIELDS:
        if field in data:
            setattr(storefront, field, data[field])
    storefront.save()
    logger.info(f"Storefront '{storefront.business_name}' updated by {user.email}")
    return storefront


def deactivate_storefront(user):
    storefront = get_agent_storefront(user)
    storefront.is_active = False
    storefront.save(update_fields=['is_active', 'updated_at'])
    logger.info(f"Storefront '{storefront.business_name}' deactivated by {user.email}")
    return storefront


def set_pricing(user, entries):
    """
    Set retail prices. Each entry: {'bundle_id', 'custom_price' (optional)}.
    Custom prices may not go below the agent's tier price.

    Returns:
        dict: {'created': int, 'updated': int}
    """
    from .models import Bundle, StorefrontPricing

    storefront = get_agent_storefront(user)
    results = {'created': 0, 'updated': 0}

    with transaction.atomic():
        for entry in entries:
            bundle = Bundle.objects.active().filter(pk=entry.get('bundle_id')).first()
            if bundle is None:
                raise NotFoundError(f"Bundle not available: {entry.get('bundle_id')}")

            tier_price = resolve_price(bundle, user.user_type)
            custom_price = entry.get('custom_price')
            has_custom_price = custom_price is not None
            final_price = _quantize(str(custom_price)) if has_custom_price else tier_price

            if final_price < tier_price:
                raise ValidationError(
                    f'Custom price cannot be less than tier price ({tier_price}) for bundle: {bundle.name}',
                    errors=[{'field': f'bundle_{bundle.pk}', 'message': f'Minimum price is {tier_price}'}]
                )

            markup = final_price - tier_price
            markup_percentage = _quantize(markup / tier_price * 100) if tier_price > 0 else Decimal('0.00')

            _, created = StorefrontPricing.objects.update_or_create(
                storefront=storefront,
                bundle=bundle,
                defaults={
                    'tier_price': tier_price,
                    'custom_price': final_price,
                    'markup': markup,
                    'markup_percentage': markup_percentage,
                    'has_custom_price': has_custom_price,
                    'is_active': True,
                }
            )
            results['created' if created else 'updated'] += 1

    logger.info(f"Pricing set for '{storefront.business_name}': {results}")
    return results


def toggle_bundles(user, updates):
    """
    Show or hide bundles in the store: [{'bundle_id', 'is_active'}].
    Bundles without a pricing row get one at tier price.
    """
    from .models import Bundle, StorefrontPricing

    storefront = get_agent_storefront(user)
    changed = 0
    for update in updates:
        bundle = Bundle.objects.alive().filter(pk=update.get('bundle_id')).first()
        if bundle is None:
            raise NotFoundError(f"Bundle not found: {update.get('bundle_id')}")
        tier_price = resolve_price(bundle, user.user_type)
        pricing, created = StorefrontPricing.objects.get_or_create(
            storefront=storefront,
            bundle=bundle,
            defaults={'tier_price': tier_price, 'custom_price': tier_price},
        )
        pricing.is_active = bool(update.get('is_active'))
        pricing.save(update_fields=['is_active', 'updated_at'])
        changed += 1
    return changed


def get_pricing(user):
    storefront = get_agent_storefront(user)
    return [p.to_dict() for p in storefront.pricing.select_related('bundle')]


# =============================================================================
# PUBLIC STORE
# =============================================================================

def get_public_storefront(business_name):
    from .models import AgentStorefront

    storefront = AgentStorefront.find_public(business_name)
    if storefront is None:
        raise NotFoundError('Storefront not found or not available')
    return storefront


def get_public_bundles(storefront):
    """
    Bundles the store sells with the customer price. Bundles without a
    pricing row are sold at the agent's tier price; disabled rows are hidden.
    """
    from .models import Bundle

    pricing = {p.bundle_id: p for p in storefront.pricing.all()}
    user_type = storefront.agent.user_type
    bundles = []
    for bundle in Bundle.objects.active().select_related('provider', 'package'):
        row = pricing.get(bundle.pk)
        if row is not None and not row.is_active:
            continue
        price = row.selling_price if row is not None else resolve_price(bundle, user_type)
        bundles.append({
            'id': bundle.pk,
            'name': bundle.name,
            'provider': bundle.provider.code,
            'package': bundle.package.name,
            'data_volume': str(bundle.data_volume),
            'data_unit': bundle.data_unit,
            'validity': bundle.validity if not bundle.is_unlimited else 'unlimited',
            'validity_unit': bundle.validity_unit,
            'price': str(price),
            'currency': bundle.currency,
        })
    return bundles


def create_storefront_order(business_name, items, customer, payment):
    """
    Public order from a storefront customer.

    Args:
        items: [{'bundle_id', 'quantity', 'customer_phone' (optional)}]
        customer: {'name', 'phone', 'email' (optional)}
        payment: {'type', 'reference' (optional)}
    """
    from .models import Bundle, Order, OrderItem, StorefrontPricing

    ensure_site_open()
    storefront = get_public_storefront(business_name)
    agent = storefront.agent

    lines = []
    for entry in items:
        quantity = int(entry.get('quantity') or 1)
        if quantity < 1:
            raise ValidationError('Quantity must be at least 1')
        row = StorefrontPricing.objects.filter(storefront=storefront, bundle_id=entry.get('bundle_id')).select_related('bundle').first()
        if row is not None:
            if not row.is_active or not row.bundle.is_active or row.bundle.is_deleted:
                raise ValidationError(f"Bundle not available in this store: {entry.get('bundle_id')}")
            bundle = row.bundle
            tier_price = row.tier_price
            customer_price = row.selling_price
        else:
            bundle = Bundle.objects.active().filter(pk=entry.get('bundle_id')).first()
            if bundle is None:
                raise ValidationError(f"Bundle not available in this store: {entry.get('bundle_id')}")
            tier_price = customer_price = resolve_price(bundle, agent.user_type)
        lines.append((bundle, quantity, entry.get('customer_phone') or customer['phone'], tier_price, customer_price))

    if not lines:
        raise ValidationError('Order has no items')

    tier_total = sum((tier * qty for _, qty, _, tier, _ in lines), Decimal('0.00'))
    customer_total = sum((price * qty for _, qty, _, _, price in lines), Decimal('0.00'))

    with transaction.atomic():
        order = Order(
            order_number=generate_order_number(),
            order_type=Order.OrderType.STOREFRONT,
            tenant=agent,
            created_by=agent,
            subtotal=tier_total,
            total=tier_total,
            status=Order.Status.PENDING_PAYMENT,
            payment_method=Order.PaymentMethod.STOREFRONT,
            storefront=storefront,
            customer_name=customer['name'],
            customer_phone=customer['phone'],
            customer_email=customer.get('email', ''),
            payment_type=payment.get('type', ''),
            payment_reference=payment.get('reference', ''),
            storefront_total=customer_total,
            storefront_markup=customer_total - tier_total,
            total_items=len(lines),
        )
        save_order_with_retry(order)
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                bundle=bundle,
                customer_phone=phone,
                quantity=qty,
                unit_price=tier,
                total_price=tier * qty,
                customer_unit_price=price,
            )
            for bundle, qty, phone, tier, price in lines
        ])

    logger.info(f"Storefront order {order.order_number} at '{storefront.business_name}' for {customer_total}")
    notification_service.send_notification(
        agent,
        'New storefront order',
        f"New order from {customer['name']} ({customer['phone']}) for {customer_total:,.2f}",
        'info',
        metadata={'type': 'storefront_order', 'order_id': order.pk, 'order_number': order.order_number},
        category='order_updates',
    )
    realtime.publish_to_user(agent.pk, 'order_created', order.to_dict(include_items=False))
    return order


# =============================================================================
# STOREFRONT ORDERS (agent)
# =============================================================================

def get_storefront_orders(user, status=None):
    from .models import Order

    storefront = get_agent_storefront(user)
    orders = Order.objects.filter(order_type=Order.OrderType.STOREFRONT, storefront=storefront)
    if status:
        orders = orders.filter(status=status)
    return orders


def _owned_storefront_order(order_id, user, lock=False):
    from .models import Order

    qs = Order.objects.select_related('storefront')
    if lock:
        qs = qs.select_for_update()
    order = qs.filter(pk=order_id, order_type=Order.OrderType.STOREFRONT).first()
    if order is None:
        raise NotFoundError('Order not found')
    if order.storefront is None or order.storefront.agent_id != user.pk:
        raise PermissionDeniedError('Not authorized to manage this order')
    return order


def verify_payment(order_id, user, notes=''):
    """
    Agent confirms the customer paid. The agent's wallet is charged the
    tier cost and the order enters the admin processing queue.
    """
    from .models import Order

    with transaction.atomic():
        order = _owned_storefront_order(order_id, user, lock=True)
        if order.payment_verified:
            raise ValidationError('Payment already verified for this order')
        if order.status == Order.Status.CANCELLED:
            raise ValidationError('Cannot verify a cancelled order')
        if order.status != Order.Status.PENDING_PAYMENT:
            raise ValidationError('Order is not awaiting payment verification')
        if order.total <= 0:
            raise ValidationError('Unable to calculate order cost')

        try:
            wallet_service.debit_wallet(
                user,
                order.total,
                f'Storefront order fulfillment (Order: {order.order_number})',
                related_order=order,
                transaction_type='order',
                metadata={'order_type': 'storefront', 'storefront_id': order.storefront_id},
            )
        except InsufficientBalanceError:
            raise InsufficientBalanceError(
                f'Insufficient wallet balance. You need {order.total:,.2f} to fulfill this order.'
            )

        order.payment_verified = True
        order.payment_verified_at = timezone.now()
        order.verification_notes = notes
        order.payment_status = Order.PaymentStatus.PAID
        order.status = Order.Status.PENDING
        order.save()

    logger.info(f"Storefront order {order.order_number} payment verified by {user.email}")
    notification_service.notify_admins(
        'Storefront order ready',
        f"Storefront order {order.order_number} payment verified. Ready for processing.",
        metadata={'type': 'storefront_order_verified', 'order_id': order.pk},
        super_admins_only=True,
    )
    realtime.publish_to_admins('order_created', order.to_dict(include_items=False))
    return order


def reject_order(order_id, user, reason=''):
    """Agent rejects a storefront order; refunds the wallet if already charged."""
    from .models import Order

    with transaction.atomic():
        order = _owned_storefront_order(order_id, user, lock=True)
        if order.status in (Order.Status.COMPLETED, Order.Status.PROCESSING, Order.Status.PARTIALLY_COMPLETED):
            raise ValidationError('Cannot reject an order that is already being processed')
        if order.status == Order.Status.CANCELLED:
            raise ValidationError('Order is already cancelled')

        if order.payment_verified and order.is_paid:
            wallet_service.credit_wallet(
                user,
                order.total,
                f'Refund for rejected storefront order (Order: {order.order_number})',
                related_order=order,
                transaction_type='refund',
                metadata={'order_type': 'storefront', 'reason': 'order_rejected'},
            )
            order.payment_status = Order.PaymentStatus.REFUNDED
            order.items.update(refunded=True)

        order.items.filter(processing_status='pending').update(processing_status='cancelled')
        order.status = Order.Status.CANCELLED
        order.verification_notes = reason
        order.save()

    logger.info(f"Storefront order {order.order_number} rejected by {user.email}")
    return order


# =============================================================================
# ADMIN
# =============================================================================

def _get_storefront(storefront_id):
    from .models import AgentStorefront

    storefront = AgentStorefront.objects.select_related('agent').filter(pk=storefront_id).first()
    if storefront is None:
        raise NotFoundError('Storefront not found')
    return storefront


def approve_storefront(storefront_id, admin):
    storefront = _get_storefront(storefront_id)
    storefront.is_approved = True
    storefront.is_active = True
    storefront.approved_at = timezone.now()
    storefront.approved_by = admin
    storefront.suspended_by_admin = False
    storefront.suspension_reason = ''
    storefront.save()

    logger.info(f"Storefront '{storefront.business_name}' approved by {admin.email}")
    notification_service.send_notification(
        storefront.agent,
        'Storefront approved',
        f"Your storefront \"{storefront.display_name}\" is now live.",
        'success',
        metadata={'type': 'storefront_approved', 'storefront_id': storefront.pk},
    )
    return storefront


def suspend_storefront(storefront_id, admin, reason=''):
    storefront = _get_storefront(storefront_id)
    storefront.suspended_by_admin = True
    storefront.suspended_at = timezone.now()
    storefront.suspension_reason = reason
    storefront.save()

    logger.warning(f"Storefront '{storefront.business_name}' suspended by {admin.email}: {reason}")
    notification_service.send_notification(
        storefront.agent,
        'Storefront suspended',
        f"Your storefront has been suspended.{' Reason: ' + reason if reason else ''}",
        'warning',
        metadata={'type': 'storefront_suspended', 'storefront_id': storefront.pk},
    )
    return storefront


def get_storefront_analytics(user):
    from .models import Order

    storefront = get_agent_storefront(user)
    zero = Decimal('0')
    stats = Order.objects.filter(storefront=storefront).aggregate(
        total_orders=Count('id'),
        completed_orders=Count('id', filter=Q(status='completed')),
        pending_payment=Count('id', filter=Q(status='pending_payment')),
        revenue=Coalesce(Sum('storefront_total', filter=Q(payment_status='paid')), zero),
        profit=Coalesce(Sum('storefront_markup', filter=Q(payment_status='paid')), zero),
    )
    return {key: str(value) if isinstance(value, Decimal) else value for key, value in stats.items()}

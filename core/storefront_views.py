"""
Storefront views for BundleHub.

Public: shop page, bundle list, placing an order (no token).
Agent: shop settings, pricing, incoming orders, payment verification.
Admin: list, approve, suspend.
"""

import logging

from django.conf import settings

from . import storefront_service
from .api import ApiView, BusinessRequiredMixin, AdminRequiredMixin, ok, created, validate, validated_form, paginate
from .models import AgentStorefront
from .storefront_forms import (
    StorefrontForm, StorefrontUpdateForm, PricingForm, ToggleBundlesForm, StorefrontOrderForm, NotesForm,
)

logger = logging.getLogger('core.storefront')


def _storefront_order_item(order):
    data = order.to_dict(include_items=False)
    data.update({
        'customer_name': order.customer_name,
        'customer_phone': order.customer_phone,
        'payment_type': order.payment_type,
        'payment_reference': order.payment_reference,
        'payment_verified': order.payment_verified,
        'storefront_total': str(order.storefront_total),
        'storefront_markup': str(order.storefront_markup),
    })
    return data


# =============================================================================
# PUBLIC
# =============================================================================

class PublicStorefrontView(ApiView):

    def get(self, request, business_name):
        storefront = storefront_service.get_public_storefront(business_name)
        data = storefront.to_dict()
        for key in ('is_active', 'is_approved', 'suspended_by_admin', 'suspension_reason'):
            data.pop(key)
        return ok(data)


class PublicStorefrontBundlesView(ApiView):

    def get(self, request, business_name):
        storefront = storefront_service.get_public_storefront(business_name)
        return ok(storefront_service.get_public_bundles(storefront))


class PublicStorefrontOrderView(ApiView):

    def post(self, request, business_name):
        data = validate(StorefrontOrderForm, self.data)
        order = storefront_service.create_storefront_order(
            business_name,
            data['items'],
            customer={
                'name': data['customer_name'],
                'phone': data['customer_phone'],
                'email': data['customer_email'],
            },
            payment={'type': data['payment_type'], 'reference': data['payment_reference']},
        )
        return created({
            'order_number': order.order_number,
            'status': order.status,
            'total': str(order.storefront_total),
            'currency': settings.CURRENCY,
        }, 'Order received. The seller will confirm your payment shortly.')


# =============================================================================
# AGENT
# =============================================================================

class MyStorefrontView(BusinessRequiredMixin, ApiView):

    def get(self, request):
        return ok(storefront_service.get_agent_storefront(request.user).to_dict())

    def post(self, request):
        data = validate(StorefrontForm, self.data)
        storefront = storefront_service.create_storefront(request.user, data)
        message = 'Storefront created' if storefront.is_approved else 'Storefront created and awaiting approval'
        return created(storefront.to_dict(), message)

    def put(self, request):
        form = validated_form(StorefrontUpdateForm, self.data)
        storefront = storefront_service.update_storefront(request.user, form.changed_values())
        return ok(storefront.to_dict(), 'Storefront updated')

    patch = put

    def delete(self, request):
        storefront = storefront_service.deactivate_storefront(request.user)
        return ok(storefront.to_dict(), 'Storefront deactivated')


class StorefrontPricingView(BusinessRequiredMixin, ApiView):

    def get(self, request):
        return ok(storefront_service.get_pricing(request.user))

    def put(self, request):
        data = validate(PricingForm, self.data)
        return ok(storefront_service.set_pricing(request.user, data['pricing']), 'Pricing updated')

    post = put


class ToggleBundlesView(BusinessRequiredMixin, ApiView):

    def post(self, request):
        data = validate(ToggleBundlesForm, self.data)
        changed = storefront_service.toggle_bundles(request.user, data['bundles'])
        return ok({'updated': changed})


class StorefrontOrdersView(BusinessRequiredMixin, ApiView):

    def get(self, request):
        orders = storefront_service.get_storefront_orders(request.user, request.GET.get('status'))
        return ok(paginate(request, orders.order_by('-created_at'), _storefront_order_item))


class VerifyPaymentView(BusinessRequiredMixin, ApiView):

    def post(self, request, pk):
        data = validate(NotesForm, self.data)
        order = storefront_service.verify_payment(pk, request.user, data['notes'])
        return ok(_storefront_order_item(order), 'Payment verified. The order is queued for processing.')


class RejectStorefrontOrderView(BusinessRequiredMixin, ApiView):

    def post(self, request, pk):
        data = validate(NotesForm, self.data)
        order = storefront_service.reject_order(pk, request.user, data['reason'])
        return ok(_storefront_order_item(order), 'Order rejected')


class StorefrontAnalyticsView(BusinessRequiredMixin, ApiView):

    def get(self, request):
        return ok(storefront_service.get_storefront_analytics(request.user))


# =============================================================================
# ADMIN
# =============================================================================

class AdminStorefrontListView(AdminRequiredMixin, ApiView):
    """?status=pending|active|suspended"""

    def get(self, request):
        qs = AgentStorefront.objects.select_related('agent').order_by('-created_at')
        status = request.GET.get('status')
        if status == 'pending':
            qs = qs.filter(is_approved=False)
        elif status == 'active':
            qs = qs.filter(is_approved=True, is_active=True, suspended_by_admin=False)
        elif status == 'suspended':
            qs = qs.filter(suspended_by_admin=True)
        return ok(paginate(request, qs, AgentStorefront.to_dict))


class ApproveStorefrontView(AdminRequiredMixin, ApiView):

    def post(self, request, pk):
        storefront = storefront_service.approve_storefront(pk, request.user)
        return ok(storefront.to_dict(), 'Storefront approved')


class SuspendStorefrontView(AdminRequiredMixin, ApiView):

    def post(self, request, pk):
        data = validate(NotesForm, self.data)
        storefront = storefront_service.suspend_storefront(pk, request.user, data['reason'])
        return ok(storefront.to_dict(), 'Storefront suspended')

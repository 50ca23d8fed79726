"""
Order views for BundleHub.

Handles:
- Placing single and bulk orders, paying drafts
- Listing / detail (tenant-scoped; admins see everything)
- Cancel and report (owners), processing and status changes (admins)
"""

import logging

from . import order_service
from .api import ApiView, TokenRequiredMixin, BusinessRequiredMixin, AdminRequiredMixin, ok, created, validate, paginate
from .models import Order
from .order_forms import (
    SingleOrderForm, BulkOrderForm, ProcessItemForm, BulkProcessForm,
    OrderStatusForm, ReasonForm, ReceptionStatusForm,
)

logger = logging.getLogger('core.orders')


def _order_list_item(order):
    return order.to_dict(include_items=False)


def _placed_message(order):
    if order.status == Order.Status.DRAFT:
        return 'Order saved as draft. Top up your wallet to process it.'
    return 'Order placed successfully'


# =============================================================================
# PLACING ORDERS
# =============================================================================

class SingleOrderView(BusinessRequiredMixin, ApiView):

    def post(self, request):
        data = validate(SingleOrderForm, self.data)
        order = order_service.create_single_order(
            request.user,
            data['bundle_id'],
            data['customer_phone'],
            data['quantity'],
            data['notes'],
            force_override=data['force_override'],
        )
        return created(order.to_dict(), _placed_message(order))


class BulkOrderView(BusinessRequiredMixin, ApiView):

    def post(self, request):
        data = validate(BulkOrderForm, self.data)
        order = order_service.create_bulk_order(
            request.user, data['package_id'], data['rows'], data['notes'], force_override=data['force_override']
        )
        return created(order.to_dict(), _placed_message(order))


class ProcessDraftsView(BusinessRequiredMixin, ApiView):

    def post(self, request):
        result = order_service.process_draft_orders(request.user)
        return ok(result, f"{result['processed']} draft orders processed")


# =============================================================================
# LISTING
# =============================================================================

class OrderListView(TokenRequiredMixin, ApiView):
    """
    Filters: ?status=, ?order_type=, ?payment_status=, ?search=,
    ?start_date=, ?end_date=; admins may also pass ?tenant_id=.
    """

    def get(self, request):
        orders = Order.objects.for_user(request.user).select_related('tenant', 'created_by')
        orders = order_service.filter_orders(orders, request.GET)
        if request.user.is_admin and request.GET.get('tenant_id'):
            orders = orders.for_tenant(request.GET['tenant_id'])
        return ok(paginate(request, orders.order_by('-created_at'), _order_list_item))


class OrderDetailView(TokenRequiredMixin, ApiView):

    def get(self, request, pk):
        return ok(order_service.get_order(pk, request.user).to_dict())


class ReportedOrderListView(AdminRequiredMixin, ApiView):

    def get(self, request):
        orders = Order.objects.reported().select_related('tenant', 'created_by')
        if request.GET.get('reception_status'):
            orders = orders.filter(reception_status=request.GET['reception_status'])
        return ok(paginate(request, orders.order_by('-reported_at'), _order_list_item))


# =============================================================================
# OWNER ACTIONS
# =============================================================================

class CancelOrderView(TokenRequiredMixin, ApiView):
    """Drafts are deleted; paid orders are refunded."""

    def post(self, request, pk):
        data = validate(ReasonForm, self.data)
        order = order_service.cancel_order(pk, request.user, data['reason'])
        if order is None:
            return ok(message='Draft order deleted')
        return ok(order.to_dict(), 'Order cancelled')


class ReportOrderView(TokenRequiredMixin, ApiView):

    def post(self, request, pk):
        data = validate(ReasonForm, self.data)
        order = order_service.report_order(pk, request.user, data['reason'])
        return ok(order.to_dict(include_items=False), 'Order reported. An admin will look into it.')


# =============================================================================
# ADMIN PROCESSING
# =============================================================================

class ProcessOrderItemView(AdminRequiredMixin, ApiView):

    def post(self, request, pk, item_id):
        data = validate(ProcessItemForm, self.data)
        order = order_service.process_order_item(pk, item_id, data['status'], request.user, data['error'])
        return ok(order.to_dict(), 'Item updated')


class ProcessBulkOrderView(AdminRequiredMixin, ApiView):

    def post(self, request, pk):
        data = validate(BulkProcessForm, self.data)
        order = order_service.process_bulk_order(pk, data['action'], request.user, data['error'])
        return ok(order.to_dict(), 'Order updated')


class OrderStatusView(AdminRequiredMixin, ApiView):

    def put(self, request, pk):
        data = validate(OrderStatusForm, self.data)
        order = order_service.update_order_status(pk, data['status'], request.user, data['notes'])
        return ok(order.to_dict(include_items=False), 'Order status updated')

    patch = put


class ReceptionStatusView(AdminRequiredMixin, ApiView):

    def put(self, request, pk):
        data = validate(ReceptionStatusForm, self.data)
        order = order_service.update_reception_status(pk, data['reception_status'], request.user)
        return ok(order.to_dict(include_items=False), 'Reception status updated')

    patch = put

"""
Wallet views for BundleHub.

Business users: balance, history, top-up requests, analytics.
Admins: manual credit/debit, pending top-up queue, approvals, ledger.
"""

import logging
from datetime import timedelta

from django.utils import timezone

from . import wallet_service, services
from .api import ApiView, BusinessRequiredMixin, AdminRequiredMixin, ok, created, validate, paginate
from .models import WalletTransaction
from .wallet_forms import TopUpRequestForm, AdminWalletForm, ProcessTopUpForm, DateRangeForm

logger = logging.getLogger('core.wallet')


def _transaction_item(txn):
    data = txn.to_dict()
    data['user'] = {'id': txn.user_id, 'email': txn.user.email, 'name': txn.user.display_name}
    return data


class WalletInfoView(BusinessRequiredMixin, ApiView):

    def get(self, request):
        return ok(wallet_service.get_wallet_info(request.user))


class WalletTransactionsView(BusinessRequiredMixin, ApiView):
    """?type=, ?status=, ?start_date=, ?end_date="""

    def get(self, request):
        qs = WalletTransaction.objects.for_user(request.user).order_by('-created_at')
        qs = wallet_service.filter_transactions(qs, {k: v for k, v in request.GET.items() if k != 'user_id'})
        return ok(paginate(request, qs, WalletTransaction.to_dict))


class PendingTopUpView(BusinessRequiredMixin, ApiView):

    def get(self, request):
        pending = wallet_service.get_pending_top_up(request.user)
        return ok({'has_pending': pending is not None, 'request': pending.to_dict() if pending else None})


class TopUpRequestView(BusinessRequiredMixin, ApiView):

    def post(self, request):
        data = validate(TopUpRequestForm, self.data)
        txn = wallet_service.create_top_up_request(request.user, data['amount'], data['description'])
        return created(txn.to_dict(), 'Top-up request submitted. An admin will review it shortly.')


class WalletAnalyticsView(BusinessRequiredMixin, ApiView):
    """Defaults to the last 30 days."""

    def get(self, request):
        data = validate(DateRangeForm, request.GET)
        end_date = data['end_date'] or timezone.localdate()
        start_date = data['start_date'] or end_date - timedelta(days=30)
        return ok(wallet_service.get_wallet_analytics(request.user, start_date, end_date))


# =============================================================================
# ADMIN
# =============================================================================

class AdminWalletAdjustView(AdminRequiredMixin, ApiView):
    direction = None

    def post(self, request):
        data = validate(AdminWalletForm, self.data)
        user = services.get_user(data['user_id'])
        txn = wallet_service.admin_adjust(user, data['amount'], self.direction, data['description'], request.user)
        return ok(
            {'transaction': txn.to_dict(), 'balance': str(user.wallet_balance)},
            f"Wallet {'credited' if self.direction == 'credit' else 'debited'}"
        )


class AdminTopUpView(AdminWalletAdjustView):
    direction = 'credit'


class AdminDebitView(AdminWalletAdjustView):
    direction = 'debit'


class PendingRequestsView(AdminRequiredMixin, ApiView):

    def get(self, request):
        qs = WalletTransaction.objects.pending_top_ups().select_related('user').order_by('created_at')
        return ok(paginate(request, qs, _transaction_item))


class ProcessTopUpView(AdminRequiredMixin, ApiView):

    def post(self, request, pk):
        data = validate(ProcessTopUpForm, self.data)
        approve = data['action'] == 'approve'
        txn = wallet_service.process_top_up_request(pk, approve, request.user, data['notes'])
        return ok(txn.to_dict(), 'Top-up approved' if approve else 'Top-up rejected')


class AdminTransactionsView(AdminRequiredMixin, ApiView):
    """Platform ledger; ?user_id= narrows it to one account."""

    def get(self, request):
        qs = WalletTransaction.objects.select_related('user').order_by('-created_at')
        qs = wallet_service.filter_transactions(qs, request.GET)
        return ok(paginate(request, qs, _transaction_item))

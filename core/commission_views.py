"""
Commission views for BundleHub.

Business users see their own records; admins list, pay and reject
records and can trigger the daily/monthly jobs by hand.
"""

import logging

from . import commission_service, services
from .admin_forms import (
    CalculateCommissionForm, CommissionPayForm, CommissionRejectForm,
    CommissionBatchForm, GenerateDailyForm, FinalizeMonthForm,
)
from .api import ApiView, TokenRequiredMixin, BusinessRequiredMixin, AdminRequiredMixin, ok, validate, paginate
from .exceptions import ValidationError
from .models import CommissionRecord

logger = logging.getLogger('core.commissions')


class CommissionListView(AdminRequiredMixin, ApiView):
    """
    ?status=, ?period=, ?agent_id=, ?is_final=true|false
    """

    def get(self, request):
        qs = CommissionRecord.objects.select_related('agent').order_by('-period_start', '-created_at')
        qs = commission_service.filter_commissions(qs, request.GET)
        data = paginate(request, qs, CommissionRecord.to_dict)
        data['statistics'] = commission_service.get_statistics(qs)
        return ok(data)


class MyCommissionsView(BusinessRequiredMixin, ApiView):

    def get(self, request):
        qs = CommissionRecord.objects.filter(agent=request.user).order_by('-period_start', '-created_at')
        qs = commission_service.filter_commissions(qs, {k: v for k, v in request.GET.items() if k != 'agent_id'})
        data = paginate(request, qs, CommissionRecord.to_dict)
        data['statistics'] = commission_service.get_statistics(qs)
        return ok(data)


class CalculateCommissionView(TokenRequiredMixin, ApiView):
    """
    Preview the commission for a date range without saving anything.
    Business users always get their own; admins pass agent_id.
    """

    def post(self, request):
        data = validate(CalculateCommissionForm, self.data)
        if request.user.is_admin:
            if not data['agent_id']:
                raise ValidationError(errors=[{'field': 'agent_id', 'message': 'This field is required.'}])
            agent = services.get_user(data['agent_id'])
        else:
            agent = request.user

        start, _ = commission_service.day_bounds(data['start_date'])
        _, end = commission_service.day_bounds(data['end_date'])
        values = commission_service.calculate_commission(agent, start, end)
        return ok({
            'agent_id': agent.pk,
            'start_date': data['start_date'].isoformat(),
            'end_date': data['end_date'].isoformat(),
            'total_orders': values['total_orders'],
            'total_revenue': str(values['total_revenue']),
            'commission_rate': str(values['commission_rate']),
            'amount': str(values['amount']),
        })


class PayCommissionView(AdminRequiredMixin, ApiView):

    def post(self, request, pk):
        data = validate(CommissionPayForm, self.data)
        record = commission_service.pay_commission(pk, request.user, data['payment_reference'])
        return ok(record.to_dict(), 'Commission paid')


class PayMultipleView(AdminRequiredMixin, ApiView):

    def post(self, request):
        data = validate(CommissionBatchForm, self.data)
        result = commission_service.pay_multiple(data['ids'], request.user, data['payment_reference'])
        return ok(result, f"{len(result['succeeded'])} paid, {len(result['failed'])} failed")


class RejectCommissionView(AdminRequiredMixin, ApiView):

    def post(self, request, pk):
        data = validate(CommissionRejectForm, self.data)
        record = commission_service.reject_commission(pk, request.user, data['reason'])
        return ok(record.to_dict(), 'Commission rejected')


class RejectMultipleView(AdminRequiredMixin, ApiView):

    def post(self, request):
        data = validate(CommissionBatchForm, self.data)
        result = commission_service.reject_multiple(data['ids'], request.user, data['reason'])
        return ok(result, f"{len(result['succeeded'])} rejected, {len(result['failed'])} failed")


class GenerateDailyView(AdminRequiredMixin, ApiView):

    def post(self, request):
        data = validate(GenerateDailyForm, self.data)
        summary = commission_service.generate_daily_commissions(data['date'])
        logger.info(f"Daily commissions triggered by {request.user.email}")
        return ok(summary)


class FinalizeMonthView(AdminRequiredMixin, ApiView):

    def post(self, request):
        data = validate(FinalizeMonthForm, self.data)
        summary = commission_service.finalize_month_commissions(data['year'], data['month'])
        logger.info(f"Month finalization triggered by {request.user.email}")
        return ok(summary)


class CommissionStatisticsView(TokenRequiredMixin, ApiView):

    def get(self, request):
        qs = CommissionRecord.objects.all()
        if not request.user.is_admin:
            qs = qs.filter(agent_id=request.user.tenant_id_for_scope())
        elif request.GET.get('agent_id'):
            qs = qs.filter(agent_id=request.GET['agent_id'])
        return ok(commission_service.get_statistics(qs))


class CommissionRatesView(TokenRequiredMixin, ApiView):
    """Read-only for everyone; admins change rates under /api/settings/."""

    def get(self, request):
        return ok(commission_service.get_commission_rates())

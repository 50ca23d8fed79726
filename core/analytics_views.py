"""
Analytics views for BundleHub dashboards.
"""

from . import analytics_service
from .api import ApiView, TokenRequiredMixin, AdminRequiredMixin, ok


def _days(request, default=30):
    try:
        days = int(request.GET.get('days', default))
    except ValueError:
        return default
    return min(max(days, 1), 365)


class AgentAnalyticsView(TokenRequiredMixin, ApiView):

    def get(self, request):
        return ok(analytics_service.get_agent_analytics(request.user, _days(request)))


class AdminSummaryView(AdminRequiredMixin, ApiView):

    def get(self, request):
        return ok(analytics_service.get_admin_summary())


class RevenueChartView(TokenRequiredMixin, ApiView):
    """Admins get the platform series, everyone else their own."""

    def get(self, request):
        user = None if request.user.is_admin else request.user
        return ok(analytics_service.get_revenue_chart(user, _days(request)))

"""
Site settings views for BundleHub.

The site status is readable by anyone (the client shows a banner when
ordering is closed); everything else is admin-only.
"""

from . import settings_service, commission_service
from .api import ApiView, AdminRequiredMixin, SuperAdminRequiredMixin, ok, validate
from .user_types import SUPER_ADMIN
from .admin_forms import (
    SiteStatusForm, SignupApprovalForm, StorefrontApprovalForm,
    CommissionRatesForm, WalletSettingsForm, ApiSettingsForm,
)


class SettingsView(AdminRequiredMixin, ApiView):

    def get(self, request):
        return ok(settings_service.get_settings(include_api=request.user.user_type == SUPER_ADMIN))


class SiteStatusView(ApiView):

    def get(self, request):
        return ok(settings_service.get_site_status())


class SiteStatusToggleView(AdminRequiredMixin, ApiView):

    def post(self, request):
        data = validate(SiteStatusForm, self.data)
        status = settings_service.toggle_site_status(
            request.user,
            is_open=data['is_open'],
            custom_message=data['custom_message'] if 'custom_message' in self.data else None,
        )
        return ok(status, 'Site is now open' if status['is_site_open'] else 'Site is now closed')


class SignupApprovalView(AdminRequiredMixin, ApiView):

    def put(self, request):
        data = validate(SignupApprovalForm, self.data)
        value = settings_service.set_signup_approval(data['require_approval'])
        return ok({'require_approval_for_signup': value})


class StorefrontApprovalSettingView(AdminRequiredMixin, ApiView):

    def put(self, request):
        data = validate(StorefrontApprovalForm, self.data)
        value = settings_service.set_storefront_auto_approval(data['auto_approve'])
        return ok({'auto_approve_storefronts': value})


class CommissionRatesSettingView(AdminRequiredMixin, ApiView):

    def get(self, request):
        return ok(commission_service.get_commission_rates())

    def put(self, request):
        data = validate(CommissionRatesForm, self.data)
        return ok(commission_service.update_commission_rates(data['rates']), 'Commission rates updated')


class WalletSettingsView(AdminRequiredMixin, ApiView):

    def get(self, request):
        return ok(settings_service.get_wallet_settings())

    def put(self, request):
        data = validate(WalletSettingsForm, self.data)
        return ok(settings_service.update_wallet_settings(data['minimum_top_up_amounts']), 'Wallet settings updated')


class ApiSettingsView(SuperAdminRequiredMixin, ApiView):

    def get(self, request):
        return ok(settings_service.get_settings(include_api=True))

    def put(self, request):
        data = validate(ApiSettingsForm, self.data)
        result = settings_service.update_api_settings(
            api_endpoint=data['api_endpoint'] if 'api_endpoint' in self.data else None,
            api_keys=data['api_keys'],
        )
        return ok(result, 'API settings updated')

"""
Admin and account-settings forms for BundleHub.

Forms include:
- Site settings: status, signup approval, rates, wallet minimums, provider API
- Commission actions: calculate, pay, reject, generate, finalize
- AnnouncementForm
- Notification preferences and push subscriptions
"""

from django import forms

from .models import Announcement
from .user_types import ALL_USER_TYPES


def _clean_mapping(value, name):
    if not isinstance(value, dict) or not value:
        raise forms.ValidationError(f'{name} must be a non-empty object.')
    return value


# =============================================================================
# SITE SETTINGS
# =============================================================================

class SiteStatusForm(forms.Form):
    """Omit is_open to flip the current state."""

    is_open = forms.NullBooleanField(required=False)
    custom_message = forms.CharField(max_length=255, required=False)


class SignupApprovalForm(forms.Form):
    require_approval = forms.BooleanField(required=False)


class StorefrontApprovalForm(forms.Form):
    auto_approve = forms.BooleanField(required=False)


class CommissionRatesForm(forms.Form):
    rates = forms.JSONField()

    def clean_rates(self):
        return _clean_mapping(self.cleaned_data.get('rates'), 'Rates')


class WalletSettingsForm(forms.Form):
    minimum_top_up_amounts = forms.JSONField()

    def clean_minimum_top_up_amounts(self):
        return _clean_mapping(self.cleaned_data.get('minimum_top_up_amounts'), 'Minimum amounts')


class ApiSettingsForm(forms.Form):
    api_endpoint = forms.URLField(required=False)
    api_keys = forms.JSONField(required=False)

    def clean_api_keys(self):
        keys = self.cleaned_data.get('api_keys')
        if keys is None:
            return None
        if not isinstance(keys, dict) or not all(isinstance(v, str) for v in keys.values()):
            raise forms.ValidationError('API keys must map provider codes to strings.')
        return keys


# =============================================================================
# COMMISSIONS
# =============================================================================

class CalculateCommissionForm(forms.Form):
    agent_id = forms.IntegerField(min_value=1, required=False)
    start_date = forms.DateField()
    end_date = forms.DateField()

    def clean(self):
        cleaned_data = super().clean()
        start, end = cleaned_data.get('start_date'), cleaned_data.get('end_date')
        if start and end and start > end:
            raise forms.ValidationError('Start date must be before end date.')
        return cleaned_data


class CommissionPayForm(forms.Form):
    payment_reference = forms.CharField(max_length=100, required=False)


class CommissionRejectForm(forms.Form):
    reason = forms.CharField(max_length=500, required=False)


class CommissionBatchForm(forms.Form):
    ids = forms.JSONField()
    payment_reference = forms.CharField(max_length=100, required=False)
    reason = forms.CharField(max_length=500, required=False)

    def clean_ids(self):
        ids = self.cleaned_data.get('ids')
        if not isinstance(ids, list) or not ids:
            raise forms.ValidationError('Provide a non-empty list of commission ids.')
        if not all(isinstance(i, int) and not isinstance(i, bool) for i in ids):
            raise forms.ValidationError('Commission ids must be integers.')
        return ids


class GenerateDailyForm(forms.Form):
    date = forms.DateField(required=False)


class FinalizeMonthForm(forms.Form):
    year = forms.IntegerField(min_value=2020, max_value=2100, required=False)
    month = forms.IntegerField(min_value=1, max_value=12, required=False)

    def clean(self):
        cleaned_data = super().clean()
        if (cleaned_data.get('year') is None) != (cleaned_data.get('month') is None):
            raise forms.ValidationError('Provide both year and month, or neither.')
        return cleaned_data


# =============================================================================
# ANNOUNCEMENTS
# =============================================================================

class AnnouncementForm(forms.ModelForm):

    class Meta:
        model = Announcement
        fields = [
            'title',
            'message',
            'announcement_type',
            'priority',
            'target_audience',
            'status',
            'expires_at',
            'action_url',
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Model defaults apply when omitted
        for name in ('announcement_type', 'priority', 'status'):
            self.fields[name].required = False

    def clean(self):
        cleaned_data = super().clean()
        for name in ('announcement_type', 'priority', 'status'):
            if not cleaned_data.get(name):
                cleaned_data.pop(name, None)
        return cleaned_data

    def clean_target_audience(self):
        audience = self.cleaned_data.get('target_audience') or []
        if not isinstance(audience, list):
            raise forms.ValidationError('Target audience must be a list of user types.')
        unknown = [role for role in audience if role not in ALL_USER_TYPES]
        if unknown:
            raise forms.ValidationError(f"Unknown user type: {', '.join(map(str, unknown))}")
        return audience


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class NotificationPreferenceForm(forms.Form):
    """Partial update of the per-category switches."""

    push_enabled = forms.NullBooleanField(required=False)
    order_updates = forms.NullBooleanField(required=False)
    wallet_updates = forms.NullBooleanField(required=False)
    commission_updates = forms.NullBooleanField(required=False)
    announcements = forms.NullBooleanField(required=False)

    def changed_values(self):
        return {key: value for key, value in self.cleaned_data.items() if value is not None}


class PushSubscriptionForm(forms.Form):
    endpoint = forms.URLField(max_length=2000)
    keys = forms.JSONField(required=False)

    def clean_keys(self):
        keys = self.cleaned_data.get('keys') or {}
        if not isinstance(keys, dict):
            raise forms.ValidationError('Keys must be an object.')
        return keys


class PushUnsubscribeForm(forms.Form):
    endpoint = forms.URLField(max_length=2000, required=False)

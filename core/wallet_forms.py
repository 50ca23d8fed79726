"""
Wallet forms for BundleHub.
"""

from decimal import Decimal

from django import forms


class TopUpRequestForm(forms.Form):
    amount = forms.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    description = forms.CharField(max_length=255, required=False)


class AdminWalletForm(forms.Form):
    """Manual credit/debit of a business user's wallet."""

    user_id = forms.IntegerField(min_value=1)
    amount = forms.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    description = forms.CharField(max_length=255, required=False)


class ProcessTopUpForm(forms.Form):
    action = forms.ChoiceField(choices=[('approve', 'Approve'), ('reject', 'Reject')])
    notes = forms.CharField(max_length=500, required=False)


class DateRangeForm(forms.Form):
    start_date = forms.DateField(required=False)
    end_date = forms.DateField(required=False)

    def clean(self):
        cleaned_data = super().clean()
        start, end = cleaned_data.get('start_date'), cleaned_data.get('end_date')
        if start and end and start > end:
            raise forms.ValidationError('Start date must be before end date.')
        return cleaned_data

"""
Storefront forms for BundleHub.

Forms include:
- StorefrontForm / StorefrontUpdateForm: Agent shop settings
- PricingForm / ToggleBundlesForm: Retail prices and visibility
- StorefrontOrderForm: Public customer order (honeypot protected)
"""

from django import forms
from django.core.validators import RegexValidator

from .auth_forms import HoneypotMixin
from .models import phone_validator

business_name_validator = RegexValidator(
    regex=r'^[a-z0-9_-]+$',
    message='Use lowercase letters, numbers, hyphens and underscores only'
)

PAYMENT_METHODS = ('momo', 'bank_transfer', 'cash')


def _clean_payment_methods(value):
    if value in (None, ''):
        return []
    if not isinstance(value, list) or not all(isinstance(m, str) for m in value):
        raise forms.ValidationError('Payment methods must be a list of names.')
    unknown = [m for m in value if m not in PAYMENT_METHODS]
    if unknown:
        raise forms.ValidationError(f"Unknown payment method: {', '.join(unknown)}")
    return value


class StorefrontForm(forms.Form):
    business_name = forms.CharField(min_length=3, max_length=50, validators=[business_name_validator])
    display_name = forms.CharField(max_length=100)
    description = forms.CharField(max_length=1000, required=False)
    contact_phone = forms.CharField(max_length=20, required=False, validators=[phone_validator])
    contact_email = forms.EmailField(required=False)
    contact_whatsapp = forms.CharField(max_length=20, required=False, validators=[phone_validator])
    payment_methods = forms.JSONField(required=False)

    def clean_business_name(self):
        return self.cleaned_data['business_name'].lower()

    def clean_payment_methods(self):
        return _clean_payment_methods(self.cleaned_data.get('payment_methods'))


class StorefrontUpdateForm(forms.Form):
    """Partial update; business_name cannot change."""

    display_name = forms.CharField(max_length=100, required=False)
    description = forms.CharField(max_length=1000, required=False)
    contact_phone = forms.CharField(max_length=20, required=False, validators=[phone_validator])
    contact_email = forms.EmailField(required=False)
    contact_whatsapp = forms.CharField(max_length=20, required=False, validators=[phone_validator])
    payment_methods = forms.JSONField(required=False)

    def clean_payment_methods(self):
        return _clean_payment_methods(self.cleaned_data.get('payment_methods'))

    def changed_values(self):
        return {key: value for key, value in self.cleaned_data.items() if key in self.data}


def _positive_int(value, label, maximum=None):
    if isinstance(value, bool):
        raise forms.ValidationError(f'{label} must be a whole number.')
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise forms.ValidationError(f'{label} must be a whole number.')
    if number < 1:
        raise forms.ValidationError(f'{label} must be at least 1.')
    if maximum is not None and number > maximum:
        raise forms.ValidationError(f'{label} can be at most {maximum}.')
    return number


def _clean_entries(value, required_keys):
    if not isinstance(value, list) or not value:
        raise forms.ValidationError('Expected a non-empty list.')
    for index, entry in enumerate(value):
        if not isinstance(entry, dict):
            raise forms.ValidationError(f'Entry {index + 1} must be an object.')
        missing = [key for key in required_keys if entry.get(key) in (None, '')]
        if missing:
            raise forms.ValidationError(f"Entry {index + 1} is missing {', '.join(missing)}.")
        entry['bundle_id'] = _positive_int(entry['bundle_id'], f'Entry {index + 1} bundle_id')
    return value


class PricingForm(forms.Form):
    """[{'bundle_id': 3, 'custom_price': 12.5}, ...]; custom_price optional."""

    pricing = forms.JSONField()

    def clean_pricing(self):
        entries = _clean_entries(self.cleaned_data.get('pricing'), ['bundle_id'])
        for entry in entries:
            price = entry.get('custom_price')
            if price is not None and (isinstance(price, bool) or not isinstance(price, (int, float, str))):
                raise forms.ValidationError('custom_price must be a number.')
        return entries


class ToggleBundlesForm(forms.Form):
    bundles = forms.JSONField()

    def clean_bundles(self):
        return _clean_entries(self.cleaned_data.get('bundles'), ['bundle_id'])


class StorefrontOrderForm(HoneypotMixin, forms.Form):
    items = forms.JSONField()
    customer_name = forms.CharField(max_length=150)
    customer_phone = forms.CharField(max_length=20, validators=[phone_validator])
    customer_email = forms.EmailField(required=False)
    payment_type = forms.ChoiceField(choices=[(m, m) for m in PAYMENT_METHODS], required=False)
    payment_reference = forms.CharField(max_length=100, required=False)

    def clean_items(self):
        items = _clean_entries(self.cleaned_data.get('items'), ['bundle_id'])
        if len(items) > 50:
            raise forms.ValidationError('An order can have at most 50 items.')
        for index, item in enumerate(items, start=1):
            quantity = item.get('quantity')
            item['quantity'] = 1 if quantity in (None, '') else _positive_int(quantity, f'Entry {index} quantity', 100)
            phone = item.get('customer_phone')
            if phone:
                phone_validator(phone)
        return items


class NotesForm(forms.Form):
    notes = forms.CharField(max_length=500, required=False)
    reason = forms.CharField(max_length=500, required=False)

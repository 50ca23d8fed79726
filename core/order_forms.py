"""
Order forms for BundleHub.

Forms include:
- SingleOrderForm: One bundle for one recipient
- BulkOrderForm: Many "phone,volume" rows against a package
- ProcessItemForm / BulkProcessForm / OrderStatusForm: Admin processing
- ReasonForm / ReceptionStatusForm: Cancel, report, reception tracking
"""

from django import forms

from .models import Order, OrderItem, phone_validator


class SingleOrderForm(forms.Form):
    bundle_id = forms.IntegerField(min_value=1)
    customer_phone = forms.CharField(max_length=20, validators=[phone_validator])
    quantity = forms.IntegerField(min_value=1, max_value=100, required=False)
    notes = forms.CharField(max_length=500, required=False)
    force_override = forms.BooleanField(required=False)

    def clean_quantity(self):
        return self.cleaned_data.get('quantity') or 1


class BulkOrderForm(forms.Form):
    """
    `rows` is either the raw upload text (one "phone,volume" per line)
    or a list of such strings / {customer_phone, volume} objects.
    """

    package_id = forms.IntegerField(min_value=1)
    rows = forms.Field()
    notes = forms.CharField(max_length=500, required=False)
    force_override = forms.BooleanField(required=False)

    def clean_rows(self):
        rows = self.cleaned_data.get('rows')
        if isinstance(rows, str):
            if not rows.strip():
                raise forms.ValidationError('No order rows provided.')
            return rows
        if not isinstance(rows, list) or not rows:
            raise forms.ValidationError('Rows must be text or a non-empty list.')
        if len(rows) > 1000:
            raise forms.ValidationError('A bulk order can have at most 1000 rows.')

        lines = []
        for row in rows:
            if isinstance(row, dict):
                row = f"{row.get('customer_phone', '')},{row.get('volume', '')}"
            elif not isinstance(row, str):
                raise forms.ValidationError('Each row must be text or an object.')
            lines.append(row)
        return lines


class ProcessItemForm(forms.Form):
    status = forms.ChoiceField(choices=[
        (OrderItem.ProcessingStatus.PROCESSING, 'Processing'),
        (OrderItem.ProcessingStatus.COMPLETED, 'Completed'),
        (OrderItem.ProcessingStatus.FAILED, 'Failed'),
    ])
    error = forms.CharField(max_length=500, required=False)

    def clean(self):
        cleaned_data = super().clean()
        if cleaned_data.get('status') == OrderItem.ProcessingStatus.FAILED and not cleaned_data.get('error'):
            cleaned_data['error'] = 'Processing failed'
        return cleaned_data


class BulkProcessForm(forms.Form):
    action = forms.ChoiceField(choices=[
        ('process', 'Start processing'),
        ('complete', 'Mark completed'),
        ('fail', 'Mark failed'),
    ])
    error = forms.CharField(max_length=500, required=False)


class OrderStatusForm(forms.Form):
    status = forms.ChoiceField(choices=Order.Status.choices)
    notes = forms.CharField(max_length=500, required=False)


class ReasonForm(forms.Form):
    reason = forms.CharField(max_length=500, required=False)


class ReceptionStatusForm(forms.Form):
    reception_status = forms.ChoiceField(choices=Order.ReceptionStatus.choices)

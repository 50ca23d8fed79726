"""
Catalogue forms for BundleHub.

Forms include:
- ProviderForm
- PackageForm
- BundleForm: pricing tiers are checked by Bundle.clean()
"""

from django import forms

from .models import Provider, Package, Bundle


class ProviderForm(forms.ModelForm):

    class Meta:
        model = Provider
        fields = ['name', 'code', 'description', 'logo_url', 'is_active']


class PackageForm(forms.ModelForm):

    class Meta:
        model = Package
        fields = ['name', 'provider', 'category', 'description', 'is_active']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['provider'].queryset = Provider.objects.alive()


class BundleForm(forms.ModelForm):
    """
    Bundle create/update. The provider always follows the package.
    """

    class Meta:
        model = Bundle
        fields = [
            'name',
            'package',
            'bundle_code',
            'data_volume',
            'data_unit',
            'validity',
            'validity_unit',
            'price',
            'pricing_tiers',
            'description',
            'is_active',
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['package'].queryset = Package.objects.alive().select_related('provider')

    def clean(self):
        cleaned_data = super().clean()
        package = cleaned_data.get('package')
        if package is not None:
            self.instance.provider = package.provider
        if cleaned_data.get('validity_unit') == Bundle.ValidityUnit.UNLIMITED:
            cleaned_data['validity'] = None
        return cleaned_data

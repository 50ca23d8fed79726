"""
Catalogue views for BundleHub: providers, packages and bundles.

Reads are open to any signed-in user (bundles include the caller's
price); writes are admin-only. Deletes are soft. The /api/public/
endpoints serve the active catalogue without a token.
"""

import logging

from .api import ApiView, TokenRequiredMixin, ok, created, validated_form, instance_data
from .catalog_forms import ProviderForm, PackageForm, BundleForm
from .exceptions import NotFoundError
from .models import Provider, Package, Bundle

logger = logging.getLogger('core')


class CatalogListView(TokenRequiredMixin, ApiView):
    model = None
    form_class = None
    filter_fields = ()

    def get_queryset(self):
        qs = self.model.objects.alive()
        if not self.request.user.is_admin:
            qs = qs.filter(is_active=True)
        for field in self.filter_fields:
            value = self.request.GET.get(field)
            if value:
                qs = qs.filter(**{field: value})
        return qs

    def serialize(self, obj):
        return obj.to_dict()

    def get(self, request):
        return ok([self.serialize(obj) for obj in self.get_queryset()])

    def post(self, request):
        self.require_admin()
        obj = validated_form(self.form_class, self.data).save()
        logger.info(f"{self.model.__name__} {obj.pk} '{obj}' created by {request.user.email}")
        return created(self.serialize(obj), f'{self.model._meta.verbose_name.capitalize()} created')


class CatalogDetailView(TokenRequiredMixin, ApiView):
    model = None
    form_class = None

    def get_object(self, pk):
        obj = self.model.objects.alive().filter(pk=pk).first()
        if obj is None or (not obj.is_active and not self.request.user.is_admin):
            raise NotFoundError(f'{self.model._meta.verbose_name.capitalize()} not found')
        return obj

    def serialize(self, obj):
        return obj.to_dict()

    def get(self, request, pk):
        return ok(self.serialize(self.get_object(pk)))

    def put(self, request, pk):
        self.require_admin()
        obj = self.get_object(pk)
        data = instance_data(self.form_class, obj, self.data)
        obj = validated_form(self.form_class, data, instance=obj).save()
        logger.info(f"{self.model.__name__} {obj.pk} updated by {request.user.email}")
        return ok(self.serialize(obj), f'{self.model._meta.verbose_name.capitalize()} updated')

    patch = put

    def delete(self, request, pk):
        self.require_admin()
        obj = self.get_object(pk)
        obj.soft_delete()
        logger.info(f"{self.model.__name__} {obj.pk} deleted by {request.user.email}")
        return ok(message=f'{self.model._meta.verbose_name.capitalize()} deleted')


# =============================================================================
# PROVIDERS
# =============================================================================

class ProviderListView(CatalogListView):
    model = Provider
    form_class = ProviderForm
    filter_fields = ('code',)


class ProviderDetailView(CatalogDetailView):
    model = Provider
    form_class = ProviderForm


# =============================================================================
# PACKAGES
# =============================================================================

class PackageListView(CatalogListView):
    model = Package
    form_class = PackageForm
    filter_fields = ('provider_id', 'category')

    def get_queryset(self):
        return super().get_queryset().select_related('provider')


class PackageDetailView(CatalogDetailView):
    model = Package
    form_class = PackageForm


# =============================================================================
# BUNDLES
# =============================================================================

class BundleMixin:
    """Bundles carry the caller's own price as `user_price`."""

    def serialize(self, obj):
        return obj.to_dict(user_type=self.request.user.user_type)


class BundleListView(BundleMixin, CatalogListView):
    model = Bundle
    form_class = BundleForm
    filter_fields = ('package_id', 'provider_id', 'data_unit')

    def get_queryset(self):
        return super().get_queryset().select_related('provider', 'package')


class BundleDetailView(BundleMixin, CatalogDetailView):
    model = Bundle
    form_class = BundleForm


# =============================================================================
# PUBLIC CATALOGUE
# =============================================================================

def _sellable_bundles():
    return Bundle.objects.active().filter(
        package__is_active=True, package__is_deleted=False,
        provider__is_active=True, provider__is_deleted=False,
    ).select_related('provider', 'package')


class PublicProviderListView(ApiView):

    def get(self, request):
        return ok([p.to_dict() for p in Provider.objects.active()])


class PublicPackageListView(ApiView):

    def get(self, request):
        packages = Package.objects.active().filter(provider__is_active=True).select_related('provider')
        if request.GET.get('provider'):
            packages = packages.filter(provider__code=request.GET['provider'].upper())
        return ok([p.to_dict() for p in packages])


class PublicBundleListView(ApiView):
    """Base prices only; tier prices are for signed-in resellers."""

    def get(self, request):
        bundles = _sellable_bundles()
        if request.GET.get('provider'):
            bundles = bundles.filter(provider__code=request.GET['provider'].upper())
        if request.GET.get('package_id'):
            bundles = bundles.filter(package_id=request.GET['package_id'])

        data = []
        for bundle in bundles:
            item = bundle.to_dict()
            item.pop('pricing_tiers')
            data.append(item)
        return ok(data)

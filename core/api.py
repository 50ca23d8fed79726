"""
JSON API helpers for BundleHub views.

- ApiView: class-based View that parses JSON bodies and answers JsonResponse
- Token / role mixins resolving `Authorization: Bearer <token>`
- validate(): run a Django form over request data, raising ValidationError
- paginate(): page/limit pagination for list endpoints
"""

import json
import logging

from django.core.paginator import Paginator
from django.core.serializers.json import DjangoJSONEncoder
from django.forms.models import model_to_dict
from django.http import JsonResponse
from django.views import View

from .exceptions import AuthenticationError, PermissionDeniedError, ValidationError
from .tokens import authenticate_token
from .user_types import SUPER_ADMIN

logger = logging.getLogger('core')

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def ok(data=None, message=None, status=200):
    """Success envelope: {'success': true, 'data': ..., 'message': ...}."""
    payload = {'success': True}
    if message:
        payload['message'] = message
    if data is not None:
        payload['data'] = data
    return JsonResponse(payload, status=status, encoder=DjangoJSONEncoder)


def created(data=None, message=None):
    return ok(data, message, status=201)


def error_response(message, status=400, errors=None, data=None):
    payload = {'success': False, 'message': message}
    if errors:
        payload['errors'] = errors
    if data:
        payload['data'] = data
    return JsonResponse(payload, status=status, encoder=DjangoJSONEncoder)


def form_errors(form):
    """Flatten Django form errors into [{'field', 'message'}]."""
    errors = []
    for field, messages in form.errors.get_json_data().items():
        for message in messages:
            errors.append({
                'field': 'non_field_errors' if field == '__all__' else field,
                'message': message['message'],
            })
    return errors


def validated_form(form_class, data, **kwargs):
    """
    Bind and validate a form.

    Raises:
        ValidationError: with per-field errors when the form is invalid
    """
    form = form_class(data=data, **kwargs)
    if not form.is_valid():
        raise ValidationError('Validation failed', errors=form_errors(form))
    return form


def validate(form_class, data, **kwargs):
    """Validate and return cleaned_data."""
    return validated_form(form_class, data, **kwargs).cleaned_data


def paginate(request, queryset, serialize):
    """
    Slice a queryset by ?page=&limit= and serialize each row.

    Returns:
        dict: {'items': [...], 'pagination': {page, limit, total, pages}}
    """
    try:
        limit = min(max(int(request.GET.get('limit', DEFAULT_PAGE_SIZE)), 1), MAX_PAGE_SIZE)
    except ValueError:
        limit = DEFAULT_PAGE_SIZE

    paginator = Paginator(queryset, limit)
    page = paginator.get_page(request.GET.get('page', 1))
    return {
        'items': [serialize(obj) for obj in page.object_list],
        'pagination': {
            'page': page.number,
            'limit': limit,
            'total': paginator.count,
            'pages': paginator.num_pages,
        },
    }


def bearer_token(request):
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip()
    return ''


class ApiView(View):
    """
    Base view for JSON endpoints. `self.data` holds the parsed JSON body
    (or form data for non-JSON posts).
    """

    def dispatch(self, request, *args, **kwargs):
        self.data = self.parse_body(request)
        return super().dispatch(request, *args, **kwargs)

    @staticmethod
    def parse_body(request):
        if request.method in ('GET', 'HEAD', 'OPTIONS'):
            return {}
        if request.content_type == 'application/json':
            if not request.body:
                return {}
            try:
                data = json.loads(request.body)
            except json.JSONDecodeError:
                raise ValidationError('Invalid JSON body')
            if not isinstance(data, dict):
                raise ValidationError('JSON body must be an object')
            return data
        return request.POST.dict()


class TokenRequiredMixin:
    """Resolve the bearer token to request.user or fail with 401."""

    def dispatch(self, request, *args, **kwargs):
        request.user = authenticate_token(bearer_token(request))
        self.check_role(request.user)
        return super().dispatch(request, *args, **kwargs)

    def check_role(self, user):
        if user.status != user.Status.ACTIVE:
            raise AuthenticationError(f'Your account is {user.status}')

    def require_admin(self):
        """For views where only some methods are admin-only."""
        if not self.request.user.is_admin:
            raise PermissionDeniedError('Admin access required')


class BusinessRequiredMixin(TokenRequiredMixin):
    def check_role(self, user):
        super().check_role(user)
        if not user.is_business:
            raise PermissionDeniedError('This action is only available to agents and dealers')


class AdminRequiredMixin(TokenRequiredMixin):
    def check_role(self, user):
        super().check_role(user)
        if not user.is_admin:
            raise PermissionDeniedError('Admin access required')


class SuperAdminRequiredMixin(TokenRequiredMixin):
    def check_role(self, user):
        super().check_role(user)
        if user.user_type != SUPER_ADMIN:
            raise PermissionDeniedError('Super admin access required')


def instance_data(form_class, instance, data):
    """
    Current field values of `instance` overlaid with the request data, so a
    partial update through a ModelForm only changes what was sent.
    """
    current = model_to_dict(instance, fields=form_class._meta.fields)
    return {**current, **data}

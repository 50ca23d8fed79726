"""
Service wrappers over the BundleHub API.

Reads go through the shared QueryCache under the keys in query_keys; writes
invalidate the domains they affect once they succeed.
"""

from . import query_keys as keys
from .api import ApiClient
from .cache import QueryCache


class Service:

    def __init__(self, client, cache):
        self.client = client
        self.cache = cache

    def _query(self, key, path, params=None):
        return self.cache.get_or_fetch(key, lambda: self.client.get(path, params=params))

    def _mutate(self, invalidates, method, path, json=None):
        result = self.client.request(method, path, json=json)
        self.cache.invalidate(*invalidates)
        return result


class AuthService(Service):

    def login(self, email, password):
        data = self.client.post('auth/login/', {'email': email, 'password': password})
        self.client.tokens.set(data['access_token'], data['refresh_token'])
        self.cache.clear()
        return data['user']

    def register(self, **payload):
        data = self.client.post('auth/register/', payload)
        if data.get('access_token'):
            self.client.tokens.set(data['access_token'], data['refresh_token'])
        return data['user']

    def logout(self):
        try:
            self.client.post('auth/logout/')
        finally:
            self.client.logout()
            self.cache.clear()

    def me(self):
        return self._query(keys.auth.sub('user'), 'auth/me/')

    def update_profile(self, **fields):
        return self._mutate([keys.auth.all, keys.users.all], 'PATCH', 'users/profile/', fields)

    def change_password(self, current_password, new_password):
        data = self.client.post('auth/change-password/', {
            'current_password': current_password,
            'new_password': new_password,
        })
        self.client.tokens.set(data['access_token'], data['refresh_token'])
        return data

    def forgot_password(self, email):
        return self.client.post('auth/forgot-password/', {'email': email})

    def reset_password(self, uid, token, new_password):
        return self.client.post('auth/reset-password/', {'uid': uid, 'token': token, 'new_password': new_password})


class UserService(Service):

    def list(self, **filters):
        return self._query(keys.users.list(filters), 'users/', filters)

    def get(self, user_id):
        return self._query(keys.users.detail(user_id), f'users/{user_id}/')

    def approve(self, user_id, approve=True, reason=''):
        return self._mutate([keys.users.all], 'POST', f'users/{user_id}/approve/', {
            'approve': approve, 'reason': reason,
        })

    def set_status(self, user_id, status):
        return self._mutate([keys.users.all], 'PATCH', f'users/{user_id}/status/', {'status': status})

    def delete(self, user_id):
        return self._mutate([keys.users.all], 'DELETE', f'users/{user_id}/')

    def reset_password(self, user_id, new_password):
        return self._mutate([keys.users.all], 'POST', f'users/{user_id}/reset-password/', {'new_password': new_password})


class CatalogService(Service):
    """Providers, packages and bundles share the same CRUD shape."""

    path = ''
    domain = None
    public_path = ''

    def list(self, **filters):
        return self._query(self.domain.list(filters), self.path, filters)

    def public(self, **filters):
        return self._query(self.domain.sub('public', filters), self.public_path, filters)

    def get(self, pk):
        return self._query(self.domain.detail(pk), f'{self.path}{pk}/')

    def create(self, **fields):
        return self._mutate([self.domain.all], 'POST', self.path, fields)

    def update(self, pk, **fields):
        return self._mutate([self.domain.all], 'PUT', f'{self.path}{pk}/', fields)

    def delete(self, pk):
        return self._mutate([self.domain.all], 'DELETE', f'{self.path}{pk}/')


class ProviderService(CatalogService):
    path = 'providers/'
    domain = keys.providers
    public_path = 'public/providers/'

    def _mutate(self, invalidates, method, path, json=None):
        # Packages and bundles embed provider names
        return super()._mutate(invalidates + [keys.packages.all, keys.bundles.all], method, path, json)


class PackageService(CatalogService):
    path = 'packages/'
    domain = keys.packages
    public_path = 'public/packages/'

    def _mutate(self, invalidates, method, path, json=None):
        return super()._mutate(invalidates + [keys.bundles.all], method, path, json)


class BundleService(CatalogService):
    path = 'bundles/'
    domain = keys.bundles
    public_path = 'public/bundles/'


class OrderService(Service):
    """Placing or cancelling an order moves money, so wallet keys go too."""

    def list(self, **filters):
        return self._query(keys.orders.list(filters), 'orders/', filters)

    def get(self, order_id):
        return self._query(keys.orders.detail(order_id), f'orders/{order_id}/')

    def reported(self, **filters):
        return self._query(keys.orders.sub('reported', filters), 'orders/reported/', filters)

    def create_single(self, bundle_id, customer_phone, quantity=1, notes='', force_override=False):
        return self._mutate([keys.orders.all, keys.wallet.all, keys.analytics.all], 'POST', 'orders/single/', {
            'bundle_id': bundle_id,
            'customer_phone': customer_phone,
            'quantity': quantity,
            'notes': notes,
            'force_override': force_override,
        })

    def create_bulk(self, package_id, rows, notes='', force_override=False):
        return self._mutate([keys.orders.all, keys.wallet.all, keys.analytics.all], 'POST', 'orders/bulk/', {
            'package_id': package_id,
            'rows': rows,
            'notes': notes,
            'force_override': force_override,
        })

    def process_drafts(self):
        return self._mutate([keys.orders.all, keys.wallet.all], 'POST', 'orders/process-drafts/')

    def cancel(self, order_id, reason=''):
        return self._mutate([keys.orders.all, keys.wallet.all], 'POST', f'orders/{order_id}/cancel/', {
            'reason': reason,
        })

    def report(self, order_id, reason=''):
        return self._mutate([keys.orders.all], 'POST', f'orders/{order_id}/report/', {'reason': reason})

    def process_item(self, order_id, item_id, status, error=''):
        return self._mutate(
            [keys.orders.all, keys.commissions.all],
            'POST',
            f'orders/{order_id}/items/{item_id}/process/',
            {'status': status, 'error': error},
        )

    def process_bulk(self, order_id, action, error=''):
        return self._mutate([keys.orders.all, keys.commissions.all], 'POST', f'orders/{order_id}/process/', {
            'action': action, 'error': error,
        })

    def update_status(self, order_id, status, notes=''):
        return self._mutate([keys.orders.all, keys.wallet.all], 'PUT', f'orders/{order_id}/status/', {
            'status': status, 'notes': notes,
        })

    def update_reception_status(self, order_id, reception_status):
        return self._mutate([keys.orders.all], 'PUT', f'orders/{order_id}/reception-status/', {
            'reception_status': reception_status,
        })


class WalletService(Service):

    def info(self):
        return self._query(keys.wallet.sub('info'), 'wallet/')

    def transactions(self, **filters):
        return self._query(keys.wallet.list(filters), 'wallet/transactions/', filters)

    def pending_request(self):
        return self._query(keys.wallet.sub('pending-request'), 'wallet/pending-request/')

    def analytics(self, **filters):
        return self._query(keys.wallet.sub('analytics', filters), 'wallet/analytics/', filters)

    def request_top_up(self, amount, description=''):
        return self._mutate([keys.wallet.all], 'POST', 'wallet/request-top-up/', {
            'amount': str(amount), 'description': description,
        })

    # Admin

    def top_up(self, user_id, amount, description=''):
        return self._mutate([keys.wallet.all, keys.users.all], 'POST', 'wallet/admin/top-up/', {
            'user_id': user_id, 'amount': str(amount), 'description': description,
        })

    def debit(self, user_id, amount, description=''):
        return self._mutate([keys.wallet.all, keys.users.all], 'POST', 'wallet/admin/debit/', {
            'user_id': user_id, 'amount': str(amount), 'description': description,
        })

    def pending_requests(self, **filters):
        return self._query(keys.wallet.sub('pending-requests', filters), 'wallet/admin/pending-requests/', filters)

    def process_request(self, request_id, action, notes=''):
        return self._mutate([keys.wallet.all, keys.users.all], 'POST', f'wallet/admin/requests/{request_id}/process/', {
            'action': action, 'notes': notes,
        })

    def all_transactions(self, **filters):
        return self._query(keys.wallet.sub('admin-transactions', filters), 'wallet/admin/transactions/', filters)


class CommissionService(Service):

    def list(self, **filters):
        return self._query(keys.commissions.list(filters), 'commissions/', filters)

    def mine(self, **filters):
        return self._query(keys.commissions.sub('mine', filters), 'commissions/mine/', filters)

    def statistics(self, **filters):
        return self._query(keys.commissions.sub('statistics', filters), 'commissions/statistics/', filters)

    def rates(self):
        return self._query(keys.commissions.sub('rates'), 'commissions/rates/')

    def calculate(self, start_date, end_date, agent_id=None):
        payload = {'start_date': str(start_date), 'end_date': str(end_date)}
        if agent_id is not None:
            payload['agent_id'] = agent_id
        return self.client.post('commissions/calculate/', payload)

    def pay(self, record_id, payment_reference=''):
        return self._mutate([keys.commissions.all], 'POST', f'commissions/{record_id}/pay/', {
            'payment_reference': payment_reference,
        })

    def pay_multiple(self, ids, payment_reference=''):
        return self._mutate([keys.commissions.all], 'POST', 'commissions/pay-multiple/', {
            'ids': list(ids), 'payment_reference': payment_reference,
        })

    def reject(self, record_id, reason=''):
        return self._mutate([keys.commissions.all], 'POST', f'commissions/{record_id}/reject/', {'reason': reason})

    def reject_multiple(self, ids, reason=''):
        return self._mutate([keys.commissions.all], 'POST', 'commissions/reject-multiple/', {
            'ids': list(ids), 'reason': reason,
        })

    def generate_daily(self, date=None):
        return self._mutate([keys.commissions.all], 'POST', 'commissions/generate-daily/', {
            'date': str(date) if date else None,
        })

    def finalize(self, year=None, month=None):
        return self._mutate([keys.commissions.all], 'POST', 'commissions/finalize/', {
            'year': year, 'month': month,
        })


class NotificationService(Service):

    def list(self, **filters):
        return self._query(keys.notifications.list(filters), 'notifications/', filters)

    def unread_count(self):
        return self._query(keys.notifications.sub('unread-count'), 'notifications/unread-count/')

    def mark_read(self, notification_id):
        return self._mutate([keys.notifications.all], 'POST', f'notifications/{notification_id}/read/')

    def mark_unread(self, notification_id):
        return self._mutate([keys.notifications.all], 'POST', f'notifications/{notification_id}/unread/')

    def mark_all_read(self):
        return self._mutate([keys.notifications.all], 'POST', 'notifications/mark-all-read/')

    def delete(self, notification_id):
        return self._mutate([keys.notifications.all], 'DELETE', f'notifications/{notification_id}/')

    def clear(self, read_only=False):
        path = 'notifications/?read=read' if read_only else 'notifications/'
        return self._mutate([keys.notifications.all], 'DELETE', path)

    def preferences(self):
        return self._query(keys.notifications.sub('preferences'), 'push/preferences/')

    def update_preferences(self, **switches):
        return self._mutate([keys.notifications.sub('preferences')], 'PATCH', 'push/preferences/', switches)

    def vapid_public_key(self):
        return self._query(keys.notifications.sub('vapid'), 'push/vapid-public-key/')

    def subscribe(self, endpoint, subscription_keys):
        return self.client.post('push/subscribe/', {'endpoint': endpoint, 'keys': subscription_keys})

    def unsubscribe(self, endpoint=None):
        return self.client.post('push/unsubscribe/', {'endpoint': endpoint} if endpoint else {})


class AnnouncementService(Service):

    def list(self, **filters):
        return self._query(keys.announcements.list(filters), 'announcements/', filters)

    def active(self):
        return self._query(keys.announcements.sub('active'), 'announcements/active/')

    def get(self, pk):
        return self._query(keys.announcements.detail(pk), f'announcements/{pk}/')

    def stats(self, pk):
        return self._query(keys.announcements.sub('stats', {'id': pk}), f'announcements/{pk}/stats/')

    def create(self, **fields):
        return self._mutate([keys.announcements.all], 'POST', 'announcements/', fields)

    def update(self, pk, **fields):
        return self._mutate([keys.announcements.all], 'PATCH', f'announcements/{pk}/', fields)

    def delete(self, pk):
        return self._mutate([keys.announcements.all], 'DELETE', f'announcements/{pk}/')

    def mark_viewed(self, pk):
        return self._mutate([keys.announcements.all], 'POST', f'announcements/{pk}/view/')

    def acknowledge(self, pk):
        return self._mutate([keys.announcements.all], 'POST', f'announcements/{pk}/acknowledge/')

    def broadcast(self, pk):
        return self._mutate([keys.announcements.all], 'POST', f'announcements/{pk}/broadcast/')


class StorefrontService(Service):

    def mine(self):
        return self._query(keys.storefront.sub('mine'), 'storefront/')

    def create(self, **fields):
        return self._mutate([keys.storefront.all], 'POST', 'storefront/', fields)

    def update(self, **fields):
        return self._mutate([keys.storefront.all], 'PATCH', 'storefront/', fields)

    def deactivate(self):
        return self._mutate([keys.storefront.all], 'DELETE', 'storefront/')

    def pricing(self):
        return self._query(keys.storefront.sub('pricing'), 'storefront/pricing/')

    def set_pricing(self, entries):
        return self._mutate([keys.storefront.all], 'PUT', 'storefront/pricing/', {'pricing': list(entries)})

    def toggle_bundles(self, entries):
        return self._mutate([keys.storefront.all], 'POST', 'storefront/bundles/toggle/', {'bundles': list(entries)})

    def orders(self, status=None):
        return self._query(
            keys.storefront.sub('orders', {'status': status}), 'storefront/orders/', {'status': status} if status else None
        )

    def verify_payment(self, order_id, notes=''):
        return self._mutate(
            [keys.storefront.all, keys.orders.all, keys.wallet.all],
            'POST',
            f'storefront/orders/{order_id}/verify-payment/',
            {'notes': notes},
        )

    def reject_order(self, order_id, reason=''):
        return self._mutate(
            [keys.storefront.all, keys.orders.all, keys.wallet.all],
            'POST',
            f'storefront/orders/{order_id}/reject/',
            {'reason': reason},
        )

    def analytics(self):
        return self._query(keys.storefront.sub('analytics'), 'storefront/analytics/')

    # Public shop

    def public(self, business_name):
        return self._query(keys.storefront.sub('public', {'name': business_name}), f'storefront/public/{business_name}/')

    def public_bundles(self, business_name):
        return self._query(
            keys.storefront.sub('public-bundles', {'name': business_name}),
            f'storefront/public/{business_name}/bundles/',
        )

    def place_order(self, business_name, items, customer_name, customer_phone, **extra):
        return self.client.post(f'storefront/public/{business_name}/orders/', {
            'items': list(items),
            'customer_name': customer_name,
            'customer_phone': customer_phone,
            **extra,
        })

    # Admin

    def all(self, status=None):
        return self._query(
            keys.storefront.list({'status': status}), 'storefront/admin/', {'status': status} if status else None
        )

    def approve(self, storefront_id):
        return self._mutate([keys.storefront.all], 'POST', f'storefront/admin/{storefront_id}/approve/')

    def suspend(self, storefront_id, reason=''):
        return self._mutate([keys.storefront.all], 'POST', f'storefront/admin/{storefront_id}/suspend/', {
            'reason': reason,
        })


class AnalyticsService(Service):

    def agent(self, days=30):
        return self._query(keys.analytics.sub('agent', {'days': days}), 'analytics/agent/', {'days': days})

    def summary(self):
        return self._query(keys.analytics.sub('summary'), 'analytics/summary/')

    def chart(self, days=30):
        return self._query(keys.analytics.sub('chart', {'days': days}), 'analytics/chart/', {'days': days})


class SettingsService(Service):

    def get(self):
        return self._query(keys.settings.all, 'settings/')

    def site_status(self):
        return self._query(keys.settings.sub('site-status'), 'public/site-status/')

    def toggle_site(self, is_open=None, custom_message=None):
        payload = {}
        if is_open is not None:
            payload['is_open'] = is_open
        if custom_message is not None:
            payload['custom_message'] = custom_message
        return self._mutate([keys.settings.all], 'POST', 'settings/site-status/toggle/', payload)

    def set_signup_approval(self, require_approval):
        return self._mutate([keys.settings.all], 'PUT', 'settings/signup-approval/', {
            'require_approval': require_approval,
        })

    def set_storefront_auto_approval(self, auto_approve):
        return self._mutate([keys.settings.all], 'PUT', 'settings/storefront-approval/', {
            'auto_approve': auto_approve,
        })

    def set_commission_rates(self, rates):
        return self._mutate([keys.settings.all, keys.commissions.all], 'PUT', 'settings/commission-rates/', {
            'rates': rates,
        })

    def set_wallet_minimums(self, minimums):
        return self._mutate([keys.settings.all, keys.wallet.all], 'PUT', 'settings/wallet/', {
            'minimum_top_up_amounts': minimums,
        })

    def set_api(self, api_endpoint=None, api_keys=None):
        payload = {}
        if api_endpoint is not None:
            payload['api_endpoint'] = api_endpoint
        if api_keys is not None:
            payload['api_keys'] = api_keys
        return self._mutate([keys.settings.all], 'PUT', 'settings/api/', payload)


class BundleHub:
    """
    Entry point: one client, one cache, every service.

        hub = BundleHub('https://example.com/api')
        hub.auth.login('agent@example.com', 'secret')
        hub.orders.create_single(bundle_id=3, customer_phone='0241234567')
    """

    def __init__(self, base_url, cache=None, **client_kwargs):
        self.client = ApiClient(base_url, **client_kwargs)
        self.cache = cache if cache is not None else QueryCache()

        self.auth = AuthService(self.client, self.cache)
        self.users = UserService(self.client, self.cache)
        self.providers = ProviderService(self.client, self.cache)
        self.packages = PackageService(self.client, self.cache)
        self.bundles = BundleService(self.client, self.cache)
        self.orders = OrderService(self.client, self.cache)
        self.wallet = WalletService(self.client, self.cache)
        self.commissions = CommissionService(self.client, self.cache)
        self.notifications = NotificationService(self.client, self.cache)
        self.announcements = AnnouncementService(self.client, self.cache)
        self.storefront = StorefrontService(self.client, self.cache)
        self.analytics = AnalyticsService(self.client, self.cache)
        self.settings = SettingsService(self.client, self.cache)

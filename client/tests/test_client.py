"""
Tests for the BundleHub Python client: HTTP layer, token refresh, query
cache and service invalidation. The network is replaced by a mock session.
"""

from unittest import TestCase, mock

import requests

from client import ApiClient, ApiError, TokenStorage, QueryCache, BundleHub
from client import query_keys as keys


def response(status=200, body=None, sent_token=None, reason=''):
    resp = mock.Mock(status_code=status, reason=reason)
    if body is None:
        resp.json.side_effect = ValueError('No JSON')
    else:
        resp.json.return_value = body
    headers = {'Authorization': f'Bearer {sent_token}'} if sent_token else {}
    resp.request = mock.Mock(headers=headers)
    return resp


def envelope(data=None, message=None):
    body = {'success': True, 'data': data}
    if message:
        body['message'] = message
    return body


class ApiClientTests(TestCase):

    def setUp(self):
        self.session = mock.Mock(headers={})
        self.tokens = TokenStorage('access-1', 'refresh-1')
        self.on_logout = mock.Mock()
        self.client = ApiClient(
            'https://hub.example.com/api/', tokens=self.tokens, session=self.session, on_logout=self.on_logout
        )

    def test_unwraps_data_and_sends_token(self):
        self.session.request.return_value = response(body=envelope({'balance': '10.00'}))

        self.assertEqual(self.client.get('wallet/'), {'balance': '10.00'})

        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ('GET', 'https://hub.example.com/api/wallet/'))
        self.assertEqual(kwargs['headers'], {'Authorization': 'Bearer access-1'})
        self.assertEqual(kwargs['timeout'], 30)

    def test_error_envelope_raises(self):
        self.session.request.return_value = response(400, {
            'success': False,
            'message': 'Validation failed',
            'errors': [{'field': 'amount', 'message': 'Required'}],
        })

        with self.assertRaises(ApiError) as ctx:
            self.client.post('wallet/request-top-up/', {})

        self.assertEqual(ctx.exception.status, 400)
        self.assertEqual(ctx.exception.message, 'Validation failed')
        self.assertEqual(ctx.exception.errors, [{'field': 'amount', 'message': 'Required'}])

    def test_non_json_error_uses_reason(self):
        self.session.request.return_value = response(502, reason='Bad Gateway')

        with self.assertRaises(ApiError) as ctx:
            self.client.get('orders/')

        self.assertEqual(ctx.exception.message, 'Bad Gateway')
        self.assertEqual(ctx.exception.errors, [])

    def test_network_failure_is_status_zero(self):
        self.session.request.side_effect = requests.ConnectionError('refused')

        with self.assertRaises(ApiError) as ctx:
            self.client.get('orders/')

        self.assertEqual(ctx.exception.status, 0)

    def test_refreshes_once_and_retries(self):
        self.session.request.side_effect = [
            response(401, {'success': False, 'message': 'Token has expired'}, sent_token='access-1'),
            response(body=envelope([{'id': 1}])),
        ]
        self.session.post.return_value = response(body=envelope({
            'access_token': 'access-2', 'refresh_token': 'refresh-2',
        }))

        self.assertEqual(self.client.get('orders/'), [{'id': 1}])

        self.session.post.assert_called_once_with(
            'https://hub.example.com/api/auth/refresh/', json={'refresh_token': 'refresh-1'}, timeout=30
        )
        self.assertEqual(self.tokens.access, 'access-2')
        self.assertEqual(self.tokens.refresh, 'refresh-2')
        retry_headers = self.session.request.call_args.kwargs['headers']
        self.assertEqual(retry_headers, {'Authorization': 'Bearer access-2'})

    def test_failed_refresh_logs_out(self):
        self.session.request.return_value = response(
            401, {'success': False, 'message': 'Token has expired'}, sent_token='access-1'
        )
        self.session.post.return_value = response(401, {'success': False, 'message': 'Token has been revoked'})

        with self.assertRaises(ApiError) as ctx:
            self.client.get('orders/')

        self.assertEqual(ctx.exception.status, 401)
        self.assertIsNone(self.tokens.access)
        self.assertIsNone(self.tokens.refresh)
        self.on_logout.assert_called_once()
        self.assertEqual(self.session.request.call_count, 1)

    def test_token_replaced_by_another_caller_skips_refresh(self):
        self.session.request.side_effect = [
            response(401, {'success': False, 'message': 'Token has expired'}, sent_token='access-0'),
            response(body=envelope('ok')),
        ]

        self.assertEqual(self.client.get('orders/'), 'ok')
        self.session.post.assert_not_called()

    def test_no_refresh_without_refresh_token(self):
        self.tokens.refresh = None
        self.session.request.return_value = response(401, {'success': False, 'message': 'No token provided'})

        with self.assertRaises(ApiError):
            self.client.get('auth/me/')

        self.session.post.assert_not_called()


class QueryCacheTests(TestCase):

    def test_get_or_fetch_caches(self):
        cache = QueryCache()
        fetch = mock.Mock(return_value=[1, 2])

        self.assertEqual(cache.get_or_fetch(keys.orders.list(), fetch), [1, 2])
        self.assertEqual(cache.get_or_fetch(keys.orders.list(), fetch), [1, 2])
        fetch.assert_called_once()

    def test_ttl_expiry(self):
        now = [100.0]
        cache = QueryCache(ttl=60, clock=lambda: now[0])
        cache.set(keys.wallet.sub('info'), {'balance': '1.00'})

        now[0] += 30
        self.assertIn(keys.wallet.sub('info'), cache)
        now[0] += 31
        self.assertIsNone(cache.get(keys.wallet.sub('info')))
        self.assertEqual(len(cache), 0)

    def test_membership_check_holds_the_lock(self):
        now = [100.0]
        cache = QueryCache(ttl=60, clock=lambda: now[0])
        cache.set(keys.orders.detail(1), {})
        cache._lock = mock.MagicMock()
        now[0] += 61

        self.assertNotIn(keys.orders.detail(1), cache)

        cache._lock.__enter__.assert_called_once()
        self.assertEqual(len(cache), 0)

    def test_invalidate_by_prefix(self):
        cache = QueryCache()
        cache.set(keys.orders.list({'status': 'pending'}), [])
        cache.set(keys.orders.detail(4), {})
        cache.set(keys.wallet.sub('info'), {})

        self.assertEqual(cache.invalidate(keys.orders.all), 2)
        self.assertEqual(len(cache), 1)

    def test_mutation_invalidates_only_on_success(self):
        cache = QueryCache()
        cache.set(keys.orders.detail(1), {})

        @cache.mutation(keys.orders.all)
        def failing():
            raise ApiError('nope', status=400)

        with self.assertRaises(ApiError):
            failing()
        self.assertIn(keys.orders.detail(1), cache)

        @cache.mutation(keys.orders.all)
        def succeeding():
            return 'done'

        self.assertEqual(succeeding(), 'done')
        self.assertNotIn(keys.orders.detail(1), cache)


class QueryKeyTests(TestCase):

    def test_filters_are_order_independent(self):
        self.assertEqual(
            keys.orders.list({'status': 'pending', 'page': 2}),
            keys.orders.list({'page': 2, 'status': 'pending'}),
        )

    def test_none_filters_dropped(self):
        self.assertEqual(keys.orders.list({'status': None}), keys.orders.list())

    def test_hierarchy(self):
        self.assertTrue(keys.is_prefix(keys.orders.all, keys.orders.detail(3)))
        self.assertTrue(keys.is_prefix(keys.orders.details(), keys.orders.detail(3)))
        self.assertFalse(keys.is_prefix(keys.orders.lists(), keys.orders.detail(3)))
        self.assertEqual(keys.orders.detail(3), keys.orders.detail('3'))


class ServiceTests(TestCase):

    def setUp(self):
        self.hub = BundleHub('https://hub.example.com/api')
        self.hub.client = mock.Mock(spec=ApiClient)
        self.hub.client.tokens = TokenStorage()
        for name in ('auth', 'orders', 'wallet', 'providers', 'bundles', 'settings'):
            getattr(self.hub, name).client = self.hub.client

    def test_reads_are_cached(self):
        self.hub.client.get.return_value = {'balance': '5.00'}

        self.hub.wallet.info()
        self.hub.wallet.info()

        self.hub.client.get.assert_called_once_with('wallet/', params=None)

    def test_order_invalidates_wallet(self):
        self.hub.cache.set(keys.wallet.sub('info'), {'balance': '5.00'})
        self.hub.cache.set(keys.orders.list(), [])
        self.hub.client.request.return_value = {'id': 1}

        self.hub.orders.create_single(3, '0241234567')

        self.assertEqual(len(self.hub.cache), 0)

    def test_failed_write_keeps_cache(self):
        self.hub.cache.set(keys.wallet.sub('info'), {'balance': '5.00'})
        self.hub.client.request.side_effect = ApiError('Insufficient wallet balance', status=400)

        with self.assertRaises(ApiError):
            self.hub.orders.create_single(3, '0241234567')

        self.assertIn(keys.wallet.sub('info'), self.hub.cache)

    def test_provider_change_drops_bundles(self):
        self.hub.cache.set(keys.bundles.list(), [])
        self.hub.client.request.return_value = {'id': 2}

        self.hub.providers.update(2, name='MTN Ghana')

        self.assertNotIn(keys.bundles.list(), self.hub.cache)

    def test_login_stores_tokens_and_clears_cache(self):
        self.hub.cache.set(keys.orders.list(), [])
        self.hub.client.post.return_value = {
            'user': {'id': 1}, 'access_token': 'a', 'refresh_token': 'r',
        }

        self.assertEqual(self.hub.auth.login('agent@example.com', 'secret'), {'id': 1})

        self.assertEqual(self.hub.client.tokens.access, 'a')
        self.assertEqual(len(self.hub.cache), 0)

    def test_pending_registration_keeps_no_tokens(self):
        self.hub.client.post.return_value = {'user': {'id': 1, 'status': 'pending'}}

        self.hub.auth.register(email='new@example.com', password='x', full_name='New')

        self.assertIsNone(self.hub.client.tokens.access)

    def test_password_reset_calls(self):
        self.hub.auth.forgot_password('agent@example.com')
        self.hub.auth.reset_password('MQ', 'tok-en', 'FreshStart456!')

        self.assertEqual(self.hub.client.post.call_args_list, [
            mock.call('auth/forgot-password/', {'email': 'agent@example.com'}),
            mock.call('auth/reset-password/', {'uid': 'MQ', 'token': 'tok-en', 'new_password': 'FreshStart456!'}),
        ])

    def test_create_single_can_force_duplicates(self):
        self.hub.client.request.return_value = {'id': 1}

        self.hub.orders.create_single(3, '0241234567', force_override=True)

        self.assertTrue(self.hub.client.request.call_args.kwargs['json']['force_override'])

    def test_set_api_sends_only_given_fields(self):
        self.hub.client.request.return_value = {}

        self.hub.settings.set_api(api_keys={'MTN': 'key'})

        self.hub.client.request.assert_called_once_with('PUT', 'settings/api/', json={'api_keys': {'MTN': 'key'}})

    def test_shared_empty_cache_is_kept(self):
        cache = QueryCache()

        self.assertIs(BundleHub('https://hub.example.com/api', cache=cache).cache, cache)

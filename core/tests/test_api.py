"""
Tests for the JSON API surface: envelopes, roles, error mapping and the
unauthenticated endpoints.
"""

import json
from decimal import Decimal

from django.test import TestCase, Client
from django.urls import reverse

from core.models import User, SiteSettings, Order

from .helpers import make_user, make_admin, make_catalog, auth_header


def post_json(client, url, data, **extra):
    return client.post(url, json.dumps(data), content_type='application/json', **extra)


def put_json(client, url, data, **extra):
    return client.put(url, json.dumps(data), content_type='application/json', **extra)


class EnvelopeTests(TestCase):

    def setUp(self):
        self.client = Client()
        self.agent = make_user(balance='100.00')
        _, _, self.bundle, _ = make_catalog()

    def test_success_envelope(self):
        response = post_json(
            self.client,
            reverse('core:order_single'),
            {'bundle_id': self.bundle.pk, 'customer_phone': '0241234567'},
            **auth_header(self.agent)
        )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['message'], 'Order placed successfully')
        self.assertEqual(body['data']['total'], '10.00')

    def test_validation_errors_are_listed_per_field(self):
        response = post_json(
            self.client,
            reverse('core:order_single'),
            {'customer_phone': '12'},
            **auth_header(self.agent)
        )

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body['success'])
        self.assertEqual(body['message'], 'Validation failed')
        fields = {error['field'] for error in body['errors']}
        self.assertEqual(fields, {'bundle_id', 'customer_phone'})

    def test_invalid_json_body(self):
        response = self.client.post(
            reverse('core:order_single'), '{not json', content_type='application/json', **auth_header(self.agent)
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], 'Invalid JSON body')

    def test_not_found_maps_to_404(self):
        response = self.client.get(reverse('core:order_detail', args=[9999]), **auth_header(self.agent))

        self.assertEqual(response.status_code, 404)
        self.assertFalse(response.json()['success'])

    def test_insufficient_balance_saves_draft(self):
        poor = make_user('poor@example.com', balance='1.00')

        response = post_json(
            self.client,
            reverse('core:order_single'),
            {'bundle_id': self.bundle.pk, 'customer_phone': '0241234567'},
            **auth_header(poor)
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['data']['status'], Order.Status.DRAFT)

    def test_closed_site_returns_503(self):
        site = SiteSettings.get_instance()
        site.is_site_open = False
        site.custom_message = 'Back at 8am'
        site.save()

        response = post_json(
            self.client,
            reverse('core:order_single'),
            {'bundle_id': self.bundle.pk, 'customer_phone': '0241234567'},
            **auth_header(self.agent)
        )

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()['message'], 'Back at 8am')

    def test_duplicate_order_returns_409_until_overridden(self):
        payload = {'bundle_id': self.bundle.pk, 'customer_phone': '0241234567'}
        post_json(self.client, reverse('core:order_single'), payload, **auth_header(self.agent))

        response = post_json(self.client, reverse('core:order_single'), payload, **auth_header(self.agent))

        self.assertEqual(response.status_code, 409)
        body = response.json()
        self.assertFalse(body['success'])
        self.assertEqual(len(body['data']['duplicates']), 1)

        response = post_json(
            self.client, reverse('core:order_single'), {**payload, 'force_override': True}, **auth_header(self.agent)
        )
        self.assertEqual(response.status_code, 201)

    def test_order_list_is_paginated(self):
        for phone in ('0241234567', '0551234567', '0271234567'):
            post_json(
                self.client,
                reverse('core:order_single'),
                {'bundle_id': self.bundle.pk, 'customer_phone': phone},
                **auth_header(self.agent)
            )

        response = self.client.get(reverse('core:order_list') + '?limit=2', **auth_header(self.agent))

        data = response.json()['data']
        self.assertEqual(len(data['items']), 2)
        self.assertEqual(data['pagination'], {'page': 1, 'limit': 2, 'total': 3, 'pages': 2})


class RoleTests(TestCase):

    def setUp(self):
        self.client = Client()
        self.agent = make_user()
        self.admin = make_admin()

    def test_admin_endpoint_forbidden_for_agent(self):
        response = self.client.get(reverse('core:user_list'), **auth_header(self.agent))

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['message'], 'Admin access required')

    def test_business_endpoint_forbidden_for_admin(self):
        response = post_json(self.client, reverse('core:order_single'), {}, **auth_header(self.admin))

        self.assertEqual(response.status_code, 403)

    def test_suspended_user_token_rejected(self):
        headers = auth_header(self.agent)
        User.objects.filter(pk=self.agent.pk).update(status=User.Status.SUSPENDED)

        response = self.client.get(reverse('core:me'), **headers)

        self.assertEqual(response.status_code, 401)

    def test_garbage_token(self):
        response = self.client.get(reverse('core:me'), HTTP_AUTHORIZATION='Bearer nonsense')

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['message'], 'Invalid token')

    def test_admin_approves_pending_user(self):
        pending = make_user('pending@example.com', status=User.Status.PENDING)

        response = post_json(
            self.client, reverse('core:user_approve', args=[pending.pk]), {}, **auth_header(self.admin)
        )

        self.assertEqual(response.status_code, 200)
        pending.refresh_from_db()
        self.assertEqual(pending.status, User.Status.ACTIVE)

    def test_api_settings_are_super_admin_only(self):
        response = self.client.get(reverse('core:settings_api'), **auth_header(self.admin))
        self.assertEqual(response.status_code, 403)

        boss = make_admin('boss@example.com', user_type='super_admin')
        site = SiteSettings.get_instance()
        site.api_keys = {'MTN': 'secret-key-1234'}
        site.save()

        response = self.client.get(reverse('core:settings_api'), **auth_header(boss))
        self.assertEqual(response.json()['data']['api_keys'], {'MTN': '****1234'})


class CatalogApiTests(TestCase):

    def setUp(self):
        self.client = Client()
        self.agent = make_user()
        self.admin = make_admin()
        self.provider, self.package, self.bundle, _ = make_catalog(
            pricing_tiers={'agent': '9.00', 'dealer': '8.50'}
        )

    def test_agent_sees_own_price(self):
        response = self.client.get(reverse('core:bundle_detail', args=[self.bundle.pk]), **auth_header(self.agent))

        data = response.json()['data']
        self.assertEqual(data['price'], '10.00')
        self.assertEqual(data['user_price'], '9.00')

    def test_agent_cannot_create_provider(self):
        response = post_json(
            self.client, reverse('core:provider_list'), {'name': 'Telecel', 'code': 'TELECEL'},
            **auth_header(self.agent)
        )

        self.assertEqual(response.status_code, 403)

    def test_admin_creates_bundle(self):
        response = post_json(
            self.client,
            reverse('core:bundle_list'),
            {
                'name': '10GB',
                'package': self.package.pk,
                'data_volume': '10',
                'data_unit': 'GB',
                'validity': 30,
                'validity_unit': 'days',
                'price': '70.00',
                'pricing_tiers': {'agent': '65.00'},
            },
            **auth_header(self.admin)
        )

        self.assertEqual(response.status_code, 201)
        data = response.json()['data']
        self.assertEqual(data['provider_id'], self.provider.pk)

    def test_invalid_tier_rejected(self):
        response = post_json(
            self.client,
            reverse('core:bundle_list'),
            {
                'name': 'Bad',
                'package': self.package.pk,
                'data_volume': '1',
                'data_unit': 'GB',
                'price': '5.00',
                'pricing_tiers': {'agent': '-1'},
            },
            **auth_header(self.admin)
        )

        self.assertEqual(response.status_code, 400)

    def test_partial_update_keeps_other_fields(self):
        response = put_json(
            self.client,
            reverse('core:bundle_detail', args=[self.bundle.pk]),
            {'price': '12.00'},
            **auth_header(self.admin)
        )

        self.assertEqual(response.status_code, 200)
        self.bundle.refresh_from_db()
        self.assertEqual(self.bundle.price, Decimal('12.00'))
        self.assertEqual(self.bundle.name, '1GB')

    def test_delete_is_soft(self):
        response = self.client.delete(reverse('core:provider_detail', args=[self.provider.pk]), **auth_header(self.admin))

        self.assertEqual(response.status_code, 200)
        self.provider.refresh_from_db()
        self.assertTrue(self.provider.is_deleted)


class PublicEndpointTests(TestCase):

    def setUp(self):
        self.client = Client()
        make_catalog(pricing_tiers={'agent': '9.00'})

    def test_public_bundles_hide_tiers(self):
        response = self.client.get(reverse('core:public_bundles'), {'provider': 'mtn'})

        self.assertEqual(response.status_code, 200)
        bundles = response.json()['data']
        self.assertEqual(len(bundles), 2)
        self.assertNotIn('pricing_tiers', bundles[0])

    def test_public_site_status(self):
        response = self.client.get(reverse('core:public_site_status'))

        self.assertTrue(response.json()['data']['is_site_open'])

    def test_health_check(self):
        response = self.client.get(reverse('core:health_check'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['database'], 'healthy')

    def test_manifest_dark_theme(self):
        light = self.client.get(reverse('core:manifest')).json()
        dark = self.client.get(reverse('core:manifest'), {'theme': 'dark'}).json()

        self.assertEqual(light['start_url'], '/')
        self.assertNotEqual(light['theme_color'], dark['theme_color'])

    def test_unknown_storefront(self):
        response = self.client.get(reverse('core:storefront_public', args=['nobody']))

        self.assertEqual(response.status_code, 404)

"""
Tests for the authentication API in BundleHub.

Covers:
- Registration (pending approval vs immediate tokens)
- Login / refresh / logout
- Profile and password change
- Password reset by email and by an admin
- Admin account creation
"""

import json
import re

from django.core import mail
from django.test import TestCase, Client
from django.urls import reverse

from core.models import User, SiteSettings, Notification

from .helpers import PASSWORD, make_user, make_admin, auth_header


def post_json(client, url, data, **extra):
    return client.post(url, json.dumps(data), content_type='application/json', **extra)


class RegistrationTests(TestCase):
    """Test business signup."""

    def setUp(self):
        self.client = Client()
        self.register_url = reverse('core:register')
        self.payload = {
            'email': 'New.Agent@Example.com',
            'password': PASSWORD,
            'full_name': 'New Agent',
            'phone': '0241234567',
        }

    def test_registration_pending_approval(self):
        """Default settings hold new accounts for approval without tokens."""
        admin = make_admin()

        response = post_json(self.client, self.register_url, self.payload)

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertNotIn('access_token', body['data'])
        user = User.objects.get(email='new.agent@example.com')
        self.assertEqual(user.status, User.Status.PENDING)
        self.assertEqual(user.user_type, 'agent')
        self.assertTrue(user.agent_code)
        self.assertTrue(Notification.objects.filter(user=admin).exists())

    def test_registration_without_approval_returns_tokens(self):
        site = SiteSettings.get_instance()
        site.require_approval_for_signup = False
        site.save()

        response = post_json(self.client, self.register_url, self.payload)

        self.assertEqual(response.status_code, 201)
        data = response.json()['data']
        self.assertEqual(data['token_type'], 'Bearer')
        self.assertIn('refresh_token', data)
        self.assertEqual(data['user']['status'], 'active')

    def test_duplicate_email_rejected(self):
        make_user('new.agent@example.com')

        response = post_json(self.client, self.register_url, self.payload)

        self.assertEqual(response.status_code, 400)
        fields = [error['field'] for error in response.json()['errors']]
        self.assertIn('email', fields)

    def test_admin_role_cannot_self_register(self):
        response = post_json(self.client, self.register_url, {**self.payload, 'user_type': 'admin'})

        self.assertEqual(response.status_code, 400)
        self.assertFalse(User.objects.filter(email='new.agent@example.com').exists())

    def test_honeypot_blocks_bots(self):
        response = post_json(self.client, self.register_url, {**self.payload, 'website': 'http://spam.example'})

        self.assertEqual(response.status_code, 400)


class LoginTests(TestCase):

    def setUp(self):
        self.client = Client()
        self.login_url = reverse('core:login')
        self.user = make_user()

    def test_login_returns_tokens(self):
        response = post_json(self.client, self.login_url, {'email': 'AGENT@example.com', 'password': PASSWORD})

        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['user']['email'], 'agent@example.com')
        self.assertIn('access_token', data)
        self.user.refresh_from_db()
        self.assertIsNotNone(self.user.last_login)

    def test_wrong_password(self):
        response = post_json(self.client, self.login_url, {'email': 'agent@example.com', 'password': 'nope'})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['message'], 'Invalid email or password')

    def test_pending_account_cannot_login(self):
        make_user('pending@example.com', status=User.Status.PENDING)

        response = post_json(self.client, self.login_url, {'email': 'pending@example.com', 'password': PASSWORD})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['message'], 'Your account is awaiting approval')

    def test_refresh_issues_new_pair(self):
        tokens = post_json(
            self.client, self.login_url, {'email': 'agent@example.com', 'password': PASSWORD}
        ).json()['data']

        response = post_json(self.client, reverse('core:refresh'), {'refresh_token': tokens['refresh_token']})

        self.assertEqual(response.status_code, 200)
        self.assertIn('access_token', response.json()['data'])

    def test_access_token_is_not_a_refresh_token(self):
        tokens = post_json(
            self.client, self.login_url, {'email': 'agent@example.com', 'password': PASSWORD}
        ).json()['data']

        response = post_json(self.client, reverse('core:refresh'), {'refresh_token': tokens['access_token']})

        self.assertEqual(response.status_code, 401)

    def test_logout_revokes_tokens(self):
        headers = auth_header(self.user)

        response = self.client.post(reverse('core:logout'), **headers)
        self.assertEqual(response.status_code, 200)

        response = self.client.get(reverse('core:me'), **headers)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['message'], 'Token has been revoked')


class ProfileTests(TestCase):

    def setUp(self):
        self.client = Client()
        self.user = make_user()

    def test_me_requires_token(self):
        response = self.client.get(reverse('core:me'))

        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.json()['success'])

    def test_me(self):
        response = self.client.get(reverse('core:me'), **auth_header(self.user))

        self.assertEqual(response.json()['data']['email'], 'agent@example.com')

    def test_partial_profile_update(self):
        response = self.client.patch(
            reverse('core:profile'),
            json.dumps({'business_name': 'Data Hub'}),
            content_type='application/json',
            **auth_header(self.user)
        )

        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertEqual(self.user.business_name, 'Data Hub')
        self.assertEqual(self.user.full_name, 'Agent')

    def test_change_password_rotates_tokens(self):
        old_headers = auth_header(self.user)

        response = post_json(
            self.client,
            reverse('core:change_password'),
            {'current_password': PASSWORD, 'new_password': 'AnotherPass456!'},
            **old_headers
        )

        self.assertEqual(response.status_code, 200)
        self.assertIn('access_token', response.json()['data'])
        self.assertEqual(self.client.get(reverse('core:me'), **old_headers).status_code, 401)

    def test_change_password_checks_current(self):
        response = post_json(
            self.client,
            reverse('core:change_password'),
            {'current_password': 'wrong', 'new_password': 'AnotherPass456!'},
            **auth_header(self.user)
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['errors'][0]['field'], 'current_password')


class AdminRegistrationTests(TestCase):

    def setUp(self):
        self.client = Client()
        self.url = reverse('core:register_admin')
        self.payload = {'email': 'ops@example.com', 'password': PASSWORD, 'full_name': 'Ops'}

    def test_super_admin_creates_admin(self):
        boss = make_admin('boss@example.com', user_type='super_admin')

        response = post_json(self.client, self.url, self.payload, **auth_header(boss))

        self.assertEqual(response.status_code, 201)
        self.assertEqual(User.objects.get(email='ops@example.com').user_type, 'admin')

    def test_plain_admin_is_forbidden(self):
        response = post_json(self.client, self.url, self.payload, **auth_header(make_admin()))

        self.assertEqual(response.status_code, 403)


class PasswordResetTests(TestCase):

    NEW_PASSWORD = 'FreshStart456!'

    def setUp(self):
        self.client = Client()
        self.user = make_user()

    def request_link(self, email='agent@example.com'):
        response = post_json(self.client, reverse('core:forgot_password'), {'email': email})
        self.assertEqual(response.status_code, 200)
        return response

    def emailed_params(self):
        match = re.search(r'uid=([\w-]+)&token=([\w-]+)', mail.outbox[-1].body)
        return {'uid': match.group(1), 'token': match.group(2)}

    def test_forgot_password_emails_a_link(self):
        self.request_link('Agent@Example.com')

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['agent@example.com'])
        self.assertIn('/reset-password?uid=', mail.outbox[0].body)

    def test_unknown_email_gets_same_answer(self):
        known = self.request_link().json()['message']
        unknown = self.request_link('nobody@example.com').json()['message']

        self.assertEqual(known, unknown)
        self.assertEqual(len(mail.outbox), 1)

    def test_reset_sets_password_and_revokes_tokens(self):
        headers = auth_header(self.user)
        self.request_link()

        response = post_json(
            self.client, reverse('core:reset_password'), {**self.emailed_params(), 'new_password': self.NEW_PASSWORD}
        )

        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password(self.NEW_PASSWORD))
        self.assertEqual(self.client.get(reverse('core:me'), **headers).status_code, 401)

    def test_link_works_once(self):
        self.request_link()
        params = {**self.emailed_params(), 'new_password': self.NEW_PASSWORD}
        post_json(self.client, reverse('core:reset_password'), params)

        response = post_json(self.client, reverse('core:reset_password'), {**params, 'new_password': 'Another789!x'})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], 'Invalid or expired reset token')

    def test_garbage_uid_rejected(self):
        response = post_json(
            self.client, reverse('core:reset_password'),
            {'uid': '!!!', 'token': 'abc-123', 'new_password': self.NEW_PASSWORD}
        )

        self.assertEqual(response.status_code, 400)

    def test_admin_resets_user_password(self):
        admin = make_admin()

        response = post_json(
            self.client, reverse('core:user_reset_password', args=[self.user.pk]),
            {'new_password': self.NEW_PASSWORD}, **auth_header(admin)
        )

        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password(self.NEW_PASSWORD))
        self.assertTrue(Notification.objects.filter(user=self.user, title='Password reset').exists())

    def test_admin_cannot_reset_super_admin(self):
        boss = make_admin('boss@example.com', user_type='super_admin')

        response = post_json(
            self.client, reverse('core:user_reset_password', args=[boss.pk]),
            {'new_password': self.NEW_PASSWORD}, **auth_header(make_admin())
        )

        self.assertEqual(response.status_code, 403)

    def test_agents_cannot_reset_others(self):
        other = make_user('other@example.com')

        response = post_json(
            self.client, reverse('core:user_reset_password', args=[other.pk]),
            {'new_password': self.NEW_PASSWORD}, **auth_header(self.user)
        )

        self.assertEqual(response.status_code, 403)

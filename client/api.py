"""
HTTP layer for the BundleHub client.

ApiClient wraps a requests.Session: it attaches the access token, refreshes
it once on a 401 and retries, and turns error envelopes into ApiError.
"""

import logging
import threading

import requests

logger = logging.getLogger('client')

DEFAULT_TIMEOUT = 30


class ApiError(Exception):
    """Non-2xx response (status 0 for network failures)."""

    def __init__(self, message, status=0, code=None, data=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.data = data

    def __repr__(self):
        return f"ApiError(status={self.status}, code={self.code!r}, message={self.message!r})"

    @property
    def errors(self):
        """Per-field validation errors, if the server sent any."""
        if isinstance(self.data, dict):
            return self.data.get('errors') or []
        return []


class TokenStorage:
    """In-memory access/refresh token pair."""

    def __init__(self, access=None, refresh=None):
        self.access = access
        self.refresh = refresh

    def set(self, access, refresh=None):
        self.access = access
        if refresh:
            self.refresh = refresh

    def clear(self):
        self.access = None
        self.refresh = None


class ApiClient:

    def __init__(self, base_url, tokens=None, session=None, timeout=DEFAULT_TIMEOUT, on_logout=None):
        self.base_url = base_url.rstrip('/')
        self.tokens = tokens or TokenStorage()
        self.session = session or requests.Session()
        self.session.headers.update({'Accept': 'application/json'})
        self.timeout = timeout
        self.on_logout = on_logout
        self._refresh_lock = threading.Lock()

    def url(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    # =========================================================================
    # VERBS
    # =========================================================================

    def get(self, path, params=None):
        return self.request('GET', path, params=params)

    def post(self, path, json=None):
        return self.request('POST', path, json=json)

    def put(self, path, json=None):
        return self.request('PUT', path, json=json)

    def patch(self, path, json=None):
        return self.request('PATCH', path, json=json)

    def delete(self, path, params=None):
        return self.request('DELETE', path, params=params)

    def request(self, method, path, params=None, json=None):
        """
        Send a request and return the `data` of the success envelope.

        Raises:
            ApiError: on any non-2xx response or network failure
        """
        response = self._send(method, path, params, json)

        if response.status_code == 401 and self.tokens.refresh and not path.startswith('auth/refresh'):
            sent_token = self._sent_token(response)
            if self._refresh(sent_token):
                response = self._send(method, path, params, json)

        return self._unwrap(response)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _send(self, method, path, params, json):
        headers = {}
        if self.tokens.access:
            headers['Authorization'] = f"Bearer {self.tokens.access}"
        try:
            return self.session.request(
                method,
                self.url(path),
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise ApiError(str(e) or 'Network error', status=0) from e

    @staticmethod
    def _sent_token(response):
        header = ''
        if response.request is not None:
            header = response.request.headers.get('Authorization', '')
        return header[len('Bearer '):] if header.startswith('Bearer ') else None

    def _refresh(self, sent_token):
        """
        Exchange the refresh token for a new pair. Concurrent callers share
        one refresh: if another thread already replaced the token we just
        retry with it.
        """
        with self._refresh_lock:
            if self.tokens.access and sent_token and self.tokens.access != sent_token:
                return True
            try:
                response = self.session.post(
                    self.url('auth/refresh/'),
                    json={'refresh_token': self.tokens.refresh},
                    timeout=self.timeout,
                )
                data = self._unwrap(response)
            except ApiError as e:
                logger.info(f"Token refresh failed: {e.message}")
                self.logout()
                return False

            self.tokens.set(data['access_token'], data.get('refresh_token'))
            return True

    def logout(self):
        self.tokens.clear()
        if self.on_logout:
            self.on_logout()

    @staticmethod
    def _unwrap(response):
        try:
            body = response.json()
        except ValueError:
            body = None

        if 200 <= response.status_code < 300:
            if isinstance(body, dict) and 'success' in body:
                return body.get('data')
            return body

        message = 'An unexpected error occurred'
        code = None
        if isinstance(body, dict):
            message = body.get('message') or message
            code = body.get('code')
        elif response.reason:
            message = response.reason
        raise ApiError(message, status=response.status_code, code=code, data=body)

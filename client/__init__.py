"""
Python client for the BundleHub API.

- api: HTTP session with bearer tokens and refresh-on-401
- query_keys: hierarchical cache keys per domain
- cache: QueryCache with prefix invalidation after mutations
- services: one wrapper per API area
"""

from .api import ApiClient, ApiError, TokenStorage
from .cache import QueryCache
from .services import BundleHub

__all__ = ['ApiClient', 'ApiError', 'TokenStorage', 'QueryCache', 'BundleHub']

"""
Hierarchical cache keys.

Keys are tuples; a key is invalidated together with every key it prefixes,
so invalidating `orders.all` drops every order list and detail.
"""


def _freeze(filters):
    if not filters:
        return ()
    return tuple(sorted((k, v) for k, v in filters.items() if v is not None))


class Domain:
    """Key factory for one API area: all, lists(), list(filters), details(), detail(id)."""

    def __init__(self, name):
        self.all = (name,)

    def lists(self):
        return self.all + ('list',)

    def list(self, filters=None):
        return self.lists() + (_freeze(filters),)

    def details(self):
        return self.all + ('detail',)

    def detail(self, id):
        return self.details() + (str(id),)

    def sub(self, name, filters=None):
        """Any other resource under the domain, e.g. sub('pending-request')."""
        key = self.all + (name,)
        return key + (_freeze(filters),) if filters else key


auth = Domain('auth')
users = Domain('users')
orders = Domain('orders')
wallet = Domain('wallet')
providers = Domain('providers')
packages = Domain('packages')
bundles = Domain('bundles')
commissions = Domain('commissions')
notifications = Domain('notifications')
announcements = Domain('announcements')
storefront = Domain('storefront')
analytics = Domain('analytics')
settings = Domain('settings')


def is_prefix(prefix, key):
    return key[:len(prefix)] == tuple(prefix)

"""
User type classification for BundleHub.

Role strings drive everything from pricing tiers to tenant scoping:
- Business users (agents and dealers) own a wallet and are their own tenant
- Admin users manage the platform and approve money movements
"""

AGENT = 'agent'
SUPER_AGENT = 'super_agent'
DEALER = 'dealer'
SUPER_DEALER = 'super_dealer'
ADMIN = 'admin'
SUPER_ADMIN = 'super_admin'

BUSINESS_USER_TYPES = (AGENT, SUPER_AGENT, DEALER, SUPER_DEALER)
ADMIN_USER_TYPES = (ADMIN, SUPER_ADMIN)
ALL_USER_TYPES = BUSINESS_USER_TYPES + ADMIN_USER_TYPES


def is_business_user(user_type):
    return user_type in BUSINESS_USER_TYPES


def is_admin_user(user_type):
    return user_type in ADMIN_USER_TYPES


def can_have_wallet(user_type):
    """Only business users hold wallet credit."""
    return is_business_user(user_type)


def needs_agent_code(user_type):
    """Business users get a public BLA-XXX reseller code."""
    return is_business_user(user_type)


def is_tenant_user(user_type):
    """Business users are the root of their own tenant."""
    return is_business_user(user_type)


def get_tenant_id(user):
    """
    Resolve the tenant a user belongs to.

    Business users are their own tenant, so their own id is returned.
    Anyone else inherits the tenant they were created under (or None).
    """
    if user is None:
        return None
    if is_business_user(user.user_type):
        return user.pk
    return user.tenant_id

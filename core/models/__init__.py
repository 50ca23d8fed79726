"""
BundleHub Database Models Package

Complete data structure for the bundle reselling platform:
- User: Custom user model with email login, role and wallet balance
- Provider / Package / Bundle: The catalogue with per-role pricing tiers
- Order / OrderItem: Single, bulk and storefront purchases
- WalletTransaction: Ledger entry for every balance change and top-up request
- CommissionRecord: Commission owed to business users per period
- SiteSettings: Singleton platform switches and rates
- Announcement: Admin broadcasts
- Notification: In-app messages
- PushSubscription: Push notification subscriptions
- NotificationPreference: User push settings
- AgentStorefront / StorefrontPricing: Agent public shops
"""

from .user import User, phone_validator
from .catalog import Provider, Package, Bundle
from .order import Order, OrderItem
from .wallet import WalletTransaction
from .commission import CommissionRecord
from .site_settings import SiteSettings
from .announcement import Announcement
from .notification import Notification, PushSubscription, NotificationPreference
from .storefront import AgentStorefront, StorefrontPricing


__all__ = [
    # Validators
    'phone_validator',

    # User
    'User',

    # Catalogue
    'Provider',
    'Package',
    'Bundle',

    # Orders
    'Order',
    'OrderItem',

    # Wallet
    'WalletTransaction',

    # Commissions
    'CommissionRecord',

    # Settings
    'SiteSettings',

    # Announcements & notifications
    'Announcement',
    'Notification',
    'PushSubscription',
    'NotificationPreference',

    # Storefront
    'AgentStorefront',
    'StorefrontPricing',
]

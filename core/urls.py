"""
URL configuration for the Core app.
"""

from django.urls import path, include

from . import views
from . import auth_views
from . import user_views
from . import catalog_views
from . import order_views
from . import wallet_views
from . import settings_views
from . import notification_views
from . import analytics_views
from . import commission_views
from . import announcement_views
from . import storefront_views

app_name = 'core'

# =========================================================================
# AUTHENTICATION & USERS
# =========================================================================

auth_patterns = [
    path('login/', auth_views.LoginView.as_view(), name='login'),
    path('register/', auth_views.RegisterView.as_view(), name='register'),
    path('register-admin/', auth_views.RegisterAdminView.as_view(), name='register_admin'),
    path('refresh/', auth_views.RefreshTokenView.as_view(), name='refresh'),
    path('logout/', auth_views.LogoutView.as_view(), name='logout'),
    path('me/', auth_views.MeView.as_view(), name='me'),
    path('change-password/', auth_views.ChangePasswordView.as_view(), name='change_password'),
    path('forgot-password/', auth_views.ForgotPasswordView.as_view(), name='forgot_password'),
    path('reset-password/', auth_views.ResetPasswordView.as_view(), name='reset_password'),
]

user_patterns = [
    path('', user_views.UserListView.as_view(), name='user_list'),
    path('profile/', auth_views.ProfileView.as_view(), name='profile'),
    path('<int:pk>/', user_views.UserDetailView.as_view(), name='user_detail'),
    path('<int:pk>/status/', user_views.UserStatusView.as_view(), name='user_status'),
    path('<int:pk>/approve/', user_views.UserApproveView.as_view(), name='user_approve'),
    path('<int:pk>/reset-password/', user_views.UserResetPasswordView.as_view(), name='user_reset_password'),
]

# =========================================================================
# CATALOGUE
# =========================================================================

catalog_patterns = [
    path('providers/', catalog_views.ProviderListView.as_view(), name='provider_list'),
    path('providers/<int:pk>/', catalog_views.ProviderDetailView.as_view(), name='provider_detail'),
    path('packages/', catalog_views.PackageListView.as_view(), name='package_list'),
    path('packages/<int:pk>/', catalog_views.PackageDetailView.as_view(), name='package_detail'),
    path('bundles/', catalog_views.BundleListView.as_view(), name='bundle_list'),
    path('bundles/<int:pk>/', catalog_views.BundleDetailView.as_view(), name='bundle_detail'),
]

public_patterns = [
    path('providers/', catalog_views.PublicProviderListView.as_view(), name='public_providers'),
    path('packages/', catalog_views.PublicPackageListView.as_view(), name='public_packages'),
    path('bundles/', catalog_views.PublicBundleListView.as_view(), name='public_bundles'),
    path('site-status/', settings_views.SiteStatusView.as_view(), name='public_site_status'),
]

# =========================================================================
# ORDERS
# =========================================================================

order_patterns = [
    path('', order_views.OrderListView.as_view(), name='order_list'),
    path('single/', order_views.SingleOrderView.as_view(), name='order_single'),
    path('bulk/', order_views.BulkOrderView.as_view(), name='order_bulk'),
    path('process-drafts/', order_views.ProcessDraftsView.as_view(), name='order_process_drafts'),
    path('reported/', order_views.ReportedOrderListView.as_view(), name='order_reported'),
    path('<int:pk>/', order_views.OrderDetailView.as_view(), name='order_detail'),
    path('<int:pk>/cancel/', order_views.CancelOrderView.as_view(), name='order_cancel'),
    path('<int:pk>/report/', order_views.ReportOrderView.as_view(), name='order_report'),
    path('<int:pk>/status/', order_views.OrderStatusView.as_view(), name='order_status'),
    path('<int:pk>/reception-status/', order_views.ReceptionStatusView.as_view(), name='order_reception_status'),
    path('<int:pk>/process/', order_views.ProcessBulkOrderView.as_view(), name='order_process'),
    path('<int:pk>/items/<int:item_id>/process/', order_views.ProcessOrderItemView.as_view(), name='order_item_process'),
]

# =========================================================================
# WALLET
# =========================================================================

wallet_patterns = [
    path('', wallet_views.WalletInfoView.as_view(), name='wallet_info'),
    path('transactions/', wallet_views.WalletTransactionsView.as_view(), name='wallet_transactions'),
    path('pending-request/', wallet_views.PendingTopUpView.as_view(), name='wallet_pending_request'),
    path('request-top-up/', wallet_views.TopUpRequestView.as_view(), name='wallet_request_top_up'),
    path('analytics/', wallet_views.WalletAnalyticsView.as_view(), name='wallet_analytics'),
    path('admin/top-up/', wallet_views.AdminTopUpView.as_view(), name='wallet_admin_top_up'),
    path('admin/debit/', wallet_views.AdminDebitView.as_view(), name='wallet_admin_debit'),
    path('admin/pending-requests/', wallet_views.PendingRequestsView.as_view(), name='wallet_pending_requests'),
    path('admin/requests/<int:pk>/process/', wallet_views.ProcessTopUpView.as_view(), name='wallet_process_request'),
    path('admin/transactions/', wallet_views.AdminTransactionsView.as_view(), name='wallet_admin_transactions'),
]

# =========================================================================
# SETTINGS
# =========================================================================

settings_patterns = [
    path('', settings_views.SettingsView.as_view(), name='settings'),
    path('site-status/', settings_views.SiteStatusView.as_view(), name='site_status'),
    path('site-status/toggle/', settings_views.SiteStatusToggleView.as_view(), name='site_status_toggle'),
    path('signup-approval/', settings_views.SignupApprovalView.as_view(), name='signup_approval'),
    path('storefront-approval/', settings_views.StorefrontApprovalSettingView.as_view(), name='storefront_approval'),
    path('commission-rates/', settings_views.CommissionRatesSettingView.as_view(), name='settings_commission_rates'),
    path('wallet/', settings_views.WalletSettingsView.as_view(), name='settings_wallet'),
    path('api/', settings_views.ApiSettingsView.as_view(), name='settings_api'),
]

# =========================================================================
# NOTIFICATIONS & PUSH
# =========================================================================

notification_patterns = [
    path('', notification_views.NotificationListView.as_view(), name='notifications'),
    path('unread-count/', notification_views.UnreadCountView.as_view(), name='notifications_unread_count'),
    path('mark-all-read/', notification_views.MarkAllReadView.as_view(), name='notifications_mark_all_read'),
    path('<int:pk>/', notification_views.NotificationDetailView.as_view(), name='notification_detail'),
    path('<int:pk>/read/', notification_views.MarkAsReadView.as_view(), name='notification_read'),
    path('<int:pk>/unread/', notification_views.MarkAsUnreadView.as_view(), name='notification_unread'),
]

push_patterns = [
    path('vapid-public-key/', notification_views.VapidKeyView.as_view(), name='push_vapid_key'),
    path('subscribe/', notification_views.RegisterPushView.as_view(), name='push_subscribe'),
    path('unsubscribe/', notification_views.UnregisterPushView.as_view(), name='push_unsubscribe'),
    path('preferences/', notification_views.NotificationPreferencesView.as_view(), name='push_preferences'),
]

# =========================================================================
# ANALYTICS & COMMISSIONS
# =========================================================================

analytics_patterns = [
    path('agent/', analytics_views.AgentAnalyticsView.as_view(), name='analytics_agent'),
    path('summary/', analytics_views.AdminSummaryView.as_view(), name='analytics_summary'),
    path('chart/', analytics_views.RevenueChartView.as_view(), name='analytics_chart'),
]

commission_patterns = [
    path('', commission_views.CommissionListView.as_view(), name='commission_list'),
    path('mine/', commission_views.MyCommissionsView.as_view(), name='commission_mine'),
    path('calculate/', commission_views.CalculateCommissionView.as_view(), name='commission_calculate'),
    path('pay-multiple/', commission_views.PayMultipleView.as_view(), name='commission_pay_multiple'),
    path('reject-multiple/', commission_views.RejectMultipleView.as_view(), name='commission_reject_multiple'),
    path('generate-daily/', commission_views.GenerateDailyView.as_view(), name='commission_generate_daily'),
    path('finalize/', commission_views.FinalizeMonthView.as_view(), name='commission_finalize'),
    path('statistics/', commission_views.CommissionStatisticsView.as_view(), name='commission_statistics'),
    path('rates/', commission_views.CommissionRatesView.as_view(), name='commission_rates'),
    path('<int:pk>/pay/', commission_views.PayCommissionView.as_view(), name='commission_pay'),
    path('<int:pk>/reject/', commission_views.RejectCommissionView.as_view(), name='commission_reject'),
]

# =========================================================================
# ANNOUNCEMENTS
# =========================================================================

announcement_patterns = [
    path('', announcement_views.AnnouncementListView.as_view(), name='announcement_list'),
    path('active/', announcement_views.ActiveAnnouncementsView.as_view(), name='announcement_active'),
    path('<int:pk>/', announcement_views.AnnouncementDetailView.as_view(), name='announcement_detail'),
    path('<int:pk>/view/', announcement_views.MarkViewedView.as_view(), name='announcement_view'),
    path('<int:pk>/acknowledge/', announcement_views.AcknowledgeView.as_view(), name='announcement_acknowledge'),
    path('<int:pk>/broadcast/', announcement_views.BroadcastView.as_view(), name='announcement_broadcast'),
    path('<int:pk>/stats/', announcement_views.AnnouncementStatsView.as_view(), name='announcement_stats'),
]

# =========================================================================
# STOREFRONT
# =========================================================================

storefront_patterns = [
    # Public shop
    path('public/<slug:business_name>/', storefront_views.PublicStorefrontView.as_view(), name='storefront_public'),
    path('public/<slug:business_name>/bundles/', storefront_views.PublicStorefrontBundlesView.as_view(), name='storefront_public_bundles'),
    path('public/<slug:business_name>/orders/', storefront_views.PublicStorefrontOrderView.as_view(), name='storefront_public_order'),

    # Agent
    path('', storefront_views.MyStorefrontView.as_view(), name='storefront'),
    path('pricing/', storefront_views.StorefrontPricingView.as_view(), name='storefront_pricing'),
    path('bundles/toggle/', storefront_views.ToggleBundlesView.as_view(), name='storefront_toggle_bundles'),
    path('orders/', storefront_views.StorefrontOrdersView.as_view(), name='storefront_orders'),
    path('orders/<int:pk>/verify-payment/', storefront_views.VerifyPaymentView.as_view(), name='storefront_verify_payment'),
    path('orders/<int:pk>/reject/', storefront_views.RejectStorefrontOrderView.as_view(), name='storefront_reject_order'),
    path('analytics/', storefront_views.StorefrontAnalyticsView.as_view(), name='storefront_analytics'),

    # Admin
    path('admin/', storefront_views.AdminStorefrontListView.as_view(), name='storefront_admin_list'),
    path('admin/<int:pk>/approve/', storefront_views.ApproveStorefrontView.as_view(), name='storefront_approve'),
    path('admin/<int:pk>/suspend/', storefront_views.SuspendStorefrontView.as_view(), name='storefront_suspend'),
]

api_patterns = [
    path('auth/', include(auth_patterns)),
    path('users/', include(user_patterns)),
    path('', include(catalog_patterns)),
    path('public/', include(public_patterns)),
    path('orders/', include(order_patterns)),
    path('wallet/', include(wallet_patterns)),
    path('settings/', include(settings_patterns)),
    path('notifications/', include(notification_patterns)),
    path('push/', include(push_patterns)),
    path('analytics/', include(analytics_patterns)),
    path('commissions/', include(commission_patterns)),
    path('announcements/', include(announcement_patterns)),
    path('storefront/', include(storefront_patterns)),
]

urlpatterns = [
    # Health check
    path('health', views.health_check, name='health_check'),
    path('manifest', views.manifest, name='manifest'),

    path('api/', include(api_patterns)),
]

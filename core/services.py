"""
Account services for BundleHub.

Contains helper functions for:
- Business user and admin registration
- Login / logout with signed bearer tokens
- Account approval, status changes and deletion (admin)
- Profile updates and password resets
"""

import logging

from django.conf import settings
from django.contrib.auth import authenticate
from django.contrib.auth.tokens import default_token_generator
from django.core.mail import send_mail
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_encode, urlsafe_base64_decode

from . import notification_service
from .codes import generate_agent_code
from .exceptions import AuthenticationError, ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from .tokens import issue_tokens, revoke_tokens, authenticate_token, REFRESH
from .user_types import is_business_user, is_admin_user, needs_agent_code, SUPER_ADMIN

logger = logging.getLogger('core.auth')


def _check_email_free(email):
    from .models import User

    if User.objects.filter(email__iexact=email).exists():
        raise ConflictError('A user with this email already exists')


def register_business_user(data):
    """
    Sign up an agent or dealer.

    Starts `pending` when the site requires signup approval, otherwise
    `active`. Admins are told about the new account either way.

    Returns:
        tuple: (user, tokens or None). No tokens while approval is pending.
    """
    from .models import User, SiteSettings

    user_type = data.get('user_type') or User.UserType.AGENT
    if not is_business_user(user_type):
        raise ValidationError(errors=[{'field': 'user_type', 'message': 'Invalid account type'}])
    _check_email_free(data['email'])

    needs_approval = SiteSettings.get_instance().require_approval_for_signup
    with transaction.atomic():
        user = User.objects.create_user(
            email=data['email'],
            password=data['password'],
            full_name=data['full_name'],
            phone=data.get('phone', ''),
            business_name=data.get('business_name', ''),
            user_type=user_type,
            agent_code=generate_agent_code() if needs_agent_code(user_type) else None,
            status=User.Status.PENDING if needs_approval else User.Status.ACTIVE,
        )

    logger.info(f"New {user_type} registered: {user.email} ({user.agent_code}), status {user.status}")
    notification_service.notify_admins(
        'New registration',
        f"{user.display_name} registered as {user.get_user_type_display()}"
        f"{' and is awaiting approval' if needs_approval else ''}.",
        metadata={'type': 'user_registered', 'user_id': user.pk},
    )
    return user, (None if needs_approval else issue_tokens(user))


def register_admin(data, created_by):
    """Only super admins can create admin accounts."""
    from .models import User

    if created_by.user_type != SUPER_ADMIN:
        raise PermissionDeniedError('Only super admins can create admin accounts')
    user_type = data.get('user_type') or User.UserType.ADMIN
    if not is_admin_user(user_type):
        raise ValidationError(errors=[{'field': 'user_type', 'message': 'Invalid admin type'}])
    _check_email_free(data['email'])

    user = User.objects.create_user(
        email=data['email'],
        password=data['password'],
        full_name=data['full_name'],
        phone=data.get('phone', ''),
        user_type=user_type,
        status=User.Status.ACTIVE,
        is_verified=True,
    )
    logger.info(f"Admin account {user.email} created by {created_by.email}")
    return user


def login(email, password):
    """
    Check credentials and issue tokens.

    Raises:
        AuthenticationError: wrong credentials or an account that may not sign in
    """
    from .models import User

    user = authenticate(email=email, password=password)
    if user is None:
        logger.warning(f"Failed login for {email}")
        raise AuthenticationError('Invalid email or password')

    if user.status == User.Status.PENDING:
        raise AuthenticationError('Your account is awaiting approval')
    if user.status in (User.Status.SUSPENDED, User.Status.REJECTED):
        raise AuthenticationError(f'Your account has been {user.status}')

    user.last_login = timezone.now()
    user.save(update_fields=['last_login'])
    logger.info(f"User {user.email} logged in")
    return user, issue_tokens(user)


def refresh(refresh_token):
    user = authenticate_token(refresh_token, kind=REFRESH)
    return user, issue_tokens(user)


def logout(user):
    revoke_tokens(user)
    logger.info(f"User {user.email} logged out")


# =============================================================================
# PROFILE
# =============================================================================

PROFILE_FIELDS = ('full_name', 'phone', 'business_name')


def update_profile(user, data):
    for field in PROFILE_FIELDS:
        if field in data:
            setattr(user, field, data[field])
    user.save()
    return user


def change_password(user, current_password, new_password):
    if not user.check_password(current_password):
        raise ValidationError(errors=[{'field': 'current_password', 'message': 'Current password is incorrect'}])
    user.set_password(new_password)
    user.save()
    # Old tokens stop working after a password change
    revoke_tokens(user)
    return issue_tokens(user)


# =============================================================================
# PASSWORD RESET
# =============================================================================

def password_reset_link(user):
    uid = urlsafe_base64_encode(force_bytes(user.pk))
    token = default_token_generator.make_token(user)
    return f"{settings.SITE_URL}/reset-password?uid={uid}&token={token}"


def forgot_password(email):
    """
    Email a reset link valid for PASSWORD_RESET_TIMEOUT seconds.

    Unknown or inactive emails get no mail but the same answer, so the
    endpoint does not reveal which emails have accounts.

    Returns:
        bool: whether a mail was sent
    """
    from .models import User

    user = User.objects.filter(email__iexact=email, is_active=True).first()
    if user is None:
        logger.warning(f"Password reset requested for unknown email: {email}")
        return False

    minutes = settings.PASSWORD_RESET_TIMEOUT // 60
    try:
        send_mail(
            subject='Reset your BundleHub password',
            message=(
                f"Hello {user.display_name},\n\n"
                f"Use the link below to choose a new password. It expires in {minutes} minutes.\n\n"
                f"{password_reset_link(user)}\n\n"
                "If you did not ask for this, you can ignore this email."
            ),
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[user.email],
        )
    except Exception as e:
        logger.error(f"Failed to send password reset email to {user.email}: {e}")
        return False

    logger.info(f"Password reset email sent to {user.email}")
    return True


def reset_password(uid, token, new_password):
    """
    Set a new password from an emailed link. The token stops working once
    the password changes, and existing bearer tokens are revoked.
    """
    from .models import User

    try:
        user_id = force_str(urlsafe_base64_decode(uid))
        user = User.objects.filter(pk=user_id, is_active=True).first()
    except (TypeError, ValueError, OverflowError):
        user = None

    if user is None or not default_token_generator.check_token(user, token):
        logger.warning("Invalid or expired password reset token")
        raise ValidationError('Invalid or expired reset token')

    user.set_password(new_password)
    user.save()
    revoke_tokens(user)
    logger.info(f"Password reset for {user.email}")
    return user


def admin_reset_password(user_id, new_password, admin):
    """Admin sets a user's password directly; the user is signed out everywhere."""
    user = get_user(user_id)
    if user.user_type == SUPER_ADMIN and admin.user_type != SUPER_ADMIN:
        raise PermissionDeniedError('Only super admins can reset a super admin password')

    user.set_password(new_password)
    user.save()
    revoke_tokens(user)
    logger.warning(f"Password for {user.email} reset by {admin.email}")
    notification_service.send_notification(
        user, 'Password reset', 'Your password was reset by an administrator.', 'warning',
        metadata={'type': 'password_reset'},
    )
    return user


# =============================================================================
# ADMINISTRATION
# =============================================================================

def get_user(user_id):
    from .models import User

    user = User.objects.filter(pk=user_id).first()
    if user is None:
        raise NotFoundError('User not found')
    return user


def filter_users(queryset, filters):
    if filters.get('user_type'):
        queryset = queryset.filter(user_type=filters['user_type'])
    if filters.get('status'):
        queryset = queryset.filter(status=filters['status'])
    if filters.get('search'):
        term = filters['search']
        queryset = queryset.filter(
            Q(email__icontains=term) | Q(full_name__icontains=term)
            | Q(business_name__icontains=term) | Q(agent_code__icontains=term)
        )
    return queryset


def approve_user(user_id, admin, approve=True, reason=''):
    """Approve or reject a pending signup."""
    from .models import User

    user = get_user(user_id)
    if user.status != User.Status.PENDING:
        raise ValidationError(f'User is not pending approval (status: {user.status})')

    user.status = User.Status.ACTIVE if approve else User.Status.REJECTED
    user.is_verified = approve
    user.save(update_fields=['status', 'is_verified', 'updated_at'])
    logger.info(f"User {user.email} {'approved' if approve else 'rejected'} by {admin.email}")

    if approve:
        notification_service.send_notification(
            user, 'Account approved', 'Your account has been approved. Welcome aboard!', 'success',
            metadata={'type': 'account_approved'},
        )
    else:
        notification_service.send_notification(
            user, 'Account rejected',
            f"Your registration was not approved.{' Reason: ' + reason if reason else ''}", 'error',
            metadata={'type': 'account_rejected'},
        )
    return user


def update_user_status(user_id, status, admin):
    """Admin sets active/suspended/rejected. Suspending revokes tokens."""
    from .models import User

    if status not in User.Status.values:
        raise ValidationError(errors=[{'field': 'status', 'message': f'Invalid status: {status}'}])
    user = get_user(user_id)
    if user.pk == admin.pk:
        raise PermissionDeniedError('You cannot change your own status')
    if user.user_type == SUPER_ADMIN and admin.user_type != SUPER_ADMIN:
        raise PermissionDeniedError('Only super admins can change a super admin')

    user.status = status
    user.save(update_fields=['status', 'updated_at'])
    if status != User.Status.ACTIVE:
        revoke_tokens(user)
    logger.warning(f"User {user.email} status set to {status} by {admin.email}")
    return user


def delete_user(user_id, admin):
    """
    Deactivate an account. Rows stay for the ledger and order history.
    """
    user = get_user(user_id)
    if user.pk == admin.pk:
        raise PermissionDeniedError('You cannot delete your own account')
    if user.user_type == SUPER_ADMIN:
        raise PermissionDeniedError('Super admin accounts cannot be deleted')

    user.is_active = False
    user.save(update_fields=['is_active', 'updated_at'])
    revoke_tokens(user)
    logger.warning(f"User {user.email} deactivated by {admin.email}")
    return user

"""
Authentication views for BundleHub.

Handles:
- Registration (business users, and admins by a super admin)
- Login / token refresh / logout
- Current user profile, password change and password reset by email
"""

import logging

from . import services
from .api import ApiView, TokenRequiredMixin, SuperAdminRequiredMixin, ok, created, validate, validated_form
from .auth_forms import (
    RegisterForm, AdminRegisterForm, LoginForm, RefreshForm, ProfileForm, ChangePasswordForm,
    ForgotPasswordForm, ResetPasswordForm,
)

# Logger for authentication operations
logger = logging.getLogger('core.auth')


class RegisterView(ApiView):
    """
    Business signup. Returns tokens straight away unless the account
    needs admin approval first.
    """

    def post(self, request):
        data = validate(RegisterForm, self.data)
        user, tokens = services.register_business_user(data)

        if tokens is None:
            return created(
                {'user': user.to_dict()},
                'Registration successful. Your account is awaiting approval.'
            )
        return created({'user': user.to_dict(), **tokens}, 'Registration successful')


class RegisterAdminView(SuperAdminRequiredMixin, ApiView):

    def post(self, request):
        data = validate(AdminRegisterForm, self.data)
        user = services.register_admin(data, request.user)
        return created({'user': user.to_dict()}, 'Admin account created')


class LoginView(ApiView):

    def post(self, request):
        data = validate(LoginForm, self.data)
        user, tokens = services.login(data['email'], data['password'])
        return ok({'user': user.to_dict(), **tokens}, 'Login successful')


class RefreshTokenView(ApiView):

    def post(self, request):
        data = validate(RefreshForm, self.data)
        user, tokens = services.refresh(data['refresh_token'])
        return ok(tokens)


class LogoutView(TokenRequiredMixin, ApiView):
    """Revokes every token issued to the user."""

    def post(self, request):
        services.logout(request.user)
        return ok(message='Logged out')


class MeView(TokenRequiredMixin, ApiView):

    def get(self, request):
        return ok(request.user.to_dict())


class ProfileView(TokenRequiredMixin, ApiView):

    def get(self, request):
        return ok(request.user.to_dict())

    def put(self, request):
        form = validated_form(ProfileForm, self.data)
        user = services.update_profile(request.user, form.changed_values())
        return ok(user.to_dict(), 'Profile updated')

    patch = put


class ChangePasswordView(TokenRequiredMixin, ApiView):

    def post(self, request):
        data = validate(ChangePasswordForm, self.data)
        tokens = services.change_password(request.user, data['current_password'], data['new_password'])
        logger.info(f"Password changed for {request.user.email}")
        return ok(tokens, 'Password changed')


class ForgotPasswordView(ApiView):
    """Same answer whether or not the email has an account."""

    def post(self, request):
        data = validate(ForgotPasswordForm, self.data)
        services.forgot_password(data['email'])
        return ok(message='If an account exists for this email, a reset link has been sent.')


class ResetPasswordView(ApiView):

    def post(self, request):
        data = validate(ResetPasswordForm, self.data)
        services.reset_password(data['uid'], data['token'], data['new_password'])
        return ok(message='Password reset successfully. You can now log in.')

"""
Authentication and account forms for BundleHub.

Forms include:
- RegisterForm: Business signup with honeypot for bots
- AdminRegisterForm: Admin accounts created by a super admin
- LoginForm / RefreshForm
- ProfileForm / ChangePasswordForm
- ApproveUserForm / UserStatusForm: Admin account management
"""

from django import forms
from django.contrib.auth.password_validation import validate_password

from .models import User, phone_validator
from .user_types import BUSINESS_USER_TYPES, ADMIN_USER_TYPES


class HoneypotMixin:
    """
    Mixin to add honeypot bot protection to forms.
    Bots typically fill every field they find, including `website`.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['website'] = forms.CharField(required=False)

    def clean_website(self):
        website = self.cleaned_data.get('website', '')
        if website:
            raise forms.ValidationError('Bot detected.')
        return website


def _role_choices(roles):
    labels = dict(User.UserType.choices)
    return [(role, labels[role]) for role in roles]


class RegisterForm(HoneypotMixin, forms.Form):
    """
    Signup for agents and dealers.
    """

    email = forms.EmailField()
    password = forms.CharField(min_length=8)
    full_name = forms.CharField(max_length=150)
    phone = forms.CharField(
        max_length=20,
        required=False,
        validators=[phone_validator],
        help_text='Optional. e.g., 0241234567'
    )
    business_name = forms.CharField(max_length=150, required=False)
    user_type = forms.ChoiceField(
        choices=_role_choices(BUSINESS_USER_TYPES),
        required=False
    )

    def clean_email(self):
        email = self.cleaned_data.get('email', '').lower().strip()
        if User.objects.filter(email__iexact=email).exists():
            raise forms.ValidationError('A user with this email already exists.')
        return email

    def clean_password(self):
        password = self.cleaned_data.get('password')
        validate_password(password)
        return password


class AdminRegisterForm(RegisterForm):
    user_type = forms.ChoiceField(
        choices=_role_choices(ADMIN_USER_TYPES),
        required=False
    )


class LoginForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField()

    def clean_email(self):
        return self.cleaned_data['email'].lower().strip()


class RefreshForm(forms.Form):
    refresh_token = forms.CharField()


class ProfileForm(forms.Form):
    """Partial update: only keys present in the request are applied."""

    full_name = forms.CharField(max_length=150, required=False)
    phone = forms.CharField(max_length=20, required=False, validators=[phone_validator])
    business_name = forms.CharField(max_length=150, required=False)

    def clean_full_name(self):
        full_name = self.cleaned_data.get('full_name', '')
        if 'full_name' in self.data and not full_name.strip():
            raise forms.ValidationError('Full name cannot be empty.')
        return full_name

    def changed_values(self):
        return {key: value for key, value in self.cleaned_data.items() if key in self.data}


class ChangePasswordForm(forms.Form):
    current_password = forms.CharField()
    new_password = forms.CharField(min_length=8)

    def clean_new_password(self):
        password = self.cleaned_data.get('new_password')
        validate_password(password)
        return password


class ApproveUserForm(forms.Form):
    approve = forms.NullBooleanField(required=False)
    reason = forms.CharField(max_length=500, required=False)

    def clean_approve(self):
        # Missing means approve
        approve = self.cleaned_data.get('approve')
        return True if approve is None else approve


class UserStatusForm(forms.Form):
    status = forms.ChoiceField(choices=User.Status.choices)


class ForgotPasswordForm(forms.Form):
    email = forms.EmailField()

    def clean_email(self):
        return self.cleaned_data['email'].lower().strip()


class ResetPasswordForm(forms.Form):
    uid = forms.CharField(max_length=64)
    token = forms.CharField(max_length=128)
    new_password = forms.CharField(min_length=8)

    def clean_new_password(self):
        password = self.cleaned_data.get('new_password')
        validate_password(password)
        return password


class AdminResetPasswordForm(forms.Form):
    new_password = forms.CharField(min_length=8)

    def clean_new_password(self):
        password = self.cleaned_data.get('new_password')
        validate_password(password)
        return password

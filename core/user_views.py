"""
User management views for BundleHub (admin).
"""

from . import services
from .api import ApiView, AdminRequiredMixin, ok, validate, paginate
from .auth_forms import ApproveUserForm, UserStatusForm, AdminResetPasswordForm
from .models import User


class UserListView(AdminRequiredMixin, ApiView):
    """
    Filter by ?user_type=, ?status=, ?search=.
    """

    def get(self, request):
        users = services.filter_users(User.objects.order_by('-date_joined'), request.GET)
        return ok(paginate(request, users, User.to_dict))


class UserDetailView(AdminRequiredMixin, ApiView):

    def get(self, request, pk):
        return ok(services.get_user(pk).to_dict())

    def delete(self, request, pk):
        user = services.delete_user(pk, request.user)
        return ok(user.to_dict(), 'User deactivated')


class UserStatusView(AdminRequiredMixin, ApiView):

    def put(self, request, pk):
        data = validate(UserStatusForm, self.data)
        user = services.update_user_status(pk, data['status'], request.user)
        return ok(user.to_dict(), f'User status set to {user.status}')

    patch = put


class UserApproveView(AdminRequiredMixin, ApiView):

    def post(self, request, pk):
        data = validate(ApproveUserForm, self.data)
        user = services.approve_user(pk, request.user, data['approve'], data['reason'])
        return ok(user.to_dict(), 'User approved' if data['approve'] else 'User rejected')


class UserResetPasswordView(AdminRequiredMixin, ApiView):

    def post(self, request, pk):
        data = validate(AdminResetPasswordForm, self.data)
        user = services.admin_reset_password(pk, data['new_password'], request.user)
        return ok(user.to_dict(), 'Password reset successfully')

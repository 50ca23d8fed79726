"""
Announcement views for BundleHub.
"""

from . import announcement_service
from .admin_forms import AnnouncementForm
from .api import ApiView, TokenRequiredMixin, AdminRequiredMixin, ok, created, validate, paginate, instance_data
from .models import Announcement


class AnnouncementListView(AdminRequiredMixin, ApiView):
    """All announcements (admin). ?status= filters."""

    def get(self, request):
        qs = Announcement.objects.order_by('-created_at')
        if request.GET.get('status'):
            qs = qs.filter(status=request.GET['status'])
        data = paginate(request, qs, Announcement.to_dict)
        data['summary'] = announcement_service.summary()
        return ok(data)

    def post(self, request):
        data = validate(AnnouncementForm, self.data)
        announcement = announcement_service.create_announcement(data, request.user)
        return created(announcement.to_dict(), 'Announcement created')


class AnnouncementDetailView(AdminRequiredMixin, ApiView):

    def get(self, request, pk):
        return ok(announcement_service.get_announcement(pk).to_dict())

    def put(self, request, pk):
        announcement = announcement_service.get_announcement(pk)
        data = validate(AnnouncementForm, instance_data(AnnouncementForm, announcement, self.data), instance=announcement)
        announcement = announcement_service.update_announcement(pk, data)
        return ok(announcement.to_dict(), 'Announcement updated')

    patch = put

    def delete(self, request, pk):
        announcement_service.delete_announcement(pk)
        return ok(message='Announcement deleted')


class ActiveAnnouncementsView(TokenRequiredMixin, ApiView):

    def get(self, request):
        announcements = announcement_service.active_for_user(request.user)
        return ok([a.to_dict(user=request.user) for a in announcements])


class MarkViewedView(TokenRequiredMixin, ApiView):

    def post(self, request, pk):
        announcement = announcement_service.mark_viewed(pk, request.user)
        return ok(announcement.to_dict(user=request.user))


class AcknowledgeView(TokenRequiredMixin, ApiView):

    def post(self, request, pk):
        announcement = announcement_service.acknowledge(pk, request.user)
        return ok(announcement.to_dict(user=request.user), 'Announcement acknowledged')


class BroadcastView(AdminRequiredMixin, ApiView):

    def post(self, request, pk):
        announcement = announcement_service.broadcast(pk, request.user)
        return ok(announcement.to_dict(), 'Announcement broadcast')


class AnnouncementStatsView(AdminRequiredMixin, ApiView):

    def get(self, request, pk):
        return ok(announcement_service.get_stats(pk))

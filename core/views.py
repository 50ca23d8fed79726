"""
Views for the Core app that sit outside /api/.
"""

from django.conf import settings
from django.db import connection
from django.http import JsonResponse
from django.utils import timezone


def health_check(request):
    """
    Health check endpoint to verify the application is running.
    """
    # Check database connection
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        db_status = "healthy"
    except Exception as e:
        db_status = f"error: {str(e)}"

    return JsonResponse({
        "status": "OK",
        "timestamp": timezone.now().isoformat(),
        "service": "BundleHub",
        "database": db_status,
    })


def manifest(request):
    """
    PWA manifest. `?theme=dark` switches the theme and background colours.
    """
    theme = request.GET.get('theme', 'light')
    if theme not in settings.PWA_APP_THEME_COLORS:
        theme = 'light'

    data = {
        'name': settings.PWA_APP_NAME,
        'short_name': settings.PWA_APP_SHORT_NAME,
        'description': settings.PWA_APP_DESCRIPTION,
        'start_url': '/',
        'scope': '/',
        'display': 'standalone',
        'orientation': 'portrait',
        'theme_color': settings.PWA_APP_THEME_COLORS[theme],
        'background_color': settings.PWA_APP_BACKGROUND_COLORS[theme],
        'icons': settings.PWA_APP_ICONS,
    }
    return JsonResponse(data, content_type='application/manifest+json')

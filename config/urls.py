"""
URL configuration for BundleHub project.
"""

from django.urls import path, include

urlpatterns = [
    path('', include('core.urls')),
]

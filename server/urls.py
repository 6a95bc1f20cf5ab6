"""Root URL configuration."""

from django.urls import include, path

urlpatterns = [
    path('', include('server.apps.files.urls')),
]

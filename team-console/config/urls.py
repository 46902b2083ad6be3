"""
URL configuration for the Team Console.

The team service is an in-process API; only the admin site is routed.
"""

from django.contrib import admin
from django.urls import path

urlpatterns = [
    path('admin/', admin.site.urls),
]

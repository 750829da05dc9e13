"""URL configuration for the reviewer assignment service."""

from django.urls import include, path

urlpatterns = [
    path('', include('reviews.urls')),
]

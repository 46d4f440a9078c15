"""URL configuration for the example registration desk."""

from django.urls import path
from django.views.generic import TemplateView

urlpatterns = [
    path("", TemplateView.as_view(template_name="checkout.html"), name="checkout"),
]

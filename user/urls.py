from django.urls import path
from .views import MeView, ProfileView

app_name = "user"

urlpatterns = [
    path("me/", MeView.as_view(), name="me"),
    path("<uuid:id>/", ProfileView.as_view(), name="profile"),
]

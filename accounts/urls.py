from django.urls import path
from . import views

urlpatterns = [
    path("login/", views.HostedLoginView.as_view(), name="login"),
    path("logout/", views.logout_view, name="logout"),
]

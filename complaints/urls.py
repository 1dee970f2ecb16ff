from django.urls import path
from . import views

app_name = "complaints"

urlpatterns = [
    path("complaints/", views.submit, name="submit"),
    path("track/", views.track, name="track"),
    path("admin-review/", views.admin_review, name="admin_review"),
    path("admin-review/status/", views.update_status, name="update_status"),
    path("admin-review/changes/", views.changes, name="changes"),
    # database webhook from the hosted backend
    path("hooks/changes/", views.change_hook, name="change_hook"),
]

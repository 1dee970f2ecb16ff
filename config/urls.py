from django.contrib import admin
from django.urls import include, path
from accounts import views as accounts_views

urlpatterns = [
    path("django-admin/", admin.site.urls),
    path("", include("accounts.urls")),
    path("", accounts_views.home, name="home"),
    # submit, track and admin review
    path("", include("complaints.urls")),
]

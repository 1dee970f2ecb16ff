from django.contrib import admin
from .models import User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ("id", "email", "external_id", "is_active", "last_login")
    search_fields = ("email", "external_id")

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from accounts.models import Review, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "is_verified", "is_staff")
    list_filter = BaseUserAdmin.list_filter + ("is_verified",)
    search_fields = BaseUserAdmin.search_fields + ("phone_number",)

    fieldsets = BaseUserAdmin.fieldsets + (
        ("Member", {"fields": ("phone_number", "profile_picture", "is_verified")}),
    )


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ("id", "author", "subject", "rating", "related_ride", "created_at")
    list_filter = ("rating",)
    search_fields = ("author__username", "subject__username")
    raw_id_fields = ("author", "subject", "related_ride")

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "employee_id",
                    "first_name", "last_name", "role", "is_active")
    search_fields = ("username", "email", "employee_id")
    list_filter = ("role", "is_active", "is_staff")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Workflow", {"fields": ("role", "employee_id", "phone_number")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Workflow", {"fields": ("email", "first_name", "last_name",
                                 "role", "employee_id")}),
    )

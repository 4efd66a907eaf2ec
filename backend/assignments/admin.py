from django.contrib import admin

from .models import AssignmentRecord


@admin.register(AssignmentRecord)
class AssignmentRecordAdmin(admin.ModelAdmin):
    list_display = ("id", "application", "officer", "action", "role_tier",
                    "workload_at_assignment", "assigned_at", "is_active")
    list_filter = ("action", "role_tier", "is_active")
    search_fields = ("application__application_number", "officer__username", "reason")
    date_hierarchy = "assigned_at"

    # The ledger is append-only; changes go through the services.
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

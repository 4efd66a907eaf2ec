from django.contrib import admin

from .models import Application, ApplicationStatusLog


class ApplicationStatusLogInline(admin.TabularInline):
    model = ApplicationStatusLog
    extra = 0
    readonly_fields = ("from_status", "to_status", "changed_by", "remarks", "created_at")
    can_delete = False


@admin.register(Application)
class ApplicationAdmin(admin.ModelAdmin):
    list_display = ("application_number", "applicant", "licence_type", "status",
                    "responsible_tier", "current_officer", "needs_operator_attention")
    list_filter = ("status", "licence_type", "responsible_tier", "needs_operator_attention")
    search_fields = ("application_number", "title", "applicant__username")
    # Status and ownership only change through WorkflowService.
    readonly_fields = ("status", "responsible_tier", "current_officer",
                       "status_changed_at", "submitted_at")
    inlines = [ApplicationStatusLogInline]

"""
Applications app serializers.

Contains all Request and Response serializers for the Applications API.
Serializers handle field definitions, read/write constraints, and field-level
validation only.  **No business logic or workflow transitions live here**
— those belong in ``services.py``.

Structure
---------
1. Application read serializers (list, detail)
2. Write serializers (create draft, transition)
3. Workflow result / sub-resource serializers
"""

from __future__ import annotations

from rest_framework import serializers

from assignments.serializers import AssignmentRecordSerializer

from .models import Application, ApplicationStatus, ApplicationStatusLog, LicenceType


# ═══════════════════════════════════════════════════════════════════
#  1. Read Serializers
# ═══════════════════════════════════════════════════════════════════


class ApplicationListSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = Application
        fields = [
            "id",
            "application_number",
            "licence_type",
            "title",
            "status",
            "status_display",
            "responsible_tier",
            "current_officer",
            "needs_operator_attention",
            "status_changed_at",
        ]
        read_only_fields = fields


class ApplicationDetailSerializer(ApplicationListSerializer):

    class Meta(ApplicationListSerializer.Meta):
        fields = ApplicationListSerializer.Meta.fields + [
            "applicant",
            "submitted_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


# ═══════════════════════════════════════════════════════════════════
#  2. Write Serializers
# ═══════════════════════════════════════════════════════════════════


class ApplicationCreateSerializer(serializers.Serializer):
    licence_type = serializers.ChoiceField(choices=LicenceType.choices)
    title = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class TransitionRequestSerializer(serializers.Serializer):
    """
    Body of ``POST /api/applications/{id}/transition/``.

    ``status`` must be one of the ``ApplicationStatus`` values; whether the
    caller may use it is decided by the service layer.
    """

    status = serializers.ChoiceField(choices=ApplicationStatus.choices)
    remarks = serializers.CharField(required=False, allow_blank=True, default="", max_length=2000)


class StalledQuerySerializer(serializers.Serializer):
    """Optional ``?hours=`` override of the stall threshold."""

    hours = serializers.FloatField(required=False, min_value=0)


# ═══════════════════════════════════════════════════════════════════
#  3. Result / Sub-resource Serializers
# ═══════════════════════════════════════════════════════════════════


class TransitionResultSerializer(serializers.Serializer):
    """Serialises ``applications.services.TransitionOutcome``."""

    application = ApplicationDetailSerializer()
    previous_status = serializers.CharField()
    status = serializers.CharField()
    owner_id = serializers.IntegerField(allow_null=True)
    assignment = AssignmentRecordSerializer(allow_null=True)
    staffing_gap = serializers.SerializerMethodField()

    def get_staffing_gap(self, outcome) -> str | None:
        gap = outcome.staffing_gap
        return str(gap) if gap is not None else None


class ApplicationStatusLogSerializer(serializers.ModelSerializer):
    changed_by_username = serializers.CharField(
        source="changed_by.username", read_only=True, default=None,
    )

    class Meta:
        model = ApplicationStatusLog
        fields = [
            "id",
            "from_status",
            "to_status",
            "changed_by",
            "changed_by_username",
            "remarks",
            "created_at",
        ]
        read_only_fields = fields

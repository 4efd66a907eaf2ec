"""
Assignments app serializers.

Request serializers for reassignment / escalation and response
serializers for ledger records and workloads.  **No business logic**
lives here.
"""

from __future__ import annotations

from rest_framework import serializers

from accounts.models import OFFICER_TIERS, OfficerRole

from .models import AssignmentRecord

_TIER_CHOICES = [(role.value, role.label) for role in OfficerRole if role in OFFICER_TIERS]


class AssignmentRecordSerializer(serializers.ModelSerializer):
    """Read-only view of one ledger row."""

    officer_username = serializers.CharField(source="officer.username", read_only=True)
    duration_hours = serializers.FloatField(read_only=True, allow_null=True)

    class Meta:
        model = AssignmentRecord
        fields = [
            "id",
            "application",
            "previous_officer",
            "officer",
            "officer_username",
            "initiated_by",
            "action",
            "role_tier",
            "status_at_assignment",
            "workload_at_assignment",
            "reason",
            "ladder_step",
            "assigned_at",
            "accepted_at",
            "is_active",
            "inactivated_at",
            "duration_hours",
            "notification_sent_at",
        ]
        read_only_fields = fields


class ReassignRequestSerializer(serializers.Serializer):
    officer_id = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=2000, trim_whitespace=True)


class EscalateRequestSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=2000, trim_whitespace=True)


class OfficerWorkloadSerializer(serializers.Serializer):
    officer_id = serializers.IntegerField()
    workload = serializers.IntegerField(min_value=0)


class WorkloadStatisticsQuerySerializer(serializers.Serializer):
    """Query parameters for ``GET /api/officers/workload/``."""

    role = serializers.ChoiceField(choices=_TIER_CHOICES)

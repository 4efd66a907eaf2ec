"""
Assignments app ViewSets.

Read-only endpoints: the assignment history of an application (nested
under ``/api/applications/{application_pk}/``) and officer workloads.
Ledger writes are exposed as actions on
``applications.views.ApplicationViewSet``.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from applications.services import ApplicationQueryService
from core.domain.exceptions import NotFound

from .serializers import (
    AssignmentRecordSerializer,
    OfficerWorkloadSerializer,
    WorkloadStatisticsQuerySerializer,
)
from .services import AssignmentLedger, WorkloadService


class ApplicationAssignmentViewSet(viewsets.ViewSet):
    """
    Assignment history of one application, oldest first.

    Nested under ``/api/applications/{application_pk}/assignments/``.
    Visible to whoever can see the application itself.
    """

    permission_classes = [IsAuthenticated]

    def _history(self, request: Request, application_pk):
        application = ApplicationQueryService.get_visible(request.user, int(application_pk))
        return AssignmentLedger.history(application.pk)

    @extend_schema(
        summary="Assignment history",
        responses={200: AssignmentRecordSerializer(many=True)},
        tags=["Applications – Assignment"],
    )
    def list(self, request: Request, application_pk: int = None) -> Response:
        records = self._history(request, application_pk)
        return Response(AssignmentRecordSerializer(records, many=True).data)

    @extend_schema(
        summary="One assignment record",
        responses={200: AssignmentRecordSerializer, 404: OpenApiResponse(description="Not found.")},
        tags=["Applications – Assignment"],
    )
    def retrieve(self, request: Request, pk: int = None, application_pk: int = None) -> Response:
        record = self._history(request, application_pk).filter(pk=pk).first()
        if record is None:
            raise NotFound(f"Assignment {pk} does not belong to application {application_pk}.")
        return Response(AssignmentRecordSerializer(record).data)


class OfficerWorkloadViewSet(viewsets.ViewSet):
    """Workload of one officer, or of every active officer of a role."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Current workload of an officer",
        responses={200: OfficerWorkloadSerializer},
        tags=["Officers"],
    )
    @action(detail=True, methods=["get"], url_path="workload")
    def workload(self, request: Request, pk: int = None) -> Response:
        officer_id = int(pk)
        workload = WorkloadService.workload_for_user(officer_id, request.user)
        return Response(
            OfficerWorkloadSerializer({"officer_id": officer_id, "workload": workload}).data
        )

    @extend_schema(
        summary="Workload statistics for a role",
        parameters=[
            OpenApiParameter(name="role", type=str, location=OpenApiParameter.QUERY, required=True),
        ],
        responses={200: OfficerWorkloadSerializer(many=True)},
        tags=["Officers"],
    )
    @action(detail=False, methods=["get"], url_path="workload", url_name="workload-statistics")
    def statistics(self, request: Request) -> Response:
        query = WorkloadStatisticsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        stats = WorkloadService.statistics_for_user(query.validated_data["role"], request.user)
        rows = [
            {"officer_id": officer_id, "workload": workload}
            for officer_id, workload in sorted(stats.items())
        ]
        return Response(OfficerWorkloadSerializer(rows, many=True).data)

"""
Applications app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate all business logic to the appropriate service class.
    3. Serialize the result and return a DRF ``Response``.

Domain exceptions raised by services are turned into responses by
``core.domain.exception_handler.domain_exception_handler``.
"""

from __future__ import annotations

from datetime import timedelta

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from assignments.serializers import (
    AssignmentRecordSerializer,
    EscalateRequestSerializer,
    ReassignRequestSerializer,
)
from assignments.services import AssignmentService, ReassignmentService

from .serializers import (
    ApplicationCreateSerializer,
    ApplicationDetailSerializer,
    ApplicationListSerializer,
    ApplicationStatusLogSerializer,
    StalledQuerySerializer,
    TransitionRequestSerializer,
    TransitionResultSerializer,
)
from .services import ApplicationIntakeService, ApplicationQueryService, WorkflowService


class ApplicationViewSet(viewsets.ViewSet):
    """
    Central ViewSet for licence applications.

    Uses ``viewsets.ViewSet`` (not ``ModelViewSet``) so every action is
    explicitly defined.  Role and ownership checks happen in the service
    layer, never here.
    """

    permission_classes = [IsAuthenticated]

    # ── Standard CRUD ────────────────────────────────────────────────

    @extend_schema(
        summary="List applications",
        description="Applications visible to the caller: all for admins, handled ones for officers, own for applicants.",
        responses={200: ApplicationListSerializer(many=True)},
        tags=["Applications"],
    )
    def list(self, request: Request) -> Response:
        qs = ApplicationQueryService.visible_to(request.user)
        return Response(ApplicationListSerializer(qs, many=True).data)

    @extend_schema(
        summary="Create a draft application",
        request=ApplicationCreateSerializer,
        responses={201: ApplicationDetailSerializer},
        tags=["Applications"],
    )
    def create(self, request: Request) -> Response:
        serializer = ApplicationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        application = ApplicationIntakeService.create_draft(
            request.user, **serializer.validated_data,
        )
        return Response(
            ApplicationDetailSerializer(application).data,
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        summary="Retrieve an application",
        responses={200: ApplicationDetailSerializer, 404: OpenApiResponse(description="Not found or not visible.")},
        tags=["Applications"],
    )
    def retrieve(self, request: Request, pk: int = None) -> Response:
        application = ApplicationQueryService.get_visible(request.user, pk)
        return Response(ApplicationDetailSerializer(application).data)

    # ── Workflow ─────────────────────────────────────────────────────

    @extend_schema(
        summary="Change application status",
        description=(
            "Applies a status change allowed by the transition table for the "
            "caller's role and routes ownership to the tier the new status "
            "calls for.  ``staffing_gap`` is set when no officer was available."
        ),
        request=TransitionRequestSerializer,
        responses={
            200: TransitionResultSerializer,
            403: OpenApiResponse(description="Caller is not the applicant / owner."),
            409: OpenApiResponse(description="Transition not allowed."),
        },
        tags=["Applications – Workflow"],
    )
    @action(detail=True, methods=["post"], url_path="transition")
    def transition(self, request: Request, pk: int = None) -> Response:
        serializer = TransitionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = WorkflowService.transition(
            int(pk),
            serializer.validated_data["status"],
            request.user.pk,
            remarks=serializer.validated_data["remarks"],
        )
        return Response(TransitionResultSerializer(outcome).data)

    @extend_schema(
        summary="Legal next statuses for the caller",
        responses={200: OpenApiResponse(description='{"status": ..., "legal_next_states": [...]}')},
        tags=["Applications – Workflow"],
    )
    @action(detail=True, methods=["get"], url_path="legal-next-states")
    def legal_next_states(self, request: Request, pk: int = None) -> Response:
        application = ApplicationQueryService.get_visible(request.user, pk)
        return Response({
            "status": application.status,
            "legal_next_states": WorkflowService.legal_next_states_for(application, request.user),
        })

    @extend_schema(
        summary="Status history",
        responses={200: ApplicationStatusLogSerializer(many=True)},
        tags=["Applications – Workflow"],
    )
    @action(detail=True, methods=["get"], url_path="status-log")
    def status_log(self, request: Request, pk: int = None) -> Response:
        application = ApplicationQueryService.get_visible(request.user, pk)
        logs = ApplicationQueryService.status_log(application)
        return Response(ApplicationStatusLogSerializer(logs, many=True).data)

    # ── Assignment ───────────────────────────────────────────────────

    @extend_schema(
        summary="Auto-assign to the least-loaded officer",
        request=None,
        responses={201: AssignmentRecordSerializer, 409: OpenApiResponse(description="No officer available.")},
        tags=["Applications – Assignment"],
    )
    @action(detail=True, methods=["post"], url_path="assign")
    def assign(self, request: Request, pk: int = None) -> Response:
        record = WorkflowService.assign_current_tier(int(pk), request.user)
        return Response(AssignmentRecordSerializer(record).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Reassign to a specific officer",
        request=ReassignRequestSerializer,
        responses={201: AssignmentRecordSerializer, 400: OpenApiResponse(description="Invalid officer.")},
        tags=["Applications – Assignment"],
    )
    @action(detail=True, methods=["post"], url_path="reassign")
    def reassign(self, request: Request, pk: int = None) -> Response:
        serializer = ReassignRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        record = ReassignmentService.reassign(
            int(pk),
            serializer.validated_data["officer_id"],
            serializer.validated_data["reason"],
            request.user,
        )
        return Response(AssignmentRecordSerializer(record).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Escalate now",
        request=EscalateRequestSerializer,
        responses={201: AssignmentRecordSerializer, 409: OpenApiResponse(description="No escalation path.")},
        tags=["Applications – Assignment"],
    )
    @action(detail=True, methods=["post"], url_path="escalate")
    def escalate(self, request: Request, pk: int = None) -> Response:
        serializer = EscalateRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        record = WorkflowService.escalate(int(pk), request.user, serializer.validated_data["reason"])
        return Response(AssignmentRecordSerializer(record).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Accept the assignment",
        request=None,
        responses={200: AssignmentRecordSerializer},
        tags=["Applications – Assignment"],
    )
    @action(detail=True, methods=["post"], url_path="accept")
    def accept(self, request: Request, pk: int = None) -> Response:
        record = AssignmentService.accept(int(pk), request.user)
        return Response(AssignmentRecordSerializer(record).data)

    # ── Supervisor queues ────────────────────────────────────────────

    @extend_schema(
        summary="Stalled applications",
        parameters=[
            OpenApiParameter(
                name="hours", type=float, location=OpenApiParameter.QUERY,
                description="Stall threshold in hours (defaults to the configured value).",
            ),
        ],
        responses={200: ApplicationListSerializer(many=True)},
        tags=["Applications – Assignment"],
    )
    @action(detail=False, methods=["get"], url_path="stalled")
    def stalled(self, request: Request) -> Response:
        serializer = StalledQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        hours = serializer.validated_data.get("hours")
        threshold = timedelta(hours=hours) if hours is not None else None
        qs = ApplicationQueryService.stalled(request.user, threshold)
        return Response(ApplicationListSerializer(qs, many=True).data)

    @extend_schema(
        summary="Operator attention queue",
        description="Applications whose escalation found no officer.",
        responses={200: ApplicationListSerializer(many=True)},
        tags=["Applications – Assignment"],
    )
    @action(detail=False, methods=["get"], url_path="attention")
    def attention(self, request: Request) -> Response:
        qs = ApplicationQueryService.attention_queue(request.user)
        return Response(ApplicationListSerializer(qs, many=True).data)

"""
Applications app URL configuration.

Route Hierarchy
---------------
  /api/applications/                          → list / create draft
  /api/applications/{id}/                     → retrieve

  ── Workflow @actions ───────────────────────────────────────────
  POST /api/applications/{id}/transition/
  GET  /api/applications/{id}/legal-next-states/
  GET  /api/applications/{id}/status-log/

  ── Assignment @actions ─────────────────────────────────────────
  POST /api/applications/{id}/assign/
  POST /api/applications/{id}/reassign/
  POST /api/applications/{id}/escalate/
  POST /api/applications/{id}/accept/

  ── Nested: Assignment history ──────────────────────────────────
  GET  /api/applications/{application_pk}/assignments/
  GET  /api/applications/{application_pk}/assignments/{id}/

  ── Supervisor queues ───────────────────────────────────────────
  GET  /api/applications/stalled/?hours=N
  GET  /api/applications/attention/

  ── Officers (assignments app) ──────────────────────────────────
  GET  /api/officers/{id}/workload/
  GET  /api/officers/workload/?role=R
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_nested.routers import NestedDefaultRouter

from assignments.views import ApplicationAssignmentViewSet, OfficerWorkloadViewSet

from .views import ApplicationViewSet

# ── Primary Router ──────────────────────────────────────────────────
router = DefaultRouter()
router.register(
    prefix=r"applications",
    viewset=ApplicationViewSet,
    basename="application",
)
router.register(
    prefix=r"officers",
    viewset=OfficerWorkloadViewSet,
    basename="officer",
)

# ── Nested Router (under /applications/{application_pk}/) ───────────
applications_router = NestedDefaultRouter(
    parent_router=router,
    parent_prefix=r"applications",
    lookup="application",
)
applications_router.register(
    prefix=r"assignments",
    viewset=ApplicationAssignmentViewSet,
    basename="application-assignment",
)

urlpatterns = [
    path("", include(router.urls)),
    path("", include(applications_router.urls)),
]

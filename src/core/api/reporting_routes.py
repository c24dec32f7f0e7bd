"""
User Reporting API Routes

Reads (any authenticated caller):
- direct and transitive reportees, manager, management chain, hierarchy

Writes (``user.update``):
- POST assigns, PATCH re-points an existing line, PUT replaces,
  DELETE ends the current line (history is kept)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends

from core.rbac.dependencies import RequirePermission, get_reporting_service, require_authenticated
from core.rbac.reporting import ReportingGraphService

from .schemas import ManagerAssignmentOut, ManagerRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reporting", tags=["User Reporting"])

can_update = RequirePermission("user.update")


# =============================================================================
# QUERIES
# =============================================================================

@router.get("/{user_id}/direct-reportees")
def get_direct_reportees(
    user_id: UUID,
    _caller: UUID = Depends(require_authenticated),
    service: ReportingGraphService = Depends(get_reporting_service),
):
    reportees = service.get_direct_reportees(user_id)
    return {
        "manager_id": str(user_id),
        "direct_reportees": [m.to_dict() for m in reportees],
        "total": len(reportees),
    }


@router.get("/{user_id}/all-reportees")
def get_all_reportees(
    user_id: UUID,
    _caller: UUID = Depends(require_authenticated),
    service: ReportingGraphService = Depends(get_reporting_service),
):
    reportees = service.get_all_reportees(user_id)
    return {
        "manager_id": str(user_id),
        "all_reportees": [m.to_dict() for m in reportees],
        "total": len(reportees),
    }


@router.get("/{user_id}/manager")
def get_manager(
    user_id: UUID,
    _caller: UUID = Depends(require_authenticated),
    service: ReportingGraphService = Depends(get_reporting_service),
):
    manager = service.get_manager(user_id)
    return {"user_id": str(user_id), "manager": manager.to_dict() if manager else None}


@router.get("/{user_id}/chain")
def get_management_chain(
    user_id: UUID,
    _caller: UUID = Depends(require_authenticated),
    service: ReportingGraphService = Depends(get_reporting_service),
):
    return {
        "user_id": str(user_id),
        "chain": [m.to_dict() for m in service.get_management_chain(user_id)],
    }


@router.get("/{user_id}/hierarchy")
def get_organizational_hierarchy(
    user_id: UUID,
    _caller: UUID = Depends(require_authenticated),
    service: ReportingGraphService = Depends(get_reporting_service),
):
    return service.get_organizational_hierarchy(user_id).to_dict()


# =============================================================================
# MANAGER ASSIGNMENT
# =============================================================================

@router.post("/{user_id}/manager", response_model=ManagerAssignmentOut, status_code=201)
def assign_manager(
    user_id: UUID,
    request: ManagerRequest,
    _caller: UUID = Depends(can_update),
    service: ReportingGraphService = Depends(get_reporting_service),
):
    return service.assign_manager(user_id, request.manager_id)


@router.patch("/{user_id}/manager", response_model=ManagerAssignmentOut)
def update_manager(
    user_id: UUID,
    request: ManagerRequest,
    _caller: UUID = Depends(can_update),
    service: ReportingGraphService = Depends(get_reporting_service),
):
    return service.update_manager(user_id, request.manager_id)


@router.put("/{user_id}/manager", response_model=ManagerAssignmentOut)
def replace_manager(
    user_id: UUID,
    request: ManagerRequest,
    _caller: UUID = Depends(can_update),
    service: ReportingGraphService = Depends(get_reporting_service),
):
    return service.replace_manager(user_id, request.manager_id)


@router.delete("/{user_id}/manager")
def remove_manager(
    user_id: UUID,
    _caller: UUID = Depends(can_update),
    service: ReportingGraphService = Depends(get_reporting_service),
):
    removed = service.remove_manager(user_id)
    return {"user_id": str(user_id), "deactivated": removed}

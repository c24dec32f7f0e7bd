"""
RBAC Management API Routes

Permission and role administration:
- Permission catalog CRUD (reads need ``role.read``, writes ``role.manage``)
- Role CRUD with hierarchy views
- Role-permission grants, single and bulk
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from core.rbac.dependencies import RequirePermission, get_management_service
from core.rbac.management import RBACManagementService

from .schemas import (
    ActiveFlagRequest,
    BulkResultOut,
    PermissionCreateRequest,
    PermissionIdsRequest,
    PermissionOut,
    PermissionUpdateRequest,
    RoleCreateRequest,
    RoleDetailOut,
    RoleOut,
    RoleUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rbac", tags=["RBAC Management"])

can_read = RequirePermission("role.read")
can_manage = RequirePermission("role.manage")


def _role_detail(service: RBACManagementService, role) -> RoleDetailOut:
    detail = RoleDetailOut.model_validate(role)
    detail.permissions = [
        PermissionOut.model_validate(p) for p in service.get_role_permissions(role.role_id)
    ]
    return detail


# =============================================================================
# PERMISSIONS
# =============================================================================

@router.get("/permissions", response_model=List[PermissionOut])
def list_permissions(
    resource: Optional[str] = None,
    action: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    sort_by: str = Query("name"),
    descending: bool = False,
    _caller: UUID = Depends(can_read),
    service: RBACManagementService = Depends(get_management_service),
):
    return service.list_permissions(
        resource=resource,
        action=action,
        is_active=is_active,
        search=search,
        sort_by=sort_by,
        descending=descending,
    )


@router.get("/permissions/{permission_id}", response_model=PermissionOut)
def get_permission(
    permission_id: UUID,
    _caller: UUID = Depends(can_read),
    service: RBACManagementService = Depends(get_management_service),
):
    return service.get_permission(permission_id)


@router.post("/permissions", response_model=PermissionOut, status_code=status.HTTP_201_CREATED)
def create_permission(
    request: PermissionCreateRequest,
    _caller: UUID = Depends(can_manage),
    service: RBACManagementService = Depends(get_management_service),
):
    return service.create_permission(**request.model_dump())


@router.put("/permissions/{permission_id}", response_model=PermissionOut)
def update_permission(
    permission_id: UUID,
    request: PermissionUpdateRequest,
    _caller: UUID = Depends(can_manage),
    service: RBACManagementService = Depends(get_management_service),
):
    """
    Update a permission.

    Name, resource and action are frozen while any role holds the
    permission (409); description and the active flag stay editable.
    """
    return service.update_permission(permission_id, **request.model_dump(exclude_unset=True))


@router.patch("/permissions/{permission_id}/active", response_model=PermissionOut)
def set_permission_active(
    permission_id: UUID,
    request: ActiveFlagRequest,
    _caller: UUID = Depends(can_manage),
    service: RBACManagementService = Depends(get_management_service),
):
    return service.set_permission_active(permission_id, request.is_active)


@router.delete("/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_permission(
    permission_id: UUID,
    _caller: UUID = Depends(can_manage),
    service: RBACManagementService = Depends(get_management_service),
):
    service.delete_permission(permission_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/permissions/bulk-delete", response_model=BulkResultOut)
def delete_permissions(
    request: PermissionIdsRequest,
    _caller: UUID = Depends(can_manage),
    service: RBACManagementService = Depends(get_management_service),
):
    result = service.delete_permissions(request.permission_ids)
    return BulkResultOut(**result.__dict__)


# =============================================================================
# ROLES
# =============================================================================

@router.get("/roles", response_model=List[RoleOut])
def list_roles(
    department: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    sort_by: str = Query("hierarchy_level"),
    descending: bool = False,
    _caller: UUID = Depends(can_read),
    service: RBACManagementService = Depends(get_management_service),
):
    return service.list_roles(
        department=department,
        is_active=is_active,
        search=search,
        sort_by=sort_by,
        descending=descending,
    )


@router.get("/roles/{role_id}", response_model=RoleDetailOut)
def get_role(
    role_id: UUID,
    _caller: UUID = Depends(can_read),
    service: RBACManagementService = Depends(get_management_service),
):
    return _role_detail(service, service.get_role(role_id))


@router.get("/roles/{role_id}/hierarchy", response_model=List[RoleOut])
def get_role_hierarchy(
    role_id: UUID,
    _caller: UUID = Depends(can_read),
    service: RBACManagementService = Depends(get_management_service),
):
    """Ancestors of the role, direct parent first."""
    return service.role_graph.resolve_hierarchy_chain(role_id)


@router.get("/roles/{role_id}/descendants", response_model=List[RoleOut])
def get_role_descendants(
    role_id: UUID,
    _caller: UUID = Depends(can_read),
    service: RBACManagementService = Depends(get_management_service),
):
    return service.role_graph.get_descendants(role_id)


@router.post("/roles", response_model=RoleDetailOut, status_code=status.HTTP_201_CREATED)
def create_role(
    request: RoleCreateRequest,
    _caller: UUID = Depends(can_manage),
    service: RBACManagementService = Depends(get_management_service),
):
    role = service.create_role(**request.model_dump())
    return _role_detail(service, role)


@router.put("/roles/{role_id}", response_model=RoleDetailOut)
def update_role(
    role_id: UUID,
    request: RoleUpdateRequest,
    _caller: UUID = Depends(can_manage),
    service: RBACManagementService = Depends(get_management_service),
):
    role = service.update_role(role_id, **request.model_dump(exclude_unset=True))
    return _role_detail(service, role)


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    role_id: UUID,
    _caller: UUID = Depends(can_manage),
    service: RBACManagementService = Depends(get_management_service),
):
    service.delete_role(role_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# ROLE-PERMISSION GRANTS
# =============================================================================

@router.get("/roles/{role_id}/permissions", response_model=List[PermissionOut])
def get_role_permissions(
    role_id: UUID,
    _caller: UUID = Depends(can_read),
    service: RBACManagementService = Depends(get_management_service),
):
    return service.get_role_permissions(role_id)


@router.post("/roles/{role_id}/permissions", response_model=BulkResultOut)
def assign_permissions(
    role_id: UUID,
    request: PermissionIdsRequest,
    _caller: UUID = Depends(can_manage),
    service: RBACManagementService = Depends(get_management_service),
):
    """Grant several permissions; already granted ones are skipped."""
    result = service.assign_permissions_to_role(role_id, request.permission_ids)
    return BulkResultOut(**result.__dict__)


@router.post("/roles/{role_id}/permissions/remove", response_model=BulkResultOut)
def remove_permissions(
    role_id: UUID,
    request: PermissionIdsRequest,
    _caller: UUID = Depends(can_manage),
    service: RBACManagementService = Depends(get_management_service),
):
    result = service.remove_permissions_from_role(role_id, request.permission_ids)
    return BulkResultOut(**result.__dict__)


@router.put("/roles/{role_id}/permissions/{permission_id}", status_code=status.HTTP_201_CREATED)
def assign_permission(
    role_id: UUID,
    permission_id: UUID,
    _caller: UUID = Depends(can_manage),
    service: RBACManagementService = Depends(get_management_service),
):
    grant = service.assign_permission_to_role(role_id, permission_id)
    return {
        "role_id": str(grant.role_id),
        "permission_id": str(grant.permission_id),
        "granted_at": grant.granted_at.isoformat(),
    }


@router.delete("/roles/{role_id}/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_permission(
    role_id: UUID,
    permission_id: UUID,
    _caller: UUID = Depends(can_manage),
    service: RBACManagementService = Depends(get_management_service),
):
    service.remove_permission_from_role(role_id, permission_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

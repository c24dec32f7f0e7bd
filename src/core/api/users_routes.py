"""
User Role API Routes

- Role assignment, removal and full replacement (``user.manage``)
- Access summaries for any user (``user.read``) or for the caller
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from core.rbac.assignments import UserRoleService
from core.rbac.dependencies import RequirePermission, get_user_role_service, require_authenticated

from .schemas import AssignRoleRequest, ReplaceRolesRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["User Roles"])

can_read = RequirePermission("user.read")
can_manage = RequirePermission("user.manage")


@router.get("/me/access")
def get_my_access(
    caller_id: UUID = Depends(require_authenticated),
    service: UserRoleService = Depends(get_user_role_service),
):
    """Roles and effective permissions of the caller."""
    return service.get_user_roles_and_permissions(caller_id).to_dict()


@router.get("/{user_id}/roles")
def get_user_roles(
    user_id: UUID,
    _caller: UUID = Depends(can_read),
    service: UserRoleService = Depends(get_user_role_service),
):
    return service.get_user_roles_and_permissions(user_id).to_dict()


@router.post("/{user_id}/roles", status_code=status.HTTP_201_CREATED)
def assign_role(
    user_id: UUID,
    request: AssignRoleRequest,
    caller_id: UUID = Depends(can_manage),
    service: UserRoleService = Depends(get_user_role_service),
):
    assignment = service.assign_role(
        user_id,
        request.role_id,
        assigned_by=caller_id,
        expires_at=request.expires_at,
    )
    return {
        "user_id": str(assignment.user_id),
        "role_id": str(assignment.role_id),
        "assigned_at": assignment.assigned_at.isoformat(),
        "expires_at": assignment.expires_at.isoformat() if assignment.expires_at else None,
    }


@router.put("/{user_id}/roles")
def replace_roles(
    user_id: UUID,
    request: ReplaceRolesRequest,
    caller_id: UUID = Depends(can_manage),
    service: UserRoleService = Depends(get_user_role_service),
):
    """Replace every role of the user in one transaction."""
    service.replace_roles(user_id, request.role_ids, assigned_by=caller_id)
    return service.get_user_roles_and_permissions(user_id).to_dict()


@router.delete("/{user_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_role(
    user_id: UUID,
    role_id: UUID,
    _caller: UUID = Depends(can_manage),
    service: UserRoleService = Depends(get_user_role_service),
):
    service.remove_role(user_id, role_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

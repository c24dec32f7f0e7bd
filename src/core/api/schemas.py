"""Request/response models for the RBAC API."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# PERMISSIONS
# =============================================================================

class PermissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    permission_id: UUID
    name: str
    resource: str
    action: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class PermissionCreateRequest(BaseModel):
    """Create a permission; ``name`` defaults to ``resource.action``."""
    resource: str = Field(..., min_length=1, max_length=50)
    action: str = Field(..., min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: bool = True


class PermissionUpdateRequest(BaseModel):
    """Partial update; omitted fields stay as they are."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    resource: Optional[str] = Field(None, min_length=1, max_length=50)
    action: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class ActiveFlagRequest(BaseModel):
    is_active: bool


class PermissionIdsRequest(BaseModel):
    permission_ids: List[UUID] = Field(..., min_length=1)


# =============================================================================
# ROLES
# =============================================================================

class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    role_id: UUID
    name: str
    description: Optional[str] = None
    hierarchy_level: int
    department: Optional[str] = None
    parent_role_id: Optional[UUID] = None
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class RoleDetailOut(RoleOut):
    permissions: List[PermissionOut] = Field(default_factory=list)


class RoleCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    hierarchy_level: int
    department: Optional[str] = None
    parent_role_id: Optional[UUID] = None
    description: Optional[str] = None
    is_active: bool = True
    permission_ids: List[UUID] = Field(default_factory=list)


class RoleUpdateRequest(BaseModel):
    """
    Partial update. Sending ``parent_role_id: null`` detaches the role;
    sending ``permission_ids`` replaces the whole grant set.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    hierarchy_level: Optional[int] = None
    department: Optional[str] = None
    parent_role_id: Optional[UUID] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
    permission_ids: Optional[List[UUID]] = None


class BulkResultOut(BaseModel):
    success: bool
    message: str
    affected_count: int
    skipped_count: int


# =============================================================================
# USER ROLES
# =============================================================================

class AssignRoleRequest(BaseModel):
    role_id: UUID
    expires_at: Optional[datetime] = None


class ReplaceRolesRequest(BaseModel):
    role_ids: List[UUID] = Field(..., min_length=1)


# =============================================================================
# REPORTING
# =============================================================================

class ManagerRequest(BaseModel):
    manager_id: UUID


class ManagerAssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    reporting_id: UUID
    user_id: UUID
    manager_id: UUID
    is_active: bool
    assigned_at: datetime
    updated_at: Optional[datetime] = None

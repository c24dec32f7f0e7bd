"""
RBAC Management Service - administrative maintenance of the catalog.

Provides:
- Permission CRUD (single and bulk delete, activation toggles)
- Role CRUD (create with grants, update with optional grant replacement)
- Role-permission grants (single and bulk assign/remove, listing)

Every multi-row change is one transaction. After a change that can alter
an access decision the permission cache, when present, is invalidated.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from domain.repositories import IRBACRepository

from .cache import PermissionCache
from .errors import ConflictError, InvalidInputError, NotFoundError
from .models import Permission, Role, RolePermission
from .role_graph import RoleGraphService, validate_hierarchy_level

logger = logging.getLogger(__name__)

_UNSET: Any = object()


@dataclass
class BulkResult:
    """Outcome of a bulk grant or delete operation."""
    success: bool
    message: str
    affected_count: int = 0
    skipped_count: int = 0
    details: Dict[str, Any] = field(default_factory=dict)


def _dedupe(ids: Iterable[UUID]) -> List[UUID]:
    return list(dict.fromkeys(ids))


def _require_ids(ids: Optional[Sequence[UUID]], what: str) -> List[UUID]:
    if not ids:
        raise InvalidInputError(f"{what} IDs are required and cannot be empty")
    return _dedupe(ids)


class RBACManagementService:
    """
    Administrative CRUD over permissions, roles and their grants.
    """

    def __init__(self, repo: IRBACRepository, cache: Optional[PermissionCache] = None):
        self.repo = repo
        self.cache = cache
        self.role_graph = RoleGraphService(repo, cache)

    # =========================================================================
    # PERMISSIONS
    # =========================================================================

    def list_permissions(
        self,
        resource: Optional[str] = None,
        action: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        sort_by: str = "name",
        descending: bool = False,
    ) -> List[Permission]:
        return self.repo.list_permissions(
            resource=resource,
            action=action,
            is_active=is_active,
            search=search,
            sort_by=sort_by,
            descending=descending,
        )

    def get_permission(self, permission_id: UUID) -> Permission:
        permission = self.repo.get_permission(permission_id)
        if permission is None:
            raise NotFoundError("Permission not found", permission_id=str(permission_id))
        return permission

    def create_permission(
        self,
        resource: str,
        action: str,
        description: Optional[str] = None,
        name: Optional[str] = None,
        is_active: bool = True,
    ) -> Permission:
        """
        Create a permission. The name defaults to ``resource.action``.

        Raises:
            ConflictError: name already used
        """
        name = name or f"{resource}.{action}"

        with self.repo.transaction():
            if self.repo.get_permission_by_name(name) is not None:
                raise ConflictError("Permission with this name already exists", name=name)

            permission = self.repo.add(Permission(
                name=name,
                resource=resource,
                action=action,
                description=description,
                is_active=is_active,
            ))

        logger.info(f"Created permission {name}")
        return permission

    def update_permission(
        self,
        permission_id: UUID,
        name: Optional[str] = None,
        resource: Optional[str] = None,
        action: Optional[str] = None,
        description: Any = _UNSET,
        is_active: Optional[bool] = None,
    ) -> Permission:
        """
        Update a permission.

        Identity fields (name, resource, action) are frozen while any role
        holds the permission; description and the active flag stay editable
        so a permission in use can still be retired.

        Raises:
            NotFoundError: permission does not exist
            ConflictError: name collision, or identity change while in use
        """
        with self.repo.transaction():
            permission = self.get_permission(permission_id)

            identity_changes = {
                key: value
                for key, value in (("name", name), ("resource", resource), ("action", action))
                if value is not None and value != getattr(permission, key)
            }

            if identity_changes:
                if self.repo.count_roles_with_permission(permission_id) > 0:
                    raise ConflictError(
                        "Permission is in use by a role and cannot be renamed",
                        permission_id=str(permission_id),
                    )
                if "name" in identity_changes:
                    existing = self.repo.get_permission_by_name(identity_changes["name"])
                    if existing is not None and existing.permission_id != permission_id:
                        raise ConflictError(
                            "Permission with this name already exists",
                            name=identity_changes["name"],
                        )
                for key, value in identity_changes.items():
                    setattr(permission, key, value)

            if description is not _UNSET:
                permission.description = description
            activation_changed = is_active is not None and is_active != permission.is_active
            if activation_changed:
                permission.is_active = is_active

            self.repo.flush()

        logger.info(f"Updated permission {permission.name}")
        if identity_changes or activation_changed:
            self._invalidate_all()
        return permission

    def set_permission_active(self, permission_id: UUID, is_active: bool) -> Permission:
        """Activate or retire a permission; retired permissions drop out of every aggregate."""
        return self.update_permission(permission_id, is_active=is_active)

    def delete_permission(self, permission_id: UUID) -> None:
        """
        Delete a permission.

        Raises:
            NotFoundError: permission does not exist
            ConflictError: a role still holds it
        """
        with self.repo.transaction():
            permission = self.get_permission(permission_id)
            holders = self.repo.count_roles_with_permission(permission_id)
            if holders > 0:
                raise ConflictError(
                    f"Cannot delete permission. It is assigned to {holders} role(s)",
                    permission_id=str(permission_id),
                )
            self.repo.delete(permission)

        logger.info(f"Deleted permission {permission.name}")

    def delete_permissions(self, permission_ids: Sequence[UUID]) -> BulkResult:
        """
        Delete several permissions, all or nothing.

        Raises:
            InvalidInputError: empty id list
            NotFoundError: some ids do not exist (listed in the message)
            ConflictError: some permissions are still held by roles
        """
        ids = _require_ids(permission_ids, "Permission")

        with self.repo.transaction():
            found = {p.permission_id: p for p in self.repo.get_permissions_by_ids(ids)}
            missing = [str(pid) for pid in ids if pid not in found]
            if missing:
                raise NotFoundError(
                    f"Permissions not found: {', '.join(missing)}",
                    permission_ids=missing,
                )

            in_use = [
                found[pid].name for pid in ids
                if self.repo.count_roles_with_permission(pid) > 0
            ]
            if in_use:
                raise ConflictError(
                    f"Permissions in use by roles: {', '.join(in_use)}",
                    permissions=in_use,
                )

            for pid in ids:
                self.repo.delete(found[pid])

        logger.info(f"Deleted {len(ids)} permissions")
        return BulkResult(
            success=True,
            message=f"{len(ids)} permissions deleted successfully",
            affected_count=len(ids),
        )

    # =========================================================================
    # ROLES
    # =========================================================================

    def list_roles(
        self,
        department: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        sort_by: str = "hierarchy_level",
        descending: bool = False,
    ) -> List[Role]:
        return self.repo.list_roles(
            department=department,
            is_active=is_active,
            search=search,
            sort_by=sort_by,
            descending=descending,
        )

    def get_role(self, role_id: UUID) -> Role:
        return self.role_graph.require_role(role_id)

    def create_role(
        self,
        name: str,
        hierarchy_level: int,
        department: Optional[str] = None,
        parent_role_id: Optional[UUID] = None,
        description: Optional[str] = None,
        is_active: bool = True,
        permission_ids: Optional[Sequence[UUID]] = None,
    ) -> Role:
        """
        Create a role together with its initial grants, in one transaction.

        Raises:
            ConflictError: name already used
            NotFoundError: parent or a permission does not exist
        """
        with self.repo.transaction():
            role = self.role_graph.build_role(
                name=name,
                hierarchy_level=hierarchy_level,
                department=department,
                parent_role_id=parent_role_id,
                description=description,
                is_active=is_active,
            )
            if permission_ids:
                self._grant(role.role_id, self._require_permissions(permission_ids))

        logger.info(f"Created role {role.name} with {len(permission_ids or [])} permission(s)")
        return role

    def update_role(
        self,
        role_id: UUID,
        name: Optional[str] = None,
        hierarchy_level: Optional[int] = None,
        department: Any = _UNSET,
        description: Any = _UNSET,
        parent_role_id: Any = _UNSET,
        is_active: Optional[bool] = None,
        permission_ids: Optional[Sequence[UUID]] = None,
    ) -> Role:
        """
        Update a role; ``permission_ids`` replaces the full grant set.

        Omitted arguments are left untouched; pass ``parent_role_id=None``
        to detach a role to a root.

        Raises:
            NotFoundError: role, parent or a permission does not exist
            ConflictError: name collision
            CycleError: parent change would close a cycle
        """
        with self.repo.transaction():
            role = self.role_graph.require_role(role_id)

            if name is not None and name != role.name:
                self.role_graph.check_name_available(name, exclude_role_id=role_id)
                role.name = name
            if hierarchy_level is not None:
                role.hierarchy_level = validate_hierarchy_level(hierarchy_level)
            if department is not _UNSET:
                role.department = department
            if description is not _UNSET:
                role.description = description
            if parent_role_id is not _UNSET:
                self.role_graph.check_parent(role_id, parent_role_id)
                role.parent_role_id = parent_role_id
            if is_active is not None:
                role.is_active = is_active

            if permission_ids is not None:
                permissions = self._require_permissions(permission_ids) if permission_ids else []
                self.repo.delete_role_permissions(role_id)
                self._grant(role_id, permissions)

            self.repo.flush()

        logger.info(f"Updated role {role.name}")
        self._invalidate_all()
        return role

    def delete_role(self, role_id: UUID) -> None:
        self.role_graph.delete_role(role_id)

    # =========================================================================
    # ROLE-PERMISSION GRANTS
    # =========================================================================

    def get_role_permissions(self, role_id: UUID) -> List[Permission]:
        self.role_graph.require_role(role_id)
        return self.repo.get_role_permissions(role_id)

    def assign_permission_to_role(self, role_id: UUID, permission_id: UUID) -> RolePermission:
        """
        Grant one permission.

        Raises:
            NotFoundError: role or permission does not exist
            ConflictError: already granted
        """
        with self.repo.transaction():
            self.role_graph.require_role(role_id)
            self.get_permission(permission_id)

            if self.repo.get_role_permission(role_id, permission_id) is not None:
                raise ConflictError(
                    "Permission already assigned to this role",
                    role_id=str(role_id),
                    permission_id=str(permission_id),
                )
            grant = self.repo.add(RolePermission(role_id=role_id, permission_id=permission_id))

        logger.info(f"Granted permission {permission_id} to role {role_id}")
        self._invalidate_all()
        return grant

    def remove_permission_from_role(self, role_id: UUID, permission_id: UUID) -> None:
        """
        Revoke one permission.

        Raises:
            NotFoundError: the pair is not granted
        """
        with self.repo.transaction():
            if self.repo.get_role_permission(role_id, permission_id) is None:
                raise NotFoundError(
                    "Permission assignment not found",
                    role_id=str(role_id),
                    permission_id=str(permission_id),
                )
            self.repo.delete_role_permissions(role_id, [permission_id])

        logger.info(f"Revoked permission {permission_id} from role {role_id}")
        self._invalidate_all()

    def assign_permissions_to_role(self, role_id: UUID, permission_ids: Sequence[UUID]) -> BulkResult:
        """
        Grant several permissions, skipping those already granted.

        Raises:
            InvalidInputError: empty id list
            NotFoundError: role or some permissions do not exist
            ConflictError: every permission was already granted
        """
        ids = _require_ids(permission_ids, "Permission")

        with self.repo.transaction():
            self.role_graph.require_role(role_id)
            permissions = self._require_permissions(ids)

            granted = {p.permission_id for p in self.repo.get_role_permissions(role_id)}
            new_permissions = [p for p in permissions if p.permission_id not in granted]
            if not new_permissions:
                raise ConflictError(
                    "All permissions are already assigned to this role",
                    role_id=str(role_id),
                )
            self._grant(role_id, new_permissions)

        skipped = len(permissions) - len(new_permissions)
        logger.info(f"Granted {len(new_permissions)} permission(s) to role {role_id}, skipped {skipped}")
        self._invalidate_all()
        return BulkResult(
            success=True,
            message=f"{len(new_permissions)} permissions assigned to role successfully",
            affected_count=len(new_permissions),
            skipped_count=skipped,
        )

    def remove_permissions_from_role(self, role_id: UUID, permission_ids: Sequence[UUID]) -> BulkResult:
        """
        Revoke several permissions; ids that are not granted are ignored.

        Raises:
            InvalidInputError: empty id list
            NotFoundError: role does not exist, or none of the ids is granted
        """
        ids = _require_ids(permission_ids, "Permission")

        with self.repo.transaction():
            self.role_graph.require_role(role_id)
            removed = self.repo.delete_role_permissions(role_id, ids)
            if removed == 0:
                raise NotFoundError(
                    "No permission assignments found for this role",
                    role_id=str(role_id),
                )

        logger.info(f"Revoked {removed} permission(s) from role {role_id}")
        self._invalidate_all()
        return BulkResult(
            success=True,
            message=f"{removed} permissions removed from role successfully",
            affected_count=removed,
            skipped_count=len(ids) - removed,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _require_permissions(self, permission_ids: Sequence[UUID]) -> List[Permission]:
        ids = _dedupe(permission_ids)
        found = {p.permission_id: p for p in self.repo.get_permissions_by_ids(ids)}
        missing = [str(pid) for pid in ids if pid not in found]
        if missing:
            raise NotFoundError(
                f"Permissions not found: {', '.join(missing)}",
                permission_ids=missing,
            )
        return [found[pid] for pid in ids]

    def _grant(self, role_id: UUID, permissions: Iterable[Permission]) -> None:
        for permission in permissions:
            self.repo.add(RolePermission(role_id=role_id, permission_id=permission.permission_id))

    def _invalidate_all(self) -> None:
        if self.cache is not None:
            self.cache.invalidate_global()

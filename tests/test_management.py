"""
RBAC Management Tests

Permission and role CRUD, grants and bulk operations.
"""

from uuid import uuid4

import pytest

from core.rbac.errors import ConflictError, CycleError, InvalidInputError, NotFoundError


@pytest.fixture
def catalog(management):
    """Three permissions and two roles, Manager holding candidate.read."""
    read = management.create_permission("candidate", "read", description="Read candidates")
    update = management.create_permission("candidate", "update")
    export = management.create_permission("metrics", "export")
    director = management.create_role("RA Director", 2, department="Research")
    manager = management.create_role(
        "RA Manager", 3,
        department="Research",
        parent_role_id=director.role_id,
        permission_ids=[read.permission_id],
    )
    return {
        "read": read,
        "update": update,
        "export": export,
        "director": director,
        "manager": manager,
    }


def _names(permissions):
    return sorted(p.name for p in permissions)


# =============================================================================
# PERMISSIONS
# =============================================================================

class TestPermissionCrud:
    """Permission catalog maintenance"""

    def test_name_defaults_to_resource_action(self, catalog):
        assert catalog["read"].name == "candidate.read"
        assert catalog["read"].is_active is True

    def test_duplicate_name_conflicts(self, management, catalog):
        with pytest.raises(ConflictError):
            management.create_permission("candidate", "read")

    def test_get_missing(self, management):
        with pytest.raises(NotFoundError):
            management.get_permission(uuid4())

    def test_list_filters_and_sorts(self, management, catalog):
        assert _names(management.list_permissions(resource="candidate")) == [
            "candidate.read", "candidate.update",
        ]
        assert [p.name for p in management.list_permissions(sort_by="name", descending=True)] == [
            "metrics.export", "candidate.update", "candidate.read",
        ]
        assert _names(management.list_permissions(search="EXPORT")) == ["metrics.export"]

    def test_rename_unheld_permission(self, management, catalog):
        renamed = management.update_permission(catalog["export"].permission_id, name="metrics.download")

        assert renamed.name == "metrics.download"

    def test_rename_collision(self, management, catalog):
        with pytest.raises(ConflictError):
            management.update_permission(catalog["export"].permission_id, name="candidate.update")

    def test_identity_frozen_while_held(self, management, catalog):
        with pytest.raises(ConflictError):
            management.update_permission(catalog["read"].permission_id, action="view")

        assert management.get_permission(catalog["read"].permission_id).action == "read"

    def test_description_editable_while_held(self, management, catalog):
        updated = management.update_permission(catalog["read"].permission_id, description=None)

        assert updated.description is None

    def test_delete_unheld(self, management, catalog):
        management.delete_permission(catalog["export"].permission_id)

        with pytest.raises(NotFoundError):
            management.get_permission(catalog["export"].permission_id)

    def test_delete_held_conflicts(self, management, catalog):
        with pytest.raises(ConflictError):
            management.delete_permission(catalog["read"].permission_id)

    def test_bulk_delete_is_all_or_nothing(self, management, catalog):
        ids = [catalog["update"].permission_id, catalog["read"].permission_id]

        with pytest.raises(ConflictError):
            management.delete_permissions(ids)

        assert management.get_permission(catalog["update"].permission_id) is not None

    def test_bulk_delete_reports_missing(self, management, catalog):
        missing = uuid4()

        with pytest.raises(NotFoundError) as excinfo:
            management.delete_permissions([catalog["update"].permission_id, missing])

        assert str(missing) in excinfo.value.message

    def test_bulk_delete(self, management, catalog):
        result = management.delete_permissions(
            [catalog["update"].permission_id, catalog["export"].permission_id]
        )

        assert result.affected_count == 2
        assert _names(management.list_permissions()) == ["candidate.read"]

    def test_bulk_delete_requires_ids(self, management):
        with pytest.raises(InvalidInputError):
            management.delete_permissions([])


# =============================================================================
# ROLES
# =============================================================================

class TestRoleCrud:
    """Role maintenance through the management surface"""

    def test_create_with_grants(self, management, catalog):
        assert _names(management.get_role_permissions(catalog["manager"].role_id)) == ["candidate.read"]

    def test_create_with_missing_permission_rolls_back(self, management, catalog, rbac_repo):
        with pytest.raises(NotFoundError):
            management.create_role("RA Lead", 4, permission_ids=[uuid4()])

        assert rbac_repo.get_role_by_name("RA Lead") is None

    def test_list_roles_by_department(self, management, catalog):
        management.create_role("BD Director", 2, department="Business")

        names = [r.name for r in management.list_roles(department="Research")]

        assert names == ["RA Director", "RA Manager"]

    def test_update_replaces_grants(self, management, catalog):
        role = management.update_role(
            catalog["manager"].role_id,
            permission_ids=[catalog["update"].permission_id, catalog["export"].permission_id],
        )

        assert _names(management.get_role_permissions(role.role_id)) == [
            "candidate.update", "metrics.export",
        ]

    def test_update_with_empty_list_clears_grants(self, management, catalog):
        management.update_role(catalog["manager"].role_id, permission_ids=[])

        assert management.get_role_permissions(catalog["manager"].role_id) == []

    def test_update_fields(self, management, catalog):
        role = management.update_role(
            catalog["manager"].role_id,
            name="Research Manager",
            hierarchy_level=4,
            department=None,
            description="Runs a research pod",
        )

        assert (role.name, role.hierarchy_level, role.department) == ("Research Manager", 4, None)
        assert role.description == "Runs a research pod"
        assert role.parent_role_id == catalog["director"].role_id

    def test_update_rename_collision(self, management, catalog):
        with pytest.raises(ConflictError):
            management.update_role(catalog["manager"].role_id, name="RA Director")

    def test_update_parent_cycle(self, management, catalog):
        with pytest.raises(CycleError):
            management.update_role(catalog["director"].role_id, parent_role_id=catalog["manager"].role_id)

    def test_update_detaches_parent(self, management, catalog):
        role = management.update_role(catalog["manager"].role_id, parent_role_id=None)

        assert role.parent_role_id is None

    def test_update_negative_level(self, management, catalog):
        with pytest.raises(InvalidInputError):
            management.update_role(catalog["manager"].role_id, hierarchy_level=-2)

    def test_delete_role(self, management, catalog):
        management.delete_role(catalog["manager"].role_id)

        with pytest.raises(NotFoundError):
            management.get_role(catalog["manager"].role_id)


# =============================================================================
# GRANTS
# =============================================================================

class TestGrants:
    """Single and bulk role-permission grants"""

    def test_assign_and_remove(self, management, catalog):
        role_id = catalog["manager"].role_id
        management.assign_permission_to_role(role_id, catalog["update"].permission_id)
        management.remove_permission_from_role(role_id, catalog["read"].permission_id)

        assert _names(management.get_role_permissions(role_id)) == ["candidate.update"]

    def test_assign_duplicate_conflicts(self, management, catalog):
        with pytest.raises(ConflictError):
            management.assign_permission_to_role(catalog["manager"].role_id, catalog["read"].permission_id)

    def test_assign_missing_permission(self, management, catalog):
        with pytest.raises(NotFoundError):
            management.assign_permission_to_role(catalog["manager"].role_id, uuid4())

    def test_remove_missing_pair(self, management, catalog):
        with pytest.raises(NotFoundError):
            management.remove_permission_from_role(catalog["director"].role_id, catalog["read"].permission_id)

    def test_bulk_assign_skips_existing(self, management, catalog):
        result = management.assign_permissions_to_role(
            catalog["manager"].role_id,
            [catalog["read"].permission_id, catalog["update"].permission_id],
        )

        assert (result.affected_count, result.skipped_count) == (1, 1)

    def test_bulk_assign_all_existing_conflicts(self, management, catalog):
        with pytest.raises(ConflictError):
            management.assign_permissions_to_role(catalog["manager"].role_id, [catalog["read"].permission_id])

    def test_bulk_remove_counts(self, management, catalog):
        result = management.remove_permissions_from_role(
            catalog["manager"].role_id,
            [catalog["read"].permission_id, catalog["export"].permission_id],
        )

        assert (result.affected_count, result.skipped_count) == (1, 1)

    def test_bulk_remove_nothing_granted(self, management, catalog):
        with pytest.raises(NotFoundError):
            management.remove_permissions_from_role(catalog["director"].role_id, [catalog["read"].permission_id])

"""
Role Graph Tests

Tests the role forest: creation, parent reassignment with cycle
detection, deletion rules and hierarchy walks.
"""

import pytest

from core.rbac.errors import ConflictError, CycleError, InvalidInputError, NotFoundError
from core.rbac.models import RolePermission
from core.rbac.role_graph import RoleGraphService, validate_hierarchy_level


@pytest.fixture
def graph(rbac_repo):
    return RoleGraphService(rbac_repo)


@pytest.fixture
def forest(graph):
    """Admin(0) -> Director(1) -> Lead(2), plus an unrelated root Auditor(1)."""
    admin = graph.create_role("Admin", 0)
    director = graph.create_role("Director", 1, parent_role_id=admin.role_id)
    lead = graph.create_role("Lead", 2, parent_role_id=director.role_id)
    auditor = graph.create_role("Auditor", 1)
    return {"admin": admin, "director": director, "lead": lead, "auditor": auditor}


# =============================================================================
# CREATION
# =============================================================================

class TestCreateRole:
    """Role creation and its validation"""

    def test_create_root_role(self, graph):
        role = graph.create_role("Admin", 0, description="Everything")

        assert role.role_id is not None
        assert role.parent_role_id is None
        assert role.is_active is True
        assert role.description == "Everything"

    def test_duplicate_name_conflicts(self, graph):
        graph.create_role("Admin", 0)

        with pytest.raises(ConflictError):
            graph.create_role("Admin", 3)

    def test_missing_parent_is_not_found(self, graph):
        from uuid import uuid4

        with pytest.raises(NotFoundError):
            graph.create_role("Orphan", 2, parent_role_id=uuid4())

    def test_negative_level_rejected(self, graph):
        with pytest.raises(InvalidInputError):
            graph.create_role("Broken", -1)

    @pytest.mark.parametrize("level", [0, 5, 42])
    def test_valid_levels_accepted(self, level):
        assert validate_hierarchy_level(level) == level

    def test_boolean_level_rejected(self):
        with pytest.raises(InvalidInputError):
            validate_hierarchy_level(True)


# =============================================================================
# PARENT REASSIGNMENT
# =============================================================================

class TestReassignParent:
    """Parent moves keep the forest acyclic"""

    def test_move_under_other_root(self, graph, forest):
        moved = graph.reassign_parent(forest["lead"].role_id, forest["auditor"].role_id)

        assert moved.parent_role_id == forest["auditor"].role_id

    def test_detach_to_root(self, graph, forest):
        moved = graph.reassign_parent(forest["lead"].role_id, None)

        assert moved.parent_role_id is None
        assert graph.resolve_hierarchy_chain(forest["lead"].role_id) == []

    def test_self_parent_is_cycle(self, graph, forest):
        with pytest.raises(CycleError):
            graph.reassign_parent(forest["director"].role_id, forest["director"].role_id)

    def test_descendant_parent_is_cycle_and_graph_unchanged(self, graph, forest):
        admin, lead = forest["admin"], forest["lead"]

        with pytest.raises(CycleError):
            graph.reassign_parent(admin.role_id, lead.role_id)

        assert graph.require_role(admin.role_id).parent_role_id is None
        chain = graph.resolve_hierarchy_chain(lead.role_id)
        assert [r.name for r in chain] == ["Director", "Admin"]

    def test_cycle_error_is_a_conflict(self, graph, forest):
        with pytest.raises(ConflictError):
            graph.reassign_parent(forest["admin"].role_id, forest["director"].role_id)

    def test_unknown_role_or_parent(self, graph, forest):
        from uuid import uuid4

        with pytest.raises(NotFoundError):
            graph.reassign_parent(uuid4(), forest["admin"].role_id)
        with pytest.raises(NotFoundError):
            graph.reassign_parent(forest["lead"].role_id, uuid4())


# =============================================================================
# WALKS
# =============================================================================

class TestHierarchyWalks:
    """Ancestor chains and descendant sets"""

    def test_chain_is_parent_first(self, graph, forest):
        chain = graph.resolve_hierarchy_chain(forest["lead"].role_id)

        assert [r.name for r in chain] == ["Director", "Admin"]

    def test_chain_of_root_is_empty(self, graph, forest):
        assert graph.resolve_hierarchy_chain(forest["admin"].role_id) == []

    def test_descendants(self, graph, forest):
        names = {r.name for r in graph.get_descendants(forest["admin"].role_id)}

        assert names == {"Director", "Lead"}

    def test_children(self, graph, forest):
        children = graph.get_children(forest["director"].role_id)

        assert [r.name for r in children] == ["Lead"]

    def test_chain_survives_corrupt_cycle(self, graph, forest, session):
        # Bypass validation to simulate corrupt stored data
        forest["admin"].parent_role_id = forest["lead"].role_id
        session.commit()

        chain = graph.resolve_hierarchy_chain(forest["lead"].role_id)
        descendants = graph.get_descendants(forest["admin"].role_id)

        assert [r.name for r in chain] == ["Director", "Admin"]
        assert {r.name for r in descendants} == {"Director", "Lead"}


# =============================================================================
# DELETION
# =============================================================================

class TestDeleteRole:
    """Deletion is blocked by holders and children"""

    def test_delete_removes_grants(self, graph, forest, management, rbac_repo, session):
        permission = management.create_permission("x", "read")
        management.assign_permission_to_role(forest["auditor"].role_id, permission.permission_id)

        graph.delete_role(forest["auditor"].role_id)

        assert rbac_repo.get_role(forest["auditor"].role_id) is None
        assert session.query(RolePermission).count() == 0
        assert rbac_repo.get_permission(permission.permission_id) is not None

    def test_delete_held_role_conflicts(self, graph, forest, make_user, grant_role, rbac_repo):
        grant_role(make_user("holder"), forest["auditor"])

        with pytest.raises(ConflictError):
            graph.delete_role(forest["auditor"].role_id)

        assert rbac_repo.get_role(forest["auditor"].role_id) is not None

    def test_expired_holder_still_blocks_delete(self, graph, forest, make_user, grant_role):
        grant_role(make_user("former"), forest["auditor"], expired=True)

        with pytest.raises(ConflictError):
            graph.delete_role(forest["auditor"].role_id)

    def test_delete_with_children_conflicts(self, graph, forest):
        with pytest.raises(ConflictError):
            graph.delete_role(forest["director"].role_id)

    def test_delete_missing_role(self, graph):
        from uuid import uuid4

        with pytest.raises(NotFoundError):
            graph.delete_role(uuid4())

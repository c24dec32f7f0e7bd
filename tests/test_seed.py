"""
Seed Tests

Standard catalog loading, admin bootstrap and default reporting lines.
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from core.rbac.access import AccessDecisionEngine
from core.rbac.catalog import RBACCatalog, RoleDefinition, get_rbac_catalog
from core.rbac.models import HierarchyLevel
from core.rbac.seed import SeedMember, build_reporting_plan, seed_rbac, seed_user_reporting, verify_password
from database.models import User


# =============================================================================
# CATALOG
# =============================================================================

class TestCatalog:

    def test_standard_catalog_is_consistent(self):
        catalog = get_rbac_catalog()

        assert catalog.validate() == []
        assert len(catalog.permissions) == 33
        assert len(catalog.roles) == 17

    def test_roles_are_parents_first(self):
        seen = set()
        for role in get_rbac_catalog().roles:
            assert role.parent_role is None or role.parent_role in seen
            seen.add(role.name)

    def test_validate_reports_unknown_references(self):
        catalog = RBACCatalog(
            permissions=[],
            roles=[RoleDefinition(
                name="Ghost",
                description="",
                hierarchy_level=HierarchyLevel.LEAD,
                parent_role="Nobody",
                permissions=["x.read"],
            )],
        )

        assert catalog.validate() == ["Ghost: unknown parent Nobody", "Ghost: unknown permission x.read"]

    def test_inconsistent_catalog_is_rejected(self, session, rbac_settings):
        catalog = RBACCatalog(roles=[RoleDefinition(
            name="Admin",
            description="",
            hierarchy_level=HierarchyLevel.ADMIN,
            permissions=["nope.read"],
        )])

        with pytest.raises(ValueError):
            seed_rbac(session, catalog=catalog, rbac_settings=rbac_settings)


# =============================================================================
# SEED RBAC
# =============================================================================

class TestSeedRBAC:

    def test_creates_catalog(self, seeded, rbac_repo):
        assert seeded.permissions_created == 33
        assert seeded.roles_created == 17
        assert rbac_repo.get_role_by_name("RA").parent_role_id == rbac_repo.get_role_by_name("RA Lead").role_id

    def test_admin_user_holds_every_permission(self, seeded, session, rbac_repo, rbac_settings):
        admin = session.execute(select(User).where(User.email == "root@example.com")).scalar_one()
        engine = AccessDecisionEngine(rbac_repo)

        assert seeded.admin_created is True
        assert verify_password(rbac_settings.seed_admin_password, admin.password_hash)
        assert engine.get_permissions(admin.user_id) == {p.name for p in get_rbac_catalog().permissions}
        assert engine.get_highest_role(admin.user_id).name == "Admin"

    def test_second_run_changes_nothing(self, seeded, session, rbac_settings):
        again = seed_rbac(session, rbac_settings=rbac_settings)

        assert (again.permissions_created, again.roles_created, again.grants_created) == (0, 0, 0)
        assert again.admin_created is False
        assert again.admin_role_assigned is False

    def test_reseed_keeps_manual_grants(self, seeded, session, rbac_settings, management, rbac_repo):
        ra = rbac_repo.get_role_by_name("RA")
        export = rbac_repo.get_permission_by_name("metrics.export")
        management.assign_permission_to_role(ra.role_id, export.permission_id)

        seed_rbac(session, rbac_settings=rbac_settings)

        assert "metrics.export" in {p.name for p in rbac_repo.get_role_permissions(ra.role_id)}

    def test_reseed_restores_descriptions(self, seeded, session, rbac_settings, rbac_repo):
        rbac_repo.get_role_by_name("VP").description = "edited"
        session.commit()

        again = seed_rbac(session, rbac_settings=rbac_settings)

        assert again.roles_updated == 1
        assert rbac_repo.get_role_by_name("VP").description.startswith("Vice President")


# =============================================================================
# REPORTING PLAN
# =============================================================================

class TestReportingPlan:

    def test_same_department_manager(self):
        director = SeedMember(uuid4(), 2, "Research")
        other_director = SeedMember(uuid4(), 2, "Finance")
        manager = SeedMember(uuid4(), 3, "Research")

        assert build_reporting_plan([director, other_director, manager]) == [
            (manager.user_id, director.user_id),
        ]

    def test_departmentless_level_above(self):
        admin = SeedMember(uuid4(), 0, None)
        vp = SeedMember(uuid4(), 1, None)
        director = SeedMember(uuid4(), 2, "Finance")

        assert build_reporting_plan([director, vp, admin]) == [
            (vp.user_id, admin.user_id),
            (director.user_id, vp.user_id),
        ]

    def test_first_member_of_department_wins(self):
        first = SeedMember(uuid4(), 3, "Research")
        second = SeedMember(uuid4(), 3, "Research")
        lead = SeedMember(uuid4(), 4, "Research")

        assert build_reporting_plan([first, second, lead]) == [(lead.user_id, first.user_id)]

    def test_gap_in_levels_leaves_member_unplaced(self):
        director = SeedMember(uuid4(), 2, "Research")
        lead = SeedMember(uuid4(), 4, "Research")

        assert build_reporting_plan([director, lead]) == []


class TestSeedUserReporting:

    @pytest.fixture
    def staff(self, seeded, make_user, grant_role, rbac_repo):
        people = {}
        for name, role_name in (
            ("vera", "VP"),
            ("rita", "RA Director"),
            ("rick", "RA Manager"),
            ("fred", "Finance Manager"),
        ):
            people[name] = make_user(name)
            grant_role(people[name], rbac_repo.get_role_by_name(role_name))
        return people

    def test_creates_default_lines(self, staff, session, reporting):
        summary = seed_user_reporting(session)

        assert summary.reporting_created == 3
        assert reporting.get_manager(staff["vera"].user_id).email == "root@example.com"
        assert reporting.get_manager(staff["rita"].user_id).email == "vera@example.com"
        assert reporting.get_manager(staff["rick"].user_id).email == "rita@example.com"
        assert reporting.get_manager(staff["fred"].user_id) is None

    def test_existing_lines_are_kept(self, staff, session, reporting):
        reporting.assign_manager(staff["rick"].user_id, staff["vera"].user_id)

        summary = seed_user_reporting(session)

        assert summary.reporting_skipped == 1
        assert reporting.get_manager(staff["rick"].user_id).email == "vera@example.com"

    def test_second_run_skips_everything(self, staff, session):
        seed_user_reporting(session)
        again = seed_user_reporting(session)

        assert again.reporting_created == 0
        assert again.reporting_skipped == 3

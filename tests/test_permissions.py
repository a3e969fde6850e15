"""
Tests for the capability table and the organization scoping guard.

These tests verify:
  - system_admin is granted every action on every resource
  - Each tenant role gets exactly the actions its row lists
  - Unknown roles, resources and actions are denied
  - Every role except system_admin has a row covering every resource
  - Non-system principals are confined to their own organization, and a
    requested organization never overrides theirs on writes
"""

import uuid

import pytest

from app.exceptions import OrganizationMismatchError
from app.models.user import User, UserRole
from app.permissions import (
    CAPABILITIES,
    Action,
    Resource,
    can_assign_role,
    evaluate,
    get_role_permissions,
    has_permission,
)
from app.context import RequestContext
from app.scoping import check_access, scoped_organization_id

ORG_A = uuid.uuid4()
ORG_B = uuid.uuid4()


def principal(role, organization_id=ORG_A):
    return User(id=uuid.uuid4(), username="p", email="p@example.com", role=role, organization_id=organization_id)


class TestHasPermission:
    @pytest.mark.parametrize("resource", list(Resource))
    @pytest.mark.parametrize("action", list(Action))
    def test_system_admin_has_everything(self, resource, action):
        assert has_permission(UserRole.SYSTEM_ADMIN, resource, action)

    def test_org_admin_manages_users_but_not_organizations(self):
        assert has_permission(UserRole.ORG_ADMIN, Resource.USERS, Action.DELETE)
        assert has_permission(UserRole.ORG_ADMIN, Resource.ORGANIZATION, Action.EDIT)
        assert not has_permission(UserRole.ORG_ADMIN, Resource.ORGANIZATION, Action.CREATE)
        assert not has_permission(UserRole.ORG_ADMIN, Resource.ORGANIZATION, Action.DELETE)

    def test_legacy_admin_matches_org_admin(self):
        assert get_role_permissions(UserRole.ADMIN) == get_role_permissions(UserRole.ORG_ADMIN)

    def test_technician(self):
        assert has_permission(UserRole.TECHNICIAN, Resource.MAINTENANCE, Action.CREATE)
        assert has_permission(UserRole.TECHNICIAN, Resource.INVENTORY, Action.EDIT)
        assert not has_permission(UserRole.TECHNICIAN, Resource.USERS, Action.VIEW)
        assert not has_permission(UserRole.TECHNICIAN, Resource.CLIENTS, Action.DELETE)

    def test_client(self):
        assert has_permission(UserRole.CLIENT, Resource.REPAIRS, Action.CREATE)
        assert has_permission(UserRole.CLIENT, Resource.INVOICES, Action.VIEW)
        assert not has_permission(UserRole.CLIENT, Resource.INVOICES, Action.EDIT)
        assert not has_permission(UserRole.CLIENT, Resource.SETTINGS, Action.VIEW)

    def test_manager_cannot_delete_technicians(self):
        assert has_permission(UserRole.MANAGER, Resource.TECHNICIANS, Action.EDIT)
        assert not has_permission(UserRole.MANAGER, Resource.TECHNICIANS, Action.DELETE)

    def test_string_values_are_accepted(self):
        assert has_permission("office_staff", "clients", "create")
        assert not has_permission("office_staff", "settings", "view")

    @pytest.mark.parametrize(
        "role, resource, action",
        [
            ("superuser", "clients", "view"),
            ("org_admin", "spaceships", "view"),
            ("org_admin", "clients", "launch"),
            (None, "clients", "view"),
        ],
    )
    def test_unknown_values_are_denied(self, role, resource, action):
        assert has_permission(role, resource, action) is False


class TestCapabilityTable:
    def test_every_role_has_a_row_for_every_resource(self):
        for role in UserRole:
            if role == UserRole.SYSTEM_ADMIN:
                continue
            assert set(CAPABILITIES[role]) == set(Resource), role

    def test_system_admin_row_lists_everything(self):
        row = get_role_permissions(UserRole.SYSTEM_ADMIN)
        assert all(actions == set(Action) for actions in row.values())

    def test_unknown_role_has_no_permissions(self):
        assert get_role_permissions("superuser") == {}


class TestCanAssignRole:
    def test_manager_cannot_grant_org_admin(self):
        assert not can_assign_role(UserRole.MANAGER, UserRole.ORG_ADMIN)
        assert not can_assign_role(UserRole.MANAGER, UserRole.ADMIN)

    @pytest.mark.parametrize(
        "target",
        [UserRole.MANAGER, UserRole.OFFICE_STAFF, UserRole.TECHNICIAN, UserRole.CLIENT, UserRole.VENDOR],
    )
    def test_manager_grants_roles_within_its_own(self, target):
        assert can_assign_role(UserRole.MANAGER, target)

    def test_only_system_admin_grants_system_admin(self):
        for role in UserRole:
            expected = role == UserRole.SYSTEM_ADMIN
            assert can_assign_role(role, UserRole.SYSTEM_ADMIN) is expected, role

    def test_system_admin_grants_anything(self):
        assert all(can_assign_role(UserRole.SYSTEM_ADMIN, role) for role in UserRole)

    def test_no_role_grants_more_than_it_holds(self):
        for assigner in UserRole:
            for target in UserRole:
                if not can_assign_role(assigner, target) or assigner == UserRole.SYSTEM_ADMIN:
                    continue
                held = get_role_permissions(assigner)
                for resource, actions in get_role_permissions(target).items():
                    assert actions <= held[resource], (assigner, target, resource)

    def test_unknown_roles_are_denied(self):
        assert not can_assign_role("superuser", UserRole.CLIENT)
        assert not can_assign_role(UserRole.ORG_ADMIN, "superuser")


class TestEvaluate:
    def test_uses_principal_role(self):
        assert evaluate(principal(UserRole.MANAGER), Resource.USERS, Action.CREATE)
        assert not evaluate(principal(UserRole.VENDOR), Resource.USERS, Action.VIEW)

    def test_unknown_role_on_principal_is_denied(self):
        assert not evaluate(principal("superuser"), Resource.CLIENTS, Action.VIEW)

    def test_missing_principal_is_denied(self):
        assert not evaluate(None, Resource.CLIENTS, Action.VIEW)


class TestScoping:
    def test_own_organization(self):
        assert check_access(principal(UserRole.TECHNICIAN), ORG_A)
        assert check_access(principal(UserRole.TECHNICIAN), str(ORG_A))

    def test_other_organization(self):
        assert not check_access(principal(UserRole.ORG_ADMIN), ORG_B)

    def test_missing_or_malformed_target(self):
        assert not check_access(principal(UserRole.ORG_ADMIN), None)
        assert not check_access(principal(UserRole.ORG_ADMIN), "not-a-uuid")

    def test_system_admin_reaches_everything(self):
        assert check_access(principal(UserRole.SYSTEM_ADMIN), ORG_B)

    def test_write_defaults_to_own_organization(self):
        assert scoped_organization_id(principal(UserRole.ORG_ADMIN)) == ORG_A
        assert scoped_organization_id(principal(UserRole.ORG_ADMIN), ORG_A) == ORG_A

    def test_write_to_other_organization_is_rejected(self):
        with pytest.raises(OrganizationMismatchError):
            scoped_organization_id(principal(UserRole.MANAGER), ORG_B)

    def test_system_admin_may_choose_organization(self):
        assert scoped_organization_id(principal(UserRole.SYSTEM_ADMIN), ORG_B) == ORG_B
        assert scoped_organization_id(principal(UserRole.SYSTEM_ADMIN)) == ORG_A


class TestRequestContext:
    def test_exposes_principal_fields(self):
        user = principal(UserRole.OFFICE_STAFF)
        ctx = RequestContext(principal=user)

        assert ctx.user_id == user.id
        assert ctx.organization_id == ORG_A
        assert ctx.role == UserRole.OFFICE_STAFF
        assert not ctx.is_system_admin
        assert ctx.can(Resource.CLIENTS, Action.CREATE)
        assert not ctx.can(Resource.SETTINGS, Action.VIEW)
        assert ctx.can_access(ORG_A)
        assert not ctx.can_access(ORG_B)

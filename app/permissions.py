"""
Permission evaluator — role → resource → action capability lookup.

This defines WHAT each role can do. The request-time checks live in
app.dependencies, which call evaluate() for the current principal.

Rules:
  - system_admin is granted everything without consulting the table.
  - A role can only be assigned by a role holding at least its capabilities
    (can_assign_role).
  - Any role, resource or action that is not recognized is denied.
  - Every other role must have a row for every resource. The check at the
    bottom of this module fails the import otherwise, so adding a role to
    UserRole (or a resource here) forces the table to be revisited.
"""

import enum
import logging

from app.models.user import User, UserRole

logger = logging.getLogger(__name__)


class Resource(str, enum.Enum):
    CLIENTS = "clients"
    TECHNICIANS = "technicians"
    PROJECTS = "projects"
    MAINTENANCE = "maintenance"
    REPAIRS = "repairs"
    INVOICES = "invoices"
    INVENTORY = "inventory"
    REPORTS = "reports"
    SETTINGS = "settings"
    VEHICLES = "vehicles"
    COMMUNICATIONS = "communications"
    USERS = "users"
    ORGANIZATION = "organization"


class Action(str, enum.Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


V, C, E, D = Action.VIEW, Action.CREATE, Action.EDIT, Action.DELETE
ALL = frozenset({V, C, E, D})
NONE: frozenset[Action] = frozenset()

_TENANT_ADMIN = {
    Resource.CLIENTS: ALL,
    Resource.TECHNICIANS: ALL,
    Resource.PROJECTS: ALL,
    Resource.MAINTENANCE: ALL,
    Resource.REPAIRS: ALL,
    Resource.INVOICES: ALL,
    Resource.INVENTORY: ALL,
    Resource.REPORTS: ALL,
    Resource.SETTINGS: ALL,
    Resource.VEHICLES: ALL,
    Resource.COMMUNICATIONS: ALL,
    Resource.USERS: ALL,
    # Tenants cannot create or delete organizations, only edit their own
    Resource.ORGANIZATION: frozenset({V, E}),
}

CAPABILITIES: dict[UserRole, dict[Resource, frozenset[Action]]] = {
    UserRole.ORG_ADMIN: _TENANT_ADMIN,
    UserRole.ADMIN: _TENANT_ADMIN,
    UserRole.MANAGER: {
        Resource.CLIENTS: ALL,
        Resource.TECHNICIANS: frozenset({V, C, E}),
        Resource.PROJECTS: ALL,
        Resource.MAINTENANCE: ALL,
        Resource.REPAIRS: ALL,
        Resource.INVOICES: frozenset({V, C, E}),
        Resource.INVENTORY: ALL,
        Resource.REPORTS: ALL,
        Resource.SETTINGS: frozenset({V, E}),
        Resource.VEHICLES: frozenset({V, C, E}),
        Resource.COMMUNICATIONS: ALL,
        Resource.USERS: frozenset({V, C, E}),
        Resource.ORGANIZATION: frozenset({V}),
    },
    UserRole.OFFICE_STAFF: {
        Resource.CLIENTS: frozenset({V, C, E}),
        Resource.TECHNICIANS: frozenset({V}),
        Resource.PROJECTS: frozenset({V, C, E}),
        Resource.MAINTENANCE: frozenset({V, C, E}),
        Resource.REPAIRS: frozenset({V, C, E}),
        Resource.INVOICES: frozenset({V, C, E}),
        Resource.INVENTORY: frozenset({V, C, E}),
        Resource.REPORTS: frozenset({V, C, E}),
        Resource.SETTINGS: NONE,
        Resource.VEHICLES: frozenset({V}),
        Resource.COMMUNICATIONS: frozenset({V, C, E}),
        Resource.USERS: frozenset({V}),
        Resource.ORGANIZATION: frozenset({V}),
    },
    UserRole.TECHNICIAN: {
        Resource.CLIENTS: frozenset({V}),
        Resource.TECHNICIANS: frozenset({V}),
        Resource.PROJECTS: frozenset({V, E}),
        Resource.MAINTENANCE: frozenset({V, C, E}),
        Resource.REPAIRS: frozenset({V, C, E}),
        Resource.INVOICES: frozenset({V}),
        Resource.INVENTORY: frozenset({V, E}),
        Resource.REPORTS: frozenset({V, C, E}),
        Resource.SETTINGS: NONE,
        Resource.VEHICLES: frozenset({V}),
        Resource.COMMUNICATIONS: frozenset({V, C}),
        Resource.USERS: NONE,
        Resource.ORGANIZATION: NONE,
    },
    UserRole.CLIENT: {
        Resource.CLIENTS: frozenset({V, E}),      # their own profile
        Resource.TECHNICIANS: frozenset({V}),     # assigned technicians
        Resource.PROJECTS: frozenset({V}),
        Resource.MAINTENANCE: frozenset({V}),
        Resource.REPAIRS: frozenset({V, C}),      # can request repairs
        Resource.INVOICES: frozenset({V}),
        Resource.INVENTORY: NONE,
        Resource.REPORTS: frozenset({V}),
        Resource.SETTINGS: NONE,
        Resource.VEHICLES: NONE,
        Resource.COMMUNICATIONS: frozenset({V, C}),
        Resource.USERS: NONE,
        Resource.ORGANIZATION: NONE,
    },
    UserRole.VENDOR: {
        Resource.CLIENTS: NONE,
        Resource.TECHNICIANS: NONE,
        Resource.PROJECTS: NONE,
        Resource.MAINTENANCE: NONE,
        Resource.REPAIRS: NONE,
        Resource.INVOICES: frozenset({V, C}),     # submit and track their invoices
        Resource.INVENTORY: frozenset({V}),
        Resource.REPORTS: NONE,
        Resource.SETTINGS: NONE,
        Resource.VEHICLES: NONE,
        Resource.COMMUNICATIONS: frozenset({V, C}),
        Resource.USERS: NONE,
        Resource.ORGANIZATION: NONE,
    },
}


def _coerce(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


def has_permission(role: UserRole | str | None, resource: Resource | str, action: Action | str) -> bool:
    """
    Check whether a role may perform an action on a resource.

    Pure lookup over CAPABILITIES. Fails closed on anything unrecognized.
    """
    if role == UserRole.SYSTEM_ADMIN:
        return True

    role = _coerce(UserRole, role)
    resource = _coerce(Resource, resource)
    action = _coerce(Action, action)
    if role is None or resource is None or action is None:
        return False

    row = CAPABILITIES.get(role)
    if row is None:
        return False
    return action in row.get(resource, NONE)


def get_role_permissions(role: UserRole | str) -> dict[Resource, frozenset[Action]]:
    """Return the full capability row for a role (empty for unknown roles)."""
    role = _coerce(UserRole, role)
    if role is None:
        return {}
    if role == UserRole.SYSTEM_ADMIN:
        return {resource: ALL for resource in Resource}
    return dict(CAPABILITIES[role])


def can_assign_role(assigner: UserRole | str | None, target: UserRole | str | None) -> bool:
    """
    Check whether a principal with role `assigner` may give (or manage) `target`.

    system_admin may assign any role and is the only role that may assign
    system_admin. Any other role may only assign roles whose capabilities are
    a subset of its own, resource by resource, so nobody can grant more than
    they hold.
    """
    assigner = _coerce(UserRole, assigner)
    target = _coerce(UserRole, target)
    if assigner is None or target is None:
        return False
    if assigner == UserRole.SYSTEM_ADMIN:
        return True
    if target == UserRole.SYSTEM_ADMIN:
        return False
    held = CAPABILITIES[assigner]
    return all(
        actions <= held.get(resource, NONE)
        for resource, actions in CAPABILITIES[target].items()
    )


def evaluate(principal: User | None, resource: Resource | str, action: Action | str) -> bool:
    """
    Check a principal's permission, rejecting roles outside UserRole first.

    The role column is an Enum, but principals built elsewhere (fixtures,
    migrated rows) may carry a raw string, so membership is checked explicitly.
    """
    if principal is None:
        return False
    role = _coerce(UserRole, principal.role)
    if role is None:
        logger.warning("Unknown role %r on user %s", principal.role, principal.id)
        return False
    allowed = has_permission(role, resource, action)
    if not allowed:
        logger.info(
            "Permission denied for user %s (%s): %s %s",
            principal.id, role.value, _value(action), _value(resource),
        )
    return allowed


def _value(member) -> str:
    return member.value if isinstance(member, enum.Enum) else str(member)


def _check_table_is_exhaustive() -> None:
    for role in UserRole:
        if role == UserRole.SYSTEM_ADMIN:
            continue
        row = CAPABILITIES.get(role)
        if row is None:
            raise RuntimeError(f"No capability row for role {role.value!r}")
        missing = set(Resource) - set(row)
        if missing:
            names = ", ".join(sorted(r.value for r in missing))
            raise RuntimeError(f"Role {role.value!r} has no entry for: {names}")


_check_table_is_exhaustive()

from typing import FrozenSet, List

from .enums import Capability, Role
from .errors import PermissionDenied

C = Capability

# Shared by every role except USER
_STAFF = frozenset({
    C.create_tasks, C.assign_tasks, C.view_analytics,
    C.send_messages, C.receive_messages, C.view_reports,
})

ROLE_CAPABILITIES = {
    Role.super_admin: frozenset(Capability),
    Role.general_manager: frozenset(Capability),
    Role.admin: _STAFF | {C.view_all_tasks, C.manage_projects, C.manage_content},
    Role.program_manager: _STAFF | {C.view_all_tasks, C.manage_projects},
    Role.project_coordinator: _STAFF | {C.manage_projects},
    Role.hr: _STAFF | {C.manage_users, C.manage_hr},
    Role.finance: _STAFF | {C.manage_finance},
    Role.procurement: _STAFF | {C.manage_procurement},
    Role.storekeeper: _STAFF | {C.manage_inventory},
    Role.me_officer: _STAFF,
    Role.field_officer: _STAFF,
    Role.accountant: _STAFF | {C.manage_finance},
    Role.user: frozenset({C.send_messages, C.receive_messages}),
}

# Most senior first
ROLE_HIERARCHY = [
    Role.super_admin,
    Role.general_manager,
    Role.admin,
    Role.program_manager,
    Role.project_coordinator,
    Role.hr,
    Role.finance,
    Role.procurement,
    Role.storekeeper,
    Role.me_officer,
    Role.field_officer,
    Role.accountant,
    Role.user,
]

TOP_TIER_ROLES = frozenset({Role.super_admin})

_missing = set(Role) - set(ROLE_CAPABILITIES)
if _missing or set(ROLE_HIERARCHY) != set(Role):
    raise RuntimeError(f"Role tables are incomplete: {sorted(r.value for r in _missing)}")


def capabilities_for(role: Role) -> FrozenSet[Capability]:
    return ROLE_CAPABILITIES[Role(role)]

def has_permission(role: Role, capability: Capability) -> bool:
    """Check if role holds a capability"""
    return Capability(capability) in capabilities_for(role)

def get_roles_by_permission(capability: Capability) -> List[Role]:
    """Roles holding a capability, most senior first"""
    return [role for role in ROLE_HIERARCHY if has_permission(role, capability)]

def get_role_hierarchy_value(role: Role) -> int:
    """Get numeric value for role hierarchy (higher = more privileges)"""
    return len(ROLE_HIERARCHY) - ROLE_HIERARCHY.index(Role(role))

def is_senior(role: Role, other: Role) -> bool:
    """True if role is strictly senior to other"""
    return get_role_hierarchy_value(role) > get_role_hierarchy_value(other)

def can_assign_role(actor_role: Role, target_role: Role) -> bool:
    """Check if actor_role may hand target_role to someone"""
    if not has_permission(actor_role, Capability.assign_roles):
        return False
    return is_senior(actor_role, target_role)

def can_send_message(from_role: Role, to_role: Role) -> bool:
    return (
        has_permission(from_role, Capability.send_messages)
        and has_permission(to_role, Capability.receive_messages)
    )

def require(role: Role, capability: Capability, action: str) -> None:
    """Raise PermissionDenied unless role holds capability"""
    if not has_permission(role, capability):
        raise PermissionDenied(
            f"Permission denied: {Role(role).value} cannot {action} (requires {Capability(capability).value})"
        )

def validate_role_assignment(actor_id, actor_role: Role, target_id, target_role: Role, new_role: Role) -> None:
    """Raise PermissionDenied unless the actor may move target from target_role to new_role"""
    require(actor_role, Capability.manage_users, "update user roles")

    if actor_id == target_id:
        # Only top-tier roles may change their own role, and only downwards
        if Role(actor_role) not in TOP_TIER_ROLES:
            raise PermissionDenied("Permission denied: cannot modify your own role")
        if not is_senior(actor_role, new_role):
            raise PermissionDenied("Permission denied: self-assignment must be to a lower role")
        return

    if not can_assign_role(actor_role, new_role):
        raise PermissionDenied(
            f"Permission denied: {Role(actor_role).value} cannot assign role {Role(new_role).value}"
        )
    if not is_senior(actor_role, target_role):
        raise PermissionDenied(
            f"Permission denied: {Role(actor_role).value} cannot modify a {Role(target_role).value}"
        )

"""Static role → capability matrix.

Consulted by route dependencies (to gate endpoints and to tell the client
which affordances to show) and again inside every state-mutating service
function, so the two layers cannot drift apart.
"""

from enum import StrEnum


class Role(StrEnum):
    TENANT_OPERATOR = "tenant_operator"
    ADMINISTRATOR = "administrator"
    LIBRARIAN = "librarian"
    TEACHER = "teacher"
    LEARNER = "learner"


class Capability(StrEnum):
    MANAGE_TENANTS = "manage_tenants"
    MANAGE_TENANT_SETTINGS = "manage_tenant_settings"
    MANAGE_CATALOG = "manage_catalog"
    MANAGE_ACCOUNTS = "manage_accounts"
    MANAGE_LOANS = "manage_loans"
    MANAGE_INVITATIONS = "manage_invitations"
    MANAGE_OWN_STUDENTS = "manage_own_students"
    MANAGE_SUGGESTIONS = "manage_suggestions"
    VIEW_REPORTS = "view_reports"
    BROWSE_CATALOG = "browse_catalog"
    REQUEST_LOANS = "request_loans"
    REVIEW_BOOKS = "review_books"


_STAFF = frozenset({
    Capability.MANAGE_CATALOG,
    Capability.MANAGE_ACCOUNTS,
    Capability.MANAGE_LOANS,
    Capability.VIEW_REPORTS,
    Capability.BROWSE_CATALOG,
})

_MATRIX: dict[Role, frozenset[Capability]] = {
    Role.TENANT_OPERATOR: frozenset({Capability.MANAGE_TENANTS}),
    Role.ADMINISTRATOR: _STAFF | {
        Capability.MANAGE_INVITATIONS,
        Capability.MANAGE_TENANT_SETTINGS,
    },
    Role.LIBRARIAN: _STAFF,
    Role.TEACHER: frozenset({
        Capability.MANAGE_OWN_STUDENTS,
        Capability.MANAGE_SUGGESTIONS,
        Capability.VIEW_REPORTS,
        Capability.BROWSE_CATALOG,
        Capability.REVIEW_BOOKS,
    }),
    Role.LEARNER: frozenset({
        Capability.BROWSE_CATALOG,
        Capability.REQUEST_LOANS,
        Capability.REVIEW_BOOKS,
    }),
}

_missing = set(Role) - set(_MATRIX)
if _missing:
    raise RuntimeError(f"Roles without a capability set: {sorted(_missing)}")

# Roles an invitation may target. Administrators are only created through
# the tenant bootstrap invite, operators never through a tenant.
INVITABLE_ROLES = frozenset({Role.LIBRARIAN, Role.TEACHER, Role.LEARNER})

# Roles whose accounts log in with an enrollment id instead of an email.
SELF_ENROLLING_ROLES = frozenset({Role.LEARNER})


def capabilities_for(role: Role) -> frozenset[Capability]:
    return _MATRIX[Role(role)]


def is_allowed(role: Role, capability: Capability) -> bool:
    return Capability(capability) in capabilities_for(role)


def can_invite(issuer_role: Role, target_role: Role) -> bool:
    return (
        is_allowed(issuer_role, Capability.MANAGE_INVITATIONS)
        and Role(target_role) in INVITABLE_ROLES
    )


def can_manage_account(actor_role: Role, target_role: Role) -> bool:
    """Whether ``actor_role`` may edit or delete an account holding ``target_role``."""
    if not is_allowed(actor_role, Capability.MANAGE_ACCOUNTS):
        return False
    target = Role(target_role)
    if target is Role.TENANT_OPERATOR:
        return False
    if Role(actor_role) is Role.LIBRARIAN and target is Role.ADMINISTRATOR:
        return False
    return True


def is_self_enrolling(role: Role) -> bool:
    return Role(role) in SELF_ENROLLING_ROLES

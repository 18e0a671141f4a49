import enum


class RoleName(str, enum.Enum):
    EMPLOYEE    = "EMPLOYEE"
    APPROVER_L1 = "APPROVER_L1"
    APPROVER_L2 = "APPROVER_L2"
    ADMIN       = "ADMIN"


# Every role is listed; an unknown role is a KeyError, never a silent permit.
_APPROVAL_LEVELS: dict[RoleName, int | None] = {
    RoleName.EMPLOYEE:    None,
    RoleName.APPROVER_L1: 1,
    RoleName.APPROVER_L2: 2,
    RoleName.ADMIN:       None,
}


def approval_level_for(role: RoleName) -> int | None:
    """Approval level a role may decide on, or None for non-approvers."""
    return _APPROVAL_LEVELS[RoleName(role)]


class Permission(str, enum.Enum):
    CREATE_BOOKING    = "CREATE_BOOKING"
    BOOK_FOR_OTHERS   = "BOOK_FOR_OTHERS"     # choose requester & pre-assign approvers
    VIEW_ALL_BOOKINGS = "VIEW_ALL_BOOKINGS"
    EDIT_ANY_BOOKING  = "EDIT_ANY_BOOKING"
    CANCEL_BOOKING    = "CANCEL_BOOKING"
    REVIEW_APPROVALS  = "REVIEW_APPROVALS"
    VIEW_AUDIT_LOG    = "VIEW_AUDIT_LOG"


_GRANTS: dict[RoleName, frozenset[Permission]] = {
    RoleName.EMPLOYEE: frozenset({
        Permission.CREATE_BOOKING,
    }),
    RoleName.APPROVER_L1: frozenset({
        Permission.VIEW_ALL_BOOKINGS,
        Permission.REVIEW_APPROVALS,
    }),
    RoleName.APPROVER_L2: frozenset({
        Permission.VIEW_ALL_BOOKINGS,
        Permission.REVIEW_APPROVALS,
    }),
    RoleName.ADMIN: frozenset({
        Permission.CREATE_BOOKING,
        Permission.BOOK_FOR_OTHERS,
        Permission.VIEW_ALL_BOOKINGS,
        Permission.EDIT_ANY_BOOKING,
        Permission.CANCEL_BOOKING,
        Permission.REVIEW_APPROVALS,
        Permission.VIEW_AUDIT_LOG,
    }),
}


def has_permission(role: RoleName, permission: Permission) -> bool:
    return permission in _GRANTS[RoleName(role)]

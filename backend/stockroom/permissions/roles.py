# Overview: Role -> capability mapping. Capabilities are derived, never stored.

from .definitions import (
    VIEW_PRODUCTS,
    ADD_PRODUCTS,
    EDIT_PRODUCTS,
    DELETE_PRODUCTS,
    MANAGE_PRODUCTS,
    MANAGE_USERS,
    REQUEST_HANDOVER,
    RETURN_HANDOVER,
)


ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_EMPLOYEE = "employee"

ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_EMPLOYEE)


ROLE_CAPABILITIES: dict[str, frozenset[str]] = {
    ROLE_ADMIN: frozenset({
        VIEW_PRODUCTS,
        ADD_PRODUCTS,
        EDIT_PRODUCTS,
        DELETE_PRODUCTS,
        MANAGE_PRODUCTS,
        MANAGE_USERS,
    }),
    ROLE_MANAGER: frozenset({
        VIEW_PRODUCTS,
        ADD_PRODUCTS,
        EDIT_PRODUCTS,
        MANAGE_PRODUCTS,
    }),
    ROLE_EMPLOYEE: frozenset({
        VIEW_PRODUCTS,
        REQUEST_HANDOVER,
        RETURN_HANDOVER,
    }),
}


def derive_capabilities(role: str | None, *, failsafe: bool = False) -> frozenset[str]:
    """
    Capability set for a role.

    The failsafe override is checked first: the failsafe account always
    gets the admin vector no matter what role is recorded on the row.
    Unknown roles get nothing.
    """
    if failsafe:
        return ROLE_CAPABILITIES[ROLE_ADMIN]
    return ROLE_CAPABILITIES.get(role or "", frozenset())

# Overview: Capability (permission) system package.
# Re-exports all public APIs so callers import from stockroom.permissions.

from .categories import CapabilityCategory
from .definitions import (
    CAPABILITY_DEFINITIONS,
    PRODUCT_CAPABILITIES,
    USER_CAPABILITIES,
    HANDOVER_CAPABILITIES,
    VIEW_PRODUCTS,
    ADD_PRODUCTS,
    EDIT_PRODUCTS,
    DELETE_PRODUCTS,
    MANAGE_PRODUCTS,
    MANAGE_USERS,
    REQUEST_HANDOVER,
    RETURN_HANDOVER,
)
from .roles import (
    ROLES,
    ROLE_ADMIN,
    ROLE_MANAGER,
    ROLE_EMPLOYEE,
    ROLE_CAPABILITIES,
    derive_capabilities,
)
from .helpers import (
    get_all_capability_codes,
    user_capabilities,
    has_capability,
    capability_flags,
)

__all__ = [
    "CapabilityCategory",
    "CAPABILITY_DEFINITIONS",
    "PRODUCT_CAPABILITIES",
    "USER_CAPABILITIES",
    "HANDOVER_CAPABILITIES",
    "VIEW_PRODUCTS",
    "ADD_PRODUCTS",
    "EDIT_PRODUCTS",
    "DELETE_PRODUCTS",
    "MANAGE_PRODUCTS",
    "MANAGE_USERS",
    "REQUEST_HANDOVER",
    "RETURN_HANDOVER",
    "ROLES",
    "ROLE_ADMIN",
    "ROLE_MANAGER",
    "ROLE_EMPLOYEE",
    "ROLE_CAPABILITIES",
    "derive_capabilities",
    "get_all_capability_codes",
    "user_capabilities",
    "has_capability",
    "capability_flags",
]

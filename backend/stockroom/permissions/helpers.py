# Overview: Utility functions for capability lookups and validation.

from .definitions import CAPABILITY_DEFINITIONS
from .roles import derive_capabilities


def get_all_capability_codes():
    """Get list of all capability codes."""
    return [cap[0] for cap in CAPABILITY_DEFINITIONS]


def user_capabilities(user) -> frozenset[str]:
    """Capabilities of a user row (or None -> nothing)."""
    if user is None:
        return frozenset()
    return derive_capabilities(user.role, failsafe=bool(user.is_failsafe))


def has_capability(user, capability: str) -> bool:
    """Pure lookup, no side effects."""
    return capability in user_capabilities(user)


def capability_flags(user) -> dict[str, bool]:
    """
    Boolean flags keyed like can_view_products, for API responses.

    Every known capability appears, granted or not.
    """
    granted = user_capabilities(user)
    return {
        f"can_{code.lower()}": code in granted
        for code in get_all_capability_codes()
    }

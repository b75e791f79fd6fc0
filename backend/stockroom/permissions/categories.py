# Overview: Capability category constants for grouping related capabilities.


class CapabilityCategory:
    """Capability categories for organization and UI display."""
    PRODUCTS = "PRODUCTS"
    USERS = "USERS"
    HANDOVERS = "HANDOVERS"

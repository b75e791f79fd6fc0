# Overview: All capability definitions organized by category.
# Each capability is defined as: (code, name, description, category)

from .categories import CapabilityCategory


VIEW_PRODUCTS = "VIEW_PRODUCTS"
ADD_PRODUCTS = "ADD_PRODUCTS"
EDIT_PRODUCTS = "EDIT_PRODUCTS"
DELETE_PRODUCTS = "DELETE_PRODUCTS"
MANAGE_PRODUCTS = "MANAGE_PRODUCTS"
MANAGE_USERS = "MANAGE_USERS"
REQUEST_HANDOVER = "REQUEST_HANDOVER"
RETURN_HANDOVER = "RETURN_HANDOVER"


# -- PRODUCTS --

PRODUCT_CAPABILITIES = [
    (
        VIEW_PRODUCTS,
        "View Products",
        "View products, stock levels and handovers",
        CapabilityCategory.PRODUCTS,
    ),
    (
        ADD_PRODUCTS,
        "Add Products",
        "Create new products",
        CapabilityCategory.PRODUCTS,
    ),
    (
        EDIT_PRODUCTS,
        "Edit Products",
        "Edit product details and stock levels",
        CapabilityCategory.PRODUCTS,
    ),
    (
        DELETE_PRODUCTS,
        "Delete Products",
        "Delete products (renumbers the remaining products)",
        CapabilityCategory.PRODUCTS,
    ),
    (
        MANAGE_PRODUCTS,
        "Manage Products",
        "Adjust stock, issue handovers directly, approve/reject/close handovers",
        CapabilityCategory.PRODUCTS,
    ),
]


# -- USERS --

USER_CAPABILITIES = [
    (
        MANAGE_USERS,
        "Manage Users",
        "Create, edit, deactivate and delete user accounts",
        CapabilityCategory.USERS,
    ),
]


# -- HANDOVERS --

HANDOVER_CAPABILITIES = [
    (
        REQUEST_HANDOVER,
        "Request Handover",
        "Request items from stock (requires manager approval)",
        CapabilityCategory.HANDOVERS,
    ),
    (
        RETURN_HANDOVER,
        "Return Handover",
        "Return items from one's own handovers",
        CapabilityCategory.HANDOVERS,
    ),
]


CAPABILITY_DEFINITIONS = (
    PRODUCT_CAPABILITIES
    + USER_CAPABILITIES
    + HANDOVER_CAPABILITIES
)

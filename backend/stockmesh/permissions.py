"""
Roles and capabilities.

Routes declare the capability they need
(@require_capability) and this module decides which roles hold it.

DESIGN PRINCIPLES:
- One capability per action family
- Roles never checked by name outside this module
- Admin holds every capability
"""

ROLE_ADMIN = "admin"
ROLE_COMPANY = "company"
ROLE_WAREHOUSE_MANAGER = "warehouse-manager"
ROLE_BRANCH_MANAGER = "branch-manager"
ROLE_SALES = "sales"

ROLES = (
    ROLE_ADMIN,
    ROLE_COMPANY,
    ROLE_WAREHOUSE_MANAGER,
    ROLE_BRANCH_MANAGER,
    ROLE_SALES,
)

# =============================================================================
# CAPABILITY DEFINITIONS
# =============================================================================

# Each capability is defined as: (code, name, description)
CAPABILITY_DEFINITIONS = [
    ("LIST_USERS", "List Users", "List user accounts (visibility filtered per role)"),
    ("MANAGE_USERS", "Manage Users", "Create, view, update and delete user accounts"),
    ("VIEW_PRODUCTS", "View Products", "Read the product catalog"),
    ("MANAGE_PRODUCTS", "Manage Products", "Create, update and deactivate products"),
    ("VIEW_BRANCHES", "View Branches", "Read branches and their product sets"),
    ("MANAGE_BRANCHES", "Manage Branches", "Create branches"),
    ("VIEW_WAREHOUSES", "View Warehouses", "Read warehouses and their product sets"),
    ("MANAGE_WAREHOUSES", "Manage Warehouses", "Create warehouses, send replenish requests"),
    ("ASSIGN_PRODUCTS", "Assign Products", "Add or remove products on a branch or warehouse"),
    ("VIEW_STOCK", "View Stock", "Read stock levels"),
    ("MANAGE_STOCK", "Manage Stock", "Create stock records and set quantities"),
    ("ADJUST_STOCK", "Adjust Stock", "Apply signed quantity changes to branch stock"),
    ("REQUEST_RESTOCK", "Request Restock", "Open restock and stock requests for a branch"),
    ("DECIDE_RESTOCK", "Decide Restock", "Approve or reject restock and stock requests"),
]


_ALL = {code for code, _name, _desc in CAPABILITY_DEFINITIONS}
_READ = {"VIEW_PRODUCTS", "VIEW_BRANCHES", "VIEW_WAREHOUSES", "VIEW_STOCK"}

ROLE_CAPABILITIES = {
    ROLE_ADMIN: _ALL,
    ROLE_COMPANY: _READ | {
        "LIST_USERS",
        "MANAGE_PRODUCTS",
        "MANAGE_BRANCHES",
        "MANAGE_WAREHOUSES",
        "ASSIGN_PRODUCTS",
    },
    ROLE_WAREHOUSE_MANAGER: _READ | {
        "ASSIGN_PRODUCTS",
        "MANAGE_STOCK",
        "ADJUST_STOCK",
        "DECIDE_RESTOCK",
        "MANAGE_WAREHOUSES",
    },
    ROLE_BRANCH_MANAGER: _READ | {
        "ASSIGN_PRODUCTS",
        "MANAGE_STOCK",
        "ADJUST_STOCK",
        "REQUEST_RESTOCK",
    },
    ROLE_SALES: _READ | {"ADJUST_STOCK"},
}

# Which user roles each viewer may list. None means every role.
USER_LIST_VISIBILITY = {
    ROLE_ADMIN: None,
    ROLE_COMPANY: {ROLE_WAREHOUSE_MANAGER},
}


def role_has_capability(role, code):
    return code in ROLE_CAPABILITIES.get(role, set())


def validate_capability_code(code):
    """Check if a capability code is defined."""
    return code in _ALL


# Roles a caller may pick for themselves on POST /register. Admin accounts are
# only created by another admin.
SELF_REGISTRATION_ROLES = {
    ROLE_COMPANY,
    ROLE_WAREHOUSE_MANAGER,
    ROLE_BRANCH_MANAGER,
    ROLE_SALES,
}
DEFAULT_REGISTRATION_ROLE = ROLE_SALES

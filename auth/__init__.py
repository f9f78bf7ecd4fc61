# Auth module for the Campaign Engine
# Provides role definitions and the capability-based access policy

from auth.roles import (
    UserType,
    Action,
    ROLE_PERMISSIONS,
    get_permissions_for_role,
    has_permission,
    has_any_permission,
)

from auth.policy import (
    authorize,
    ensure_authorized,
)

__all__ = [
    # Roles
    "UserType",
    "Action",
    "ROLE_PERMISSIONS",
    "get_permissions_for_role",
    "has_permission",
    "has_any_permission",

    # Policy
    "authorize",
    "ensure_authorized",
]

# Role-Based Access Control for the Campaign Engine
# This module defines user roles and the actions each role may attempt

from enum import Enum
from typing import List, Set

from database.models import UserType


class Action(str, Enum):
    """Actions checked by the access policy."""

    # Brand actions
    CREATE_CAMPAIGN = "create_campaign"
    UPDATE_CAMPAIGN = "update_campaign"
    CHANGE_CAMPAIGN_STATUS = "change_campaign_status"
    DELETE_CAMPAIGN = "delete_campaign"
    VIEW_APPLICATIONS = "view_applications"
    RESPOND_TO_APPLICATION = "respond_to_application"
    REVIEW_CONTENT = "review_content"
    CREATE_PAYMENT = "create_payment"
    PROCESS_PAYMENT = "process_payment"

    # Influencer actions
    APPLY_TO_CAMPAIGN = "apply_to_campaign"
    SUBMIT_CONTENT = "submit_content"
    EDIT_CONTENT = "edit_content"
    DELETE_CONTENT = "delete_content"
    ADD_CONTENT_FILES = "add_content_files"
    PUBLISH_CONTENT = "publish_content"
    REPORT_PERFORMANCE = "report_performance"

    # Shared reads
    VIEW_CONTENT = "view_content"
    VIEW_PAYMENT = "view_payment"


# Role to actions mapping
ROLE_PERMISSIONS: dict[UserType, Set[Action]] = {
    UserType.BRAND: {
        Action.CREATE_CAMPAIGN,
        Action.UPDATE_CAMPAIGN,
        Action.CHANGE_CAMPAIGN_STATUS,
        Action.DELETE_CAMPAIGN,
        Action.VIEW_APPLICATIONS,
        Action.RESPOND_TO_APPLICATION,
        Action.REVIEW_CONTENT,
        Action.CREATE_PAYMENT,
        Action.PROCESS_PAYMENT,
        # Common
        Action.VIEW_CONTENT,
        Action.VIEW_PAYMENT,
    },

    UserType.INFLUENCER: {
        Action.APPLY_TO_CAMPAIGN,
        Action.SUBMIT_CONTENT,
        Action.EDIT_CONTENT,
        Action.DELETE_CONTENT,
        Action.ADD_CONTENT_FILES,
        Action.PUBLISH_CONTENT,
        Action.REPORT_PERFORMANCE,
        # Common
        Action.VIEW_CONTENT,
        Action.VIEW_PAYMENT,
    },

    # Admins can read everything but own nothing
    UserType.ADMIN: {
        Action.VIEW_APPLICATIONS,
        Action.VIEW_CONTENT,
        Action.VIEW_PAYMENT,
    },
}


def get_permissions_for_role(user_type: UserType) -> Set[Action]:
    """Get all actions allowed for a given user type."""
    return ROLE_PERMISSIONS.get(user_type, set())


def has_permission(user_type: UserType, action: Action) -> bool:
    """Check if a user type may attempt a specific action."""
    return action in get_permissions_for_role(user_type)


def has_any_permission(user_type: UserType, actions: List[Action]) -> bool:
    """Check if a user type may attempt any of the given actions."""
    user_permissions = get_permissions_for_role(user_type)
    return any(a in user_permissions for a in actions)

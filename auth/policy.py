# Access policy for the Campaign Engine
# Single place where roles and resource ownership are checked

import logging
from typing import Any, Callable, Dict, Optional

from database.models import User, UserType
from database.marketplace_models import Campaign, CampaignApplication, ContentSubmission, Payment
from auth.roles import Action, has_permission
from core.errors import Forbidden

logger = logging.getLogger(__name__)


def _get_user_type(user: User) -> Optional[UserType]:
    """Helper to extract UserType from a user, tolerating raw string values."""
    val = getattr(user, "user_type", None)
    if val is None:
        return None
    if isinstance(val, UserType):
        return val
    raw = str(getattr(val, "value", val))
    try:
        return UserType(raw.lower())
    except ValueError:
        return None


def _campaign_of(resource: Any) -> Optional[Campaign]:
    if isinstance(resource, Campaign):
        return resource
    if isinstance(resource, (CampaignApplication, ContentSubmission)):
        return resource.campaign
    return None


def _owns_campaign(actor: User, resource: Any) -> bool:
    campaign = _campaign_of(resource)
    return campaign is not None and campaign.brand_id == actor.id


def _owns_submission(actor: User, resource: Any) -> bool:
    return isinstance(resource, ContentSubmission) and resource.influencer_id == actor.id


def _can_view_content(actor: User, resource: Any) -> bool:
    if _get_user_type(actor) == UserType.ADMIN:
        return True
    if _get_user_type(actor) == UserType.INFLUENCER:
        return _owns_submission(actor, resource)
    return _owns_campaign(actor, resource)


def _can_view_applications(actor: User, resource: Any) -> bool:
    return _get_user_type(actor) == UserType.ADMIN or _owns_campaign(actor, resource)


def _owns_payment_as_brand(actor: User, resource: Any) -> bool:
    # Creation happens before a payment exists; ownership of the content is checked by the ledger
    if resource is None:
        return True
    return isinstance(resource, Payment) and resource.brand_id == actor.id


def _party_to_payment(actor: User, resource: Any) -> bool:
    if _get_user_type(actor) == UserType.ADMIN:
        return True
    return isinstance(resource, Payment) and actor.id in (resource.brand_id, resource.influencer_id)


def _any(actor: User, resource: Any) -> bool:
    return True


OWNERSHIP_RULES: Dict[Action, Callable[[User, Any], bool]] = {
    Action.CREATE_CAMPAIGN: _any,
    Action.UPDATE_CAMPAIGN: _owns_campaign,
    Action.CHANGE_CAMPAIGN_STATUS: _owns_campaign,
    Action.DELETE_CAMPAIGN: _owns_campaign,
    Action.VIEW_APPLICATIONS: _can_view_applications,
    Action.RESPOND_TO_APPLICATION: _owns_campaign,
    Action.APPLY_TO_CAMPAIGN: _any,
    Action.SUBMIT_CONTENT: _any,
    Action.EDIT_CONTENT: _owns_submission,
    Action.DELETE_CONTENT: _owns_submission,
    Action.ADD_CONTENT_FILES: _owns_submission,
    Action.PUBLISH_CONTENT: _owns_submission,
    Action.REPORT_PERFORMANCE: _owns_submission,
    Action.REVIEW_CONTENT: _owns_campaign,
    Action.VIEW_CONTENT: _can_view_content,
    Action.CREATE_PAYMENT: _any,
    Action.PROCESS_PAYMENT: _owns_payment_as_brand,
    Action.VIEW_PAYMENT: _party_to_payment,
}


def authorize(actor: Optional[User], action: Action, resource: Any = None) -> bool:
    """
    Decide whether `actor` may perform `action` on `resource`.

    The actor's user type must hold the action (see ROLE_PERMISSIONS), then the
    action's ownership rule is applied to the resource.
    """
    if actor is None:
        return False
    user_type = _get_user_type(actor)
    if user_type is None or not has_permission(user_type, action):
        return False
    rule = OWNERSHIP_RULES.get(action)
    if rule is None:
        return False
    return rule(actor, resource)


def ensure_authorized(actor: Optional[User], action: Action, resource: Any = None, detail: Optional[str] = None) -> None:
    """Raise Forbidden unless `authorize` allows the action."""
    if not authorize(actor, action, resource):
        logger.info(
            "Denied %s for user %s",
            action.value,
            getattr(actor, "id", None),
        )
        raise Forbidden(detail or "You don't have permission to perform this action")

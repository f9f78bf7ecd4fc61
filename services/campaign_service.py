# Campaign Service for the Campaign Engine
# Owns campaign creation, edits and status transitions

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from database.models import User
from database.marketplace_models import (
    Campaign, CampaignStatusDB, CampaignApplication, CampaignParticipant,
)
from auth.policy import ensure_authorized
from auth.roles import Action
from core.errors import NotFound, BadRequest, InvalidState, InvalidOperation, Conflict
from schemas.marketplace import CampaignCreate, CampaignUpdate, CampaignFilter
from services.common import transaction, paginate
from services.transitions import CAMPAIGN_TRANSITIONS, assert_transition, cas_or_conflict

logger = logging.getLogger(__name__)

TERMINAL_CAMPAIGN_STATUSES = (CampaignStatusDB.COMPLETED, CampaignStatusDB.CANCELLED)


def _check_dates(start_date: Optional[datetime], end_date: Optional[datetime]):
    if start_date and end_date and end_date < start_date:
        raise BadRequest("End date must be after start date")


class CampaignService:
    """Campaign lifecycle: DRAFT -> ACTIVE <-> PAUSED -> COMPLETED | CANCELLED."""

    def __init__(self, db: Session):
        self.db = db

    def _get_or_404(self, campaign_id: str) -> Campaign:
        campaign = self.db.query(Campaign).filter(Campaign.id == campaign_id).first()
        if not campaign:
            raise NotFound("Campaign not found")
        return campaign

    # =========================================================================
    # WRITES
    # =========================================================================

    def create(self, brand: User, data: CampaignCreate) -> Campaign:
        ensure_authorized(brand, Action.CREATE_CAMPAIGN, detail="Only brands can create campaigns")
        _check_dates(data.start_date, data.end_date)

        fields = data.model_dump(exclude={"status"})
        campaign = Campaign(brand_id=brand.id, status=CampaignStatusDB.DRAFT, **fields)

        with transaction(self.db):
            self.db.add(campaign)
        self.db.refresh(campaign)

        logger.info(f"Campaign {campaign.id} created by brand {brand.id}")
        return campaign

    def update(self, campaign_id: str, brand: User, data: CampaignUpdate) -> Campaign:
        campaign = self._get_or_404(campaign_id)
        ensure_authorized(brand, Action.UPDATE_CAMPAIGN, campaign, detail="You can only update your own campaigns")

        if campaign.status in TERMINAL_CAMPAIGN_STATUSES:
            raise InvalidState(f"Cannot edit a {campaign.status.value.upper()} campaign")

        changes = data.model_dump(exclude_unset=True)
        _check_dates(
            changes.get("start_date", campaign.start_date),
            changes.get("end_date", campaign.end_date),
        )

        with transaction(self.db):
            for field, value in changes.items():
                setattr(campaign, field, value)
            campaign.updated_at = datetime.utcnow()
        self.db.refresh(campaign)
        return campaign

    def update_status(self, campaign_id: str, brand: User, new_status) -> Campaign:
        campaign = self._get_or_404(campaign_id)
        ensure_authorized(brand, Action.CHANGE_CAMPAIGN_STATUS, campaign,
                          detail="You can only update your own campaigns")

        try:
            new_status = CampaignStatusDB(new_status)
        except ValueError:
            raise BadRequest(f"Unknown campaign status: {new_status}")

        current = campaign.status
        assert_transition("campaign", CAMPAIGN_TRANSITIONS, current, new_status)

        with transaction(self.db):
            cas_or_conflict(self.db, Campaign, campaign.id, current, new_status)
        self.db.refresh(campaign)

        logger.info(f"Campaign {campaign.id} status {current.value} -> {new_status.value}")
        return campaign

    def delete(self, campaign_id: str, brand: User) -> None:
        campaign = self._get_or_404(campaign_id)
        ensure_authorized(brand, Action.DELETE_CAMPAIGN, campaign, detail="You can only delete your own campaigns")

        if campaign.status != CampaignStatusDB.DRAFT:
            raise InvalidOperation("Only draft campaigns can be deleted")

        with transaction(self.db):
            deleted = (
                self.db.query(Campaign)
                .filter(Campaign.id == campaign.id, Campaign.status == CampaignStatusDB.DRAFT)
                .delete(synchronize_session="fetch")
            )
            if not deleted:
                raise Conflict("Campaign was modified concurrently")
        logger.info(f"Campaign {campaign_id} deleted by brand {brand.id}")

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, campaign_id: str) -> Campaign:
        return self._get_or_404(campaign_id)

    def get_with_status(self, campaign_id: str, influencer: User) -> dict:
        """Campaign plus the influencer's application and participation, if any."""
        campaign = self._get_or_404(campaign_id)
        application = self.db.query(CampaignApplication).filter(
            CampaignApplication.campaign_id == campaign_id,
            CampaignApplication.influencer_id == influencer.id,
        ).first()
        participant = self.db.query(CampaignParticipant).filter(
            CampaignParticipant.campaign_id == campaign_id,
            CampaignParticipant.influencer_id == influencer.id,
        ).first()
        return {
            "campaign": campaign,
            "application": application,
            "is_participant": participant is not None,
        }

    def _filtered(self, query, filters: CampaignFilter):
        if filters.search:
            term = f"%{filters.search}%"
            query = query.filter(or_(
                Campaign.title.ilike(term),
                Campaign.description.ilike(term),
                Campaign.objective.ilike(term),
            ))
        if filters.min_budget is not None:
            query = query.filter(Campaign.budget >= filters.min_budget)
        if filters.max_budget is not None:
            query = query.filter(Campaign.budget <= filters.max_budget)
        return query

    def list_by_brand(self, brand: User, filters: Optional[CampaignFilter] = None) -> dict:
        filters = filters or CampaignFilter()
        query = self.db.query(Campaign).filter(Campaign.brand_id == brand.id)
        if filters.status:
            query = query.filter(Campaign.status == filters.status)
        query = self._filtered(query, filters).order_by(Campaign.created_at.desc())
        return paginate(query, filters.page, filters.limit, "campaigns")

    def browse(self, filters: Optional[CampaignFilter] = None) -> dict:
        """Active campaigns open to applications."""
        filters = filters or CampaignFilter()
        query = self.db.query(Campaign).filter(Campaign.status == CampaignStatusDB.ACTIVE)
        query = self._filtered(query, filters).order_by(Campaign.created_at.desc())
        return paginate(query, filters.page, filters.limit, "campaigns")

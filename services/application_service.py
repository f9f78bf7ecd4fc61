# Application Service for the Campaign Engine
# Influencers apply to campaigns; accepting an application creates the participant

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database.models import User
from database.marketplace_models import (
    Campaign, CampaignStatusDB,
    CampaignApplication, ApplicationStatusDB,
    CampaignParticipant, ParticipantStatusDB,
)
from auth.policy import ensure_authorized
from auth.roles import Action
from core.errors import NotFound, BadRequest, InvalidState, AlreadyApplied
from schemas.marketplace import ApplicationCreate
from services.common import transaction
from services.notification_service import NotificationService, NotificationType
from services.transitions import APPLICATION_TRANSITIONS, assert_transition, cas_or_conflict

logger = logging.getLogger(__name__)

RESPONSES = (ApplicationStatusDB.ACCEPTED, ApplicationStatusDB.REJECTED)


class ApplicationService:
    """PENDING -> ACCEPTED | REJECTED. A response is final."""

    def __init__(self, db: Session, notifier: Optional[NotificationService] = None):
        self.db = db
        self.notifier = notifier or NotificationService(db)

    def _get_campaign(self, campaign_id: str) -> Campaign:
        campaign = self.db.query(Campaign).filter(Campaign.id == campaign_id).first()
        if not campaign:
            raise NotFound("Campaign not found")
        return campaign

    def _get_application(self, application_id: str) -> CampaignApplication:
        application = self.db.query(CampaignApplication).filter(
            CampaignApplication.id == application_id
        ).first()
        if not application:
            raise NotFound("Application not found")
        return application

    def _find_application(self, campaign_id: str, influencer_id: str) -> Optional[CampaignApplication]:
        return self.db.query(CampaignApplication).filter(
            CampaignApplication.campaign_id == campaign_id,
            CampaignApplication.influencer_id == influencer_id,
        ).first()

    def _find_participant(self, campaign_id: str, influencer_id: str) -> Optional[CampaignParticipant]:
        return self.db.query(CampaignParticipant).filter(
            CampaignParticipant.campaign_id == campaign_id,
            CampaignParticipant.influencer_id == influencer_id,
        ).first()

    # =========================================================================
    # APPLY
    # =========================================================================

    def apply(self, campaign_id: str, influencer: User, data: Optional[ApplicationCreate] = None) -> CampaignApplication:
        ensure_authorized(influencer, Action.APPLY_TO_CAMPAIGN, detail="Only influencers can apply to campaigns")
        campaign = self._get_campaign(campaign_id)

        if campaign.status != CampaignStatusDB.ACTIVE:
            raise InvalidState("Campaign is not accepting applications")

        if self._find_application(campaign_id, influencer.id):
            raise AlreadyApplied("You have already applied to this campaign")

        if self._find_participant(campaign_id, influencer.id):
            raise AlreadyApplied("You are already participating in this campaign")

        data = data or ApplicationCreate()
        application = CampaignApplication(
            campaign_id=campaign_id,
            influencer_id=influencer.id,
            status=ApplicationStatusDB.PENDING,
            application_data=data.model_dump(exclude_none=True),
        )

        try:
            with transaction(self.db):
                self.db.add(application)
        except IntegrityError:
            # Concurrent duplicate lost the race on the unique constraint
            raise AlreadyApplied("You have already applied to this campaign")
        self.db.refresh(application)

        logger.info(f"Influencer {influencer.id} applied to campaign {campaign_id}")
        return application

    # =========================================================================
    # RESPOND
    # =========================================================================

    def update_application_status(
        self,
        application_id: str,
        brand: User,
        new_status,
        message: Optional[str] = None,
    ) -> CampaignApplication:
        application = self._get_application(application_id)
        campaign = application.campaign
        ensure_authorized(brand, Action.RESPOND_TO_APPLICATION, campaign,
                          detail="You can only respond to applications for your own campaigns")

        try:
            new_status = ApplicationStatusDB(new_status)
        except ValueError:
            raise BadRequest(f"Unknown application status: {new_status}")
        if new_status not in RESPONSES:
            raise BadRequest("Applications can only be accepted or rejected")

        current = application.status

        # Same answer again: a retry. Make sure the participant exists and return.
        if current == new_status:
            if new_status == ApplicationStatusDB.ACCEPTED:
                with transaction(self.db):
                    self._ensure_participant(campaign, application.influencer_id)
            return application

        assert_transition("application", APPLICATION_TRANSITIONS, current, new_status)

        with transaction(self.db):
            if new_status == ApplicationStatusDB.ACCEPTED:
                self._check_capacity(campaign, application.influencer_id)
            cas_or_conflict(
                self.db, CampaignApplication, application.id, current, new_status,
                values={"responded_at": datetime.utcnow(), "response_message": message},
            )
            if new_status == ApplicationStatusDB.ACCEPTED:
                self._ensure_participant(campaign, application.influencer_id)
                event = NotificationType.APPLICATION_ACCEPTED
            else:
                event = NotificationType.APPLICATION_REJECTED
            self.notifier.notify(event, application.influencer_id, {
                "campaign_id": campaign.id,
                "campaign_title": campaign.title,
                "application_id": application.id,
                "message": message,
            })
        self.db.refresh(application)

        logger.info(f"Application {application.id} {current.value} -> {new_status.value}")
        return application

    def _check_capacity(self, campaign: Campaign, influencer_id: str):
        """Runs inside the accepting transaction, holding the campaign row lock."""
        if not campaign.max_influencers:
            return
        # Serialises concurrent accepts for the same campaign (no-op on SQLite)
        self.db.query(Campaign.id).filter(Campaign.id == campaign.id).with_for_update().first()
        count = self.db.query(CampaignParticipant).filter(
            CampaignParticipant.campaign_id == campaign.id,
            CampaignParticipant.influencer_id != influencer_id,
            CampaignParticipant.status != ParticipantStatusDB.REMOVED,
        ).count()
        if count >= campaign.max_influencers:
            raise InvalidState("Campaign has reached its maximum number of influencers")

    def _ensure_participant(self, campaign: Campaign, influencer_id: str) -> CampaignParticipant:
        """Create the participant once; reuse it if it already exists."""
        participant = self._find_participant(campaign.id, influencer_id)
        if participant:
            return participant

        try:
            with self.db.begin_nested():
                participant = CampaignParticipant(
                    campaign_id=campaign.id,
                    influencer_id=influencer_id,
                    status=ParticipantStatusDB.ACTIVE,
                )
                self.db.add(participant)
        except IntegrityError:
            # A concurrent accept created it first
            participant = self._find_participant(campaign.id, influencer_id)
        return participant

    # =========================================================================
    # READS
    # =========================================================================

    def list_for_campaign(self, campaign_id: str, brand: User) -> List[CampaignApplication]:
        campaign = self._get_campaign(campaign_id)
        ensure_authorized(brand, Action.VIEW_APPLICATIONS, campaign,
                          detail="You can only view applications for your own campaigns")
        return self.db.query(CampaignApplication).filter(
            CampaignApplication.campaign_id == campaign_id
        ).order_by(CampaignApplication.applied_at.desc()).all()

    def list_for_influencer(self, influencer: User) -> List[CampaignApplication]:
        return self.db.query(CampaignApplication).filter(
            CampaignApplication.influencer_id == influencer.id
        ).order_by(CampaignApplication.applied_at.desc()).all()

    def check_application_status(self, campaign_id: str, influencer: User) -> dict:
        application = self.db.query(CampaignApplication).filter(
            CampaignApplication.campaign_id == campaign_id,
            CampaignApplication.influencer_id == influencer.id,
        ).first()
        is_participant = self._find_participant(campaign_id, influencer.id) is not None
        return {
            "has_applied": application is not None,
            "application": application,
            "is_participant": is_participant,
        }



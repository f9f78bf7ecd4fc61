# Content Service for the Campaign Engine
# Submissions, their files, published posts and performance metrics

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database.models import User
from database.marketplace_models import (
    Campaign, CampaignStatusDB, CampaignParticipant,
    ContentSubmission, ContentStatusDB, ContentFile, ContentPerformance,
    PublishedPost, PostPerformance,
)
from auth.policy import ensure_authorized
from auth.roles import Action
from core.errors import NotFound, BadRequest, Forbidden, InvalidState, AlreadySubmitted
from schemas.marketplace import (
    ContentSubmissionCreate, ContentSubmissionUpdate, ContentFilter, ContentFileCreate,
    PerformanceUpdate, PublishedPostCreate, PublishedPostUpdate,
)
from services.common import transaction, paginate
from services.notification_service import NotificationService, NotificationType
from services.transitions import CONTENT_TRANSITIONS, assert_transition, cas_or_conflict

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (ContentStatusDB.PENDING, ContentStatusDB.REJECTED)
LOCKED_STATUSES = (ContentStatusDB.COMPLETED, ContentStatusDB.PAID)

REVIEW_EVENTS = {
    ContentStatusDB.APPROVED: NotificationType.CONTENT_APPROVED,
    ContentStatusDB.REJECTED: NotificationType.CONTENT_REJECTED,
    ContentStatusDB.COMPLETED: NotificationType.CONTENT_COMPLETED,
}


class ContentService:
    """
    Submission lifecycle:
    PENDING -> APPROVED | REJECTED, REJECTED -> APPROVED | REJECTED,
    APPROVED -> COMPLETED, COMPLETED -> PAID (payment ledger only).
    """

    def __init__(self, db: Session, notifier: Optional[NotificationService] = None):
        self.db = db
        self.notifier = notifier or NotificationService(db)

    def _get_or_404(self, content_id: str) -> ContentSubmission:
        content = self.db.query(ContentSubmission).filter(ContentSubmission.id == content_id).first()
        if not content:
            raise NotFound("Content not found")
        return content

    def _get_post_or_404(self, post_id: str) -> PublishedPost:
        post = self.db.query(PublishedPost).filter(PublishedPost.id == post_id).first()
        if not post:
            raise NotFound("Published post not found")
        return post

    # =========================================================================
    # SUBMISSIONS
    # =========================================================================

    def _find_submission(self, campaign_id: str, influencer_id: str) -> Optional[ContentSubmission]:
        return self.db.query(ContentSubmission).filter(
            ContentSubmission.campaign_id == campaign_id,
            ContentSubmission.influencer_id == influencer_id,
        ).first()

    def create(self, influencer: User, data: ContentSubmissionCreate) -> ContentSubmission:
        ensure_authorized(influencer, Action.SUBMIT_CONTENT, detail="Only influencers can submit content")

        campaign = self.db.query(Campaign).filter(Campaign.id == data.campaign_id).first()
        if not campaign:
            raise NotFound("Campaign not found")

        participant = self.db.query(CampaignParticipant).filter(
            CampaignParticipant.campaign_id == campaign.id,
            CampaignParticipant.influencer_id == influencer.id,
        ).first()
        if not participant:
            raise Forbidden("You are not a participant in this campaign")

        if campaign.status != CampaignStatusDB.ACTIVE:
            raise InvalidState("Campaign is not active")

        if self._find_submission(campaign.id, influencer.id):
            raise AlreadySubmitted("You have already submitted content for this campaign")

        auto_approve = not campaign.requires_approval or influencer.id in (campaign.auto_approve_influencers or [])

        content = ContentSubmission(
            influencer_id=influencer.id,
            **data.model_dump(),
        )
        if auto_approve:
            content.status = ContentStatusDB.APPROVED
            content.approved_at = datetime.utcnow()
        else:
            content.status = ContentStatusDB.PENDING

        try:
            with transaction(self.db):
                self.db.add(content)
        except IntegrityError:
            raise AlreadySubmitted("You have already submitted content for this campaign")
        self.db.refresh(content)

        logger.info(f"Content {content.id} submitted for campaign {campaign.id} ({content.status.value})")
        return content

    def get(self, content_id: str, user: User) -> ContentSubmission:
        content = self._get_or_404(content_id)
        ensure_authorized(user, Action.VIEW_CONTENT, content, detail="You don't have access to this content")
        return content

    def _filtered(self, query, filters: ContentFilter):
        if filters.status:
            query = query.filter(ContentSubmission.status == filters.status)
        if filters.content_type:
            query = query.filter(ContentSubmission.content_type == filters.content_type)
        if filters.campaign_id:
            query = query.filter(ContentSubmission.campaign_id == filters.campaign_id)
        if filters.search:
            term = f"%{filters.search}%"
            query = query.filter(or_(
                ContentSubmission.title.ilike(term),
                ContentSubmission.description.ilike(term),
                ContentSubmission.caption.ilike(term),
            ))
        return query.order_by(ContentSubmission.submitted_at.desc())

    def list_by_influencer(self, influencer: User, filters: Optional[ContentFilter] = None) -> dict:
        filters = filters or ContentFilter()
        query = self.db.query(ContentSubmission).filter(ContentSubmission.influencer_id == influencer.id)
        return paginate(self._filtered(query, filters), filters.page, filters.limit, "content")

    def list_by_brand(self, brand: User, filters: Optional[ContentFilter] = None) -> dict:
        filters = filters or ContentFilter()
        query = self.db.query(ContentSubmission).join(Campaign).filter(Campaign.brand_id == brand.id)
        return paginate(self._filtered(query, filters), filters.page, filters.limit, "content")

    def update(self, content_id: str, influencer: User, data: ContentSubmissionUpdate) -> ContentSubmission:
        content = self._get_or_404(content_id)
        ensure_authorized(influencer, Action.EDIT_CONTENT, content, detail="You can only update your own content")

        if content.status not in EDITABLE_STATUSES:
            raise InvalidState("Can only update pending or rejected content")

        changes = data.model_dump(exclude_unset=True)
        with transaction(self.db):
            # Guard the edit against a concurrent review
            cas_or_conflict(self.db, ContentSubmission, content.id, content.status, content.status, values=changes)
        self.db.refresh(content)
        return content

    def update_status(
        self,
        content_id: str,
        brand: User,
        new_status,
        feedback: Optional[str] = None,
    ) -> ContentSubmission:
        content = self._get_or_404(content_id)
        ensure_authorized(brand, Action.REVIEW_CONTENT, content,
                          detail="You can only update content for your own campaigns")

        try:
            new_status = ContentStatusDB(new_status)
        except ValueError:
            raise BadRequest(f"Unknown content status: {new_status}")
        if new_status == ContentStatusDB.PAID:
            raise InvalidState("Content is marked paid only when its payment completes")

        current = content.status
        assert_transition("content", CONTENT_TRANSITIONS, current, new_status)

        now = datetime.utcnow()
        values = {"feedback": feedback}
        if new_status == ContentStatusDB.APPROVED:
            values["approved_at"] = now
        elif new_status == ContentStatusDB.COMPLETED:
            values["completed_at"] = now

        campaign = content.campaign
        with transaction(self.db):
            cas_or_conflict(self.db, ContentSubmission, content.id, current, new_status, values=values)
            self.notifier.notify(REVIEW_EVENTS[new_status], content.influencer_id, {
                "campaign_id": campaign.id,
                "campaign_title": campaign.title,
                "content_id": content.id,
                "feedback": feedback,
            })
        self.db.refresh(content)

        logger.info(f"Content {content.id} status {current.value} -> {new_status.value}")
        return content

    def delete(self, content_id: str, influencer: User) -> None:
        content = self._get_or_404(content_id)
        ensure_authorized(influencer, Action.DELETE_CONTENT, content, detail="You can only delete your own content")

        if content.status not in EDITABLE_STATUSES:
            raise InvalidState("Can only delete pending or rejected content")

        with transaction(self.db):
            self.db.delete(content)
        logger.info(f"Content {content_id} deleted by influencer {influencer.id}")

    # =========================================================================
    # FILES
    # =========================================================================

    def add_files(self, content_id: str, influencer: User, files: List[ContentFileCreate]) -> List[ContentFile]:
        content = self._get_or_404(content_id)
        ensure_authorized(influencer, Action.ADD_CONTENT_FILES, content,
                          detail="You can only add files to your own content")

        if content.status in LOCKED_STATUSES:
            raise InvalidState("Cannot add files to completed content")

        created = [ContentFile(content_id=content.id, **f.model_dump()) for f in files]
        with transaction(self.db):
            self.db.add_all(created)
        for f in created:
            self.db.refresh(f)
        return created

    def get_files(self, content_id: str, user: User) -> List[ContentFile]:
        content = self.get(content_id, user)
        return self.db.query(ContentFile).filter(
            ContentFile.content_id == content.id
        ).order_by(ContentFile.created_at).all()

    # =========================================================================
    # PUBLISHED POSTS
    # =========================================================================

    def create_published_post(self, influencer: User, data: PublishedPostCreate) -> PublishedPost:
        content = self._get_or_404(data.content_id)
        ensure_authorized(influencer, Action.PUBLISH_CONTENT, content,
                          detail="You can only publish your own content")

        if content.status != ContentStatusDB.APPROVED:
            raise InvalidState("Content must be approved before publishing")

        fields = data.model_dump()
        fields["published_at"] = fields.get("published_at") or datetime.utcnow()
        post = PublishedPost(**fields)

        with transaction(self.db):
            self.db.add(post)
        self.db.refresh(post)

        logger.info(f"Content {content.id} published on {post.platform}")
        return post

    def get_published_posts(self, content_id: str, user: User) -> List[PublishedPost]:
        content = self.get(content_id, user)
        return self.db.query(PublishedPost).filter(
            PublishedPost.content_id == content.id
        ).order_by(PublishedPost.published_at.desc()).all()

    def update_published_post(self, post_id: str, influencer: User, data: PublishedPostUpdate) -> PublishedPost:
        post = self._get_post_or_404(post_id)
        ensure_authorized(influencer, Action.PUBLISH_CONTENT, post.content,
                          detail="You can only update your own posts")

        with transaction(self.db):
            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(post, field, value)
            post.updated_at = datetime.utcnow()
        self.db.refresh(post)
        return post

    def delete_published_post(self, post_id: str, influencer: User) -> None:
        post = self._get_post_or_404(post_id)
        ensure_authorized(influencer, Action.PUBLISH_CONTENT, post.content,
                          detail="You can only delete your own posts")

        with transaction(self.db):
            self.db.delete(post)

    # =========================================================================
    # PERFORMANCE
    # =========================================================================

    def _replace_metrics(self, row, data: PerformanceUpdate):
        # Full replacement: omitted optional metrics are cleared
        for field, value in data.model_dump().items():
            setattr(row, field, value)
        row.last_updated = datetime.utcnow()

    def update_performance(self, content_id: str, influencer: User, data: PerformanceUpdate) -> ContentPerformance:
        content = self._get_or_404(content_id)
        ensure_authorized(influencer, Action.REPORT_PERFORMANCE, content,
                          detail="You can only update performance for your own content")

        performance = self.db.query(ContentPerformance).filter(
            ContentPerformance.content_id == content.id
        ).first()

        with transaction(self.db):
            if performance is None:
                performance = ContentPerformance(content_id=content.id)
                self.db.add(performance)
            self._replace_metrics(performance, data)
        self.db.refresh(performance)
        return performance

    def update_post_performance(self, post_id: str, influencer: User, data: PerformanceUpdate) -> PostPerformance:
        post = self._get_post_or_404(post_id)
        ensure_authorized(influencer, Action.REPORT_PERFORMANCE, post.content,
                          detail="You can only update performance for your own posts")

        performance = self.db.query(PostPerformance).filter(PostPerformance.post_id == post.id).first()

        with transaction(self.db):
            if performance is None:
                performance = PostPerformance(post_id=post.id)
                self.db.add(performance)
            self._replace_metrics(performance, data)
        self.db.refresh(performance)
        return performance

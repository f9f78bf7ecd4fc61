"""Content submissions: lifecycle, files, published posts and performance."""

from datetime import datetime
from decimal import Decimal
from itertools import product

import pytest

from core.errors import (
    AlreadySubmitted, Conflict, Forbidden, InvalidState, InvalidTransition, NotFound,
)
from database.models import UserType
from database.marketplace_models import (
    CampaignStatusDB, ContentStatusDB, ContentTypeDB, ContentSubmission, PostStatusDB, Notification,
)
from schemas.marketplace import (
    ContentSubmissionCreate, ContentSubmissionUpdate, ContentFilter, ContentFileCreate,
    PerformanceUpdate, PublishedPostCreate, PublishedPostUpdate,
)
from services.content_service import ContentService
from services.transitions import CONTENT_TRANSITIONS


REVIEWABLE = [s for s in ContentStatusDB if s != ContentStatusDB.PAID]
ALLOWED = {(c, n) for c, targets in CONTENT_TRANSITIONS.items() for n in targets if n != ContentStatusDB.PAID}
FORBIDDEN = [pair for pair in product(ContentStatusDB, REVIEWABLE) if pair not in ALLOWED]


def _submit(db, campaign, influencer, **kwargs):
    data = {"campaign_id": campaign.id, "content_type": ContentTypeDB.REEL, "title": "Reel", "amount": Decimal("200")}
    data.update(kwargs)
    return ContentService(db).create(influencer, ContentSubmissionCreate(**data))


# ============================================================================
# CREATE
# ============================================================================

def test_participant_submits_pending_content(db, brand, influencer, make_campaign, make_participant):
    campaign = make_campaign(brand)
    make_participant(campaign, influencer)

    content = _submit(db, campaign, influencer, hashtags=["#summer"], platforms=["instagram"])

    assert content.status == ContentStatusDB.PENDING
    assert content.approved_at is None
    assert content.hashtags == ["#summer"]


def test_non_participant_cannot_submit(db, brand, influencer, make_campaign):
    campaign = make_campaign(brand)
    with pytest.raises(Forbidden):
        _submit(db, campaign, influencer)


def test_submit_to_inactive_campaign(db, brand, influencer, make_campaign, make_participant):
    campaign = make_campaign(brand, status=CampaignStatusDB.PAUSED)
    make_participant(campaign, influencer)
    with pytest.raises(InvalidState):
        _submit(db, campaign, influencer)


def test_submit_to_missing_campaign(db, influencer):
    with pytest.raises(NotFound):
        ContentService(db).create(influencer, ContentSubmissionCreate(
            campaign_id="missing", content_type=ContentTypeDB.IMAGE,
        ))


def test_second_submission_conflicts(db, brand, influencer, make_campaign, make_participant):
    campaign = make_campaign(brand)
    make_participant(campaign, influencer)
    _submit(db, campaign, influencer)

    with pytest.raises(AlreadySubmitted) as exc:
        _submit(db, campaign, influencer)
    assert isinstance(exc.value, Conflict)


def test_concurrent_duplicate_submission_hits_unique_constraint(db, brand, influencer, make_campaign, make_participant, monkeypatch):
    campaign = make_campaign(brand)
    make_participant(campaign, influencer)
    _submit(db, campaign, influencer)

    # The other request checked before this row was committed
    service = ContentService(db)
    monkeypatch.setattr(service, "_find_submission", lambda campaign_id, influencer_id: None)
    with pytest.raises(AlreadySubmitted):
        service.create(influencer, ContentSubmissionCreate(campaign_id=campaign.id, content_type=ContentTypeDB.REEL))

    assert db.query(ContentSubmission).filter(ContentSubmission.campaign_id == campaign.id).count() == 1


def test_auto_approved_when_campaign_needs_no_approval(db, brand, influencer, make_campaign, make_participant):
    campaign = make_campaign(brand, requires_approval=False)
    make_participant(campaign, influencer)

    content = _submit(db, campaign, influencer)

    assert content.status == ContentStatusDB.APPROVED
    assert content.approved_at is not None


def test_auto_approved_influencer(db, brand, influencer, make_user, make_campaign, make_participant):
    other = make_user(UserType.INFLUENCER)
    campaign = make_campaign(brand, auto_approve_influencers=[influencer.id])
    make_participant(campaign, influencer)
    make_participant(campaign, other)

    assert _submit(db, campaign, influencer).status == ContentStatusDB.APPROVED
    assert _submit(db, campaign, other).status == ContentStatusDB.PENDING


# ============================================================================
# STATUS
# ============================================================================

def test_approve_then_complete(db, brand, influencer, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer)
    service = ContentService(db)

    approved = service.update_status(content.id, brand, ContentStatusDB.APPROVED, "Looks great")
    assert approved.status == ContentStatusDB.APPROVED
    assert approved.approved_at is not None
    assert approved.feedback == "Looks great"

    completed = service.update_status(content.id, brand, ContentStatusDB.COMPLETED)
    assert completed.status == ContentStatusDB.COMPLETED
    assert completed.completed_at is not None

    types = [n.type for n in db.query(Notification).filter(Notification.user_id == influencer.id)]
    assert sorted(types) == ["content_approved", "content_completed"]


def test_rejected_content_can_be_approved_later(db, brand, influencer, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer)
    service = ContentService(db)

    service.update_status(content.id, brand, ContentStatusDB.REJECTED, "Needs brighter lighting")
    service.update_status(content.id, brand, ContentStatusDB.REJECTED, "Still too dark")
    approved = service.update_status(content.id, brand, ContentStatusDB.APPROVED)

    assert approved.status == ContentStatusDB.APPROVED


@pytest.mark.parametrize("current,requested", FORBIDDEN)
def test_forbidden_content_transitions(db, brand, influencer, make_campaign, make_submission, current, requested):
    content = make_submission(make_campaign(brand), influencer, status=current)
    with pytest.raises(InvalidTransition):
        ContentService(db).update_status(content.id, brand, requested)


def test_paid_is_not_reachable_through_review(db, brand, influencer, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer, status=ContentStatusDB.COMPLETED)
    with pytest.raises(InvalidState):
        ContentService(db).update_status(content.id, brand, ContentStatusDB.PAID)
    db.refresh(content)
    assert content.status == ContentStatusDB.COMPLETED


def test_only_campaign_owner_reviews(db, brand, influencer, make_user, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer)
    with pytest.raises(Forbidden):
        ContentService(db).update_status(content.id, make_user(UserType.BRAND), ContentStatusDB.APPROVED)
    with pytest.raises(Forbidden):
        ContentService(db).update_status(content.id, influencer, ContentStatusDB.APPROVED)


# ============================================================================
# EDIT / DELETE
# ============================================================================

@pytest.mark.parametrize("status", [ContentStatusDB.PENDING, ContentStatusDB.REJECTED])
def test_edit_while_pending_or_rejected(db, brand, influencer, make_campaign, make_submission, status):
    content = make_submission(make_campaign(brand), influencer, status=status)
    updated = ContentService(db).update(content.id, influencer, ContentSubmissionUpdate(caption="New caption"))
    assert updated.caption == "New caption"
    assert updated.status == status


@pytest.mark.parametrize("status", [ContentStatusDB.APPROVED, ContentStatusDB.COMPLETED, ContentStatusDB.PAID])
def test_edit_locked_after_approval(db, brand, influencer, make_campaign, make_submission, status):
    content = make_submission(make_campaign(brand), influencer, status=status)
    with pytest.raises(InvalidState):
        ContentService(db).update(content.id, influencer, ContentSubmissionUpdate(caption="Too late"))


def test_edit_by_other_influencer(db, brand, influencer, make_user, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer)
    with pytest.raises(Forbidden):
        ContentService(db).update(content.id, make_user(UserType.INFLUENCER), ContentSubmissionUpdate(caption="x"))


def test_delete_pending(db, brand, influencer, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer)
    content_id = content.id
    ContentService(db).delete(content_id, influencer)
    assert db.query(ContentSubmission).filter(ContentSubmission.id == content_id).first() is None


def test_delete_approved_fails(db, brand, influencer, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer, status=ContentStatusDB.APPROVED)
    with pytest.raises(InvalidState):
        ContentService(db).delete(content.id, influencer)


# ============================================================================
# READS
# ============================================================================

def test_get_is_ownership_gated(db, brand, influencer, admin, make_user, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer)
    service = ContentService(db)

    assert service.get(content.id, influencer).id == content.id
    assert service.get(content.id, brand).id == content.id
    assert service.get(content.id, admin).id == content.id
    with pytest.raises(Forbidden):
        service.get(content.id, make_user(UserType.INFLUENCER))
    with pytest.raises(Forbidden):
        service.get(content.id, make_user(UserType.BRAND))


def test_list_filters(db, brand, influencer, make_user, make_campaign, make_submission):
    first = make_campaign(brand, title="First")
    second = make_campaign(brand, title="Second")
    make_submission(first, influencer, title="Morning routine")
    make_submission(second, influencer, title="Evening routine", status=ContentStatusDB.APPROVED,
                    content_type=ContentTypeDB.VIDEO)
    make_submission(first, make_user(UserType.INFLUENCER), title="Unrelated")

    service = ContentService(db)
    assert service.list_by_influencer(influencer)["total"] == 2
    assert service.list_by_influencer(influencer, ContentFilter(status=ContentStatusDB.APPROVED))["total"] == 1
    assert service.list_by_influencer(influencer, ContentFilter(content_type=ContentTypeDB.VIDEO))["total"] == 1
    assert service.list_by_brand(brand)["total"] == 3
    assert service.list_by_brand(brand, ContentFilter(campaign_id=first.id))["total"] == 2
    assert service.list_by_brand(brand, ContentFilter(search="routine"))["total"] == 2


# ============================================================================
# FILES
# ============================================================================

def test_add_and_get_files(db, brand, influencer, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer)
    service = ContentService(db)

    files = service.add_files(content.id, influencer, [
        ContentFileCreate(file_url="https://cdn.example.com/a.jpg", file_type="image/jpeg", file_size=2048),
        ContentFileCreate(file_url="https://cdn.example.com/b.mp4", file_type="video/mp4",
                          thumbnail_url="https://cdn.example.com/b.jpg"),
    ])

    assert len(files) == 2
    assert len(service.get_files(content.id, brand)) == 2
    assert len(service.get_files(content.id, influencer)) == 2


@pytest.mark.parametrize("status", [ContentStatusDB.COMPLETED, ContentStatusDB.PAID])
def test_files_locked_once_completed(db, brand, influencer, make_campaign, make_submission, status):
    content = make_submission(make_campaign(brand), influencer, status=status)
    with pytest.raises(InvalidState):
        ContentService(db).add_files(content.id, influencer, [
            ContentFileCreate(file_url="https://cdn.example.com/late.jpg", file_type="image/jpeg"),
        ])


def test_files_can_be_added_after_approval(db, brand, influencer, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer, status=ContentStatusDB.APPROVED)
    files = ContentService(db).add_files(content.id, influencer, [
        ContentFileCreate(file_url="https://cdn.example.com/final.jpg", file_type="image/jpeg"),
    ])
    assert files[0].content_id == content.id


def test_other_brand_cannot_read_files(db, brand, influencer, make_user, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer)
    with pytest.raises(Forbidden):
        ContentService(db).get_files(content.id, make_user(UserType.BRAND))


# ============================================================================
# PUBLISHED POSTS
# ============================================================================

def _post(content_id, **kwargs):
    data = {"content_id": content_id, "platform": "instagram", "post_url": "https://instagram.com/p/abc"}
    data.update(kwargs)
    return PublishedPostCreate(**data)


def test_publish_requires_approval(db, brand, influencer, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer)
    with pytest.raises(InvalidState):
        ContentService(db).create_published_post(influencer, _post(content.id))


def test_publish_approved_content(db, brand, influencer, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer, status=ContentStatusDB.APPROVED)
    service = ContentService(db)

    post = service.create_published_post(influencer, _post(content.id, post_type="REEL"))

    assert post.status == PostStatusDB.PUBLISHED
    assert post.published_at is not None
    assert [p.id for p in service.get_published_posts(content.id, brand)] == [post.id]


def test_update_and_delete_post(db, brand, influencer, make_user, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer, status=ContentStatusDB.APPROVED)
    service = ContentService(db)
    post = service.create_published_post(influencer, _post(content.id, published_at=datetime(2026, 5, 1)))

    with pytest.raises(Forbidden):
        service.update_published_post(post.id, make_user(UserType.INFLUENCER), PublishedPostUpdate(post_type="STORY"))

    updated = service.update_published_post(post.id, influencer, PublishedPostUpdate(status=PostStatusDB.ARCHIVED))
    assert updated.status == PostStatusDB.ARCHIVED

    service.delete_published_post(post.id, influencer)
    assert service.get_published_posts(content.id, influencer) == []


# ============================================================================
# PERFORMANCE
# ============================================================================

def test_performance_upsert_replaces_values(db, brand, influencer, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer, status=ContentStatusDB.APPROVED)
    service = ContentService(db)

    first = service.update_performance(content.id, influencer, PerformanceUpdate(
        views=100, likes=10, comments=2, shares=1, engagement_rate=12.5, reach=80,
    ))
    second = service.update_performance(content.id, influencer, PerformanceUpdate(views=250, likes=30))

    assert first.id == second.id
    assert second.views == 250
    assert second.likes == 30
    assert second.comments == 0
    assert second.engagement_rate is None
    assert second.reach is None
    assert second.last_updated is not None


def test_performance_owner_only(db, brand, influencer, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer)
    with pytest.raises(Forbidden):
        ContentService(db).update_performance(content.id, brand, PerformanceUpdate(views=1))


def test_post_performance_upsert(db, brand, influencer, make_campaign, make_submission):
    content = make_submission(make_campaign(brand), influencer, status=ContentStatusDB.APPROVED)
    service = ContentService(db)
    post = service.create_published_post(influencer, _post(content.id))

    service.update_post_performance(post.id, influencer, PerformanceUpdate(views=10, impressions=40))
    latest = service.update_post_performance(post.id, influencer, PerformanceUpdate(views=20))

    assert latest.post_id == post.id
    assert latest.views == 20
    assert latest.impressions is None

"""Scheduled campaign sweeps."""

from datetime import datetime, timedelta

from database.marketplace_models import Campaign, CampaignStatusDB, Notification
from services import campaign_scheduler
from services.campaign_scheduler import expire_campaigns, campaign_statistics, campaigns_starting_today


NOW = datetime(2026, 6, 15, 12, 0, 0)


def _status(db, campaign_id):
    return db.query(Campaign.status).filter(Campaign.id == campaign_id).scalar()


def test_expires_active_and_paused_campaigns_past_end_date(db, brand, make_campaign):
    active = make_campaign(brand, status=CampaignStatusDB.ACTIVE, end_date=NOW - timedelta(days=1))
    paused = make_campaign(brand, status=CampaignStatusDB.PAUSED, end_date=NOW - timedelta(hours=1))
    running = make_campaign(brand, status=CampaignStatusDB.ACTIVE, end_date=NOW + timedelta(days=1))
    draft = make_campaign(brand, status=CampaignStatusDB.DRAFT, end_date=NOW - timedelta(days=1))
    open_ended = make_campaign(brand, status=CampaignStatusDB.ACTIVE, end_date=None)

    result = expire_campaigns(db, NOW)

    assert result.candidates == 2
    assert result.succeeded == 2
    assert result.failed == 0
    assert _status(db, active.id) == CampaignStatusDB.COMPLETED
    assert _status(db, paused.id) == CampaignStatusDB.COMPLETED
    assert _status(db, running.id) == CampaignStatusDB.ACTIVE
    assert _status(db, draft.id) == CampaignStatusDB.DRAFT
    assert _status(db, open_ended.id) == CampaignStatusDB.ACTIVE

    notes = db.query(Notification).filter(Notification.user_id == brand.id).all()
    assert len(notes) == 2
    assert {n.type for n in notes} == {"campaign_auto_completed"}


def test_sweep_is_idempotent(db, brand, make_campaign):
    make_campaign(brand, status=CampaignStatusDB.ACTIVE, end_date=NOW - timedelta(days=1))

    assert expire_campaigns(db, NOW).succeeded == 1
    second = expire_campaigns(db, NOW)
    assert second.candidates == 0
    assert second.succeeded == 0


def test_one_failing_campaign_does_not_stop_the_sweep(db, brand, make_campaign, monkeypatch):
    first = make_campaign(brand, status=CampaignStatusDB.ACTIVE, end_date=NOW - timedelta(days=2))
    broken = make_campaign(brand, status=CampaignStatusDB.ACTIVE, end_date=NOW - timedelta(days=1))
    last = make_campaign(brand, status=CampaignStatusDB.PAUSED, end_date=NOW - timedelta(hours=3))

    real_cas = campaign_scheduler.compare_and_set

    def flaky_cas(db_, model, entity_id, *args, **kwargs):
        if entity_id == broken.id:
            raise RuntimeError("database hiccup")
        return real_cas(db_, model, entity_id, *args, **kwargs)

    monkeypatch.setattr(campaign_scheduler, "compare_and_set", flaky_cas)

    result = expire_campaigns(db, NOW)

    assert result.candidates == 3
    assert result.succeeded == 2
    assert result.failed == 1
    assert result.errors == [(broken.id, "database hiccup")]
    assert _status(db, first.id) == CampaignStatusDB.COMPLETED
    assert _status(db, broken.id) == CampaignStatusDB.ACTIVE
    assert _status(db, last.id) == CampaignStatusDB.COMPLETED


def test_campaign_moved_concurrently_is_skipped(db, brand, make_campaign, monkeypatch):
    campaign = make_campaign(brand, status=CampaignStatusDB.ACTIVE, end_date=NOW - timedelta(days=1))
    monkeypatch.setattr(campaign_scheduler, "compare_and_set", lambda *a, **k: False)

    result = expire_campaigns(db, NOW)

    assert result.skipped == 1
    assert result.failed == 0
    assert _status(db, campaign.id) == CampaignStatusDB.ACTIVE


def test_statistics(db, brand, make_campaign):
    make_campaign(brand, status=CampaignStatusDB.ACTIVE, end_date=NOW + timedelta(days=3))
    make_campaign(brand, status=CampaignStatusDB.PAUSED, end_date=NOW + timedelta(days=6))
    make_campaign(brand, status=CampaignStatusDB.ACTIVE, end_date=NOW + timedelta(days=30))
    make_campaign(brand, status=CampaignStatusDB.DRAFT, end_date=NOW + timedelta(days=2))
    make_campaign(brand, status=CampaignStatusDB.CANCELLED)

    stats = campaign_statistics(db, NOW)

    assert stats["total"] == 5
    assert stats["by_status"]["active"] == 2
    assert stats["by_status"]["paused"] == 1
    assert stats["by_status"]["draft"] == 1
    assert stats["by_status"]["cancelled"] == 1
    assert stats["by_status"]["completed"] == 0
    assert stats["ending_soon"] == 2


def test_campaigns_starting_today_are_reported_not_activated(db, brand, make_campaign):
    today = make_campaign(brand, status=CampaignStatusDB.DRAFT, start_date=NOW.replace(hour=8))
    make_campaign(brand, status=CampaignStatusDB.DRAFT, start_date=NOW + timedelta(days=1))
    make_campaign(brand, status=CampaignStatusDB.ACTIVE, start_date=NOW.replace(hour=9))

    found = campaigns_starting_today(db, NOW)

    assert [c.id for c in found] == [today.id]
    assert _status(db, today.id) == CampaignStatusDB.DRAFT

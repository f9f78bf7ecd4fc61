# Campaign Scheduler Jobs
# Batch sweeps over campaigns; the worker in main.py decides when they run

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from config.app_config import CAMPAIGN_ENDING_SOON_DAYS
from database.marketplace_models import Campaign, CampaignStatusDB
from services.common import SweepResult
from services.notification_service import NotificationService, NotificationType
from services.transitions import compare_and_set

logger = logging.getLogger(__name__)

EXPIRABLE_STATUSES = (CampaignStatusDB.ACTIVE, CampaignStatusDB.PAUSED)


def expire_campaigns(db: Session, now: Optional[datetime] = None) -> SweepResult:
    """
    Complete every ACTIVE or PAUSED campaign whose end date has passed.

    Each campaign gets its own transaction. A failing campaign is logged and
    counted; the sweep carries on with the rest. Safe to run repeatedly.
    """
    now = now or datetime.utcnow()
    result = SweepResult()
    notifier = NotificationService(db)

    expired = db.query(Campaign.id, Campaign.status, Campaign.brand_id, Campaign.title).filter(
        Campaign.status.in_(EXPIRABLE_STATUSES),
        Campaign.end_date.isnot(None),
        Campaign.end_date < now,
    ).all()
    result.candidates = len(expired)

    for campaign_id, status, brand_id, title in expired:
        try:
            if not compare_and_set(db, Campaign, campaign_id, status, CampaignStatusDB.COMPLETED):
                # Someone else moved it since we read it
                db.rollback()
                result.skipped += 1
                continue
            notifier.notify(
                NotificationType.CAMPAIGN_AUTO_COMPLETED,
                brand_id,
                {"campaign_id": campaign_id, "campaign_title": title},
            )
            db.commit()
            result.succeeded += 1
            logger.info(f"Campaign {campaign_id} auto-completed (end date passed)")
        except Exception as e:
            db.rollback()
            logger.exception(f"Failed to auto-complete campaign {campaign_id}")
            result.record_error(campaign_id, e)

    logger.info(
        f"Campaign expiry sweep: {result.candidates} expired, "
        f"{result.succeeded} completed, {result.failed} failed, {result.skipped} skipped"
    )
    return result


def campaign_statistics(db: Session, now: Optional[datetime] = None) -> dict:
    """Counts per status plus live campaigns ending within the configured window."""
    now = now or datetime.utcnow()

    rows = db.query(Campaign.status, func.count(Campaign.id)).group_by(Campaign.status).all()
    by_status = {status.value: 0 for status in CampaignStatusDB}
    for status, count in rows:
        by_status[CampaignStatusDB(status).value] = count

    ending_soon = db.query(func.count(Campaign.id)).filter(
        Campaign.status.in_(EXPIRABLE_STATUSES),
        Campaign.end_date >= now,
        Campaign.end_date <= now + timedelta(days=CAMPAIGN_ENDING_SOON_DAYS),
    ).scalar() or 0

    stats = {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "ending_soon": ending_soon,
    }
    logger.info(f"Campaign statistics: {stats}")
    return stats


def campaigns_starting_today(db: Session, now: Optional[datetime] = None) -> List[Campaign]:
    """Draft campaigns scheduled to start today. Reported only; never activated."""
    now = now or datetime.utcnow()
    day_start = datetime(now.year, now.month, now.day)

    campaigns = db.query(Campaign).filter(
        Campaign.status == CampaignStatusDB.DRAFT,
        Campaign.start_date >= day_start,
        Campaign.start_date < day_start + timedelta(days=1),
    ).all()

    for campaign in campaigns:
        logger.info(f"Draft campaign {campaign.id} ({campaign.title}) is scheduled to start today")
    return campaigns

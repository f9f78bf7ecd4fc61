import argparse
import time
import schedule
import logging
import sys
from datetime import timedelta

from config.app_config import (
    LOG_LEVEL,
    CAMPAIGN_EXPIRY_INTERVAL_MINUTES,
    PAYMENT_RECONCILE_AFTER_MINUTES,
)
from database.config import SessionLocal
from services.campaign_scheduler import expire_campaigns, campaign_statistics, campaigns_starting_today
from services.payment_service import PaymentLedger
from core.settlement import get_settlement_gateway

RECONCILE_INTERVAL_MINUTES = 5

_gateway = None


def settlement_gateway():
    """One gateway for the life of the worker, so reconcile cycles see earlier transfers."""
    global _gateway
    if _gateway is None:
        _gateway = get_settlement_gateway()
    return _gateway


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler("campaign_worker.log")
        ]
    )


def run_expiry_cycle():
    logging.info("Starting Campaign Expiry Sweep...")
    db = SessionLocal()
    try:
        result = expire_campaigns(db)
        logging.info(f"Sweep Complete. {result.succeeded}/{result.candidates} campaigns completed, {result.failed} errors.")
    except Exception as e:
        logging.error(f"Error in expiry sweep: {e}")
    finally:
        db.close()


def run_reconcile_cycle():
    logging.info("Starting Payment Reconciliation...")
    db = SessionLocal()
    try:
        ledger = PaymentLedger(db, gateway=settlement_gateway())
        result = ledger.reconcile_processing_payments(stale_after=timedelta(minutes=PAYMENT_RECONCILE_AFTER_MINUTES))
        logging.info(f"Reconciliation Complete. {result.succeeded}/{result.candidates} payments resolved.")
    except Exception as e:
        logging.error(f"Error in payment reconciliation: {e}")
    finally:
        db.close()


def run_stats_cycle():
    db = SessionLocal()
    try:
        campaign_statistics(db)
    except Exception as e:
        logging.error(f"Error generating campaign statistics: {e}")
    finally:
        db.close()


def run_starting_today_cycle():
    db = SessionLocal()
    try:
        campaigns = campaigns_starting_today(db)
        logging.info(f"{len(campaigns)} draft campaigns scheduled to start today.")
    except Exception as e:
        logging.error(f"Error checking campaigns starting today: {e}")
    finally:
        db.close()


JOBS = {
    "expire": [run_expiry_cycle],
    "reconcile": [run_reconcile_cycle],
    "stats": [run_stats_cycle, run_starting_today_cycle],
}


def selected_jobs(job: str):
    if job == "all":
        return [fn for fns in JOBS.values() for fn in fns]
    return JOBS[job]


def register_jobs(job: str):
    if job in ("expire", "all"):
        schedule.every(CAMPAIGN_EXPIRY_INTERVAL_MINUTES).minutes.do(run_expiry_cycle)
    if job in ("reconcile", "all"):
        schedule.every(RECONCILE_INTERVAL_MINUTES).minutes.do(run_reconcile_cycle)
    if job in ("stats", "all"):
        schedule.every().day.at("00:00").do(run_stats_cycle)
        schedule.every().day.at("09:00").do(run_starting_today_cycle)


def start_scheduler(job: str):
    logging.info(f"Starting Campaign Scheduler (jobs: {job}, expiry every {CAMPAIGN_EXPIRY_INTERVAL_MINUTES} minutes)...")
    # Run once immediately
    for fn in selected_jobs(job):
        fn()

    register_jobs(job)

    while True:
        schedule.run_pending()
        time.sleep(60)


def main():
    parser = argparse.ArgumentParser(description="Campaign Engine Worker")
    parser.add_argument("--mode", choices=["once", "schedule"], default="schedule", help="Run once or schedule")
    parser.add_argument("--job", choices=["expire", "reconcile", "stats", "all"], default="all", help="Which jobs to run")
    args = parser.parse_args()

    configure_logging()

    if args.mode == "schedule":
        start_scheduler(args.job)
    else:
        for fn in selected_jobs(args.job):
            fn()


if __name__ == "__main__":
    main()

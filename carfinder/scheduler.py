# carfinder/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from .alerts import send_saved_search_alerts
from .db import SessionLocal
from .price_history import record_price_history
from .settings import PRICE_HISTORY_INTERVAL_HOURS, ALERTS_INTERVAL_HOURS
from .utils import logger

scheduler = BackgroundScheduler()


def run_price_history_job():
    db = SessionLocal()
    try:
        record_price_history(db)
    except Exception as e:
        logger.exception("Scheduled price history run failed: %s", e)
    finally:
        db.close()


def run_saved_search_alerts_job():
    db = SessionLocal()
    try:
        send_saved_search_alerts(db)
    except Exception as e:
        logger.exception("Scheduled saved search alerts failed: %s", e)
    finally:
        db.close()


def start_scheduler():
    if scheduler.running:
        return scheduler
    scheduler.add_job(run_price_history_job, 'interval', hours=PRICE_HISTORY_INTERVAL_HOURS,
                      id="price_history", replace_existing=True)
    scheduler.add_job(run_saved_search_alerts_job, 'interval', hours=ALERTS_INTERVAL_HOURS,
                      id="saved_search_alerts", replace_existing=True)
    scheduler.start()
    logger.info("Scheduler started")
    return scheduler


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")

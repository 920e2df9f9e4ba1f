from apscheduler.schedulers.background import BackgroundScheduler
from .db import SessionLocal
from .services import sync_recent_listings
from .utils import logger, env_int

scheduler = BackgroundScheduler()

def sync_job():
    db = SessionLocal()
    try:
        sync_recent_listings(db)
    finally:
        db.close()

def start_scheduler():
    if scheduler.running:
        return scheduler
    hours = env_int("SYNC_INTERVAL_HOURS", 1)
    scheduler.add_job(sync_job, 'interval', hours=hours, id="marketplace-sync", replace_existing=True)
    scheduler.start()
    logger.info("Scheduler started, marketplace sync every %d h", hours)
    return scheduler

def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")

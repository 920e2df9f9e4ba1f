import os
from fastapi import FastAPI
from auction_search.db import Base, engine
import auction_search.models  # noqa: F401 ensure models are imported so tables are known
from auction_search.api.routes import router as api_router
from auction_search.scheduler import start_scheduler, stop_scheduler
from auction_search.utils import logger

app = FastAPI(title="Auction Search API")
app.include_router(api_router)


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    if os.getenv("SYNC_SCHEDULER_ENABLED", "0") == "1":
        start_scheduler()
    logger.info("Auction search API ready")


@app.on_event("shutdown")
def on_shutdown():
    stop_scheduler()

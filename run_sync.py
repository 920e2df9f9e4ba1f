import sys
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()


def main() -> int:
    """Run one marketplace sync outside the web process."""
    from auction_search.db import Base, SessionLocal, engine
    from auction_search.services import get_marketplace_client, sync_recent_listings
    from auction_search.utils import logger

    if get_marketplace_client() is None:
        logger.error("EBAY_API_KEY not set; nothing to sync")
        return 1

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        inserted = sync_recent_listings(db)
    finally:
        db.close()
    logger.info("Sync finished, %d new vehicles stored", inserted)
    return 0


if __name__ == "__main__":
    sys.exit(main())

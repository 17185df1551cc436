# carfinder/price_history.py
"""Price-history snapshots.

The snapshot job appends a ``PriceHistory`` row whenever a listing's current
price no longer matches its latest snapshot. Rows are only ever inserted.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .dedupe import signature
from .models import Listing, PriceHistory, utcnow
from .utils import logger


def _listing_signature(listing: Listing, price) -> str:
    return signature(vin=listing.vin, title=listing.title, price=price, phone=listing.phone)


def latest_snapshot(db: Session, listing_id: int) -> Optional[PriceHistory]:
    return (
        db.query(PriceHistory)
        .filter(PriceHistory.listing_id == listing_id)
        .order_by(PriceHistory.captured_at.desc(), PriceHistory.id.desc())
        .first()
    )


def record_price_history(db: Session) -> Dict[str, Any]:
    """Snapshot every priced listing whose price changed since its last snapshot.

    Running it twice without price changes in between inserts nothing the
    second time.
    """
    now = utcnow()
    listings = db.query(Listing).filter(Listing.price.isnot(None)).order_by(Listing.id).all()

    inserted = 0
    try:
        for listing in listings:
            latest = latest_snapshot(db, listing.id)
            if latest is not None and (
                _listing_signature(listing, listing.price) == _listing_signature(listing, latest.price)
            ):
                continue
            db.add(PriceHistory(listing_id=listing.id, price=listing.price, captured_at=now))
            inserted += 1
        db.commit()
    except Exception:
        db.rollback()
        raise

    result = {
        "processed": len(listings),
        "inserted": inserted,
        "skipped": len(listings) - inserted,
        "timestamp": now.isoformat(),
    }
    logger.info(
        "Price history: processed %d, inserted %d, skipped %d",
        result["processed"], result["inserted"], result["skipped"],
    )
    return result


def get_price_history(db: Session, listing_id: int) -> Optional[List[Dict[str, Any]]]:
    if db.get(Listing, listing_id) is None:
        return None
    rows = (
        db.query(PriceHistory)
        .filter(PriceHistory.listing_id == listing_id)
        .order_by(PriceHistory.captured_at.asc(), PriceHistory.id.asc())
        .all()
    )
    return [{"price": r.price, "captured_at": r.captured_at} for r in rows]

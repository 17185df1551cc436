# carfinder/services.py
from dataclasses import dataclass
from typing import Dict, Iterable, List

from sqlalchemy.orm import Session

from . import crud
from .errors import OwnershipConflictError, PayloadError
from .feeds import NormalizedRecord, RawRecord, normalize_record
from .models import Listing, SELLER_DEALER, utcnow
from .utils import logger


@dataclass
class IngestResult:
    created: int = 0
    updated: int = 0


def dealer_source(dealer_id) -> str:
    return f"dealer:{dealer_id}"


def dedupe_by_signature(records: Iterable[NormalizedRecord]) -> List[NormalizedRecord]:
    """Keep the first record seen for each content signature."""
    deduped: Dict[str, NormalizedRecord] = {}
    for record in records:
        deduped.setdefault(record.hash_signature, record)
    return list(deduped.values())


def ingest_dealer_listings(db: Session, dealer_id: int, raw_records: List[RawRecord]) -> IngestResult:
    """Merge one dealer feed into the listings table.

    The whole batch is a single transaction: a record that targets another
    dealer's listing raises ``OwnershipConflictError`` and nothing from the
    batch is kept. Raises ``PayloadError`` before touching the database when
    no record survives normalization.
    """
    if not raw_records:
        return IngestResult()

    normalized = [r for r in (normalize_record(raw) for raw in raw_records) if r is not None]
    if not normalized:
        raise PayloadError("No valid listings found in payload.")

    records = dedupe_by_signature(normalized)
    source = dealer_source(dealer_id)
    result = IngestResult()

    try:
        for record in records:
            existing = crud.get_listing_by_source(db, source, record.source_id)
            data = dict(record.values)
            data.update(
                seller_type=SELLER_DEALER,
                dealer_id=dealer_id,
                hash_signature=record.hash_signature,
            )
            data.setdefault("updated_at", utcnow())

            if existing is not None:
                if existing.dealer_id is not None and existing.dealer_id != dealer_id:
                    raise OwnershipConflictError(record.source_id, existing.dealer_id, dealer_id)
                for k, v in data.items():
                    setattr(existing, k, v)
                result.updated += 1
            else:
                db.add(Listing(source=source, source_id=record.source_id, **data))
                result.created += 1
            # later records in the batch must see this one when they look up by source id
            db.flush()
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Ingested feed for dealer %s: %d records, %d unique, %d created, %d updated",
        dealer_id, len(raw_records), len(records), result.created, result.updated,
    )
    return result

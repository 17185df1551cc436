# carfinder/api/routes.py
import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from typing import List
from .. import crud, schemas
from ..alerts import send_saved_search_alerts
from ..authorization import can_manage_dealer, is_staff
from ..db import get_db
from ..errors import DuplicateDealerError, OwnershipConflictError, PayloadError
from ..feeds import parse_payload
from ..models import User
from ..nhtsa import NhtsaClient, NhtsaError, get_nhtsa_client
from ..price_history import get_price_history, record_price_history
from ..services import ingest_dealer_listings
from ..utils import logger
from .deps import get_current_user, require_cron_secret

router = APIRouter()

@router.get("/health")
def health():
    return {"status": "ok"}

@router.get("/listings", response_model=schemas.ListingPage)
def listings(
    page: int = Query(1),
    page_size: int = Query(crud.DEFAULT_PAGE_SIZE),
    sort: str = Query(crud.DEFAULT_SORT),
    make: str | None = Query(None),
    model: str | None = Query(None),
    min_year: int | None = Query(None),
    max_price: int | None = Query(None),
    max_miles: int | None = Query(None),
    db: Session = Depends(get_db)
):
    filters = {
        "make": make,
        "model": model,
        "min_year": min_year,
        "max_price": max_price,
        "max_miles": max_miles,
    }
    result = crud.search_listings(db, filters, page=page, page_size=page_size, sort=sort)
    return {
        "data": result["items"],
        "meta": {
            "total_count": result["total"],
            "page": result["page"],
            "page_size": result["page_size"],
            "sort": result["sort"],
            "has_next_page": result["has_next_page"],
            "next_cursor": (
                {"page": result["page"] + 1, "page_size": result["page_size"], "sort": result["sort"]}
                if result["has_next_page"] else None
            ),
        },
    }


@router.get("/listings/{listing_id}", response_model=schemas.ListingOut)
def get_listing(listing_id: int, db: Session = Depends(get_db)):
    obj = crud.get_listing(db, listing_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Listing not found")
    return obj


@router.get("/listings/{listing_id}/price-history", response_model=schemas.PriceHistoryOut)
def listing_price_history(listing_id: int, db: Session = Depends(get_db)):
    history = get_price_history(db, listing_id)
    if history is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    return {"history": history}


@router.get("/vin/{vin}", response_model=schemas.VinDecodeOut)
def decode_vin(vin: str, nhtsa: NhtsaClient = Depends(get_nhtsa_client)):
    try:
        result = nhtsa.decode_vin(vin)
    except (NhtsaError, httpx.HTTPError) as e:
        logger.warning("VIN decode failed for %s: %s", vin, e)
        raise HTTPException(status_code=502, detail="VIN decode failed")
    if not result:
        raise HTTPException(status_code=404, detail="VIN not found")
    return {"vin": vin.strip().upper(), "result": result}


@router.get("/recalls", response_model=schemas.RecallsOut)
def recalls(
    make: str = Query(..., min_length=1),
    model: str = Query(..., min_length=1),
    year: int = Query(..., ge=1900, le=2100),
    nhtsa: NhtsaClient = Depends(get_nhtsa_client),
):
    try:
        data = nhtsa.get_recalls(make, model, year)
    except (NhtsaError, httpx.HTTPError) as e:
        logger.warning("Recall fetch failed for %s %s %s: %s", year, make, model, e)
        raise HTTPException(status_code=502, detail="Recall fetch failed")
    results = (data or {}).get("results") or []
    return {"count": (data or {}).get("Count", len(results)), "results": results}


@router.post("/dealers", response_model=schemas.DealerOut, status_code=status.HTTP_201_CREATED)
def create_dealer(
    payload: schemas.DealerCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not is_staff(user):
        raise HTTPException(status_code=403, detail="You do not have permission to invite dealers.")
    try:
        return crud.create_dealer(db, **payload.model_dump())
    except DuplicateDealerError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/dealers/{dealer_id}/listings", response_model=schemas.IngestResponse)
async def upload_dealer_listings(
    dealer_id: int,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not can_manage_dealer(user, dealer_id):
        raise HTTPException(status_code=403, detail="Forbidden")
    body = await request.body()
    # session work is blocking, keep it off the event loop
    return await run_in_threadpool(
        _process_upload, db, dealer_id, request.headers.get("content-type"), body
    )


def _process_upload(db: Session, dealer_id: int, content_type: str | None, body: bytes) -> dict:
    if not crud.get_dealer(db, dealer_id):
        raise HTTPException(status_code=404, detail="Dealer not found")

    try:
        raw_records = parse_payload(content_type, body)
        if not raw_records:
            return {"message": "No listings provided.", "created": 0, "updated": 0}
        result = ingest_dealer_listings(db, dealer_id, raw_records)
    except PayloadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OwnershipConflictError as e:
        logger.warning(
            "Dealer %s tried to ingest %s owned by dealer %s",
            dealer_id, e.source_id, e.owner_dealer_id,
        )
        raise HTTPException(status_code=409, detail=str(e))
    except SQLAlchemyError as e:
        logger.exception("Failed to save listings for dealer %s: %s", dealer_id, e)
        raise HTTPException(status_code=400, detail="Failed to save listings.")

    return {"message": "Listings processed.", "created": result.created, "updated": result.updated}


def _saved_search_out(obj) -> dict:
    return {
        "id": obj.id,
        "filters": obj.query_json,
        "zip": obj.zip,
        "radius_miles": obj.radius_miles,
        "notify": obj.notify,
        "last_notified_at": obj.last_notified_at,
    }


@router.get("/saved-searches", response_model=List[schemas.SavedSearchOut])
def list_saved_searches(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [_saved_search_out(s) for s in crud.list_saved_searches(db, user.id)]


@router.post("/saved-searches", response_model=schemas.SavedSearchOut, status_code=status.HTTP_201_CREATED)
def create_saved_search(
    payload: schemas.SaveSearchPayload,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    obj = crud.create_saved_search(
        db,
        user.id,
        filters=payload.filters.model_dump(),
        zip=payload.zip,
        radius_miles=payload.radius_miles,
        notify=payload.notify,
    )
    return _saved_search_out(obj)


@router.delete("/saved-searches/{search_id}")
def delete_saved_search(search_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ok = crud.delete_saved_search(db, search_id, user.id)
    if not ok:
        raise HTTPException(status_code=404, detail="Search not found")
    return {"ok": True}


@router.get("/cron/price-history", response_model=schemas.PriceHistoryRun,
            dependencies=[Depends(require_cron_secret)])
def cron_price_history(db: Session = Depends(get_db)):
    try:
        return record_price_history(db)
    except Exception as e:
        logger.exception("Price history run failed: %s", e)
        raise HTTPException(status_code=500, detail="Price history run failed")


@router.get("/cron/saved-searches", response_model=schemas.AlertRun,
            dependencies=[Depends(require_cron_secret)])
def cron_saved_searches(db: Session = Depends(get_db)):
    try:
        return send_saved_search_alerts(db)
    except Exception as e:
        logger.exception("Saved search alert run failed: %s", e)
        raise HTTPException(status_code=500, detail="Saved search alert run failed")

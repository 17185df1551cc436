# carfinder/crud.py
"""Read and write helpers for listings, dealers, users and saved searches.

Lookups return ``None`` (or ``False`` for deletes) when the row does not exist;
routes turn that into a 404. Listing writes live in ``services`` because they
must share the ingestion transaction.
"""
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional

from .errors import DuplicateDealerError
from .models import (
    Dealer, DealerMembership, Listing, SavedSearch, User,
    MEMBERSHIP_OWNER, ROLE_DEALER, ROLE_STAFF, NOTIFY_DAILY,
)

DEFAULT_SEARCH_TAKE = 60
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 60
MAX_PAGE = 1000

DEFAULT_SORT = "updated_at_desc"
# each option ends with updated_at/id so paging is stable
SORT_OPTIONS = {
    "updated_at_desc": (Listing.updated_at.desc(), Listing.id.asc()),
    "price_asc": (Listing.price.asc(), Listing.updated_at.desc(), Listing.id.asc()),
    "price_desc": (Listing.price.desc(), Listing.updated_at.desc(), Listing.id.asc()),
    "mileage_asc": (Listing.mileage.asc(), Listing.updated_at.desc(), Listing.id.asc()),
    "year_desc": (Listing.year.desc(), Listing.updated_at.desc(), Listing.id.asc()),
}


def get_listing(db: Session, listing_id: int) -> Optional[Listing]:
    return db.get(Listing, listing_id)


def get_listing_by_source(db: Session, source: str, source_id: str) -> Optional[Listing]:
    return (
        db.query(Listing)
        .filter(Listing.source == source, Listing.source_id == source_id)
        .first()
    )


def _filtered_listings(db: Session, filters: Dict[str, Any] = None):
    q = db.query(Listing)
    if filters:
        conds = []
        make = (filters.get("make") or "").strip()
        model = (filters.get("model") or "").strip()
        if make:
            conds.append(Listing.make.ilike(f"%{make}%"))
        if model:
            conds.append(Listing.model.ilike(f"%{model}%"))
        if filters.get("min_year"):
            conds.append(Listing.year >= filters["min_year"])
        if filters.get("max_price"):
            conds.append(Listing.price <= filters["max_price"])
        if filters.get("max_miles"):
            conds.append(Listing.mileage <= filters["max_miles"])
        if conds:
            q = q.filter(and_(*conds))
    return q


def resolve_sort(sort: Optional[str]) -> str:
    return sort if sort in SORT_OPTIONS else DEFAULT_SORT


def find_listings_by_filters(db: Session, filters: Dict[str, Any] = None, skip: int = 0,
                             take: int = DEFAULT_SEARCH_TAKE, sort: str = DEFAULT_SORT) -> List[Listing]:
    q = _filtered_listings(db, filters).order_by(*SORT_OPTIONS[resolve_sort(sort)])
    return q.offset(skip).limit(take).all()


def search_listings(db: Session, filters: Dict[str, Any] = None, page: int = 1,
                    page_size: int = DEFAULT_PAGE_SIZE, sort: Optional[str] = None) -> Dict[str, Any]:
    """One page of matching listings plus the paging metadata.

    Out-of-range ``page``/``page_size`` are clamped and an unknown ``sort``
    falls back to newest first.
    """
    page = min(max(page, 1), MAX_PAGE)
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
    sort = resolve_sort(sort)
    skip = (page - 1) * page_size

    total = _filtered_listings(db, filters).count()
    items = find_listings_by_filters(db, filters, skip=skip, take=page_size, sort=sort)
    return {
        "total": total,
        "items": items,
        "page": page,
        "page_size": page_size,
        "sort": sort,
        "has_next_page": skip + len(items) < total,
    }


def get_dealer(db: Session, dealer_id: int) -> Optional[Dealer]:
    return db.get(Dealer, dealer_id)


def find_conflicting_dealer(db: Session, name: str, email: Optional[str] = None) -> Optional[Dealer]:
    conds = [func.lower(Dealer.name) == name.lower()]
    if email:
        conds.append(func.lower(Dealer.email) == email.lower())
    return db.query(Dealer).filter(or_(*conds)).first()


def create_dealer(db: Session, name: str, email: Optional[str] = None, phone: Optional[str] = None,
                  website: Optional[str] = None) -> Dealer:
    """Register a dealer and, when an email is given, its owning user.

    Raises ``DuplicateDealerError`` if the name or email is already taken
    (case-insensitive). Staff accounts keep their role when they become a
    dealer owner.
    """
    if find_conflicting_dealer(db, name, email):
        raise DuplicateDealerError("A dealer with that name or email already exists.")

    dealer = Dealer(name=name, email=email, phone=phone, website=website)
    db.add(dealer)
    db.flush()

    if email:
        user = db.query(User).filter(func.lower(User.email) == email.lower()).first()
        if user is None:
            user = User(email=email, name=name, role=ROLE_DEALER)
            db.add(user)
            db.flush()
        elif user.role != ROLE_STAFF:
            user.role = ROLE_DEALER
            user.name = name
        db.add(DealerMembership(dealer_id=dealer.id, user_id=user.id, role=MEMBERSHIP_OWNER))

    db.commit()
    db.refresh(dealer)
    return dealer


def get_user_by_api_key(db: Session, api_key: str) -> Optional[User]:
    if not api_key:
        return None
    return db.query(User).filter(User.api_key == api_key).first()


def list_saved_searches(db: Session, user_id: int) -> List[SavedSearch]:
    return (
        db.query(SavedSearch)
        .filter(SavedSearch.user_id == user_id)
        .order_by(SavedSearch.id.desc())
        .all()
    )


def create_saved_search(db: Session, user_id: int, filters: Dict[str, Any], zip: Optional[str] = None,
                        radius_miles: int = 50, notify: str = NOTIFY_DAILY) -> SavedSearch:
    zip = zip.strip() if zip else None
    obj = SavedSearch(
        user_id=user_id,
        query_json=filters,
        zip=zip or None,
        radius_miles=radius_miles,
        notify=notify,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def delete_saved_search(db: Session, search_id: int, user_id: int) -> bool:
    obj = (
        db.query(SavedSearch)
        .filter(SavedSearch.id == search_id, SavedSearch.user_id == user_id)
        .first()
    )
    if not obj:
        return False
    db.delete(obj)
    db.commit()
    return True

# carfinder/alerts.py
"""Saved-search alert emails.

A saved search is due when it has never been notified, or when its cadence
window (one day or one week) has passed since ``last_notified_at``. Each due
search gets one email listing its current top matches.
"""
from datetime import timedelta
from html import escape
from typing import Any, Dict, List

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload

from . import crud, settings
from .mailer import get_mailer
from .models import SavedSearch, Listing, NOTIFY_DAILY, NOTIFY_WEEKLY, NOTIFY_OFF, utcnow
from .schemas import SearchFilters
from .utils import logger

ALERT_LISTING_LIMIT = 10

CADENCE_WINDOWS = {
    NOTIFY_DAILY: timedelta(days=1),
    NOTIFY_WEEKLY: timedelta(days=7),
}


def describe_filters(filters: SearchFilters) -> str:
    parts = []
    make_model = " ".join(p for p in (filters.make, filters.model) if p).strip()
    if make_model:
        parts.append(make_model)
    parts.append(f"≥{filters.min_year}")
    parts.append(f"≤${filters.max_price:,}")
    parts.append(f"≤{filters.max_miles:,} mi")
    return " • ".join(parts)


def _listing_lines(listing: Listing):
    title = " ".join(str(p) for p in (listing.year, listing.make, listing.model) if p).strip() or "Listing"
    price = f"${listing.price:,}" if listing.price is not None else "Price on request"
    location = ", ".join(p for p in (listing.city, listing.state) if p)
    url = listing.url or settings.SITE_URL
    return title, price, location, url


def render_html_email(filters: SearchFilters, listings: List[Listing]) -> str:
    site_url = settings.SITE_URL
    header = '<h1 style="font-family:Arial,sans-serif;font-size:18px;margin-bottom:12px;">Saved search update</h1>'
    intro = (
        '<p style="font-family:Arial,sans-serif;font-size:14px;margin:0 0 12px 0;">'
        f"Here are the latest matches for <strong>{escape(describe_filters(filters))}</strong>.</p>"
    )
    if listings:
        items = []
        for listing in listings:
            title, price, location, url = _listing_lines(listing)
            loc = f" • {escape(location)}" if location else ""
            items.append(
                f'<li style="margin-bottom:10px;"><strong>{escape(title)}</strong><br/>{price}{loc}'
                f'<br/><a href="{escape(url)}" target="_blank">View listing</a></li>'
            )
        body = f'<ul style="padding-left:16px;font-family:Arial,sans-serif;font-size:14px;">{"".join(items)}</ul>'
    else:
        body = (
            '<p style="font-family:Arial,sans-serif;font-size:14px;margin:0 0 12px 0;">'
            "No new matches right now. We'll keep checking for you.</p>"
        )
    footer = (
        '<p style="font-family:Arial,sans-serif;font-size:12px;color:#555;">'
        f'Manage alerts at <a href="{escape(site_url)}">{escape(site_url)}</a>.</p>'
    )
    return f"{header}{intro}{body}{footer}"


def render_text_email(filters: SearchFilters, listings: List[Listing]) -> str:
    header = f"Saved search update for {describe_filters(filters)}"
    if listings:
        blocks = []
        for listing in listings:
            title, price, location, url = _listing_lines(listing)
            loc = f" • {location}" if location else ""
            blocks.append(f"{title}\n{price}{loc}\n{url}")
        body = "\n\n".join(blocks)
    else:
        body = "No new matches right now. We will keep checking for you."
    return f"{header}\n\n{body}\n\nManage alerts: {settings.SITE_URL}"


def find_due_searches(db: Session, now) -> List[SavedSearch]:
    return (
        db.query(SavedSearch)
        .options(joinedload(SavedSearch.user))
        .filter(SavedSearch.notify != NOTIFY_OFF)
        .filter(or_(
            SavedSearch.last_notified_at.is_(None),
            and_(SavedSearch.notify == NOTIFY_DAILY,
                 SavedSearch.last_notified_at <= now - CADENCE_WINDOWS[NOTIFY_DAILY]),
            and_(SavedSearch.notify == NOTIFY_WEEKLY,
                 SavedSearch.last_notified_at <= now - CADENCE_WINDOWS[NOTIFY_WEEKLY]),
        ))
        .order_by(SavedSearch.last_notified_at.asc(), SavedSearch.id.asc())
        .all()
    )


def send_saved_search_alerts(db: Session, mailer=None) -> Dict[str, Any]:
    """Email every due saved search and stamp ``last_notified_at``.

    A failure on one search is logged and reported in ``errors``; the rest of
    the run continues.
    """
    now = utcnow()
    due = find_due_searches(db, now)
    summary = {"processed": len(due), "emails_sent": 0, "skipped": 0, "errors": []}
    if not due:
        return summary

    mailer = mailer or get_mailer()

    for search in due:
        try:
            if not search.user or not search.user.email:
                summary["skipped"] += 1
                continue

            filters = SearchFilters.model_validate(search.query_json)
            listings = crud.find_listings_by_filters(db, filters.model_dump(), take=ALERT_LISTING_LIMIT)
            if listings:
                subject = f"{len(listings)} new matches for {describe_filters(filters)}"
            else:
                subject = f"Saved search update for {describe_filters(filters)}"

            mailer.send(
                to=search.user.email,
                subject=subject,
                html=render_html_email(filters, listings),
                text=render_text_email(filters, listings),
            )

            search.last_notified_at = now
            db.commit()
            summary["emails_sent"] += 1
        except Exception as e:
            db.rollback()
            logger.exception("Saved search alert failed for search %s: %s", search.id, e)
            summary["errors"].append({"search_id": search.id, "message": str(e)})

    logger.info(
        "Saved search alerts: processed %d, sent %d, skipped %d, errors %d",
        summary["processed"], summary["emails_sent"], summary["skipped"], len(summary["errors"]),
    )
    return summary

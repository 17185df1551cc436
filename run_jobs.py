"""Run carfinder jobs from the command line.

    python run_jobs.py price-history
    python run_jobs.py alerts
    python run_jobs.py ingest <dealer_id> <feed.json|feed.csv>
"""
import argparse
import json
from pathlib import Path

from carfinder.db import Base, SessionLocal, engine
from carfinder.errors import IngestError
from carfinder.feeds import parse_payload
import carfinder.models  # noqa: F401


def _content_type_for(path: Path) -> str:
    if path.suffix.lower() == ".csv":
        return "text/csv"
    return "application/json"


def run_price_history(args):
    from carfinder.price_history import record_price_history
    db = SessionLocal()
    try:
        result = record_price_history(db)
    finally:
        db.close()
    print(f"record-price-history: processed {result['processed']}, "
          f"inserted {result['inserted']}, skipped {result['skipped']}")


def run_alerts(args):
    from carfinder.alerts import send_saved_search_alerts
    db = SessionLocal()
    try:
        summary = send_saved_search_alerts(db)
    finally:
        db.close()
    print(json.dumps(summary, indent=2))


def run_ingest(args):
    from carfinder.services import ingest_dealer_listings
    path = Path(args.feed)
    records = parse_payload(_content_type_for(path), path.read_bytes())
    db = SessionLocal()
    try:
        result = ingest_dealer_listings(db, args.dealer_id, records)
    finally:
        db.close()
    print(f"ingest: created {result.created}, updated {result.updated}")


def main(argv=None):
    parser = argparse.ArgumentParser(prog="run_jobs", description="carfinder batch jobs")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("price-history", help="snapshot changed listing prices").set_defaults(func=run_price_history)
    sub.add_parser("alerts", help="email due saved searches").set_defaults(func=run_alerts)
    ingest = sub.add_parser("ingest", help="ingest a dealer feed file")
    ingest.add_argument("dealer_id", type=int)
    ingest.add_argument("feed")
    ingest.set_defaults(func=run_ingest)

    args = parser.parse_args(argv)
    Base.metadata.create_all(bind=engine)
    try:
        args.func(args)
    except IngestError as e:
        raise SystemExit(f"Feed rejected: {e}")


if __name__ == "__main__":
    main()

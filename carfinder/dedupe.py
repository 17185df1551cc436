# carfinder/dedupe.py
"""Content signature used for feed deduplication and price-change detection."""
import hashlib
import json
import re
from decimal import Decimal

_WHITESPACE = re.compile(r"\s+")
_NON_DIGIT = re.compile(r"\D")


def _normalize_price(price):
    if price is None:
        return None
    if isinstance(price, Decimal):
        price = float(price)
    # 25000.0 and 25000 must hash the same
    if isinstance(price, float) and price.is_integer():
        return int(price)
    return price


def signature(vin=None, title=None, price=None, phone=None) -> str:
    """Return the SHA-256 hex fingerprint of a listing's identity fields.

    Title comparison ignores letter case and whitespace runs; phone comparison
    ignores everything but digits. Keys are serialized in a fixed order.
    """
    payload = {
        "vin": (vin.strip() if vin else None) or None,
        "t": _WHITESPACE.sub(" ", title.lower()) if title else None,
        "p": _normalize_price(price),
        "ph": (_NON_DIGIT.sub("", phone) if phone else None) or None,
    }
    encoded = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()

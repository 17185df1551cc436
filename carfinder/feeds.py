# carfinder/feeds.py
"""Dealer feed parsing and record normalization.

Dealer inventory arrives as JSON or CSV with whatever column names the
dealer's export tool happens to use. ``FIELD_SYNONYMS`` maps each canonical
listing field to the source keys we accept for it, in priority order, and
``normalize_record`` turns one raw row into the values stored on a
``Listing``.
"""
import json
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

from .dedupe import signature
from .errors import PayloadError

RawRecord = Dict[str, Any]

SOURCE_ID_MAX_LENGTH = 190

FIELD_SYNONYMS = {
    "vin": ("vin", "VIN"),
    "title": ("title", "Title", "name", "Name", "description", "Description"),
    "price": ("price", "Price", "listPrice", "ListPrice"),
    "mileage": ("mileage", "Mileage", "odometer", "Odometer"),
    "phone": ("phone", "Phone", "dealerPhone", "contactPhone"),
    "year": ("year", "Year"),
    "make": ("make", "Make"),
    "model": ("model", "Model"),
    "trim": ("trim", "Trim"),
    "body": ("body", "Body", "bodyStyle"),
    "drivetrain": ("drivetrain", "Drivetrain"),
    "transmission": ("transmission", "Transmission"),
    "fuel": ("fuel", "Fuel"),
    "color_ext": ("colorExt", "exteriorColor", "ExteriorColor"),
    "color_int": ("colorInt", "interiorColor", "InteriorColor"),
    "city": ("city", "City"),
    "state": ("state", "State"),
    "lat": ("lat", "latitude", "Latitude"),
    "lon": ("lon", "longitude", "Longitude"),
    "url": ("url", "URL", "link", "Link"),
    "images": ("images", "photos", "Photos"),
    "source_id": ("sourceId", "SourceId", "stockNumber", "StockNumber", "id", "ID"),
    "posted_at": ("postedAt", "PostedAt", "listedAt", "ListedAt"),
    "updated_at": ("updatedAt", "UpdatedAt", "modifiedAt", "ModifiedAt", "feedTimestamp"),
}

STRING_FIELDS = (
    "vin", "title", "phone", "make", "model", "trim", "body", "drivetrain",
    "transmission", "fuel", "color_ext", "color_int", "city", "state", "url",
)
INT_FIELDS = ("year", "price", "mileage")
FLOAT_FIELDS = ("lat", "lon")
DATE_FIELDS = ("posted_at", "updated_at")

INT_MIN = -2**31
INT_MAX = 2**31 - 1

# tried in order after ISO-8601; US month-first like the dealer tools that export them
DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y %I:%M:%S %p",
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M:%S",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
)

_NUMERIC_JUNK = re.compile(r"[^0-9.\-]")
_IMAGE_SEPARATORS = re.compile(r"[|,;]")

JSON_CONTENT_TYPES = ("application/json",)
CSV_CONTENT_TYPES = ("text/csv", "application/csv")


@dataclass
class NormalizedRecord:
    source_id: str
    hash_signature: str
    values: Dict[str, Any] = field(default_factory=dict)


def pick_first(raw: RawRecord, keys) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def to_optional_string(value) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed or None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return str(int(value)) if value.is_integer() else str(value)
    return None


def to_optional_number(value) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        numeric = float(value)
    else:
        cleaned = _NUMERIC_JUNK.sub("", str(value))
        if not cleaned:
            return None
        try:
            numeric = float(cleaned)
        except ValueError:
            return None
    return numeric if math.isfinite(numeric) else None


def to_optional_int(value) -> Optional[int]:
    numeric = to_optional_number(value)
    if numeric is None:
        return None
    # half up, so 2.5 -> 3 and -2.5 -> -2
    rounded = int(math.floor(numeric + 0.5))
    # listing integer columns are 32-bit
    if not INT_MIN <= rounded <= INT_MAX:
        return None
    return rounded


def _parse_date_string(text: str) -> Optional[datetime]:
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        # RFC 2822, e.g. "Mon, 15 Jan 2024 10:00:00 GMT"
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None


def to_optional_date(value) -> Optional[datetime]:
    if not value or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        # feed timestamps are epoch milliseconds
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        parsed = _parse_date_string(str(value).strip())
        if parsed is None:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_images(value) -> Optional[List[str]]:
    if not value:
        return None
    if isinstance(value, (list, tuple)):
        cleaned = [s for s in (to_optional_string(entry) for entry in value) if s]
        return cleaned or None
    as_string = to_optional_string(value)
    if not as_string:
        return None
    parts = [chunk.strip() for chunk in _IMAGE_SEPARATORS.split(as_string)]
    parts = [p for p in parts if p]
    return parts or None


def normalize_record(raw: RawRecord) -> Optional[NormalizedRecord]:
    """Map one raw feed row onto canonical listing fields.

    Returns ``None`` when the row carries neither a VIN nor a title, since
    without one of them there is nothing to identify the vehicle by. Absent
    fields are left out of ``values`` so that updates never blank out data a
    previous feed supplied.
    """
    values: Dict[str, Any] = {}
    for name in STRING_FIELDS:
        values[name] = to_optional_string(pick_first(raw, FIELD_SYNONYMS[name]))
    for name in INT_FIELDS:
        values[name] = to_optional_int(pick_first(raw, FIELD_SYNONYMS[name]))
    for name in FLOAT_FIELDS:
        values[name] = to_optional_number(pick_first(raw, FIELD_SYNONYMS[name]))
    for name in DATE_FIELDS:
        values[name] = to_optional_date(pick_first(raw, FIELD_SYNONYMS[name]))
    values["images"] = normalize_images(pick_first(raw, FIELD_SYNONYMS["images"]))

    if not values["vin"] and not values["title"]:
        return None

    record_signature = signature(
        vin=values["vin"], title=values["title"], price=values["price"], phone=values["phone"]
    )
    source_id = to_optional_string(pick_first(raw, FIELD_SYNONYMS["source_id"]))
    resolved_source_id = (source_id or record_signature)[:SOURCE_ID_MAX_LENGTH]

    return NormalizedRecord(
        source_id=resolved_source_id,
        hash_signature=record_signature,
        values={k: v for k, v in values.items() if v is not None},
    )


def parse_csv_line(line: str) -> List[str]:
    result = []
    current = []
    in_quotes = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            result.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1
    result.append("".join(current))
    return [value.strip() for value in result]


def parse_csv(text: str) -> List[RawRecord]:
    """Parse loosely formatted dealer CSV into one dict per data row.

    The first non-blank line holds the headers. Short rows are padded with
    empty strings and rows with nothing but empty fields are dropped. Quoted
    fields may contain commas; quoted newlines are not supported.
    """
    lines = [line.strip() for line in re.split(r"\r?\n", text)]
    lines = [line for line in lines if line]
    if not lines:
        return []

    headers = parse_csv_line(lines[0])
    records = []
    for line in lines[1:]:
        row = parse_csv_line(line)
        if all(value == "" for value in row):
            continue
        records.append({
            header: row[index] if index < len(row) else ""
            for index, header in enumerate(headers)
        })
    return records


def _decode(body: bytes) -> str:
    try:
        return body.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise PayloadError("Payload is not valid UTF-8 text.") from e


def parse_payload(content_type: Optional[str], body: bytes) -> List[RawRecord]:
    """Turn a request body into raw feed records based on its content type."""
    content_type = (content_type or "").lower()

    if any(t in content_type for t in JSON_CONTENT_TYPES):
        try:
            data = json.loads(_decode(body))
        except json.JSONDecodeError as e:
            raise PayloadError("Invalid JSON payload.") from e
        if isinstance(data, dict) and isinstance(data.get("listings"), list):
            data = data["listings"]
        if not isinstance(data, list):
            raise PayloadError('JSON payload must be an array of listings or an object with a "listings" array.')
        if not all(isinstance(entry, dict) for entry in data):
            raise PayloadError("Each listing must be a JSON object.")
        return data

    if any(t in content_type for t in CSV_CONTENT_TYPES):
        return parse_csv(_decode(body))

    raise PayloadError("Unsupported content type. Please upload JSON or CSV data.")

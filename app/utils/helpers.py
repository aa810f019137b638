"""Helper utility functions"""
from datetime import date, datetime, timedelta, timezone
import re
import uuid

def validate_coordinates(lat, lng):
    """Validate latitude and longitude values"""
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return False
    if not (-90 <= lat <= 90) or not (-180 <= lng <= 180):
        return False
    return True

def as_utc(value):
    """Attach UTC to naive datetimes (SQLite drops tzinfo)"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

def utcnow():
    return datetime.now(timezone.utc)

def parse_date(value):
    """Parse 'YYYY-MM-DD' (or a full ISO timestamp) into a date; None when empty"""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])

def parse_datetime(value):
    """Parse an ISO timestamp; naive values are taken as UTC"""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(str(value).replace('Z', '+00:00')))

def from_epoch(seconds):
    """Unix seconds (Stripe timestamps) to an aware datetime"""
    if seconds is None:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)

def quarter_date_range(quarter, year):
    """First and last day of a calendar quarter (1-4)"""
    quarter = int(quarter)
    if quarter not in (1, 2, 3, 4):
        raise ValueError(f'Invalid quarter: {quarter}')
    year = int(year)
    start_month = (quarter - 1) * 3 + 1
    start = date(year, start_month, 1)
    if quarter == 4:
        end = date(year, 12, 31)
    else:
        end = date(year, start_month + 3, 1) - timedelta(days=1)
    return start, end

def parse_miles(value):
    """Extract the number from distance strings like '1,204 mi'"""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = re.sub(r'[^0-9.]', '', str(value))
    if not cleaned:
        return 0.0
    try:
        return float(cleaned)
    except ValueError:
        return 0.0

def to_float(value, default=0.0):
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default

def to_uuid(value, name='id'):
    """Coerce a path/body id to uuid.UUID; None stays None"""
    if value in (None, ''):
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        from app.utils.errors import ApiError
        raise ApiError(f'Invalid {name}', 400)

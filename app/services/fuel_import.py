"""
Fuel card statement import (Comdata, Wex, P-Fleet)

All three providers export the same column set in slightly different header
spellings, so a single importer sniffs the header row and maps columns by
keyword.
"""
import csv
import io
import logging
import re
from datetime import date

from app import db
from app.models.fleet import Truck
from app.models.fuel import FuelPurchase
from app.utils.errors import ApiError

logger = logging.getLogger(__name__)

PROVIDERS = {
    'comdata': ('COMDATA', 'Comdata'),
    'wex': ('WEX', 'Wex'),
    'pfleet': ('PFLEET', 'P-Fleet'),
}

_STATE_IN_LOCATION = re.compile(r'\b([A-Z]{2})\b')
_NON_NUMERIC = re.compile(r'[^0-9.]')

def parse_csv(content):
    """Split CSV text into stripped rows, dropping blank lines"""
    rows = []
    for row in csv.reader(io.StringIO(content)):
        fields = [field.strip() for field in row]
        if any(fields):
            rows.append(fields)
    return rows

def _find_column(header, *keywords):
    for index, name in enumerate(header):
        if any(keyword in name for keyword in keywords):
            return index
    return None

def detect_columns(header_row):
    header = [h.lower().strip() for h in header_row]
    return {
        'date': _find_column(header, 'date'),
        'truck': _find_column(header, 'truck', 'unit', 'vehicle'),
        'location': _find_column(header, 'location', 'station'),
        'state': _find_column(header, 'state', 'st'),
        'gallons': _find_column(header, 'gallon', 'quantity'),
        'price': _find_column(header, 'price', 'rate', 'per gallon'),
        'total': _find_column(header, 'total', 'amount'),
    }

def parse_purchase_date(value):
    """MM/DD/YYYY (or M/D/YYYY) and ISO dates"""
    if '/' in value:
        parts = value.split('/')
        if len(parts) != 3:
            raise ValueError(value)
        return date(int(parts[2]), int(parts[0]), int(parts[1]))
    return date.fromisoformat(value[:10])

def _parse_amount(value):
    cleaned = _NON_NUMERIC.sub('', value or '') or '0'
    try:
        return float(cleaned)
    except ValueError:
        return None

def _cell(row, index):
    if index is None or index >= len(row):
        return ''
    return row[index].strip()

def import_fuel_card_file(company_id, file_content, file_name, provider='comdata'):
    """
    Insert one fuel purchase per valid row.

    Returns {success, failed, errors: [{row, error}], imported: [...]} where
    row numbers are spreadsheet rows (header is row 1).
    """
    prefix, label = PROVIDERS.get(provider, PROVIDERS['comdata'])

    rows = parse_csv(file_content)
    if len(rows) < 2:
        raise ApiError('CSV file must have at least a header row and one data row')

    columns = detect_columns(rows[0])
    if columns['date'] is None or columns['gallons'] is None or columns['total'] is None:
        raise ApiError('Required columns not found. Expected: Date, Gallons, Total')

    trucks = Truck.query.filter_by(company_id=company_id).all()
    truck_map = {t.truck_number.lower(): t.id for t in trucks if t.truck_number}

    result = {'success': 0, 'failed': 0, 'errors': [], 'imported': []}
    required_width = max(columns['date'], columns['gallons'], columns['total']) + 1

    def fail(row_number, message):
        result['failed'] += 1
        result['errors'].append({'row': row_number, 'error': message})

    for i, row in enumerate(rows[1:]):
        row_number = i + 2

        if len(row) < required_width:
            fail(row_number, 'Insufficient columns')
            continue

        date_str = _cell(row, columns['date'])
        if not date_str:
            fail(row_number, 'Missing date')
            continue
        try:
            purchase_date = parse_purchase_date(date_str)
        except ValueError:
            fail(row_number, f'Invalid date: {date_str}')
            continue

        gallons = _parse_amount(row[columns['gallons']])
        if gallons is None or gallons <= 0:
            fail(row_number, f'Invalid gallons: {row[columns["gallons"]]}')
            continue

        total_cost = _parse_amount(row[columns['total']])
        if total_cost is None or total_cost <= 0:
            fail(row_number, f'Invalid total: {row[columns["total"]]}')
            continue

        location = _cell(row, columns['location']) if columns['location'] is not None else None

        state = _cell(row, columns['state']).upper()
        if not state and location:
            match = _STATE_IN_LOCATION.search(location)
            if match:
                state = match.group(1)

        if len(state) != 2:
            fail(row_number, f'Invalid state: {_cell(row, columns["state"]) or "missing"}')
            continue

        truck_number = _cell(row, columns['truck']) if columns['truck'] is not None else None
        truck_id = truck_map.get(truck_number.lower()) if truck_number else None

        try:
            db.session.add(FuelPurchase(
                company_id=company_id,
                truck_id=truck_id,
                purchase_date=purchase_date,
                state=state,
                city=location,
                station_name=location,
                gallons=gallons,
                price_per_gallon=total_cost / gallons,
                total_cost=total_cost,
                receipt_number=f'{prefix}-{i + 1}',
                notes=f'Imported from {label} file: {file_name}'
            ))
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Fuel import row {row_number} failed: {e}")
            fail(row_number, str(e))
            continue

        result['success'] += 1
        result['imported'].append({
            'purchase_date': purchase_date.isoformat(),
            'state': state,
            'gallons': gallons,
            'total_cost': total_cost,
            'truck_number': truck_number
        })

    logger.info(f"{label} import {file_name}: {result['success']} imported, {result['failed']} failed")
    return result

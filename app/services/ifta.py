"""
IFTA quarter reports, tax rate lookups and state crossing detection.

Mileage per state comes from the `calculate_state_mileage_from_crossings`
database function; rates come from `get_ifta_tax_rate(s_for_quarter)`.
"""
import logging

from app import db
from app.models.fleet import Route
from app.models.ifta import IftaReport, StateCrossing
from app.services.geocoding import reverse_geocode_state
from app.utils import rpc
from app.utils.errors import ApiError, RpcError
from app.utils.helpers import parse_date, parse_miles, quarter_date_range, to_float

logger = logging.getLogger(__name__)

DEFAULT_TAX_RATE = 0.25
AVERAGE_MPG = 6.5

QUARTER_LABELS = {
    'Q1': 'Jan-Mar',
    'Q2': 'Apr-Jun',
    'Q3': 'Jul-Sep',
    'Q4': 'Oct-Dec',
}

def get_tax_rate(company_id, state_code, quarter, year):
    """Rate per gallon for one state; falls back to the default on error or no row"""
    try:
        rate = rpc.call_rpc_scalar(
            'get_ifta_tax_rate',
            p_company_id=str(company_id),
            p_state_code=state_code.upper(),
            p_quarter=int(quarter),
            p_year=int(year)
        )
    except RpcError as e:
        logger.warning(f"Tax rate lookup for {state_code} failed, using default: {e.message}")
        return DEFAULT_TAX_RATE
    return to_float(rate, DEFAULT_TAX_RATE) or DEFAULT_TAX_RATE

def get_tax_rates_for_quarter(company_id, quarter, year):
    rows = rpc.call_rpc(
        'get_ifta_tax_rates_for_quarter',
        p_company_id=str(company_id),
        p_quarter=int(quarter),
        p_year=int(year)
    )
    return {row['state_code']: to_float(row.get('tax_rate_per_gallon')) for row in rows}

def get_state_mileage(company_id, start_date, end_date, truck_ids=None):
    return rpc.call_rpc(
        'calculate_state_mileage_from_crossings',
        p_company_id=str(company_id),
        p_truck_ids=[str(t) for t in truck_ids] if truck_ids else None,
        p_start_date=str(start_date),
        p_end_date=str(end_date)
    )

def _route_miles(company_id, truck_ids, start, end):
    if not truck_ids:
        return 0.0
    routes = Route.query.filter(
        Route.company_id == company_id,
        Route.truck_id.in_(truck_ids),
        db.func.date(Route.created_at) >= start,
        db.func.date(Route.created_at) <= end
    ).all()
    return sum(parse_miles(route.distance) for route in routes)

def build_state_breakdown(mileage_rows, rates):
    breakdown = []
    for row in mileage_rows:
        miles = to_float(row.get('total_miles', row.get('miles')))
        fuel = miles / AVERAGE_MPG
        rate = rates.get(row.get('state_code')) or DEFAULT_TAX_RATE
        breakdown.append({
            'state_code': row.get('state_code'),
            'state_name': row.get('state_name'),
            'miles': round(miles, 1),
            'fuel_gallons': round(fuel, 1),
            'tax_rate': rate,
            'tax': round(fuel * rate, 2)
        })
    return breakdown

def create_report(company_id, data):
    """Build and save a draft IFTA report for a quarter and set of trucks"""
    quarter = (data.get('quarter') or '').upper()
    if quarter not in QUARTER_LABELS:
        raise ApiError('quarter must be one of Q1, Q2, Q3, Q4')
    try:
        year = int(data.get('year'))
    except (TypeError, ValueError):
        raise ApiError('year is required')

    truck_ids = data.get('truck_ids') or []
    include_eld = bool(data.get('include_eld'))

    period_start, period_end = quarter_date_range(quarter[1], year)
    try:
        period_start = parse_date(data.get('period_start')) or period_start
        period_end = parse_date(data.get('period_end')) or period_end
    except ValueError:
        raise ApiError('Invalid period dates')

    breakdown = []
    if include_eld:
        mileage = get_state_mileage(company_id, period_start, period_end, truck_ids)
        if mileage:
            rates = get_tax_rates_for_quarter(company_id, quarter[1], year)
            breakdown = build_state_breakdown(mileage, rates)

    if breakdown:
        total_miles = sum(item['miles'] for item in breakdown)
        fuel = sum(item['fuel_gallons'] for item in breakdown)
        tax = sum(item['tax'] for item in breakdown)
    else:
        total_miles = _route_miles(company_id, truck_ids, period_start, period_end)
        fuel = total_miles / AVERAGE_MPG
        tax = fuel * DEFAULT_TAX_RATE

    report = IftaReport(
        company_id=company_id,
        quarter=quarter,
        year=year,
        period=f'{QUARTER_LABELS[quarter]} {year}',
        period_start=period_start,
        period_end=period_end,
        total_miles=round(total_miles, 1),
        fuel_purchased=round(fuel, 1),
        tax_owed=round(tax, 2),
        status='draft',
        truck_ids=[str(t) for t in truck_ids],
        include_eld=include_eld,
        state_breakdown=breakdown
    )
    db.session.add(report)
    db.session.commit()
    logger.info(f"Created IFTA report {quarter} {year} for company {company_id}: {total_miles} mi")
    return report

def detect_state_crossing(company_id, params):
    """
    Reverse-geocode a location and log a crossing when the state differs from
    the truck/driver's previous crossing. Returns None when no crossing happened.
    """
    location = reverse_geocode_state(params['latitude'], params['longitude'])
    state_code = location['state_code']
    timestamp = params['timestamp']

    previous = StateCrossing.query.filter(
        StateCrossing.company_id == company_id,
        StateCrossing.truck_id == params.get('truck_id'),
        StateCrossing.driver_id == params.get('driver_id'),
        StateCrossing.timestamp < timestamp
    ).order_by(StateCrossing.timestamp.desc()).first()

    if previous is not None and previous.state_code == state_code:
        return None

    crossing_id = rpc.call_rpc_scalar(
        'detect_state_crossing',
        p_company_id=str(company_id),
        p_truck_id=_opt(params.get('truck_id')),
        p_driver_id=_opt(params.get('driver_id')),
        p_eld_device_id=_opt(params.get('eld_device_id')),
        p_latitude=params['latitude'],
        p_longitude=params['longitude'],
        p_timestamp=timestamp.isoformat(),
        p_route_id=_opt(params.get('route_id')),
        p_load_id=_opt(params.get('load_id')),
        p_speed=params.get('speed'),
        p_odometer=params.get('odometer'),
        p_state_code=state_code,
        p_state_name=location['state_name'],
        p_address=location.get('address') or params.get('address')
    )
    return {
        'crossing_id': str(crossing_id) if crossing_id else None,
        'state_code': state_code,
        'state_name': location['state_name'],
        'crossing_type': 'entry',
        'previous_state_code': previous.state_code if previous else None,
        'previous_state_name': previous.state_name if previous else None
    }

def _opt(value):
    return str(value) if value else None

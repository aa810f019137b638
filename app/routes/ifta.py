import math

from flask import Blueprint, request, current_app
from app import db
from app.models.fleet import Driver, Truck
from app.models.ifta import IftaTaxRate, StateCrossing, IdleTimeSession, IftaReport
from app.services import ifta as ifta_service
from app.utils import rpc
from app.utils.auth import require_company, require_role, MANAGER_ROLES
from app.utils.errors import ApiError, NotFoundError
from app.utils.helpers import (
    as_utc, parse_date, parse_datetime, quarter_date_range, to_float, to_uuid, utcnow, validate_coordinates
)
from app.utils.responses import success

bp = Blueprint('ifta', __name__)

def _quarter_and_year(source):
    try:
        quarter = int(source.get('quarter'))
        year = int(source.get('year'))
    except (TypeError, ValueError):
        raise ApiError('quarter and year are required')
    if quarter not in (1, 2, 3, 4):
        raise ApiError('quarter must be between 1 and 4')
    return quarter, year

def _tax_rate(value):
    try:
        rate = float(value)
    except (TypeError, ValueError):
        raise ApiError('Invalid tax_rate_per_gallon')
    if isinstance(value, bool) or not math.isfinite(rate) or rate < 0:
        raise ApiError('Invalid tax_rate_per_gallon')
    return rate

def _date_arg(name):
    try:
        return parse_date(request.args.get(name))
    except ValueError:
        raise ApiError(f'Invalid {name}')

# ---------------------------------------------------------------------------
# Tax rates
# ---------------------------------------------------------------------------

@bp.route('/tax-rates', methods=['GET'])
@require_company
def get_tax_rates():
    """
    Tax rates configured for the company
    ---
    tags:
      - IFTA
    parameters:
      - in: query
        name: quarter
        schema:
          type: integer
      - in: query
        name: year
        schema:
          type: integer
      - in: query
        name: state_code
        schema:
          type: string
    security:
      - Bearer: []
    responses:
      200:
        description: Rates ordered by state, newest period first
    """
    query = IftaTaxRate.query.filter_by(company_id=request.current_user['company_id'])
    if request.args.get('quarter'):
        query = query.filter_by(quarter=request.args.get('quarter', type=int))
    if request.args.get('year'):
        query = query.filter_by(year=request.args.get('year', type=int))
    if request.args.get('state_code'):
        query = query.filter_by(state_code=request.args['state_code'].upper())

    rates = query.order_by(
        IftaTaxRate.state_code.asc(), IftaTaxRate.year.desc(), IftaTaxRate.quarter.desc()
    ).all()
    return success([rate.to_dict() for rate in rates])

@bp.route('/tax-rates/quarter', methods=['GET'])
@require_company
def get_tax_rates_for_quarter():
    quarter, year = _quarter_and_year(request.args)
    rates = ifta_service.get_tax_rates_for_quarter(request.current_user['company_id'], quarter, year)
    return success(rates)

@bp.route('/tax-rates/<state_code>', methods=['GET'])
@require_company
def get_tax_rate(state_code):
    """Rate per gallon for one state; 0.25 when none is configured"""
    quarter, year = _quarter_and_year(request.args)
    rate = ifta_service.get_tax_rate(request.current_user['company_id'], state_code, quarter, year)
    return success(rate)

@bp.route('/tax-rates', methods=['POST'])
@require_role(*MANAGER_ROLES, message='Only managers can update tax rates')
def upsert_tax_rate():
    """
    Create or update the rate for a state and quarter
    ---
    tags:
      - IFTA
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - state_code
              - quarter
              - year
              - tax_rate_per_gallon
              - effective_date
            properties:
              state_code:
                type: string
              state_name:
                type: string
              quarter:
                type: integer
              year:
                type: integer
              tax_rate_per_gallon:
                type: number
              effective_date:
                type: string
                format: date
              end_date:
                type: string
                format: date
              notes:
                type: string
    responses:
      200:
        description: Saved rate
      403:
        description: Only managers can update tax rates
    """
    user = request.current_user
    data = request.get_json() or {}
    quarter, year = _quarter_and_year(data)
    state_code = (data.get('state_code') or '').upper()
    if len(state_code) != 2:
        raise ApiError('state_code must be a two-letter code')
    if data.get('tax_rate_per_gallon') is None:
        raise ApiError('tax_rate_per_gallon is required')
    tax_rate = _tax_rate(data['tax_rate_per_gallon'])
    try:
        effective_date = parse_date(data.get('effective_date')) or quarter_date_range(quarter, year)[0]
        end_date = parse_date(data.get('end_date'))
    except ValueError:
        raise ApiError('Invalid date')

    rate = IftaTaxRate.query.filter_by(
        company_id=user['company_id'], state_code=state_code, quarter=quarter, year=year
    ).first()
    if rate is None:
        rate = IftaTaxRate(company_id=user['company_id'], state_code=state_code, quarter=quarter, year=year)
        db.session.add(rate)

    rate.state_name = data.get('state_name')
    rate.tax_rate_per_gallon = tax_rate
    rate.effective_date = effective_date
    rate.end_date = end_date
    rate.notes = data.get('notes')
    rate.created_by = user['user_id']
    db.session.commit()
    return success(rate.to_dict())

@bp.route('/tax-rates/bulk', methods=['POST'])
@require_role(*MANAGER_ROLES, message='Only managers can update tax rates')
def bulk_update_tax_rates():
    """Upsert every state's rate for one quarter (effective on the quarter's first day)"""
    user = request.current_user
    data = request.get_json() or {}
    quarter, year = _quarter_and_year(data)
    effective_date = quarter_date_range(quarter, year)[0]
    rates = data.get('rates') or []

    validated = []
    for item in rates:
        state_code = (item.get('state_code') or '').upper()
        if len(state_code) != 2:
            raise ApiError(f'Invalid state_code: {item.get("state_code")}')
        try:
            tax_rate = _tax_rate(item.get('tax_rate_per_gallon'))
        except ApiError:
            raise ApiError(f'Invalid tax_rate_per_gallon for {state_code}')
        validated.append((state_code, item.get('state_name'), tax_rate))

    for state_code, state_name, tax_rate in validated:
        rate = IftaTaxRate.query.filter_by(
            company_id=user['company_id'], state_code=state_code, quarter=quarter, year=year
        ).first()
        if rate is None:
            rate = IftaTaxRate(company_id=user['company_id'], state_code=state_code, quarter=quarter, year=year)
            db.session.add(rate)
        rate.state_name = state_name
        rate.tax_rate_per_gallon = tax_rate
        rate.effective_date = effective_date
        rate.created_by = user['user_id']

    db.session.commit()
    current_app.logger.info(f"Bulk updated {len(rates)} IFTA rates for Q{quarter} {year}")
    return success({'updated': len(rates)})

@bp.route('/tax-rates/<rate_id>', methods=['DELETE'])
@require_role(*MANAGER_ROLES, message='Only managers can delete tax rates')
def delete_tax_rate(rate_id):
    rate = IftaTaxRate.query.filter_by(
        id=to_uuid(rate_id, 'rate_id'), company_id=request.current_user['company_id']
    ).first()
    if rate is None:
        raise NotFoundError('Tax rate not found')
    db.session.delete(rate)
    db.session.commit()
    return success({'deleted': True})

# ---------------------------------------------------------------------------
# State crossings
# ---------------------------------------------------------------------------

@bp.route('/state-crossings/detect', methods=['POST'])
@require_company
def detect_state_crossing():
    """
    Log a state line crossing for a location update
    ---
    tags:
      - IFTA
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - latitude
              - longitude
              - timestamp
            properties:
              truck_id:
                type: string
              driver_id:
                type: string
              eld_device_id:
                type: string
              latitude:
                type: number
              longitude:
                type: number
              timestamp:
                type: string
                format: date-time
              route_id:
                type: string
              load_id:
                type: string
              speed:
                type: number
              odometer:
                type: number
    responses:
      200:
        description: Crossing details, or null data when the state did not change
    """
    data = request.get_json() or {}
    if not validate_coordinates(data.get('latitude'), data.get('longitude')):
        raise ApiError('Invalid coordinates')
    try:
        timestamp = parse_datetime(data.get('timestamp')) or utcnow()
    except ValueError:
        raise ApiError('Invalid timestamp')

    params = {
        'truck_id': to_uuid(data.get('truck_id'), 'truck_id'),
        'driver_id': to_uuid(data.get('driver_id'), 'driver_id'),
        'eld_device_id': data.get('eld_device_id'),
        'route_id': to_uuid(data.get('route_id'), 'route_id'),
        'load_id': to_uuid(data.get('load_id'), 'load_id'),
        'latitude': data['latitude'],
        'longitude': data['longitude'],
        'timestamp': timestamp,
        'speed': data.get('speed'),
        'odometer': data.get('odometer'),
        'address': data.get('address'),
    }
    crossing = ifta_service.detect_state_crossing(request.current_user['company_id'], params)
    return success(crossing)

@bp.route('/state-crossings', methods=['GET'])
@require_company
def get_state_crossings():
    query = StateCrossing.query.filter_by(company_id=request.current_user['company_id'])
    if request.args.get('truck_id'):
        query = query.filter_by(truck_id=to_uuid(request.args['truck_id'], 'truck_id'))
    if request.args.get('driver_id'):
        query = query.filter_by(driver_id=to_uuid(request.args['driver_id'], 'driver_id'))
    start_date = _date_arg('start_date')
    end_date = _date_arg('end_date')
    if start_date:
        query = query.filter(db.func.date(StateCrossing.timestamp) >= start_date)
    if end_date:
        query = query.filter(db.func.date(StateCrossing.timestamp) <= end_date)

    query = query.order_by(StateCrossing.timestamp.desc())
    limit = request.args.get('limit', type=int)
    if limit:
        query = query.limit(limit)
    return success([crossing.to_dict() for crossing in query.all()])

@bp.route('/state-mileage', methods=['GET'])
@require_company
def get_state_mileage_breakdown():
    """
    Miles driven per state between two dates, from logged crossings
    ---
    tags:
      - IFTA
    parameters:
      - in: query
        name: start_date
        required: true
        schema:
          type: string
          format: date
      - in: query
        name: end_date
        required: true
        schema:
          type: string
          format: date
      - in: query
        name: truck_ids
        schema:
          type: string
        description: Comma-separated truck ids
    security:
      - Bearer: []
    responses:
      200:
        description: Rows of state_code, state_name and miles
    """
    start_date = _date_arg('start_date')
    end_date = _date_arg('end_date')
    if not start_date or not end_date:
        raise ApiError('start_date and end_date are required')
    truck_ids = [t for t in (request.args.get('truck_ids') or '').split(',') if t]

    rows = ifta_service.get_state_mileage(
        request.current_user['company_id'], start_date, end_date,
        [to_uuid(t, 'truck_ids') for t in truck_ids]
    )
    return success([rpc.jsonable(row) for row in rows])

# ---------------------------------------------------------------------------
# Idle time
# ---------------------------------------------------------------------------

@bp.route('/idle/detect', methods=['POST'])
@require_company
def detect_idle_time():
    data = request.get_json() or {}
    truck_id = to_uuid(data.get('truck_id'), 'truck_id')
    if not truck_id:
        raise ApiError('truck_id is required')
    if not validate_coordinates(data.get('latitude'), data.get('longitude')):
        raise ApiError('Invalid coordinates')
    try:
        timestamp = parse_datetime(data.get('timestamp')) or utcnow()
    except ValueError:
        raise ApiError('Invalid timestamp')
    driver_id = to_uuid(data.get('driver_id'), 'driver_id')

    company_id = request.current_user['company_id']
    if Truck.query.filter_by(id=truck_id, company_id=company_id).first() is None:
        raise NotFoundError('Truck not found')
    if driver_id and Driver.query.filter_by(id=driver_id, company_id=company_id).first() is None:
        raise NotFoundError('Driver not found')

    session_id = rpc.call_rpc_scalar(
        'detect_idle_time',
        p_truck_id=str(truck_id),
        p_latitude=data['latitude'],
        p_longitude=data['longitude'],
        p_timestamp=timestamp.isoformat(),
        p_speed=data.get('speed') or 0,
        p_engine_status=data.get('engine_status') or 'unknown',
        p_driver_id=str(driver_id) if driver_id else None
    )
    if session_id:
        rpc.call_rpc('calculate_idle_fuel_cost', p_session_id=str(session_id))
    return success({'session_id': str(session_id) if session_id else None})

def _idle_query():
    query = IdleTimeSession.query.filter_by(company_id=request.current_user['company_id'])
    if request.args.get('truck_id'):
        query = query.filter_by(truck_id=to_uuid(request.args['truck_id'], 'truck_id'))
    if request.args.get('driver_id'):
        query = query.filter_by(driver_id=to_uuid(request.args['driver_id'], 'driver_id'))
    start_date = _date_arg('start_date')
    end_date = _date_arg('end_date')
    if start_date:
        query = query.filter(db.func.date(IdleTimeSession.start_time) >= start_date)
    if end_date:
        query = query.filter(db.func.date(IdleTimeSession.start_time) <= end_date)
    return query

@bp.route('/idle/sessions', methods=['GET'])
@require_company
def get_idle_sessions():
    """
    Idle time sessions, newest first
    ---
    tags:
      - IFTA
    parameters:
      - in: query
        name: truck_id
        schema:
          type: string
      - in: query
        name: driver_id
        schema:
          type: string
      - in: query
        name: start_date
        schema:
          type: string
          format: date
      - in: query
        name: end_date
        schema:
          type: string
          format: date
      - in: query
        name: min_duration_minutes
        schema:
          type: integer
      - in: query
        name: limit
        schema:
          type: integer
          default: 100
    security:
      - Bearer: []
    responses:
      200:
        description: Sessions with truck and driver
    """
    query = _idle_query()
    min_duration = request.args.get('min_duration_minutes', type=int)
    if min_duration:
        query = query.filter(IdleTimeSession.duration_minutes >= min_duration)
    limit = request.args.get('limit', 100, type=int)
    sessions = query.order_by(IdleTimeSession.start_time.desc()).limit(limit).all()
    return success([session.to_dict() for session in sessions])

@bp.route('/idle/stats', methods=['GET'])
@require_company
def get_idle_stats():
    sessions = _idle_query().all()

    total_minutes = sum(s.duration_minutes or 0 for s in sessions)
    total_cost = sum(to_float(s.estimated_fuel_cost) for s in sessions)
    by_truck = {}
    by_driver = {}
    for session in sessions:
        for key, bucket in ((session.truck_id, by_truck), (session.driver_id, by_driver)):
            if not key:
                continue
            entry = bucket.setdefault(str(key), {'minutes': 0, 'cost': 0.0, 'sessions': 0})
            entry['minutes'] += session.duration_minutes or 0
            entry['cost'] += to_float(session.estimated_fuel_cost)
            entry['sessions'] += 1

    return success({
        'total_minutes': total_minutes,
        'total_hours': total_minutes / 60,
        'total_fuel_cost': total_cost,
        'total_sessions': len(sessions),
        'avg_duration_minutes': total_minutes / len(sessions) if sessions else 0,
        'by_truck': by_truck,
        'by_driver': by_driver
    })

@bp.route('/idle/sessions/<session_id>/close', methods=['POST'])
@require_company
def close_idle_session(session_id):
    session = IdleTimeSession.query.filter_by(
        id=to_uuid(session_id, 'session_id'), company_id=request.current_user['company_id']
    ).first()
    if session is None:
        raise NotFoundError('Session not found')

    end_time = utcnow()
    session.end_time = end_time
    session.duration_minutes = round((end_time - as_utc(session.start_time)).total_seconds() / 60)
    db.session.commit()

    rpc.call_rpc('calculate_idle_fuel_cost', p_session_id=str(session.id))
    db.session.refresh(session)
    return success(session.to_dict())

# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

@bp.route('/reports', methods=['GET'])
@require_company
def get_reports():
    reports = IftaReport.query.filter_by(company_id=request.current_user['company_id']) \
        .order_by(IftaReport.created_at.desc()).all()
    return success([report.to_dict() for report in reports])

@bp.route('/reports', methods=['POST'])
@require_company
def create_report():
    """
    Generate a draft IFTA report for a quarter
    ---
    tags:
      - IFTA
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - quarter
              - year
            properties:
              quarter:
                type: string
                enum: [Q1, Q2, Q3, Q4]
              year:
                type: integer
              truck_ids:
                type: array
                items:
                  type: string
              include_eld:
                type: boolean
                description: Use state crossing mileage when available
              period_start:
                type: string
                format: date
              period_end:
                type: string
                format: date
    responses:
      201:
        description: Report created
      400:
        description: Invalid quarter or year
    """
    data = request.get_json() or {}
    data['truck_ids'] = [to_uuid(t, 'truck_ids') for t in data.get('truck_ids') or []]
    report = ifta_service.create_report(request.current_user['company_id'], data)
    return success(report.to_dict(), 201)

@bp.route('/reports/<report_id>', methods=['DELETE'])
@require_company
def delete_report(report_id):
    report = IftaReport.query.filter_by(
        id=to_uuid(report_id, 'report_id'), company_id=request.current_user['company_id']
    ).first()
    if report is None:
        raise NotFoundError('Report not found')
    db.session.delete(report)
    db.session.commit()
    return success({'deleted': True})

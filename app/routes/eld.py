from flask import Blueprint, request
from app.models.eld import EldEvent
from app.models.fleet import Driver
from app.services.hos import calculate_remaining_hos
from app.utils.auth import require_company
from app.utils.errors import ApiError, NotFoundError
from app.utils.helpers import parse_date, to_uuid
from app.utils.responses import success

bp = Blueprint('eld', __name__)

@bp.route('/hos/<driver_id>', methods=['GET'])
@require_company
def get_remaining_hos(driver_id):
    """
    Remaining hours of service for a driver on a day
    ---
    tags:
      - ELD
    parameters:
      - in: path
        name: driver_id
        required: true
        schema:
          type: string
      - in: query
        name: date
        schema:
          type: string
          format: date
        description: Defaults to today
    security:
      - Bearer: []
    responses:
      200:
        description: Driving/on-duty hours used and remaining, break and violation flags
        content:
          application/json:
            schema:
              type: object
              properties:
                data:
                  type: object
                  properties:
                    driving_hours:
                      type: number
                    on_duty_hours:
                      type: number
                    remaining_driving:
                      type: number
                    remaining_on_duty:
                      type: number
                    needs_break:
                      type: boolean
                    violations:
                      type: array
                      items:
                        type: string
                    can_drive:
                      type: boolean
      404:
        description: Driver not found
    """
    company_id = request.current_user['company_id']
    driver = Driver.query.filter_by(id=to_uuid(driver_id, 'driver_id'), company_id=company_id).first()
    if driver is None:
        raise NotFoundError('Driver not found')

    try:
        on_date = parse_date(request.args.get('date'))
    except ValueError:
        raise ApiError('Invalid date')

    return success(calculate_remaining_hos(driver.id, on_date, company_id=company_id))

@bp.route('/events', methods=['GET'])
@require_company
def get_events():
    """ELD events (faults, HOS alerts), newest first"""
    query = EldEvent.query.filter_by(company_id=request.current_user['company_id'])
    if request.args.get('event_type'):
        query = query.filter_by(event_type=request.args['event_type'])
    if request.args.get('driver_id'):
        query = query.filter_by(driver_id=to_uuid(request.args['driver_id'], 'driver_id'))
    if request.args.get('resolved') is not None:
        query = query.filter_by(resolved=request.args['resolved'].lower() == 'true')

    limit = min(request.args.get('limit', 100, type=int), 500)
    events = query.order_by(EldEvent.event_time.desc()).limit(limit).all()
    return success([event.to_dict() for event in events])

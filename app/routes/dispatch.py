from flask import Blueprint, request
from app.models.fleet import Route
from app.services.geocoding import geocode_address
from app.services.hos import get_all_drivers_hos_status
from app.utils import rpc
from app.utils.auth import require_company
from app.utils.errors import ApiError, NotFoundError
from app.utils.helpers import to_uuid, validate_coordinates
from app.utils.responses import success

bp = Blueprint('dispatch', __name__)

@bp.route('/eta', methods=['POST'])
@require_company
def calculate_enhanced_eta():
    """
    ETA for a route from the truck's current position, accounting for HOS breaks
    ---
    tags:
      - Dispatch
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - route_id
              - current_lat
              - current_lng
            properties:
              route_id:
                type: string
              current_lat:
                type: number
              current_lng:
                type: number
              current_speed:
                type: number
              driver_id:
                type: string
    responses:
      200:
        description: ETA row computed by the database
      400:
        description: Invalid coordinates or no ETA data
      404:
        description: Route not found
    """
    data = request.get_json() or {}
    route_id = to_uuid(data.get('route_id'), 'route_id')
    route = Route.query.filter_by(id=route_id, company_id=request.current_user['company_id']).first() \
        if route_id else None
    if route is None:
        raise NotFoundError('Route not found')

    lat, lng = data.get('current_lat'), data.get('current_lng')
    if not validate_coordinates(lat, lng):
        raise ApiError('Invalid coordinates')

    driver_id = to_uuid(data.get('driver_id'), 'driver_id')
    rows = rpc.call_rpc(
        'calculate_enhanced_eta_with_hos',
        p_route_id=str(route.id),
        p_current_lat=lat,
        p_current_lng=lng,
        p_current_speed=data.get('current_speed') or None,
        p_driver_id=str(driver_id) if driver_id else None
    )
    if not rows:
        raise ApiError('No ETA data returned')
    return success(rpc.jsonable(rows[0]))

@bp.route('/geocode', methods=['POST'])
@require_company
def geocode():
    """
    Geocode an address with Google Maps
    ---
    tags:
      - Dispatch
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - address
            properties:
              address:
                type: string
    responses:
      200:
        description: lat, lng and formatted address
      400:
        description: Address too short
      502:
        description: Geocoding failed
    """
    address = (request.get_json() or {}).get('address')
    return success(geocode_address(address))

@bp.route('/hos-status', methods=['GET'])
@require_company
def get_hos_status():
    """HOS snapshot for every active driver"""
    return success(get_all_drivers_hos_status(request.current_user['company_id']))

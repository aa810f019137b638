from flask import Blueprint, request
from app.models.fuel import FuelPurchase
from app.services.fuel_import import PROVIDERS, import_fuel_card_file
from app.utils.auth import require_company
from app.utils.errors import ApiError
from app.utils.helpers import parse_date, to_uuid
from app.utils.responses import success

bp = Blueprint('fuel', __name__)

@bp.route('/import', methods=['POST'])
@require_company
def import_fuel_card_data():
    """
    Import a fuel card CSV statement (Comdata, Wex, P-Fleet)
    ---
    tags:
      - Fuel
    security:
      - Bearer: []
    parameters:
      - in: query
        name: provider
        schema:
          type: string
          enum: [comdata, wex, pfleet, auto]
          default: auto
    requestBody:
      required: true
      content:
        multipart/form-data:
          schema:
            type: object
            properties:
              file:
                type: string
                format: binary
        application/json:
          schema:
            type: object
            properties:
              file_content:
                type: string
              file_name:
                type: string
    responses:
      200:
        description: Counts of imported and failed rows with per-row errors
        content:
          application/json:
            schema:
              type: object
              properties:
                data:
                  type: object
                  properties:
                    success:
                      type: integer
                    failed:
                      type: integer
                    errors:
                      type: array
                      items:
                        type: object
                    imported:
                      type: array
                      items:
                        type: object
      400:
        description: Missing file, empty CSV or required columns not found
    """
    provider = request.args.get('provider') or request.form.get('provider')
    upload = request.files.get('file')
    if upload is not None:
        file_content = upload.read().decode('utf-8-sig')
        file_name = upload.filename
    else:
        data = request.get_json(silent=True) or {}
        file_content = data.get('file_content')
        file_name = data.get('file_name') or 'upload.csv'
        provider = provider or data.get('provider')

    provider = (provider or 'auto').lower()
    if provider == 'auto':
        provider = 'comdata'
    if provider not in PROVIDERS:
        raise ApiError(f'Unsupported provider: {provider}')

    if not file_content:
        raise ApiError('No file provided')

    result = import_fuel_card_file(request.current_user['company_id'], file_content, file_name, provider)
    return success(result)

@bp.route('/purchases', methods=['GET'])
@require_company
def get_fuel_purchases():
    """Fuel purchases, newest first, filtered by date range, state and truck"""
    query = FuelPurchase.query.filter_by(company_id=request.current_user['company_id'])
    try:
        start_date = parse_date(request.args.get('start_date'))
        end_date = parse_date(request.args.get('end_date'))
    except ValueError:
        raise ApiError('Invalid date')

    if start_date:
        query = query.filter(FuelPurchase.purchase_date >= start_date)
    if end_date:
        query = query.filter(FuelPurchase.purchase_date <= end_date)
    if request.args.get('state'):
        query = query.filter_by(state=request.args['state'].upper())
    if request.args.get('truck_id'):
        query = query.filter_by(truck_id=to_uuid(request.args['truck_id'], 'truck_id'))

    purchases = query.order_by(FuelPurchase.purchase_date.desc()).all()
    return success([purchase.to_dict() for purchase in purchases])

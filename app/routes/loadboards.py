from flask import Blueprint, request, current_app
from app import db
from app.models.integration import LoadBoardIntegration, ExternalLoad, LoadSyncHistory, LOAD_BOARD_PROVIDERS
from app.services.loadboards import get_client
from app.services.loadboards.sync import sync_integration, import_external_load
from app.utils.auth import require_company, require_role, MANAGER_ROLES
from app.utils.errors import ApiError, NotFoundError, IntegrationError
from app.utils.helpers import to_uuid
from app.utils.responses import success

bp = Blueprint('loadboards', __name__)

MANAGER_ONLY = 'Only managers can manage external broker integrations'

CREDENTIAL_FIELDS = ('api_key', 'api_secret', 'username', 'password')
SETTING_FIELDS = ('enabled', 'subscription_tier', 'sync_enabled', 'sync_filters', 'max_loads_per_sync')

def _get_integration(integration_id):
    integration = LoadBoardIntegration.query.filter_by(
        id=to_uuid(integration_id, 'integration_id'), company_id=request.current_user['company_id']
    ).first()
    if integration is None:
        raise NotFoundError('Integration not found')
    return integration

def _apply_fields(integration, data):
    for field in CREDENTIAL_FIELDS:
        value = data.get(field)
        # Masked values echoed back from to_dict() leave the stored secret alone
        if value and not str(value).startswith('***'):
            setattr(integration, field, value)
    for field in SETTING_FIELDS:
        if field in data:
            setattr(integration, field, data[field])

@bp.route('/integrations', methods=['GET'])
@require_company
def get_integrations():
    integrations = LoadBoardIntegration.query.filter_by(company_id=request.current_user['company_id']) \
        .order_by(LoadBoardIntegration.provider.asc()).all()
    return success([integration.to_dict() for integration in integrations])

@bp.route('/integrations', methods=['POST'])
@require_role(*MANAGER_ROLES, message=MANAGER_ONLY)
def save_integration():
    """
    Create or update the credentials for a load board
    ---
    tags:
      - Load Boards
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - provider
            properties:
              provider:
                type: string
                enum: [dat, truckstop, 123loadboard]
              enabled:
                type: boolean
              api_key:
                type: string
              api_secret:
                type: string
              username:
                type: string
              password:
                type: string
              sync_enabled:
                type: boolean
              sync_filters:
                type: object
              max_loads_per_sync:
                type: integer
    responses:
      200:
        description: Integration saved (secrets masked)
      400:
        description: Unknown provider
      403:
        description: Not a manager
    """
    company_id = request.current_user['company_id']
    data = request.get_json() or {}
    provider = data.get('provider')
    if provider not in LOAD_BOARD_PROVIDERS:
        raise ApiError(f'provider must be one of: {", ".join(LOAD_BOARD_PROVIDERS)}')

    integration = LoadBoardIntegration.query.filter_by(company_id=company_id, provider=provider).first()
    if integration is None:
        integration = LoadBoardIntegration(company_id=company_id, provider=provider)
        db.session.add(integration)

    _apply_fields(integration, data)
    db.session.commit()
    current_app.logger.info(f"Saved {provider} integration for company {company_id}")
    return success(integration.to_dict())

@bp.route('/integrations/<integration_id>', methods=['PUT'])
@require_role(*MANAGER_ROLES, message=MANAGER_ONLY)
def update_integration(integration_id):
    integration = _get_integration(integration_id)
    _apply_fields(integration, request.get_json() or {})
    db.session.commit()
    return success(integration.to_dict())

@bp.route('/integrations/<integration_id>', methods=['DELETE'])
@require_role(*MANAGER_ROLES, message=MANAGER_ONLY)
def delete_integration(integration_id):
    integration = _get_integration(integration_id)
    db.session.delete(integration)
    db.session.commit()
    return success({'deleted': True})

@bp.route('/integrations/<integration_id>/test', methods=['POST'])
@require_role(*MANAGER_ROLES, message=MANAGER_ONLY)
def test_integration(integration_id):
    """
    Authenticate against the load board and call its account endpoint
    ---
    tags:
      - Load Boards
    parameters:
      - in: path
        name: integration_id
        required: true
        schema:
          type: string
    security:
      - Bearer: []
    responses:
      200:
        description: Connection successful
      404:
        description: Integration not found
      502:
        description: Credentials missing or rejected
    """
    integration = _get_integration(integration_id)
    try:
        result = get_client(integration).test_connection()
    except IntegrationError as e:
        integration.last_sync_status = 'error'
        integration.last_sync_error = e.message
        db.session.commit()
        raise

    integration.last_sync_status = 'success'
    integration.last_sync_error = None
    db.session.commit()
    return success(result)

@bp.route('/integrations/<integration_id>/sync', methods=['POST'])
@require_role(*MANAGER_ROLES, message=MANAGER_ONLY)
def sync(integration_id):
    """
    Pull current postings from the load board into external loads
    ---
    tags:
      - Load Boards
    parameters:
      - in: path
        name: integration_id
        required: true
        schema:
          type: string
    security:
      - Bearer: []
    responses:
      200:
        description: Sync summary (found, new, updated, errors)
      404:
        description: Integration not found
      502:
        description: Load board request failed
    """
    integration = _get_integration(integration_id)
    return success(sync_integration(integration, sync_type='manual'))

@bp.route('/integrations/<integration_id>/history', methods=['GET'])
@require_company
def get_sync_history(integration_id):
    integration = _get_integration(integration_id)
    limit = min(request.args.get('limit', 20, type=int), 100)
    history = LoadSyncHistory.query.filter_by(integration_id=integration.id) \
        .order_by(LoadSyncHistory.started_at.desc()).limit(limit).all()
    return success([entry.to_dict() for entry in history])

@bp.route('/external-loads', methods=['GET'])
@require_company
def get_external_loads():
    """
    Synced load board postings, most recently synced first
    ---
    tags:
      - Load Boards
    parameters:
      - in: query
        name: integration_id
        schema:
          type: string
      - in: query
        name: status
        schema:
          type: string
          enum: [available, imported, expired]
      - in: query
        name: origin
        schema:
          type: string
      - in: query
        name: destination
        schema:
          type: string
      - in: query
        name: limit
        schema:
          type: integer
          default: 25
      - in: query
        name: offset
        schema:
          type: integer
          default: 0
    security:
      - Bearer: []
    responses:
      200:
        description: External loads
    """
    query = ExternalLoad.query.filter_by(company_id=request.current_user['company_id'])
    if request.args.get('integration_id'):
        query = query.filter_by(integration_id=to_uuid(request.args['integration_id'], 'integration_id'))
    if request.args.get('status'):
        query = query.filter_by(status=request.args['status'])
    if request.args.get('origin'):
        query = query.filter(ExternalLoad.origin.ilike(f"%{request.args['origin']}%"))
    if request.args.get('destination'):
        query = query.filter(ExternalLoad.destination.ilike(f"%{request.args['destination']}%"))

    limit = min(request.args.get('limit', 25, type=int) or 25, 100)
    offset = request.args.get('offset', 0, type=int)
    loads = query.order_by(ExternalLoad.synced_at.desc()).offset(offset).limit(limit).all()
    return success([load.to_dict() for load in loads])

@bp.route('/external-loads/<external_load_id>/import', methods=['POST'])
@require_company
def import_load(external_load_id):
    external_load = ExternalLoad.query.filter_by(
        id=to_uuid(external_load_id, 'external_load_id'), company_id=request.current_user['company_id']
    ).first()
    if external_load is None:
        raise NotFoundError('External load not found')
    if external_load.status == 'imported':
        raise ApiError('Load has already been imported')

    load = import_external_load(external_load)
    current_app.logger.info(f"Imported external load {external_load.id} as {load.shipment_number}")
    return success(load.to_dict(), 201)

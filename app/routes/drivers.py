from flask import Blueprint, request, current_app
from app import db
from app.models.fleet import Driver, Load
from app.models.onboarding import DriverOnboarding, REQUIRED_ONBOARDING_DOCUMENTS, ONBOARDING_TOTAL_STEPS
from app.models.settlement import DriverPayRule
from app.services import pay_rules
from app.utils.auth import require_company, require_role, MANAGER_ROLES
from app.utils.errors import ApiError, NotFoundError
from app.utils.helpers import parse_date, to_uuid, utcnow
from app.utils.responses import success

bp = Blueprint('drivers', __name__)

DOCUMENT_FLAGS = {
    'license': 'license_uploaded',
    'medical_card': 'medical_card_uploaded',
    'insurance': 'insurance_uploaded',
    'w9': 'w9_uploaded',
    'i9': 'i9_uploaded',
}

def _get_driver(driver_id):
    driver = Driver.query.filter_by(
        id=to_uuid(driver_id, 'driver_id'), company_id=request.current_user['company_id']
    ).first()
    if driver is None:
        raise NotFoundError('Driver not found')
    return driver

def _get_onboarding(driver_id):
    onboarding = DriverOnboarding.query.filter_by(
        driver_id=to_uuid(driver_id, 'driver_id'), company_id=request.current_user['company_id']
    ).first()
    if onboarding is None:
        raise NotFoundError('Onboarding record not found')
    return onboarding

# ---------------------------------------------------------------------------
# Onboarding
# ---------------------------------------------------------------------------

@bp.route('/onboarding', methods=['GET'])
@require_company
def list_onboarding():
    """
    List onboarding records for the company
    ---
    tags:
      - Drivers
    parameters:
      - in: query
        name: status
        schema:
          type: string
          enum: [in_progress, completed]
      - in: query
        name: assigned_to
        schema:
          type: string
        description: User id the onboarding is assigned to
    security:
      - Bearer: []
    responses:
      200:
        description: Onboarding records with driver and assignee
    """
    query = DriverOnboarding.query.filter_by(company_id=request.current_user['company_id'])
    if request.args.get('status'):
        query = query.filter_by(status=request.args['status'])
    if request.args.get('assigned_to'):
        query = query.filter_by(assigned_to_user_id=to_uuid(request.args['assigned_to'], 'assigned_to'))

    records = query.order_by(DriverOnboarding.created_at.desc()).all()
    return success([record.to_dict() for record in records])

@bp.route('/<driver_id>/onboarding', methods=['POST'])
@require_company
def initialize_onboarding(driver_id):
    """
    Start onboarding for a driver
    ---
    tags:
      - Drivers
    parameters:
      - in: path
        name: driver_id
        required: true
        schema:
          type: string
    security:
      - Bearer: []
    responses:
      201:
        description: Onboarding started at step 1
      200:
        description: Onboarding already exists
      404:
        description: Driver not found
    """
    user = request.current_user
    driver = _get_driver(driver_id)

    existing = DriverOnboarding.query.filter_by(company_id=user['company_id'], driver_id=driver.id).first()
    if existing is not None:
        return success(existing.to_dict())

    now = utcnow()
    onboarding = DriverOnboarding(
        company_id=user['company_id'],
        driver_id=driver.id,
        status='in_progress',
        current_step=1,
        total_steps=ONBOARDING_TOTAL_STEPS,
        completion_percentage=0,
        documents_required=list(REQUIRED_ONBOARDING_DOCUMENTS),
        documents_completed=[],
        documents_missing=list(REQUIRED_ONBOARDING_DOCUMENTS),
        assigned_to_user_id=user['user_id'],
        assigned_at=now,
        started_at=now
    )
    db.session.add(onboarding)
    db.session.commit()
    current_app.logger.info(f"Started onboarding for driver {driver.id}")
    return success(onboarding.to_dict(), 201)

@bp.route('/<driver_id>/onboarding', methods=['GET'])
@require_company
def get_onboarding(driver_id):
    onboarding = DriverOnboarding.query.filter_by(
        driver_id=to_uuid(driver_id, 'driver_id'), company_id=request.current_user['company_id']
    ).first()
    return success(onboarding.to_dict() if onboarding else None)

@bp.route('/<driver_id>/onboarding/step', methods=['PUT'])
@require_company
def update_onboarding_step(driver_id):
    onboarding = _get_onboarding(driver_id)
    step = (request.get_json() or {}).get('step')
    if not isinstance(step, int) or not 1 <= step <= onboarding.total_steps:
        raise ApiError(f'step must be between 1 and {onboarding.total_steps}')

    onboarding.current_step = step
    onboarding.completion_percentage = round(step / onboarding.total_steps * 100)
    db.session.commit()
    return success(onboarding.to_dict())

@bp.route('/<driver_id>/onboarding/documents', methods=['POST'])
@require_company
def mark_document_uploaded(driver_id):
    """
    Record an uploaded onboarding document
    ---
    tags:
      - Drivers
    parameters:
      - in: path
        name: driver_id
        required: true
        schema:
          type: string
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - document_type
              - document_id
            properties:
              document_type:
                type: string
                enum: [license, medical_card, insurance, w9, i9]
              document_id:
                type: string
    responses:
      200:
        description: Updated onboarding record
      404:
        description: Onboarding record not found
    """
    onboarding = _get_onboarding(driver_id)
    data = request.get_json() or {}
    document_type = data.get('document_type')
    document_id = data.get('document_id')
    if not document_type or not document_id:
        raise ApiError('document_type and document_id are required')

    completed = list(onboarding.documents_completed or []) + [str(document_id)]
    missing = [doc for doc in (onboarding.documents_missing or []) if doc != document_type]
    onboarding.documents_completed = completed
    onboarding.documents_missing = missing
    if document_type in DOCUMENT_FLAGS:
        setattr(onboarding, DOCUMENT_FLAGS[document_type], True)

    required = len(onboarding.documents_required or REQUIRED_ONBOARDING_DOCUMENTS)
    doc_completion = round(len(completed) / required * 100) if required else 0
    step_completion = onboarding.current_step / onboarding.total_steps * 50
    onboarding.completion_percentage = min(100, round(step_completion + doc_completion / 100 * 50))
    db.session.commit()
    return success(onboarding.to_dict())

@bp.route('/<driver_id>/onboarding/complete', methods=['POST'])
@require_company
def complete_onboarding(driver_id):
    onboarding = _get_onboarding(driver_id)
    if onboarding.documents_missing:
        raise ApiError('Not all required documents have been uploaded')

    onboarding.status = 'completed'
    onboarding.current_step = onboarding.total_steps
    onboarding.completion_percentage = 100
    onboarding.completed_at = utcnow()
    if onboarding.driver is not None:
        onboarding.driver.status = 'active'
    db.session.commit()
    current_app.logger.info(f"Completed onboarding for driver {onboarding.driver_id}")
    return success(onboarding.to_dict())

# ---------------------------------------------------------------------------
# Pay rules
# ---------------------------------------------------------------------------

@bp.route('/pay-rules', methods=['POST'])
@require_role(*MANAGER_ROLES, message='Only managers can manage pay rules')
def upsert_pay_rule():
    """
    Create a pay rule, or a new version of an existing one
    ---
    tags:
      - Pay Rules
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - driver_id
              - pay_type
              - effective_from
            properties:
              id:
                type: string
                description: Rule being edited; it is deactivated
              driver_id:
                type: string
              pay_type:
                type: string
                enum: [per_mile, percentage, flat, hybrid]
              base_rate_per_mile:
                type: number
              base_percentage:
                type: number
              base_flat_rate:
                type: number
              bonuses:
                type: array
                items:
                  type: object
              minimum_pay_guarantee:
                type: number
              effective_from:
                type: string
                format: date
              effective_to:
                type: string
                format: date
              is_active:
                type: boolean
    responses:
      201:
        description: Rule saved
      400:
        description: Validation error
      403:
        description: Not a manager
    """
    data = request.get_json() or {}
    if data.get('driver_id'):
        _get_driver(data['driver_id'])
    rule = pay_rules.upsert_pay_rule(request.current_user['company_id'], data)
    return success(rule.to_dict(), 201)

@bp.route('/<driver_id>/pay-rules', methods=['GET'])
@require_company
def get_driver_pay_rules(driver_id):
    rules = DriverPayRule.query.filter_by(
        company_id=request.current_user['company_id'], driver_id=to_uuid(driver_id, 'driver_id')
    ).order_by(DriverPayRule.effective_from.desc()).all()
    return success([rule.to_dict() for rule in rules])

@bp.route('/<driver_id>/pay-rules/active', methods=['GET'])
@require_company
def get_active_pay_rule(driver_id):
    try:
        on_date = parse_date(request.args.get('date'))
    except ValueError:
        raise ApiError('Invalid date')
    rule = pay_rules.get_active_pay_rule(
        request.current_user['company_id'], to_uuid(driver_id, 'driver_id'), on_date
    )
    return success(rule.to_dict() if rule else None)

@bp.route('/pay-rules/<rule_id>', methods=['DELETE'])
@require_role(*MANAGER_ROLES, message='Only managers can manage pay rules')
def delete_pay_rule(rule_id):
    rule = DriverPayRule.query.filter_by(
        id=to_uuid(rule_id, 'rule_id'), company_id=request.current_user['company_id']
    ).first()
    if rule is None:
        raise NotFoundError('Pay rule not found')
    db.session.delete(rule)
    db.session.commit()
    return success({'deleted': True})

@bp.route('/<driver_id>/gross-pay', methods=['POST'])
@require_company
def calculate_gross_pay(driver_id):
    """
    Gross pay for a driver under the rule active at period_start
    ---
    tags:
      - Pay Rules
    parameters:
      - in: path
        name: driver_id
        required: true
        schema:
          type: string
    security:
      - Bearer: []
    requestBody:
      content:
        application/json:
          schema:
            type: object
            properties:
              loads:
                type: array
                description: Loads with value, miles, load_type, on_time_delivery. Defaults to the driver's delivered loads in the period
                items:
                  type: object
              total_miles:
                type: number
              period_start:
                type: string
                format: date
              period_end:
                type: string
                format: date
    responses:
      200:
        description: gross_pay, calculation_details and pay_rule
      404:
        description: No active pay rule found
    """
    company_id = request.current_user['company_id']
    driver = _get_driver(driver_id)
    data = request.get_json() or {}
    try:
        period_start = parse_date(data.get('period_start'))
        period_end = parse_date(data.get('period_end'))
    except ValueError:
        raise ApiError('Invalid period dates')

    loads = data.get('loads')
    if loads is None:
        query = Load.query.filter_by(company_id=company_id, driver_id=driver.id, status='delivered')
        if period_start:
            query = query.filter(Load.delivery_date >= period_start)
        if period_end:
            query = query.filter(Load.delivery_date <= period_end)
        loads = [load.to_dict() for load in query.all()]

    result = pay_rules.calculate_gross_pay_for_driver(
        company_id, driver.id, loads, data.get('total_miles'), period_start
    )
    return success(result)

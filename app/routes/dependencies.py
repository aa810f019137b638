"""
Dependency checker used before deleting a record.

Lists the rows that still reference a driver, truck, load, route, customer or
vendor so the dashboard can warn before the delete goes through. All lookups
are scoped to the caller's company.
"""
from flask import Blueprint, request, jsonify
from app import db
from app.models.fleet import Driver, Truck, Load, Route, RouteStop, Customer, Vendor, Expense, MaintenanceRecord
from app.models.invoice import Invoice
from app.utils.auth import get_current_user
from app.utils.errors import ApiError
from app.utils.helpers import to_uuid

bp = Blueprint('dependencies', __name__)

ACTIVE_LOAD_STATUSES = ('scheduled', 'in_transit', 'assigned')

def _load_entry(load, kind):
    return {
        'type': kind,
        'id': str(load.id),
        'name': f'Load #{load.shipment_number} ({load.status})',
        'link': f'/dashboard/loads/{load.id}'
    }

def _invoice_entry(invoice):
    return {
        'type': 'invoice',
        'id': str(invoice.id),
        'name': f'Invoice {invoice.invoice_number} ({invoice.status})',
        'link': f'/dashboard/accounting/invoices/{invoice.id}'
    }

def _driver_dependencies(company_id, driver_id):
    deps = []
    loads = Load.query.filter(
        Load.company_id == company_id,
        Load.driver_id == driver_id,
        Load.status.in_(ACTIVE_LOAD_STATUSES)
    ).all()
    deps.extend(_load_entry(load, 'active_load') for load in loads)

    for truck in Truck.query.filter_by(company_id=company_id, current_driver_id=driver_id).all():
        deps.append({
            'type': 'assigned_truck',
            'id': str(truck.id),
            'name': f'Truck {truck.truck_number}',
            'link': f'/dashboard/trucks/{truck.id}'
        })
    return deps

def _truck_dependencies(company_id, truck_id):
    deps = []
    loads = Load.query.filter(
        Load.company_id == company_id,
        Load.truck_id == truck_id,
        Load.status.in_(ACTIVE_LOAD_STATUSES)
    ).all()
    deps.extend(_load_entry(load, 'active_load') for load in loads)

    truck = Truck.query.filter_by(id=truck_id, company_id=company_id).first()
    if truck is not None and truck.current_driver_id:
        driver = db.session.get(Driver, truck.current_driver_id)
        if driver is not None:
            deps.append({
                'type': 'assigned_driver',
                'id': str(driver.id),
                'name': f'Driver: {driver.name}',
                'link': f'/dashboard/drivers/{driver.id}'
            })
    return deps

def _load_dependencies(company_id, load_id):
    load = Load.query.filter_by(id=load_id, company_id=company_id).first()
    if load is None:
        return []

    deps = []
    if load.status in ACTIVE_LOAD_STATUSES:
        deps.append({'type': 'active_status', 'id': str(load.id), 'name': f'Load is currently {load.status}'})

    for invoice in Invoice.query.filter_by(company_id=company_id, load_id=load.id).all():
        deps.append(_invoice_entry(invoice))

    if load.driver_id:
        driver = db.session.get(Driver, load.driver_id)
        if driver is not None:
            deps.append({
                'type': 'assigned_driver',
                'id': str(driver.id),
                'name': f'Assigned to: {driver.name}',
                'link': f'/dashboard/drivers/{driver.id}'
            })
    if load.truck_id:
        truck = db.session.get(Truck, load.truck_id)
        if truck is not None:
            deps.append({
                'type': 'assigned_truck',
                'id': str(truck.id),
                'name': f'Assigned to: Truck {truck.truck_number}',
                'link': f'/dashboard/trucks/{truck.id}'
            })
    return deps

def _route_dependencies(company_id, route_id):
    deps = [
        _load_entry(load, 'assigned_load')
        for load in Load.query.filter_by(company_id=company_id, route_id=route_id).all()
    ]
    route = Route.query.filter_by(id=route_id, company_id=company_id).first()
    if route is not None:
        stops = RouteStop.query.filter_by(route_id=route.id).count()
        if stops:
            deps.append({
                'type': 'route_stops',
                'id': str(route.id),
                'name': f'{stops} stop(s) associated with this route'
            })
    return deps

def _customer_dependencies(company_id, customer_id):
    customer = Customer.query.filter_by(id=customer_id, company_id=company_id).first()
    if customer is None:
        return []

    loads = Load.query.filter(
        Load.company_id == company_id,
        db.or_(Load.customer_id == customer.id, Load.company_name == customer.name)
    ).all()
    invoices = Invoice.query.filter(
        Invoice.company_id == company_id,
        db.or_(Invoice.customer_id == customer.id, Invoice.customer_name == customer.name)
    ).all()
    return [_load_entry(load, 'load') for load in loads] + [_invoice_entry(inv) for inv in invoices]

def _vendor_dependencies(company_id, vendor_id):
    vendor = Vendor.query.filter_by(id=vendor_id, company_id=company_id).first()
    if vendor is None:
        return []

    deps = []
    expenses = Expense.query.filter(
        Expense.company_id == company_id,
        db.or_(Expense.vendor_id == vendor.id, Expense.vendor == vendor.name)
    ).all()
    for expense in expenses:
        deps.append({
            'type': 'expense',
            'id': str(expense.id),
            'name': f'Expense: {expense.description or "N/A"} ({expense.date or "N/A"})',
            'link': f'/dashboard/accounting/expenses/{expense.id}'
        })

    records = MaintenanceRecord.query.filter(
        MaintenanceRecord.company_id == company_id,
        db.or_(MaintenanceRecord.vendor_id == vendor.id, MaintenanceRecord.vendor == vendor.name)
    ).all()
    for record in records:
        deps.append({
            'type': 'maintenance',
            'id': str(record.id),
            'name': f'Maintenance: {record.service_type or "N/A"} ({record.scheduled_date or "N/A"})',
            'link': f'/dashboard/maintenance/{record.id}'
        })
    return deps

CHECKERS = {
    'driver': _driver_dependencies,
    'truck': _truck_dependencies,
    'load': _load_dependencies,
    'route': _route_dependencies,
    'customer': _customer_dependencies,
    'vendor': _vendor_dependencies,
}

@bp.route('', methods=['GET'])
def check_dependencies():
    """
    Records that depend on a resource
    ---
    tags:
      - Dependencies
    parameters:
      - in: query
        name: resource_type
        required: true
        schema:
          type: string
          enum: [driver, truck, load, route, customer, vendor]
      - in: query
        name: resource_id
        required: true
        schema:
          type: string
    security:
      - Bearer: []
    responses:
      200:
        description: List of dependencies
        content:
          application/json:
            schema:
              type: object
              properties:
                dependencies:
                  type: array
                  items:
                    type: object
                    properties:
                      type:
                        type: string
                      id:
                        type: string
                      name:
                        type: string
                      link:
                        type: string
      400:
        description: Missing parameters
      401:
        description: Not authenticated
    """
    resource_type = request.args.get('resource_type')
    resource_id = request.args.get('resource_id')
    if not resource_type or not resource_id:
        return jsonify({'error': 'Missing parameters'}), 400

    user = get_current_user()
    if not user:
        return jsonify({'error': 'Not authenticated'}), 401

    company_id = user.get('company_id')
    checker = CHECKERS.get(resource_type)
    if checker is None or company_id is None:
        return jsonify({'dependencies': []}), 200

    try:
        resource_uuid = to_uuid(resource_id, 'resource_id')
    except ApiError as e:
        return jsonify({'error': e.message}), 400
    dependencies = checker(company_id, resource_uuid)
    return jsonify({'dependencies': dependencies}), 200

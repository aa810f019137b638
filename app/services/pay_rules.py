"""Driver pay rules: activation and gross pay calculation"""
import logging
from datetime import date

from app import db
from app.models.settlement import DriverPayRule, PAY_TYPES
from app.utils.errors import ApiError
from app.utils.helpers import parse_date, to_float, to_uuid

logger = logging.getLogger(__name__)

def upsert_pay_rule(company_id, data):
    """
    Save a new version of a driver's pay rule.

    Editing a rule (data['id'] set) deactivates the old row and inserts a new
    one; an active rule also deactivates every other active rule of the driver.
    """
    driver_id = to_uuid(data.get('driver_id'), 'driver_id')
    if not driver_id:
        raise ApiError('driver_id is required')
    if data.get('pay_type') not in PAY_TYPES:
        raise ApiError(f'pay_type must be one of: {", ".join(PAY_TYPES)}')
    if not data.get('effective_from'):
        raise ApiError('effective_from is required')

    try:
        effective_from = parse_date(data['effective_from'])
        effective_to = parse_date(data.get('effective_to'))
    except ValueError:
        raise ApiError('Invalid effective date')

    is_active = data.get('is_active', True)

    if data.get('id'):
        DriverPayRule.query.filter_by(id=to_uuid(data['id']), company_id=company_id).update(
            {'is_active': False}, synchronize_session=False
        )

    if is_active:
        DriverPayRule.query.filter_by(
            company_id=company_id, driver_id=driver_id, is_active=True
        ).update({'is_active': False}, synchronize_session=False)

    rule = DriverPayRule(
        company_id=company_id,
        driver_id=driver_id,
        pay_type=data['pay_type'],
        base_rate_per_mile=data.get('base_rate_per_mile'),
        base_percentage=data.get('base_percentage'),
        base_flat_rate=data.get('base_flat_rate'),
        bonuses=data.get('bonuses') or [],
        deductions=data.get('deductions') or [],
        minimum_pay_guarantee=data.get('minimum_pay_guarantee'),
        effective_from=effective_from,
        effective_to=effective_to,
        is_active=is_active,
        notes=data.get('notes')
    )
    db.session.add(rule)
    db.session.commit()
    logger.info(f"Pay rule {rule.id} saved for driver {driver_id} ({rule.pay_type})")
    return rule

def get_active_pay_rule(company_id, driver_id, on_date=None):
    """Active rule covering on_date (defaults to today), latest effective_from first"""
    on_date = parse_date(on_date) or date.today()
    return DriverPayRule.query.filter(
        DriverPayRule.company_id == company_id,
        DriverPayRule.driver_id == driver_id,
        DriverPayRule.is_active.is_(True),
        DriverPayRule.effective_from <= on_date,
        db.or_(DriverPayRule.effective_to.is_(None), DriverPayRule.effective_to >= on_date)
    ).order_by(DriverPayRule.effective_from.desc()).first()

def _total_miles(loads, total_miles):
    if total_miles:
        return to_float(total_miles)
    return sum(to_float(load.get('miles')) for load in loads)

def _total_value(loads):
    return sum(to_float(load.get('value')) for load in loads)

def calculate_gross_pay(rule, loads, total_miles=None):
    """
    Gross pay for a list of loads (dicts with value, miles, load_type,
    on_time_delivery) under the given rule.

    Returns (gross_pay, calculation_details).
    """
    gross_pay = 0.0
    details = {
        'base_pay': 0,
        'bonuses': [],
        'bonus_total': 0,
        'deductions': [],
        'deduction_total': 0,
        'minimum_guarantee_applied': False,
    }

    rate_per_mile = to_float(rule.base_rate_per_mile)
    percentage = to_float(rule.base_percentage)
    flat_rate = to_float(rule.base_flat_rate)

    if rule.pay_type == 'per_mile' and rate_per_mile:
        miles = _total_miles(loads, total_miles)
        gross_pay = miles * rate_per_mile
        details['base_pay'] = gross_pay
        details['miles_used'] = miles
        details['rate_per_mile'] = rate_per_mile
    elif rule.pay_type == 'percentage' and percentage:
        total_value = _total_value(loads)
        gross_pay = total_value * (percentage / 100)
        details['base_pay'] = gross_pay
        details['total_load_value'] = total_value
        details['percentage'] = percentage
    elif rule.pay_type == 'flat' and flat_rate:
        gross_pay = len(loads) * flat_rate
        details['base_pay'] = gross_pay
        details['loads_count'] = len(loads)
        details['flat_rate'] = flat_rate
    elif rule.pay_type == 'hybrid':
        if rate_per_mile:
            mileage_pay = _total_miles(loads, total_miles) * rate_per_mile
            gross_pay += mileage_pay
            details['mileage_pay'] = mileage_pay
        if percentage:
            percentage_pay = _total_value(loads) * (percentage / 100)
            gross_pay += percentage_pay
            details['percentage_pay'] = percentage_pay
        details['base_pay'] = gross_pay

    for bonus in rule.bonuses or []:
        bonus_type = bonus.get('type')
        amount = to_float(bonus.get('amount'))
        bonus_amount = 0.0

        if bonus_type == 'hazmat':
            hazmat_loads = [load for load in loads if load.get('load_type') == 'hazmat']
            bonus_amount = len(hazmat_loads) * amount
        elif bonus_type == 'on_time':
            on_time_loads = [load for load in loads if load.get('on_time_delivery') is True]
            bonus_amount = len(on_time_loads) * amount
        elif bonus_type == 'mileage_threshold' and bonus.get('threshold'):
            if _total_miles(loads, total_miles) >= to_float(bonus['threshold']):
                bonus_amount = amount
        elif bonus_type == 'custom':
            bonus_amount = amount

        if bonus_amount > 0:
            gross_pay += bonus_amount
            details['bonuses'].append({
                'type': bonus_type,
                'description': bonus.get('description'),
                'amount': bonus_amount
            })
            details['bonus_total'] += bonus_amount

    minimum = to_float(rule.minimum_pay_guarantee)
    if minimum and gross_pay < minimum:
        gross_pay = minimum
        details['minimum_guarantee_applied'] = True
        details['minimum_guarantee_amount'] = minimum

    return gross_pay, details

def calculate_gross_pay_for_driver(company_id, driver_id, loads, total_miles=None, period_start=None):
    rule = get_active_pay_rule(company_id, driver_id, period_start)
    if rule is None:
        raise ApiError('No active pay rule found', 404)

    gross_pay, details = calculate_gross_pay(rule, loads, total_miles)
    return {
        'gross_pay': gross_pay,
        'calculation_details': details,
        'pay_rule': rule.to_dict()
    }

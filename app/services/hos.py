"""Hours-of-service calculations from ELD duty logs"""
from datetime import date, timedelta

from app.models.eld import EldLog
from app.models.fleet import Driver, Truck
from app.utils.helpers import as_utc, parse_date, utcnow

# FMCSA property-carrying limits
MAX_DRIVING_HOURS = 11
MAX_ON_DUTY_HOURS = 14
MIN_BREAK_HOURS = 0.5
BREAK_AFTER_DRIVING_HOURS = 8
MAX_ON_DUTY_8_DAYS = 70

def _segment_minutes(log):
    if log.duration_minutes:
        return log.duration_minutes
    if log.start_time and log.end_time:
        return int((as_utc(log.end_time) - as_utc(log.start_time)).total_seconds() // 60)
    return 0

def summarize_logs(logs):
    """Daily HOS summary for a list of EldLog rows"""
    driving_minutes = 0
    on_duty_minutes = 0
    off_duty_minutes = 0

    for log in logs:
        duration = log.duration_minutes or 0
        if log.log_type == 'driving':
            driving_minutes += duration
            on_duty_minutes += duration
        elif log.log_type == 'on_duty':
            on_duty_minutes += duration
        elif log.log_type in ('off_duty', 'sleeper_berth'):
            off_duty_minutes += duration

    driving_hours = driving_minutes / 60
    on_duty_hours = on_duty_minutes / 60
    off_duty_hours = off_duty_minutes / 60

    remaining_driving = max(0, MAX_DRIVING_HOURS - driving_hours)
    remaining_on_duty = max(0, MAX_ON_DUTY_HOURS - on_duty_hours)
    needs_break = driving_hours >= BREAK_AFTER_DRIVING_HOURS and off_duty_hours < MIN_BREAK_HOURS

    violations = []
    if driving_hours > MAX_DRIVING_HOURS:
        violations.append(f'Exceeded {MAX_DRIVING_HOURS}-hour driving limit')
    if on_duty_hours > MAX_ON_DUTY_HOURS:
        violations.append(f'Exceeded {MAX_ON_DUTY_HOURS}-hour on-duty limit')
    if needs_break:
        violations.append('Break required: 30 minutes off-duty needed after 8 hours driving')

    return {
        'driving_hours': round(driving_hours, 2),
        'on_duty_hours': round(on_duty_hours, 2),
        'off_duty_hours': round(off_duty_hours, 2),
        'remaining_driving': round(remaining_driving, 2),
        'remaining_on_duty': round(remaining_on_duty, 2),
        'needs_break': needs_break,
        'violations': violations,
        'can_drive': remaining_driving > 0 and remaining_on_duty > 0 and not needs_break
    }

def calculate_remaining_hos(driver_id, on_date=None, company_id=None):
    target_date = parse_date(on_date) or date.today()
    query = EldLog.query.filter_by(driver_id=driver_id, log_date=target_date)
    if company_id:
        query = query.filter_by(company_id=company_id)
    return summarize_logs(query.order_by(EldLog.start_time.asc()).all())

def current_duty_status(driver_id):
    latest = EldLog.query.filter_by(driver_id=driver_id).order_by(EldLog.start_time.desc()).first()
    if latest is not None and latest.end_time is None:
        return latest.log_type
    return 'off_duty'

def weekly_on_duty_hours(driver_id, now=None):
    since = (now or utcnow()) - timedelta(days=8)
    logs = EldLog.query.filter(
        EldLog.driver_id == driver_id,
        EldLog.start_time >= since,
        EldLog.log_type.in_(('driving', 'on_duty'))
    ).all()
    return sum(_segment_minutes(log) for log in logs) / 60

def get_all_drivers_hos_status(company_id):
    """HOS snapshot for every active driver of the company"""
    drivers = Driver.query.filter_by(company_id=company_id, status='active').all()
    if not drivers:
        return []

    truck_ids = [d.truck_id for d in drivers if d.truck_id]
    truck_numbers = {}
    if truck_ids:
        truck_numbers = {
            t.id: t.truck_number for t in Truck.query.filter(Truck.id.in_(truck_ids)).all()
        }

    statuses = []
    for driver in drivers:
        hos = calculate_remaining_hos(driver.id, company_id=company_id)
        weekly = weekly_on_duty_hours(driver.id)

        statuses.append({
            'driver_id': str(driver.id),
            'driver_name': driver.name,
            'truck_id': str(driver.truck_id) if driver.truck_id else None,
            'truck_number': truck_numbers.get(driver.truck_id) if driver.truck_id else None,
            'current_status': current_duty_status(driver.id),
            'remaining_drive_hours': hos['remaining_driving'],
            'remaining_on_duty_hours': hos['remaining_on_duty'],
            'weekly_on_duty_hours': round(weekly, 2),
            'remaining_weekly_hours': round(max(0, MAX_ON_DUTY_8_DAYS - weekly), 2),
            'needs_break': hos['needs_break'],
            'violations': hos['violations'],
            'can_drive': hos['can_drive'],
            'last_update': utcnow().isoformat()
        })

    return statuses

"""Scan active drivers' hours of service and warn before they run out"""
import logging

from app import db
from app.models.eld import EldEvent
from app.models.fleet import Driver
from app.models.user import User
from app.services import hos
from app.services.messaging import send_sms, sms_configured
from app.utils.auth import MANAGER_ROLES
from app.utils.errors import SmsError

logger = logging.getLogger(__name__)

DRIVING_WARNING_HOURS = 2
ON_DUTY_WARNING_HOURS = 1

TITLES = {
    'approaching_limit': 'Approaching HOS Limit',
    'break_required': 'Break Required',
    'limit_reached': 'HOS Limit Reached',
}

def build_alerts(driver, status):
    """HOS alert dicts for one driver given a summarize_logs() result"""
    remaining_driving = status['remaining_driving']
    remaining_on_duty = status['remaining_on_duty']
    alerts = []

    if 0 < remaining_driving < DRIVING_WARNING_HOURS:
        alerts.append({
            'type': 'approaching_limit',
            'hours_remaining': remaining_driving,
            'message': f'{driver.name} has {remaining_driving:.1f} hours of driving time remaining. Plan break soon.'
        })
    if status['needs_break']:
        alerts.append({
            'type': 'break_required',
            'message': f'{driver.name} needs a 30-minute break (has driven 8+ hours).'
        })
    if remaining_driving <= 0:
        alerts.append({
            'type': 'limit_reached',
            'message': f'{driver.name} has reached the 11-hour driving limit. Must take 10-hour break.'
        })
    if 0 < remaining_on_duty < ON_DUTY_WARNING_HOURS:
        alerts.append({
            'type': 'approaching_limit',
            'hours_remaining': remaining_on_duty,
            'message': f'{driver.name} has {remaining_on_duty:.1f} hours of on-duty time remaining.'
        })
    return alerts

def _store(driver, alert):
    db.session.add(EldEvent(
        company_id=driver.company_id,
        driver_id=driver.id,
        truck_id=driver.truck_id,
        event_type='hos_alert',
        severity='critical' if alert['type'] == 'limit_reached' else 'warning',
        title=TITLES[alert['type']],
        description=alert['message'],
        resolved=False,
        event_metadata={'alert_type': alert['type'], 'hours_remaining': alert.get('hours_remaining')}
    ))

def _manager_phones(company_id):
    managers = User.query.filter(
        User.company_id == company_id,
        User.role.in_(MANAGER_ROLES),
        User.phone_number.isnot(None)
    ).all()
    return [manager.phone_number for manager in managers]

def _notify(driver, alert):
    sent = 0
    recipients = []
    if driver.phone:
        recipients.append((driver.phone, f"[TruckMates] {alert['message']}"))
    recipients.extend((phone, f"[TruckMates Alert] {alert['message']}") for phone in _manager_phones(driver.company_id))

    for phone, body in recipients:
        try:
            send_sms(phone, body)
            sent += 1
        except SmsError as e:
            logger.error(f"HOS alert SMS to {phone} failed: {e.message}")
    return sent

def run():
    drivers = Driver.query.filter_by(status='active').all()
    alerts_created = 0
    sms_sent = 0
    can_text = sms_configured()

    for driver in drivers:
        status = hos.calculate_remaining_hos(driver.id, company_id=driver.company_id)
        for alert in build_alerts(driver, status):
            _store(driver, alert)
            alerts_created += 1
            if can_text:
                sms_sent += _notify(driver, alert)
    db.session.commit()

    logger.info(f"Checked {len(drivers)} drivers, created {alerts_created} HOS alerts, sent {sms_sent} SMS")
    return {'drivers_checked': len(drivers), 'alerts_created': alerts_created, 'sms_sent': sms_sent}

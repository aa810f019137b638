from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import Mock, patch

from app import db
from app.jobs import crm_document_alerts, daily_reminders, eld_fault_analysis, hos_exception_alerts
from app.jobs.cli import jobs_cli
from app.models.crm import CrmDocument
from app.models.eld import EldEvent, EldLog
from app.models.notification import Alert
from app.utils.errors import RpcError

RPC_DOWN = RpcError('get_expiring_crm_documents', 'function does not exist')


def _status(driving, on_duty, needs_break=False):
    return {'remaining_driving': driving, 'remaining_on_duty': on_duty, 'needs_break': needs_break}


def _document(seed, days, **fields):
    document = CrmDocument(company_id=seed.company.id, customer_id=seed.customer.id, document_type='coi',
                           name=f'COI {days}d', storage_key=f'crm/{days}', storage_url='https://files.example.com/x',
                           expiration_date=date.today() + timedelta(days=days), **fields)
    db.session.add(document)
    db.session.commit()
    return document


# HOS exception alerts

def test_build_alerts_thresholds():
    driver = SimpleNamespace(name='Dana')
    assert hos_exception_alerts.build_alerts(driver, _status(5, 6)) == []

    alerts = hos_exception_alerts.build_alerts(driver, _status(1.5, 0.5))
    assert [alert['type'] for alert in alerts] == ['approaching_limit', 'approaching_limit']
    assert alerts[0]['message'] == 'Dana has 1.5 hours of driving time remaining. Plan break soon.'

    alerts = hos_exception_alerts.build_alerts(driver, _status(0, 2, needs_break=True))
    assert [alert['type'] for alert in alerts] == ['break_required', 'limit_reached']


def _drive_today(seed, minutes):
    start = datetime.now(timezone.utc) - timedelta(minutes=minutes)
    db.session.add(EldLog(company_id=seed.company.id, driver_id=seed.driver.id, log_date=date.today(),
                          log_type='driving', start_time=start, duration_minutes=minutes))
    db.session.commit()


def test_hos_run_stores_events_without_sms(app, seed):
    _drive_today(seed, 630)
    summary = hos_exception_alerts.run()

    assert summary == {'drivers_checked': 2, 'alerts_created': 2, 'sms_sent': 0}
    events = EldEvent.query.filter_by(driver_id=seed.driver.id, event_type='hos_alert').all()
    assert sorted(event.title for event in events) == ['Approaching HOS Limit', 'Break Required']
    assert {event.severity for event in events} == {'warning'}


def test_hos_run_texts_driver_and_managers(app, seed):
    app.config.update(TWILIO_ACCOUNT_SID='AC1', TWILIO_AUTH_TOKEN='token', TWILIO_PHONE_NUMBER='+15550009999')
    _drive_today(seed, 11 * 60)

    with patch('requests.post', return_value=Mock(ok=True, **{'json.return_value': {'sid': 'SM1'}})) as post:
        summary = hos_exception_alerts.run()

    # limit_reached and break_required, each to the driver and the one manager with a phone
    assert summary['alerts_created'] == 2
    assert summary['sms_sent'] == 4
    bodies = [call.kwargs['data']['Body'] for call in post.call_args_list]
    assert any(body.startswith('[TruckMates] ') for body in bodies)
    assert any(body.startswith('[TruckMates Alert] ') for body in bodies)
    critical = EldEvent.query.filter_by(driver_id=seed.driver.id, severity='critical').one()
    assert critical.title == 'HOS Limit Reached'


# CRM document alerts

def test_document_alerts_created_once(app, seed):
    soon = _document(seed, 5)
    _document(seed, 20)
    _document(seed, 60)

    with patch('app.utils.rpc.call_rpc', side_effect=RPC_DOWN):
        summary = crm_document_alerts.run()
        again = crm_document_alerts.run()

    assert summary == {'documents': 2, 'alerts_created': 2, 'emails_sent': 0}
    assert again['alerts_created'] == 0

    alerts = Alert.query.filter_by(company_id=seed.company.id, event_type='document_expiration').all()
    by_document = {alert.alert_metadata['document_id']: alert for alert in alerts}
    assert by_document[str(soon.id)].priority == 'high'
    assert by_document[str(soon.id)].title == 'Certificate of Insurance expiring: COI 5d'
    assert db.session.get(CrmDocument, soon.id).expiration_alert_sent is True


def test_document_alerts_email_managers(app, seed):
    app.config['RESEND_API_KEY'] = 're_test'
    _document(seed, 10)

    with patch('app.utils.rpc.call_rpc', side_effect=RPC_DOWN), \
            patch('app.jobs.crm_document_alerts.send_email') as send:
        summary = crm_document_alerts.run()

    assert summary['emails_sent'] == 2
    recipients, subject, html = send.call_args.args
    assert sorted(recipients) == ['manager@example.com', 'owner@example.com']
    assert subject == '1 document(s) expiring soon'
    assert 'Big Box Retail' in html


# ELD fault analysis

def test_fault_analysis_counts(app, seed):
    db.session.add_all([
        EldEvent(company_id=seed.company.id, event_type='fault_code', fault_code='P0420'),
        EldEvent(company_id=seed.company.id, event_type='fault_code', fault_code='P0300'),
        EldEvent(company_id=seed.company.id, event_type='fault_code', fault_code='P0171'),
        EldEvent(company_id=seed.company.id, event_type='hos_alert'),
        EldEvent(company_id=seed.company.id, event_type='fault_code', fault_code='P0128', maintenance_created=True),
    ])
    db.session.commit()

    results = iter(['9d0f3f9e-1d1c-4d76-9a7c-9b6f5d2c8a10', None, RpcError('analyze', 'boom')])

    def fake_scalar(name, **params):
        result = next(results)
        if isinstance(result, Exception):
            raise result
        return result

    with patch('app.utils.rpc.call_rpc_scalar', side_effect=fake_scalar) as call:
        summary = eld_fault_analysis.run()

    assert summary == {'processed': 3, 'created': 1, 'skipped': 2,
                       'message': 'Processed 3 events, created 1 maintenance records'}
    assert call.call_args.args[0] == 'analyze_fault_code_and_create_maintenance'


# Daily reminders

def test_daily_reminders_survive_missing_function(app, seed):
    _document(seed, 3)
    with patch('app.utils.rpc.call_rpc', side_effect=RpcError('auto_create_maintenance_reminders_from_schedule', 'x')):
        summary = daily_reminders.run()
    assert summary['reminders_created'] == 0
    assert summary['expiring_documents'] == 1


def test_cli_prints_summary(app, seed):
    with patch('app.utils.rpc.call_rpc_scalar', return_value=4):
        result = app.test_cli_runner().invoke(jobs_cli, ['daily-reminders'])
    assert result.exit_code == 0
    assert '"reminders_created": 4' in result.output

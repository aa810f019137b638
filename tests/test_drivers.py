from datetime import date
from types import SimpleNamespace

import pytest

from app import db
from app.models.fleet import Driver, Load
from app.models.settlement import DriverPayRule
from app.services.pay_rules import calculate_gross_pay
from tests.conftest import auth_headers


def _rule(**fields):
    defaults = dict(pay_type='per_mile', base_rate_per_mile=None, base_percentage=None, base_flat_rate=None,
                    bonuses=[], minimum_pay_guarantee=None)
    return SimpleNamespace(**{**defaults, **fields})


# Onboarding

def test_initialize_onboarding_twice_returns_existing(client, seed):
    headers = auth_headers(seed.manager)
    first = client.post(f'/api/drivers/{seed.driver2.id}/onboarding', headers=headers)
    assert first.status_code == 201
    record = first.get_json()['data']
    assert record['status'] == 'in_progress'
    assert record['current_step'] == 1
    assert record['documents_missing'] == ['license', 'medical_card', 'insurance', 'w9', 'i9']

    second = client.post(f'/api/drivers/{seed.driver2.id}/onboarding', headers=headers)
    assert second.status_code == 200
    assert second.get_json()['data']['id'] == record['id']


def test_get_onboarding_without_record_is_null(client, seed):
    response = client.get(f'/api/drivers/{seed.driver2.id}/onboarding', headers=auth_headers(seed.manager))
    assert response.status_code == 200
    assert response.get_json()['data'] is None


def test_update_step_sets_completion(client, seed):
    headers = auth_headers(seed.manager)
    client.post(f'/api/drivers/{seed.driver2.id}/onboarding', headers=headers)
    response = client.put(f'/api/drivers/{seed.driver2.id}/onboarding/step', json={'step': 3}, headers=headers)
    assert response.get_json()['data']['completion_percentage'] == 60

    response = client.put(f'/api/drivers/{seed.driver2.id}/onboarding/step', json={'step': 9}, headers=headers)
    assert response.status_code == 400


def test_document_upload_updates_missing_and_flags(client, seed):
    headers = auth_headers(seed.manager)
    client.post(f'/api/drivers/{seed.driver2.id}/onboarding', headers=headers)
    response = client.post(f'/api/drivers/{seed.driver2.id}/onboarding/documents',
                           json={'document_type': 'license', 'document_id': 'doc-1'}, headers=headers)
    record = response.get_json()['data']
    assert 'license' not in record['documents_missing']
    assert record['documents_completed'] == ['doc-1']
    assert record['license_uploaded'] is True
    assert record['completion_percentage'] == 20


def test_complete_requires_all_documents_then_activates_driver(client, seed):
    headers = auth_headers(seed.manager)
    url = f'/api/drivers/{seed.driver2.id}/onboarding'
    client.post(url, headers=headers)

    response = client.post(f'{url}/complete', headers=headers)
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Not all required documents have been uploaded'

    for i, document_type in enumerate(['license', 'medical_card', 'insurance', 'w9', 'i9']):
        client.post(f'{url}/documents', json={'document_type': document_type, 'document_id': f'doc-{i}'},
                    headers=headers)

    response = client.post(f'{url}/complete', headers=headers)
    record = response.get_json()['data']
    assert record['status'] == 'completed'
    assert record['completion_percentage'] == 100
    assert db.session.get(Driver, seed.driver2.id).status == 'active'


def test_onboarding_for_other_companys_driver(client, seed):
    response = client.post(f'/api/drivers/{seed.other_driver.id}/onboarding', headers=auth_headers(seed.manager))
    assert response.status_code == 404


# Pay rules

def test_only_managers_save_pay_rules(client, seed):
    response = client.post('/api/drivers/pay-rules', json={
        'driver_id': str(seed.driver.id), 'pay_type': 'per_mile', 'effective_from': '2025-01-01'
    }, headers=auth_headers(seed.dispatcher))
    assert response.status_code == 403


def test_new_active_rule_deactivates_previous(client, seed):
    headers = auth_headers(seed.manager)
    first = client.post('/api/drivers/pay-rules', json={
        'driver_id': str(seed.driver.id), 'pay_type': 'per_mile', 'base_rate_per_mile': 0.55,
        'effective_from': '2025-01-01'
    }, headers=headers).get_json()['data']
    second = client.post('/api/drivers/pay-rules', json={
        'id': first['id'], 'driver_id': str(seed.driver.id), 'pay_type': 'per_mile', 'base_rate_per_mile': 0.60,
        'effective_from': '2025-02-01'
    }, headers=headers).get_json()['data']

    rules = client.get(f'/api/drivers/{seed.driver.id}/pay-rules', headers=headers).get_json()['data']
    assert [(r['id'], r['is_active']) for r in rules] == [(second['id'], True), (first['id'], False)]

    active = client.get(f'/api/drivers/{seed.driver.id}/pay-rules/active?date=2025-03-01',
                        headers=headers).get_json()['data']
    assert active['base_rate_per_mile'] == 0.6


def test_pay_rule_validation(client, seed):
    headers = auth_headers(seed.manager)
    response = client.post('/api/drivers/pay-rules', json={'pay_type': 'per_mile'}, headers=headers)
    assert response.get_json()['error'] == 'driver_id is required'
    response = client.post('/api/drivers/pay-rules', json={
        'driver_id': str(seed.driver.id), 'pay_type': 'hourly', 'effective_from': '2025-01-01'
    }, headers=headers)
    assert response.status_code == 400


def test_per_mile_pay_with_bonuses():
    rule = _rule(base_rate_per_mile=0.5, bonuses=[
        {'type': 'hazmat', 'amount': 50},
        {'type': 'on_time', 'amount': 25},
        {'type': 'mileage_threshold', 'amount': 100, 'threshold': 1000},
    ])
    loads = [
        {'miles': 600, 'value': 2000, 'load_type': 'hazmat', 'on_time_delivery': True},
        {'miles': 500, 'value': 1500, 'load_type': 'dry_van', 'on_time_delivery': False},
    ]
    gross, details = calculate_gross_pay(rule, loads)
    assert details['base_pay'] == 550
    assert details['bonus_total'] == 175
    assert gross == 725


def test_percentage_pay_uses_load_value():
    gross, details = calculate_gross_pay(_rule(pay_type='percentage', base_percentage=25), [{'value': 4000}])
    assert gross == 1000
    assert details['total_load_value'] == 4000


def test_total_miles_override_and_minimum_guarantee():
    rule = _rule(base_rate_per_mile=0.5, minimum_pay_guarantee=800)
    gross, details = calculate_gross_pay(rule, [{'miles': 100}], total_miles=1200)
    assert gross == 800
    assert details['miles_used'] == 1200
    assert details['minimum_guarantee_applied'] is True


def test_hybrid_pay():
    rule = _rule(pay_type='hybrid', base_rate_per_mile=0.4, base_percentage=10)
    gross, details = calculate_gross_pay(rule, [{'miles': 1000, 'value': 3000}])
    assert gross == pytest.approx(700)
    assert details['mileage_pay'] == pytest.approx(400)
    assert details['percentage_pay'] == pytest.approx(300)


def test_gross_pay_endpoint_uses_delivered_loads(client, seed):
    db.session.add(DriverPayRule(company_id=seed.company.id, driver_id=seed.driver.id, pay_type='flat',
                                 base_flat_rate=300, effective_from=date(2025, 1, 1), is_active=True))
    db.session.add_all([
        Load(company_id=seed.company.id, shipment_number='L-1', driver_id=seed.driver.id, status='delivered',
             delivery_date=date(2025, 3, 10)),
        Load(company_id=seed.company.id, shipment_number='L-2', driver_id=seed.driver.id, status='delivered',
             delivery_date=date(2025, 3, 20)),
        Load(company_id=seed.company.id, shipment_number='L-3', driver_id=seed.driver.id, status='in_transit'),
    ])
    db.session.commit()

    response = client.post(f'/api/drivers/{seed.driver.id}/gross-pay', json={
        'period_start': '2025-03-01', 'period_end': '2025-03-31'
    }, headers=auth_headers(seed.manager))
    data = response.get_json()['data']
    assert data['gross_pay'] == 600
    assert data['calculation_details']['loads_count'] == 2


def test_gross_pay_without_rule(client, seed):
    response = client.post(f'/api/drivers/{seed.driver.id}/gross-pay', json={'loads': []},
                           headers=auth_headers(seed.manager))
    assert response.status_code == 404
    assert response.get_json()['error'] == 'No active pay rule found'

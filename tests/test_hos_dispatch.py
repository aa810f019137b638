from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import Mock, patch

import requests

from app import db
from app.models.eld import EldLog
from app.models.fleet import Route
from app.services.hos import summarize_logs
from tests.conftest import auth_headers


def _log(log_type, minutes):
    return SimpleNamespace(log_type=log_type, duration_minutes=minutes)


def test_summary_for_a_fresh_day():
    summary = summarize_logs([])
    assert summary['remaining_driving'] == 11
    assert summary['remaining_on_duty'] == 14
    assert summary['can_drive'] is True
    assert summary['violations'] == []


def test_break_required_after_eight_hours_driving():
    summary = summarize_logs([_log('driving', 8 * 60), _log('on_duty', 30)])
    assert summary['driving_hours'] == 8
    assert summary['on_duty_hours'] == 8.5
    assert summary['needs_break'] is True
    assert summary['can_drive'] is False
    assert 'Break required' in summary['violations'][0]


def test_break_satisfied_by_off_duty_time():
    summary = summarize_logs([_log('driving', 8 * 60), _log('off_duty', 30)])
    assert summary['needs_break'] is False
    assert summary['remaining_driving'] == 3


def test_driving_limit_exceeded():
    summary = summarize_logs([_log('driving', 12 * 60), _log('sleeper_berth', 60)])
    assert summary['remaining_driving'] == 0
    assert summary['can_drive'] is False
    assert 'Exceeded 11-hour driving limit' in summary['violations']


def test_hos_endpoint_reads_eld_logs(client, seed):
    start = datetime(2025, 3, 3, 6, tzinfo=timezone.utc)
    db.session.add_all([
        EldLog(company_id=seed.company.id, driver_id=seed.driver.id, log_date=date(2025, 3, 3),
               log_type='driving', start_time=start, end_time=start + timedelta(hours=5), duration_minutes=300),
        EldLog(company_id=seed.company.id, driver_id=seed.driver.id, log_date=date(2025, 3, 3),
               log_type='on_duty', start_time=start + timedelta(hours=5), duration_minutes=60),
    ])
    db.session.commit()

    response = client.get(f'/api/eld/hos/{seed.driver.id}?date=2025-03-03', headers=auth_headers(seed.dispatcher))
    data = response.get_json()['data']
    assert data['remaining_driving'] == 6
    assert data['remaining_on_duty'] == 8


def test_hos_endpoint_for_other_companys_driver(client, seed):
    response = client.get(f'/api/eld/hos/{seed.other_driver.id}', headers=auth_headers(seed.dispatcher))
    assert response.status_code == 404


def test_hos_status_lists_active_drivers(client, seed):
    response = client.get('/api/dispatch/hos-status', headers=auth_headers(seed.dispatcher))
    statuses = response.get_json()['data']
    assert [s['driver_name'] for s in statuses] == ['Dana Driver']
    assert statuses[0]['truck_number'] == 'T-100'
    assert statuses[0]['current_status'] == 'off_duty'


def test_eta_calls_database_function(client, seed):
    route = Route(company_id=seed.company.id, name='DAL-OKC', distance='206 mi')
    db.session.add(route)
    db.session.commit()

    row = {'estimated_arrival': datetime(2025, 3, 3, 18, tzinfo=timezone.utc), 'requires_break': True}
    with patch('app.utils.rpc.call_rpc', return_value=[row]) as call:
        response = client.post('/api/dispatch/eta', json={
            'route_id': str(route.id), 'current_lat': 32.77, 'current_lng': -96.79, 'current_speed': 62
        }, headers=auth_headers(seed.dispatcher))

    assert response.status_code == 200
    assert response.get_json()['data'] == {'estimated_arrival': '2025-03-03T18:00:00+00:00', 'requires_break': True}
    assert call.call_args.kwargs['p_route_id'] == str(route.id)
    assert call.call_args.kwargs['p_driver_id'] is None


def test_eta_rejects_bad_coordinates(client, seed):
    route = Route(company_id=seed.company.id, name='DAL-OKC')
    db.session.add(route)
    db.session.commit()
    response = client.post('/api/dispatch/eta', json={
        'route_id': str(route.id), 'current_lat': 132.0, 'current_lng': -96.79
    }, headers=auth_headers(seed.dispatcher))
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Invalid coordinates'


def test_geocode_returns_first_result(client, seed):
    payload = {'status': 'OK', 'results': [{
        'geometry': {'location': {'lat': 32.7767, 'lng': -96.797}},
        'formatted_address': 'Dallas, TX, USA', 'place_id': 'abc'
    }]}
    with patch('app.services.geocoding.requests.get', return_value=Mock(ok=True, json=Mock(return_value=payload))):
        response = client.post('/api/dispatch/geocode', json={'address': '1500 Marilla St, Dallas, TX'},
                               headers=auth_headers(seed.dispatcher))
    data = response.get_json()['data']
    assert data['lat'] == 32.7767
    assert data['formatted_address'] == 'Dallas, TX, USA'


def test_geocode_zero_results_is_an_integration_error(client, seed):
    with patch('app.services.geocoding.requests.get',
               return_value=Mock(ok=True, json=Mock(return_value={'status': 'ZERO_RESULTS', 'results': []}))):
        response = client.post('/api/dispatch/geocode', json={'address': 'Nowhere Lane'},
                               headers=auth_headers(seed.dispatcher))
    assert response.status_code == 502
    assert response.get_json()['error'].startswith('Address not found')


def test_geocode_network_failure(client, seed):
    with patch('app.services.geocoding.requests.get', side_effect=requests.ConnectionError('down')):
        response = client.post('/api/dispatch/geocode', json={'address': '1500 Marilla St, Dallas'},
                               headers=auth_headers(seed.dispatcher))
    assert response.status_code == 502

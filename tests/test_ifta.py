import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import Mock, patch

import pytest

from app import db
from app.models.fleet import Route, Truck
from app.models.ifta import IdleTimeSession, IftaTaxRate, StateCrossing
from app.services.ifta import build_state_breakdown, get_tax_rate
from app.utils.errors import RpcError
from tests.conftest import auth_headers


def test_state_breakdown_uses_fallback_rate():
    rows = [{'state_code': 'TX', 'state_name': 'Texas', 'total_miles': 650},
            {'state_code': 'OK', 'state_name': 'Oklahoma', 'total_miles': 130}]
    breakdown = build_state_breakdown(rows, {'TX': 0.20})
    assert breakdown[0] == {'state_code': 'TX', 'state_name': 'Texas', 'miles': 650, 'fuel_gallons': 100.0,
                            'tax_rate': 0.20, 'tax': 20.0}
    assert breakdown[1]['tax_rate'] == 0.25
    assert breakdown[1]['tax'] == 5.0


def test_tax_rate_falls_back_when_lookup_fails(app):
    with patch('app.utils.rpc.call_rpc', side_effect=RpcError('get_ifta_tax_rate', 'down')):
        assert get_tax_rate('c1', 'tx', 1, 2025) == 0.25


def test_report_requires_valid_quarter(client, seed):
    response = client.post('/api/ifta/reports', json={'quarter': 'Q5', 'year': 2025},
                           headers=auth_headers(seed.manager))
    assert response.status_code == 400
    assert response.get_json()['error'] == 'quarter must be one of Q1, Q2, Q3, Q4'


def test_report_from_route_distances(client, seed):
    db.session.add(Route(company_id=seed.company.id, truck_id=seed.truck.id, distance='1,300 mi',
                         created_at=datetime(2025, 2, 10, tzinfo=timezone.utc)))
    db.session.commit()

    response = client.post('/api/ifta/reports', json={
        'quarter': 'q1', 'year': 2025, 'truck_ids': [str(seed.truck.id)]
    }, headers=auth_headers(seed.manager))
    assert response.status_code == 201
    report = response.get_json()['data']
    assert report['period'] == 'Jan-Mar 2025'
    assert report['period_end'] == '2025-03-31'
    assert report['total_miles'] == 1300
    assert report['fuel_purchased'] == 200
    assert report['tax_owed'] == 50
    assert report['state_breakdown'] == []


def test_report_from_eld_state_mileage(client, seed):
    def fake_rpc(name, **params):
        if name == 'calculate_state_mileage_from_crossings':
            assert params['p_start_date'] == '2025-04-01'
            return [{'state_code': 'TX', 'state_name': 'Texas', 'total_miles': 325}]
        if name == 'get_ifta_tax_rates_for_quarter':
            assert params['p_quarter'] == 2
            return [{'state_code': 'TX', 'tax_rate_per_gallon': 0.2}]
        raise AssertionError(name)

    with patch('app.utils.rpc.call_rpc', side_effect=fake_rpc):
        response = client.post('/api/ifta/reports', json={
            'quarter': 'Q2', 'year': 2025, 'include_eld': True, 'truck_ids': [str(seed.truck.id)]
        }, headers=auth_headers(seed.manager))

    report = response.get_json()['data']
    assert report['total_miles'] == 325
    assert report['fuel_purchased'] == 50
    assert report['tax_owed'] == 10
    assert report['state_breakdown'][0]['state_code'] == 'TX'


def test_tax_rates_are_manager_only(client, seed):
    response = client.post('/api/ifta/tax-rates', json={
        'state_code': 'TX', 'quarter': 1, 'year': 2025, 'tax_rate_per_gallon': 0.2
    }, headers=auth_headers(seed.dispatcher))
    assert response.status_code == 403


def test_upsert_tax_rate_defaults_effective_date(client, seed):
    headers = auth_headers(seed.manager)
    body = {'state_code': 'tx', 'state_name': 'Texas', 'quarter': 3, 'year': 2025, 'tax_rate_per_gallon': 0.2}
    first = client.post('/api/ifta/tax-rates', json=body, headers=headers).get_json()['data']
    second = client.post('/api/ifta/tax-rates', json={**body, 'tax_rate_per_gallon': 0.21},
                         headers=headers).get_json()['data']
    assert first['id'] == second['id']
    assert second['state_code'] == 'TX'
    assert second['effective_date'] == '2025-07-01'
    assert second['tax_rate_per_gallon'] == pytest.approx(0.21)


def test_bulk_rejects_bad_state_code(client, seed):
    response = client.post('/api/ifta/tax-rates/bulk', json={
        'quarter': 1, 'year': 2025, 'rates': [{'state_code': 'Texas', 'tax_rate_per_gallon': 0.2}]
    }, headers=auth_headers(seed.manager))
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Invalid state_code: Texas'


def _geocode_response(code, name):
    return Mock(ok=True, **{'json.return_value': {'status': 'OK', 'results': [{
        'formatted_address': f'{name}, USA',
        'address_components': [{'short_name': code, 'long_name': name, 'types': ['administrative_area_level_1']}]
    }]}})


def test_crossing_into_new_state(client, seed):
    db.session.add(StateCrossing(company_id=seed.company.id, truck_id=seed.truck.id, state_code='TX',
                                 state_name='Texas', timestamp=datetime(2025, 5, 1, 8, tzinfo=timezone.utc)))
    db.session.commit()

    with patch('requests.get', return_value=_geocode_response('OK', 'Oklahoma')), \
            patch('app.utils.rpc.call_rpc_scalar', return_value='f5a1c7f2-58f5-4b9e-9a8e-1c1b0f2f9d11') as call:
        response = client.post('/api/ifta/state-crossings/detect', json={
            'truck_id': str(seed.truck.id), 'latitude': 34.9, 'longitude': -97.1,
            'timestamp': '2025-05-01T12:00:00Z'
        }, headers=auth_headers(seed.dispatcher))

    data = response.get_json()['data']
    assert data['state_code'] == 'OK'
    assert data['previous_state_code'] == 'TX'
    assert data['crossing_type'] == 'entry'
    assert call.call_args.kwargs['p_state_name'] == 'Oklahoma'


def test_same_state_is_not_a_crossing(client, seed):
    db.session.add(StateCrossing(company_id=seed.company.id, truck_id=seed.truck.id, state_code='TX',
                                 state_name='Texas', timestamp=datetime(2025, 5, 1, 8, tzinfo=timezone.utc)))
    db.session.commit()

    with patch('requests.get', return_value=_geocode_response('TX', 'Texas')), \
            patch('app.utils.rpc.call_rpc_scalar') as call:
        response = client.post('/api/ifta/state-crossings/detect', json={
            'truck_id': str(seed.truck.id), 'latitude': 32.7, 'longitude': -96.8,
            'timestamp': '2025-05-01T12:00:00Z'
        }, headers=auth_headers(seed.dispatcher))

    assert response.get_json()['data'] is None
    call.assert_not_called()


def test_crossing_rejects_bad_coordinates(client, seed):
    response = client.post('/api/ifta/state-crossings/detect', json={'latitude': 120, 'longitude': 0},
                           headers=auth_headers(seed.dispatcher))
    assert response.status_code == 400


def test_upsert_rejects_non_numeric_rate(client, seed):
    headers = auth_headers(seed.manager)
    for bad in ('abc', -0.1, True):
        response = client.post('/api/ifta/tax-rates', json={
            'state_code': 'TX', 'quarter': 1, 'year': 2025, 'tax_rate_per_gallon': bad
        }, headers=headers)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid tax_rate_per_gallon'
    assert IftaTaxRate.query.count() == 0


def test_bulk_requires_rate_for_every_state(client, seed):
    response = client.post('/api/ifta/tax-rates/bulk', json={
        'quarter': 1, 'year': 2025,
        'rates': [{'state_code': 'TX', 'tax_rate_per_gallon': 0.2}, {'state_code': 'OK'}]
    }, headers=auth_headers(seed.manager))
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Invalid tax_rate_per_gallon for OK'
    assert IftaTaxRate.query.count() == 0


def test_bulk_upserts_quarter_rates(client, seed):
    response = client.post('/api/ifta/tax-rates/bulk', json={
        'quarter': 2, 'year': 2025,
        'rates': [{'state_code': 'tx', 'tax_rate_per_gallon': '0.20'}, {'state_code': 'OK', 'tax_rate_per_gallon': 0}]
    }, headers=auth_headers(seed.manager))
    assert response.get_json()['data'] == {'updated': 2}
    rates = {r.state_code: r for r in IftaTaxRate.query.all()}
    assert float(rates['TX'].tax_rate_per_gallon) == pytest.approx(0.2)
    assert float(rates['OK'].tax_rate_per_gallon) == 0
    assert rates['TX'].effective_date == date(2025, 4, 1)


def test_previous_crossing_of_another_company_is_ignored(client, seed):
    db.session.add(StateCrossing(company_id=seed.other_company.id, state_code='TX', state_name='Texas',
                                 timestamp=datetime(2025, 5, 1, 8, tzinfo=timezone.utc)))
    db.session.commit()

    with patch('requests.get', return_value=_geocode_response('TX', 'Texas')), \
            patch('app.utils.rpc.call_rpc_scalar', return_value=None) as call:
        response = client.post('/api/ifta/state-crossings/detect', json={
            'latitude': 32.7, 'longitude': -96.8, 'timestamp': '2025-05-01T12:00:00Z'
        }, headers=auth_headers(seed.dispatcher))

    data = response.get_json()['data']
    assert data['state_code'] == 'TX'
    assert data['previous_state_code'] is None
    assert call.call_args.kwargs['p_company_id'] == str(seed.company.id)


def test_state_crossings_listing(client, seed):
    base = datetime(2025, 5, 1, 8, tzinfo=timezone.utc)
    db.session.add_all([
        StateCrossing(company_id=seed.company.id, truck_id=seed.truck.id, state_code='TX', timestamp=base),
        StateCrossing(company_id=seed.company.id, truck_id=seed.truck.id, state_code='OK',
                      timestamp=base + timedelta(hours=3)),
        StateCrossing(company_id=seed.company.id, state_code='KS', timestamp=base + timedelta(days=3)),
        StateCrossing(company_id=seed.other_company.id, state_code='NM', timestamp=base),
    ])
    db.session.commit()
    headers = auth_headers(seed.dispatcher)

    rows = client.get('/api/ifta/state-crossings', headers=headers).get_json()['data']
    assert [r['state_code'] for r in rows] == ['KS', 'OK', 'TX']

    rows = client.get(f'/api/ifta/state-crossings?truck_id={seed.truck.id}&limit=1',
                      headers=headers).get_json()['data']
    assert [r['state_code'] for r in rows] == ['OK']

    rows = client.get('/api/ifta/state-crossings?start_date=2025-05-02', headers=headers).get_json()['data']
    assert [r['state_code'] for r in rows] == ['KS']


def test_state_mileage_requires_dates(client, seed):
    response = client.get('/api/ifta/state-mileage?start_date=2025-01-01', headers=auth_headers(seed.dispatcher))
    assert response.status_code == 400
    assert response.get_json()['error'] == 'start_date and end_date are required'


def test_state_mileage_from_crossings(client, seed):
    rows = [{'state_code': 'TX', 'state_name': 'Texas', 'total_miles': Decimal('412.5')}]
    with patch('app.utils.rpc.call_rpc', return_value=rows) as call:
        response = client.get(
            f'/api/ifta/state-mileage?start_date=2025-01-01&end_date=2025-03-31&truck_ids={seed.truck.id}',
            headers=auth_headers(seed.dispatcher))

    assert response.get_json()['data'] == [{'state_code': 'TX', 'state_name': 'Texas', 'total_miles': 412.5}]
    name, = call.call_args.args
    assert name == 'calculate_state_mileage_from_crossings'
    assert call.call_args.kwargs == {'p_company_id': str(seed.company.id), 'p_truck_ids': [str(seed.truck.id)],
                                     'p_start_date': '2025-01-01', 'p_end_date': '2025-03-31'}


IDLE_POINT = {'latitude': 32.7, 'longitude': -96.8, 'timestamp': '2025-05-01T12:00:00Z', 'engine_status': 'on'}


def test_detect_idle_time_costs_new_session(client, seed):
    with patch('app.utils.rpc.call_rpc_scalar', return_value='5f1d8f0e-9a55-4c55-8a3e-2f1a6c1d0b7a') as detect, \
            patch('app.utils.rpc.call_rpc', return_value=[]) as cost:
        response = client.post('/api/ifta/idle/detect', json={
            **IDLE_POINT, 'truck_id': str(seed.truck.id), 'driver_id': str(seed.driver.id)
        }, headers=auth_headers(seed.driver_user))

    assert response.get_json()['data'] == {'session_id': '5f1d8f0e-9a55-4c55-8a3e-2f1a6c1d0b7a'}
    assert detect.call_args.args == ('detect_idle_time',)
    assert detect.call_args.kwargs['p_truck_id'] == str(seed.truck.id)
    assert detect.call_args.kwargs['p_engine_status'] == 'on'
    cost.assert_called_once_with('calculate_idle_fuel_cost', p_session_id='5f1d8f0e-9a55-4c55-8a3e-2f1a6c1d0b7a')


def test_detect_idle_time_without_session_skips_costing(client, seed):
    with patch('app.utils.rpc.call_rpc_scalar', return_value=None), \
            patch('app.utils.rpc.call_rpc') as cost:
        response = client.post('/api/ifta/idle/detect', json={**IDLE_POINT, 'truck_id': str(seed.truck.id)},
                               headers=auth_headers(seed.driver_user))

    assert response.get_json()['data'] == {'session_id': None}
    cost.assert_not_called()


def test_detect_idle_time_rejects_other_company_truck(client, seed):
    rival_truck = Truck(company_id=seed.other_company.id, truck_number='R-1')
    db.session.add(rival_truck)
    db.session.commit()

    with patch('app.utils.rpc.call_rpc_scalar') as detect:
        response = client.post('/api/ifta/idle/detect', json={**IDLE_POINT, 'truck_id': str(rival_truck.id)},
                               headers=auth_headers(seed.dispatcher))
        other_driver = client.post('/api/ifta/idle/detect', json={
            **IDLE_POINT, 'truck_id': str(seed.truck.id), 'driver_id': str(seed.other_driver.id)
        }, headers=auth_headers(seed.dispatcher))

    assert response.status_code == 404
    assert response.get_json()['error'] == 'Truck not found'
    assert other_driver.status_code == 404
    detect.assert_not_called()


def _idle_session(seed, minutes, cost, start, company=None, driver=True):
    session = IdleTimeSession(
        company_id=(company or seed.company).id,
        truck_id=seed.truck.id if company is None else None,
        driver_id=seed.driver.id if driver and company is None else None,
        start_time=start, duration_minutes=minutes, estimated_fuel_cost=cost
    )
    db.session.add(session)
    return session


def test_idle_sessions_filters_and_order(client, seed):
    base = datetime(2025, 5, 1, 8, tzinfo=timezone.utc)
    _idle_session(seed, 5, 1, base)
    _idle_session(seed, 30, 5, base + timedelta(hours=1), driver=False)
    _idle_session(seed, 60, 10, base + timedelta(hours=2))
    _idle_session(seed, 90, 15, base, company=seed.other_company)
    db.session.commit()
    headers = auth_headers(seed.dispatcher)

    rows = client.get('/api/ifta/idle/sessions?min_duration_minutes=20', headers=headers).get_json()['data']
    assert [r['duration_minutes'] for r in rows] == [60, 30]
    assert rows[0]['truck']['truck_number'] == 'T-100'
    assert rows[0]['driver'] == {'name': 'Dana Driver'}

    rows = client.get(f'/api/ifta/idle/sessions?driver_id={seed.driver.id}', headers=headers).get_json()['data']
    assert [r['duration_minutes'] for r in rows] == [60, 5]


def test_idle_sessions_default_limit(client, seed):
    base = datetime(2025, 5, 1, tzinfo=timezone.utc)
    for i in range(101):
        _idle_session(seed, 1, 0, base + timedelta(minutes=i))
    db.session.commit()

    rows = client.get('/api/ifta/idle/sessions', headers=auth_headers(seed.dispatcher)).get_json()['data']
    assert len(rows) == 100


def test_idle_stats_totals_and_grouping(client, seed):
    base = datetime(2025, 5, 1, 8, tzinfo=timezone.utc)
    _idle_session(seed, 30, 5, base)
    _idle_session(seed, 60, 10, base + timedelta(hours=1), driver=False)
    _idle_session(seed, 90, 15, base, company=seed.other_company)
    db.session.commit()

    stats = client.get('/api/ifta/idle/stats', headers=auth_headers(seed.manager)).get_json()['data']
    assert stats['total_minutes'] == 90
    assert stats['total_hours'] == 1.5
    assert stats['total_sessions'] == 2
    assert stats['avg_duration_minutes'] == 45
    assert stats['total_fuel_cost'] == pytest.approx(15.0)
    assert stats['by_truck'] == {str(seed.truck.id): {'minutes': 90, 'cost': 15.0, 'sessions': 2}}
    assert stats['by_driver'] == {str(seed.driver.id): {'minutes': 30, 'cost': 5.0, 'sessions': 1}}


def test_idle_stats_with_no_sessions(client, seed):
    stats = client.get('/api/ifta/idle/stats', headers=auth_headers(seed.manager)).get_json()['data']
    assert stats['total_sessions'] == 0
    assert stats['avg_duration_minutes'] == 0


def test_close_idle_session_rounds_duration_and_recosts(client, seed):
    session = _idle_session(seed, None, None, datetime.now(timezone.utc) - timedelta(minutes=42, seconds=10))
    db.session.commit()

    def recalculate(name, p_session_id):
        db.session.execute(
            db.update(IdleTimeSession).where(IdleTimeSession.id == uuid.UUID(p_session_id))
            .values(estimated_fuel_cost=12.5)
        )
        return []

    with patch('app.utils.rpc.call_rpc', side_effect=recalculate) as cost:
        response = client.post(f'/api/ifta/idle/sessions/{session.id}/close', headers=auth_headers(seed.dispatcher))

    data = response.get_json()['data']
    assert data['duration_minutes'] == 42
    assert data['end_time'] is not None
    assert data['estimated_fuel_cost'] == 12.5
    assert cost.call_args.args == ('calculate_idle_fuel_cost',)


def test_close_idle_session_of_other_company(client, seed):
    session = _idle_session(seed, None, None, datetime(2025, 5, 1, tzinfo=timezone.utc), company=seed.other_company)
    db.session.commit()

    response = client.post(f'/api/ifta/idle/sessions/{session.id}/close', headers=auth_headers(seed.dispatcher))
    assert response.status_code == 404
    assert response.get_json()['error'] == 'Session not found'

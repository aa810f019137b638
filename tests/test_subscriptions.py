from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import patch

from app import db
from app.models.billing import BillingInvoice, Subscription, SubscriptionPlan
from app.utils.helpers import utcnow
from tests.conftest import auth_headers

URL = '/api/subscriptions'


def _subscribe(seed, plan_name='starter', status='active', **fields):
    plan = SubscriptionPlan.query.filter_by(name=plan_name).first()
    subscription = Subscription(company_id=seed.company.id, plan_id=plan.id, status=status, **fields)
    db.session.add(subscription)
    db.session.commit()
    return subscription


def test_plans_are_public_and_cheapest_first(client, seed):
    response = client.get(f'{URL}/plans')
    assert response.status_code == 200
    assert [plan['name'] for plan in response.get_json()['data']] == ['starter', 'professional', 'enterprise']


def test_start_trial(client, seed):
    response = client.post(f'{URL}/trial', json={'plan_name': 'professional'}, headers=auth_headers(seed.owner))
    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['status'] == 'trialing'
    assert data['subscription_plans']['name'] == 'professional'

    ending = client.get(f'{URL}/trial-ending', headers=auth_headers(seed.owner)).get_json()['data']
    assert ending['daysLeft'] == 7
    assert ending['endingSoon'] is False


def test_trial_refused_when_already_subscribed(client, seed):
    _subscribe(seed)
    response = client.post(f'{URL}/trial', json={'plan_name': 'starter'}, headers=auth_headers(seed.owner))
    assert response.status_code == 400
    assert response.get_json()['error'] == 'You already have an active subscription or trial'


def test_trial_for_unknown_plan(client, seed):
    response = client.post(f'{URL}/trial', json={'plan_name': 'platinum'}, headers=auth_headers(seed.owner))
    assert response.status_code == 404
    assert response.get_json()['error'] == 'Plan not found'


def test_trial_ending_soon(client, seed):
    _subscribe(seed, status='trialing', trial_end=utcnow() + timedelta(hours=30))
    data = client.get(f'{URL}/trial-ending', headers=auth_headers(seed.owner)).get_json()['data']
    assert data['daysLeft'] == 2
    assert data['endingSoon'] is True


def test_trial_ending_without_trial(client, seed):
    data = client.get(f'{URL}/trial-ending', headers=auth_headers(seed.owner)).get_json()['data']
    assert data == {'endingSoon': False, 'daysLeft': None}


def test_limits(client, seed):
    _subscribe(seed, 'professional')
    data = client.get(f'{URL}/limits', headers=auth_headers(seed.dispatcher)).get_json()['data']
    assert data == {
        'maxUsers': 25,
        'maxDrivers': 40,
        'maxVehicles': 30,
        'canUseELD': True,
        'planName': 'professional',
        'planDisplayName': 'Professional'
    }


def test_limits_without_subscription(client, seed):
    response = client.get(f'{URL}/limits', headers=auth_headers(seed.dispatcher))
    assert response.status_code == 404
    assert response.get_json()['error'] == 'No subscription found'


def test_limits_for_canceled_subscription(client, seed):
    _subscribe(seed, status='canceled')
    response = client.get(f'{URL}/limits', headers=auth_headers(seed.dispatcher))
    assert response.status_code == 403
    assert response.get_json()['error'] == 'Subscription is not active'


def test_can_add_driver_and_user(client, seed):
    plan = SubscriptionPlan.query.filter_by(name='starter').first()
    plan.max_drivers = 2
    db.session.commit()
    _subscribe(seed)

    drivers = client.get(f'{URL}/can-add-driver', headers=auth_headers(seed.manager)).get_json()['data']
    assert drivers == {'allowed': False, 'current': 2, 'limit': 2}

    users = client.get(f'{URL}/can-add-user', headers=auth_headers(seed.manager)).get_json()['data']
    assert users == {'allowed': True, 'current': 4, 'limit': 10}


def test_enterprise_is_unlimited(client, seed):
    _subscribe(seed, 'enterprise')
    data = client.get(f'{URL}/can-add-driver', headers=auth_headers(seed.manager)).get_json()['data']
    assert data['allowed'] is True
    assert data['limit'] is None


def test_cancel_is_manager_only(client, seed):
    _subscribe(seed)
    response = client.post(f'{URL}/cancel', headers=auth_headers(seed.dispatcher))
    assert response.status_code == 403


def test_cancel_and_reactivate_stripe_subscription(client, seed):
    _subscribe(seed, stripe_subscription_id='sub_live')
    with patch('stripe.Subscription.modify') as modify:
        cancelled = client.post(f'{URL}/cancel', headers=auth_headers(seed.manager)).get_json()['data']
        reactivated = client.post(f'{URL}/reactivate', headers=auth_headers(seed.owner)).get_json()['data']

    assert cancelled['cancel_at_period_end'] is True
    assert reactivated['cancel_at_period_end'] is False
    assert modify.call_args_list[0].kwargs == {'cancel_at_period_end': True}


def test_cancel_without_active_subscription(client, seed):
    response = client.post(f'{URL}/cancel', headers=auth_headers(seed.manager))
    assert response.status_code == 404


def test_billing_history_is_company_scoped(client, seed):
    db.session.add_all([
        BillingInvoice(company_id=seed.company.id, amount=29, status='paid', stripe_invoice_id='in_a'),
        BillingInvoice(company_id=seed.other_company.id, amount=59, status='paid', stripe_invoice_id='in_b'),
    ])
    db.session.commit()
    data = client.get(f'{URL}/billing-history', headers=auth_headers(seed.manager)).get_json()['data']
    assert [invoice['stripe_invoice_id'] for invoice in data] == ['in_a']


def test_checkout_creates_price_customer_and_session(client, seed):
    plan = SubscriptionPlan.query.filter_by(name='starter').first()
    with patch('stripe.Price.create', return_value=SimpleNamespace(id='price_new')) as price, \
            patch('stripe.Customer.create', return_value=SimpleNamespace(id='cus_new')), \
            patch('stripe.checkout.Session.create',
                  return_value=SimpleNamespace(id='cs_1', url='https://checkout.stripe.com/cs_1')) as session:
        response = client.post(f'{URL}/checkout', json={'plan_id': str(plan.id)}, headers=auth_headers(seed.owner))

    assert response.get_json()['data'] == {'sessionId': 'cs_1', 'url': 'https://checkout.stripe.com/cs_1'}
    assert price.call_args.kwargs['unit_amount'] == 2900
    kwargs = session.call_args.kwargs
    assert kwargs['customer'] == 'cus_new'
    assert kwargs['subscription_data']['trial_period_days'] == 7
    assert kwargs['metadata'] == {'company_id': str(seed.company.id), 'plan_id': str(plan.id)}
    assert SubscriptionPlan.query.filter_by(name='starter').first().stripe_price_id_monthly == 'price_new'


def test_checkout_requires_plan_id(client, seed):
    response = client.post(f'{URL}/checkout', json={}, headers=auth_headers(seed.owner))
    assert response.get_json()['error'] == 'plan_id is required'


def test_verify_paypal_subscription(client, seed):
    with patch('app.services.paypal.PayPalClient.from_config') as from_config:
        from_config.return_value.get_subscription.return_value = {'id': 'I-1', 'status': 'ACTIVE'}
        response = client.post(f'{URL}/paypal/I-1/verify', headers=auth_headers(seed.owner))
    assert response.get_json()['data'] == {'subscriptionId': 'I-1', 'status': 'ACTIVE', 'active': True}

import json
from unittest.mock import patch

import stripe

from app import db
from app.models.billing import BillingInvoice, Subscription, SubscriptionPlan

STRIPE_URL = '/api/webhooks/stripe'
PAYPAL_URL = '/api/webhooks/paypal'


def _post_stripe(client, event, signature='t=1,v1=abc'):
    headers = {'stripe-signature': signature} if signature else {}
    return client.post(STRIPE_URL, data=json.dumps(event), content_type='application/json', headers=headers)


def _plan(name='starter'):
    return SubscriptionPlan.query.filter_by(name=name).first()


# Stripe

def test_stripe_requires_signature(client, seed):
    response = _post_stripe(client, {'type': 'invoice.paid'}, signature=None)
    assert response.status_code == 400
    assert response.get_json() == {'error': 'No signature'}


def test_stripe_not_configured(app, client, seed):
    app.config['STRIPE_WEBHOOK_SECRET'] = ''
    response = _post_stripe(client, {'type': 'invoice.paid'})
    assert response.status_code == 503
    assert response.get_json() == {'error': 'Stripe not configured'}


def test_stripe_bad_signature(client, seed):
    error = stripe.SignatureVerificationError('No signatures found', 't=1,v1=abc')
    with patch('stripe.Webhook.construct_event', side_effect=error):
        response = _post_stripe(client, {'type': 'invoice.paid'})
    assert response.status_code == 400
    assert response.get_json()['error'].startswith('Webhook Error:')


def test_stripe_subscription_updated_upserts_company_subscription(client, seed):
    plan = _plan('professional')
    event = {
        'type': 'customer.subscription.updated',
        'data': {'object': {
            'id': 'sub_123',
            'customer': 'cus_1',
            'status': 'trialing',
            'metadata': {'company_id': str(seed.company.id), 'plan_id': str(plan.id)},
            'items': {'data': [{'price': {'id': 'price_1'}}]},
            'current_period_start': 1735689600,
            'current_period_end': 1738368000,
            'trial_end': 1736294400,
            'cancel_at_period_end': False,
        }}
    }
    with patch('stripe.Webhook.construct_event') as construct:
        response = _post_stripe(client, event)

    assert response.status_code == 200
    assert response.get_json() == {'received': True}
    construct.assert_called_once()
    assert construct.call_args.args[2] == 'whsec_test'

    subscription = Subscription.query.filter_by(company_id=seed.company.id).one()
    assert subscription.status == 'trialing'
    assert subscription.plan_id == plan.id
    assert subscription.stripe_price_id == 'price_1'
    assert subscription.current_period_end.date().isoformat() == '2025-02-01'


def test_stripe_past_due_and_canceled_status_mapping(client, seed):
    plan = _plan()
    for stripe_status, expected in (('past_due', 'past_due'), ('unpaid', 'canceled'), ('incomplete', 'active')):
        event = {'type': 'customer.subscription.updated', 'data': {'object': {
            'id': 'sub_9', 'status': stripe_status,
            'metadata': {'company_id': str(seed.company.id), 'plan_id': str(plan.id)},
        }}}
        with patch('stripe.Webhook.construct_event'):
            _post_stripe(client, event)
        assert Subscription.query.filter_by(company_id=seed.company.id).one().status == expected


def test_stripe_invoice_paid_records_dollars(client, seed):
    subscription = Subscription(company_id=seed.company.id, plan_id=_plan().id, status='trialing',
                                stripe_subscription_id='sub_paid')
    db.session.add(subscription)
    db.session.commit()

    event = {'type': 'invoice.paid', 'data': {'object': {
        'id': 'in_1', 'subscription': 'sub_paid', 'status': 'paid', 'amount_paid': 2900, 'currency': 'usd',
        'hosted_invoice_url': 'https://invoice.stripe.com/i/1',
    }}}
    with patch('stripe.Webhook.construct_event'):
        _post_stripe(client, event)
        _post_stripe(client, event)

    invoices = BillingInvoice.query.filter_by(company_id=seed.company.id).all()
    assert len(invoices) == 1
    assert float(invoices[0].amount) == 29.0
    assert invoices[0].status == 'paid'


def test_stripe_payment_failed_marks_past_due(client, seed):
    db.session.add(Subscription(company_id=seed.company.id, status='active', stripe_subscription_id='sub_f'))
    db.session.commit()
    event = {'type': 'invoice.payment_failed', 'data': {'object': {'id': 'in_2', 'subscription': 'sub_f'}}}
    with patch('stripe.Webhook.construct_event'):
        _post_stripe(client, event)
    db.session.expire_all()
    assert Subscription.query.filter_by(stripe_subscription_id='sub_f').one().status == 'past_due'


def test_stripe_unknown_event_is_acknowledged(client, seed):
    with patch('stripe.Webhook.construct_event'):
        response = _post_stripe(client, {'type': 'customer.created', 'data': {'object': {}}})
    assert response.get_json() == {'received': True}


# PayPal

def test_paypal_invalid_payload(client, seed):
    response = client.post(PAYPAL_URL, data='', content_type='application/json')
    assert response.status_code == 400
    assert response.get_json() == {'error': 'Invalid payload'}


def test_paypal_activation_then_payment(client, seed):
    plan = _plan()
    activated = {'event_type': 'BILLING.SUBSCRIPTION.ACTIVATED', 'resource': {
        'id': 'I-PAYPAL1', 'plan_id': 'P-1', 'custom_id': f'{seed.company.id}:{plan.id}',
        'billing_info': {'next_billing_time': '2025-05-08T10:00:00Z'},
    }}
    assert client.post(PAYPAL_URL, json=activated).get_json() == {'received': True}

    subscription = Subscription.query.filter_by(company_id=seed.company.id).one()
    assert subscription.status == 'trialing'
    assert subscription.plan_id == plan.id
    assert subscription.trial_end.date().isoformat() == '2025-05-08'

    sale = {'event_type': 'PAYMENT.SALE.COMPLETED', 'resource': {
        'id': 'SALE-1', 'billing_agreement_id': 'I-PAYPAL1', 'amount': {'total': '29.00', 'currency': 'USD'},
    }}
    client.post(PAYPAL_URL, json=sale)
    assert subscription.status == 'active'
    payment = BillingInvoice.query.filter_by(paypal_sale_id='SALE-1').one()
    assert float(payment.amount) == 29.0
    assert payment.currency == 'usd'


def test_paypal_activation_falls_back_to_subscriber_email(client, seed):
    event = {'event_type': 'BILLING.SUBSCRIPTION.CREATED', 'resource': {
        'id': 'I-PAYPAL2', 'subscriber': {'email_address': 'manager@example.com'},
    }}
    client.post(PAYPAL_URL, json=event)
    assert Subscription.query.filter_by(paypal_subscription_id='I-PAYPAL2').one().company_id == seed.company.id


def test_paypal_cancellation(client, seed):
    db.session.add(Subscription(company_id=seed.company.id, status='active', paypal_subscription_id='I-C'))
    db.session.commit()
    client.post(PAYPAL_URL, json={'event_type': 'BILLING.SUBSCRIPTION.CANCELLED', 'resource': {'id': 'I-C'}})
    db.session.expire_all()
    subscription = Subscription.query.filter_by(paypal_subscription_id='I-C').one()
    assert subscription.status == 'canceled'
    assert subscription.canceled_at is not None


def test_paypal_signature_checked_when_webhook_id_set(app, client, seed):
    app.config['PAYPAL_WEBHOOK_ID'] = 'WH-1'
    with patch('app.services.paypal.PayPalClient.from_config') as from_config:
        from_config.return_value.verify_webhook_signature.return_value = False
        response = client.post(PAYPAL_URL, json={'event_type': 'BILLING.SUBSCRIPTION.CANCELLED', 'resource': {}})
    assert response.status_code == 400
    assert response.get_json() == {'error': 'Invalid signature'}

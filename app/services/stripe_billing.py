"""Stripe checkout and webhook event handling for company subscriptions"""
import logging
import uuid

import stripe
from flask import current_app

from app import db
from app.models.billing import BillingInvoice, Subscription, SubscriptionPlan
from app.utils.errors import ApiError
from app.utils.helpers import from_epoch, utcnow

logger = logging.getLogger(__name__)

TRIAL_PERIOD_DAYS = 7

def stripe_configured():
    return bool(current_app.config.get('STRIPE_SECRET_KEY'))

def configure_stripe():
    if not stripe_configured():
        raise ApiError('Payment processing is not configured. Please contact support.', 503)
    stripe.api_key = current_app.config['STRIPE_SECRET_KEY']

def map_status(stripe_status):
    if stripe_status == 'trialing':
        return 'trialing'
    if stripe_status == 'past_due':
        return 'past_due'
    if stripe_status in ('canceled', 'unpaid'):
        return 'canceled'
    return 'active'

def _first_item(subscription):
    items = (subscription.get('items') or {}).get('data') or []
    return items[0] if items else {}

def handle_subscription_updated(subscription):
    """customer.subscription.created / updated: upsert the company's subscription row"""
    metadata = subscription.get('metadata') or {}
    company_id = metadata.get('company_id')
    plan_id = metadata.get('plan_id')
    if not company_id or not plan_id:
        logger.warning(f"Stripe subscription {subscription.get('id')} has no company/plan metadata")
        return None

    if db.session.get(SubscriptionPlan, _uuid(plan_id)) is None:
        logger.warning(f"Stripe subscription {subscription.get('id')} references unknown plan {plan_id}")
        return None

    item = _first_item(subscription)
    period_start = subscription.get('current_period_start') or item.get('current_period_start')
    period_end = subscription.get('current_period_end') or item.get('current_period_end')

    row = Subscription.query.filter_by(company_id=_uuid(company_id)).first()
    if row is None:
        row = Subscription(company_id=_uuid(company_id))
        db.session.add(row)

    row.plan_id = _uuid(plan_id)
    row.status = map_status(subscription.get('status'))
    row.stripe_subscription_id = subscription.get('id')
    row.stripe_customer_id = subscription.get('customer')
    row.stripe_price_id = (item.get('price') or {}).get('id')
    row.current_period_start = from_epoch(period_start)
    row.current_period_end = from_epoch(period_end)
    row.cancel_at_period_end = bool(subscription.get('cancel_at_period_end'))
    row.trial_start = from_epoch(subscription.get('trial_start'))
    row.trial_end = from_epoch(subscription.get('trial_end'))
    row.canceled_at = from_epoch(subscription.get('canceled_at'))
    db.session.commit()
    return row

def handle_subscription_deleted(subscription):
    if not (subscription.get('metadata') or {}).get('company_id'):
        return
    Subscription.query.filter_by(stripe_subscription_id=subscription.get('id')).update(
        {'status': 'canceled', 'canceled_at': utcnow()}, synchronize_session=False
    )
    db.session.commit()

def handle_invoice_paid(invoice):
    """Record the paid invoice against the subscription's company"""
    subscription_id = invoice.get('subscription')
    if not subscription_id:
        return None

    subscription = Subscription.query.filter_by(stripe_subscription_id=subscription_id).first()
    if subscription is None:
        logger.warning(f"invoice.paid for unknown subscription {subscription_id}")
        return None

    paid = invoice.get('status') == 'paid'
    row = BillingInvoice.query.filter_by(stripe_invoice_id=invoice.get('id')).first()
    if row is None:
        row = BillingInvoice(stripe_invoice_id=invoice.get('id'))
        db.session.add(row)

    row.company_id = subscription.company_id
    row.subscription_id = subscription.id
    row.amount = (invoice.get('amount_paid') or 0) / 100
    row.currency = invoice.get('currency')
    row.status = 'paid' if paid else 'open'
    row.invoice_pdf = invoice.get('invoice_pdf')
    row.hosted_invoice_url = invoice.get('hosted_invoice_url')
    row.period_start = from_epoch(invoice.get('period_start'))
    row.period_end = from_epoch(invoice.get('period_end'))
    row.paid_at = utcnow() if paid else None
    db.session.commit()
    return row

def handle_invoice_payment_failed(invoice):
    subscription_id = invoice.get('subscription')
    if not subscription_id:
        return
    Subscription.query.filter_by(stripe_subscription_id=subscription_id).update(
        {'status': 'past_due'}, synchronize_session=False
    )
    db.session.commit()

def handle_checkout_completed(session):
    # The subscription row is written by customer.subscription.created
    metadata = session.get('metadata') or {}
    logger.info(f"Checkout completed for company {metadata.get('company_id')} plan {metadata.get('plan_id')}")

EVENT_HANDLERS = {
    'checkout.session.completed': handle_checkout_completed,
    'customer.subscription.created': handle_subscription_updated,
    'customer.subscription.updated': handle_subscription_updated,
    'customer.subscription.deleted': handle_subscription_deleted,
    'invoice.paid': handle_invoice_paid,
    'invoice.payment_failed': handle_invoice_payment_failed,
}

def process_event(event):
    """Dispatch a verified webhook event (plain dict); unknown types are ignored"""
    handler = EVENT_HANDLERS.get(event.get('type'))
    if handler is None:
        logger.info(f"Ignoring Stripe event {event.get('type')}")
        return False
    handler(event['data']['object'])
    return True

def _uuid(value):
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))

def ensure_price(plan):
    """Create the monthly Stripe price for a plan that has none yet"""
    if plan.stripe_price_id_monthly:
        return plan.stripe_price_id_monthly

    price = stripe.Price.create(
        unit_amount=int(round(float(plan.price_monthly) * 100)),
        currency='usd',
        recurring={'interval': 'month'},
        product_data={'name': f'{plan.display_name} Plan'}
    )
    plan.stripe_price_id_monthly = price.id
    db.session.commit()
    logger.info(f"Created Stripe price {price.id} for plan {plan.name}")
    return price.id

def create_checkout_session(company_id, user, plan):
    configure_stripe()
    price_id = ensure_price(plan)

    subscription = Subscription.query.filter_by(company_id=company_id).first()
    customer_id = subscription.stripe_customer_id if subscription else None
    if not customer_id:
        customer = stripe.Customer.create(
            email=user.get('email'),
            name=user.get('full_name') or None,
            metadata={'company_id': str(company_id), 'user_id': str(user.get('user_id'))}
        )
        customer_id = customer.id

    metadata = {'company_id': str(company_id), 'plan_id': str(plan.id)}
    app_url = current_app.config['APP_URL']
    session = stripe.checkout.Session.create(
        customer=customer_id,
        mode='subscription',
        payment_method_types=['card'],
        line_items=[{'price': price_id, 'quantity': 1}],
        subscription_data={'trial_period_days': TRIAL_PERIOD_DAYS, 'metadata': metadata},
        success_url=f'{app_url}/dashboard?session_id={{CHECKOUT_SESSION_ID}}',
        cancel_url=f'{app_url}/plans?canceled=true',
        metadata=metadata
    )
    return {'sessionId': session.id, 'url': session.url}

def set_cancel_at_period_end(subscription, cancel):
    if subscription.stripe_subscription_id:
        configure_stripe()
        stripe.Subscription.modify(subscription.stripe_subscription_id, cancel_at_period_end=cancel)
    subscription.cancel_at_period_end = cancel
    db.session.commit()
    return subscription

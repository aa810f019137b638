"""PayPal REST client, plus handlers for the subscription webhook events"""
import logging
import uuid
from datetime import datetime, timezone

import requests
from flask import current_app

from app import db
from app.models.billing import BillingInvoice, Subscription, SubscriptionPlan
from app.models.user import User
from app.utils.errors import PayPalError
from app.utils.helpers import parse_datetime
from app.utils.retry import with_retry

logger = logging.getLogger(__name__)

LIVE_URL = 'https://api-m.paypal.com'
SANDBOX_URL = 'https://api-m.sandbox.paypal.com'

class PayPalClient:
    def __init__(self, client_id, client_secret, mode='sandbox', timeout=15):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = LIVE_URL if mode == 'live' else SANDBOX_URL
        self.timeout = timeout

    @classmethod
    def from_config(cls):
        config = current_app.config
        if not config.get('PAYPAL_CLIENT_ID') or not config.get('PAYPAL_CLIENT_SECRET'):
            raise PayPalError('PayPal is not configured. Please contact support.')
        return cls(
            config['PAYPAL_CLIENT_ID'],
            config['PAYPAL_CLIENT_SECRET'],
            config.get('PAYPAL_MODE', 'sandbox'),
            config['HTTP_TIMEOUT']
        )

    @with_retry(max_attempts=3)
    def _request_token(self):
        response = requests.post(
            f'{self.base_url}/v1/oauth2/token',
            data={'grant_type': 'client_credentials'},
            auth=(self.client_id, self.client_secret),
            timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()['access_token']

    def get_access_token(self):
        try:
            return self._request_token()
        except requests.RequestException as e:
            logger.error(f"PayPal token request failed: {e}")
            raise PayPalError('Failed to get PayPal access token') from e

    def _call(self, method, path, error_message, payload=None):
        headers = {
            'Authorization': f'Bearer {self.get_access_token()}',
            'Content-Type': 'application/json',
            'Prefer': 'return=representation'
        }
        try:
            response = requests.request(
                method, f'{self.base_url}{path}', json=payload, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise PayPalError(f'{error_message}: {e}') from e

        if not response.ok:
            logger.error(f"PayPal {method} {path} returned {response.status_code}: {response.text}")
            raise PayPalError(error_message, response.status_code)
        return response.json()

    def create_product(self, plan):
        return self._call('POST', '/v1/catalogs/products', 'Failed to create PayPal product', {
            'name': f'{plan.display_name} Plan',
            'description': plan.description or f'Subscription to {plan.display_name} plan',
            'type': 'SERVICE'
        })

    def create_billing_plan(self, product_id, plan):
        """One free trial month followed by the regular monthly price"""
        return self._call('POST', '/v1/billing/plans', 'Failed to create PayPal billing plan', {
            'product_id': product_id,
            'name': f'{plan.display_name} Plan',
            'description': plan.description or f'Monthly subscription to {plan.display_name} plan',
            'status': 'ACTIVE',
            'billing_cycles': [
                {
                    'frequency': {'interval_unit': 'MONTH', 'interval_count': 1},
                    'tenure_type': 'TRIAL',
                    'sequence': 1,
                    'total_cycles': 1,
                    'pricing_scheme': {'fixed_price': {'value': '0', 'currency_code': 'USD'}}
                },
                {
                    'frequency': {'interval_unit': 'MONTH', 'interval_count': 1},
                    'tenure_type': 'REGULAR',
                    'sequence': 2,
                    'total_cycles': 0,
                    'pricing_scheme': {'fixed_price': {'value': str(plan.price_monthly), 'currency_code': 'USD'}}
                }
            ],
            'payment_preferences': {
                'auto_bill_outstanding': True,
                'setup_fee': {'value': '0', 'currency_code': 'USD'},
                'setup_fee_failure_action': 'CONTINUE',
                'payment_failure_threshold': 3
            }
        })

    def create_subscription(self, paypal_plan_id, email, full_name, custom_id, app_url):
        names = (full_name or '').split(' ')
        return self._call('POST', '/v1/billing/subscriptions', 'Failed to create PayPal subscription', {
            'plan_id': paypal_plan_id,
            'custom_id': custom_id,
            'subscriber': {
                'email_address': email,
                'name': {
                    'given_name': names[0] or 'Customer',
                    'surname': ' '.join(names[1:])
                }
            },
            'application_context': {
                'brand_name': 'TruckMates Logistics',
                'locale': 'en-US',
                'shipping_preference': 'NO_SHIPPING',
                'user_action': 'SUBSCRIBE_NOW',
                'payment_method': {
                    'payer_selected': 'PAYPAL',
                    'payee_preferred': 'IMMEDIATE_PAYMENT_REQUIRED'
                },
                'return_url': f'{app_url}/dashboard?subscription=success',
                'cancel_url': f'{app_url}/plans?canceled=true'
            }
        })

    def get_subscription(self, subscription_id):
        return self._call('GET', f'/v1/billing/subscriptions/{subscription_id}',
                          'Failed to verify PayPal subscription')

    def verify_webhook_signature(self, headers, event, webhook_id):
        result = self._call('POST', '/v1/notifications/verify-webhook-signature',
                            'Failed to verify PayPal webhook', {
                                'auth_algo': headers.get('PAYPAL-AUTH-ALGO'),
                                'cert_url': headers.get('PAYPAL-CERT-URL'),
                                'transmission_id': headers.get('PAYPAL-TRANSMISSION-ID'),
                                'transmission_sig': headers.get('PAYPAL-TRANSMISSION-SIG'),
                                'transmission_time': headers.get('PAYPAL-TRANSMISSION-TIME'),
                                'webhook_id': webhook_id,
                                'webhook_event': event
                            })
        return result.get('verification_status') == 'SUCCESS'

def approval_link(subscription):
    for link in subscription.get('links', []):
        if link.get('rel') == 'approve':
            return link.get('href')
    return None

def _parse_custom_id(custom_id):
    """custom_id is '<company_id>:<plan_id>' as sent by create_subscription"""
    if not custom_id or ':' not in custom_id:
        return None, None
    company_id, plan_id = custom_id.split(':', 1)
    try:
        return uuid.UUID(company_id), uuid.UUID(plan_id)
    except ValueError:
        logger.warning(f"Malformed PayPal custom_id {custom_id}")
        return None, None

def handle_subscription_activated(resource):
    """BILLING.SUBSCRIPTION.CREATED / ACTIVATED: upsert a trialing subscription for the company"""
    paypal_subscription_id = resource.get('id')
    if not paypal_subscription_id:
        return None

    company_id, plan_id = _parse_custom_id(resource.get('custom_id'))
    if company_id is None:
        email = (resource.get('subscriber') or {}).get('email_address')
        user = User.query.filter_by(email=email).first() if email else None
        if user is None or user.company_id is None:
            logger.warning(f"PayPal subscription {paypal_subscription_id} matches no company")
            return None
        company_id = user.company_id

    if plan_id is not None and db.session.get(SubscriptionPlan, plan_id) is None:
        plan_id = None

    subscription = Subscription.query.filter_by(company_id=company_id).first()
    if subscription is None:
        subscription = Subscription(company_id=company_id)
        db.session.add(subscription)

    now = datetime.now(timezone.utc)
    next_billing = (resource.get('billing_info') or {}).get('next_billing_time')
    if plan_id is not None:
        subscription.plan_id = plan_id
    subscription.status = 'trialing'
    subscription.paypal_subscription_id = paypal_subscription_id
    subscription.paypal_plan_id = resource.get('plan_id')
    subscription.current_period_start = now
    subscription.trial_start = now
    subscription.trial_end = parse_datetime(next_billing) if next_billing else None
    subscription.canceled_at = None
    db.session.commit()
    return subscription

def handle_subscription_cancelled(resource):
    Subscription.query.filter_by(paypal_subscription_id=resource.get('id')).update(
        {'status': 'canceled', 'canceled_at': datetime.now(timezone.utc)}, synchronize_session=False
    )
    db.session.commit()

def handle_sale_completed(sale):
    """Payment received: activate the subscription and record the payment"""
    subscription = Subscription.query.filter_by(paypal_subscription_id=sale.get('billing_agreement_id')).first()
    if subscription is None:
        return None

    subscription.status = 'active'
    payment = BillingInvoice.query.filter_by(paypal_sale_id=sale.get('id')).first()
    if payment is None:
        payment = BillingInvoice(paypal_sale_id=sale.get('id'))
        db.session.add(payment)

    amount = sale.get('amount') or {}
    payment.company_id = subscription.company_id
    payment.subscription_id = subscription.id
    payment.amount = amount.get('total') or 0
    payment.currency = (amount.get('currency') or 'usd').lower()
    payment.status = 'paid'
    payment.paid_at = datetime.now(timezone.utc)
    db.session.commit()
    return payment

WEBHOOK_HANDLERS = {
    'BILLING.SUBSCRIPTION.CREATED': handle_subscription_activated,
    'BILLING.SUBSCRIPTION.ACTIVATED': handle_subscription_activated,
    'BILLING.SUBSCRIPTION.CANCELLED': handle_subscription_cancelled,
    'BILLING.SUBSCRIPTION.EXPIRED': handle_subscription_cancelled,
    'PAYMENT.SALE.COMPLETED': handle_sale_completed,
}

def process_webhook_event(event):
    handler = WEBHOOK_HANDLERS.get(event.get('event_type'))
    if handler is None:
        logger.info(f"Ignoring PayPal event {event.get('event_type')}")
        return False
    handler(event.get('resource') or {})
    return True

import math
from datetime import timedelta

from flask import Blueprint, request, current_app
from app import db
from app.models.billing import BillingInvoice, Subscription, SubscriptionPlan
from app.models.fleet import Driver
from app.models.user import User
from app.services import stripe_billing
from app.services.paypal import PayPalClient
from app.utils.auth import require_company, require_role, MANAGER_ROLES
from app.utils.errors import ApiError, NotFoundError
from app.utils.helpers import as_utc, to_uuid, utcnow
from app.utils.responses import success

bp = Blueprint('subscriptions', __name__)

ELD_PLANS = ('professional', 'enterprise')

def _company_subscription():
    return Subscription.query.filter_by(company_id=request.current_user['company_id']).first()

def _get_plan(plan_id):
    plan = SubscriptionPlan.query.filter_by(id=to_uuid(plan_id, 'plan_id'), is_active=True).first()
    if plan is None:
        raise NotFoundError('Plan not found')
    return plan

def _active_limits():
    subscription = _company_subscription()
    if subscription is None:
        raise NotFoundError('No subscription found')
    if not subscription.is_active:
        raise ApiError('Subscription is not active', 403)
    return subscription

@bp.route('/plans', methods=['GET'])
def get_plans():
    """
    Active subscription plans, cheapest first
    ---
    tags:
      - Subscriptions
    responses:
      200:
        description: List of plans
    """
    plans = SubscriptionPlan.query.filter_by(is_active=True).order_by(SubscriptionPlan.price_monthly.asc()).all()
    return success([plan.to_dict() for plan in plans])

@bp.route('/current', methods=['GET'])
@require_company
def get_current_subscription():
    subscription = _company_subscription()
    return success(subscription.to_dict() if subscription else None)

@bp.route('/trial', methods=['POST'])
@require_company
def start_free_trial():
    """
    Start a 7-day free trial without a payment method
    ---
    tags:
      - Subscriptions
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - plan_name
            properties:
              plan_name:
                type: string
                enum: [starter, professional, enterprise]
    responses:
      201:
        description: Trial subscription
      400:
        description: Already subscribed or trialing
      404:
        description: Plan not found
    """
    company_id = request.current_user['company_id']
    data = request.get_json() or {}
    plan_name = data.get('plan_name')
    if not plan_name:
        raise ApiError('plan_name is required')

    subscription = _company_subscription()
    if subscription is not None and subscription.status in ('active', 'trialing'):
        raise ApiError('You already have an active subscription or trial')

    plan = SubscriptionPlan.query.filter_by(name=plan_name, is_active=True).first()
    if plan is None:
        raise NotFoundError('Plan not found')

    now = utcnow()
    trial_end = now + timedelta(days=stripe_billing.TRIAL_PERIOD_DAYS)
    if subscription is None:
        subscription = Subscription(company_id=company_id)
        db.session.add(subscription)

    subscription.plan_id = plan.id
    subscription.status = 'trialing'
    subscription.trial_start = now
    subscription.trial_end = trial_end
    subscription.current_period_start = now
    subscription.current_period_end = trial_end
    subscription.cancel_at_period_end = False
    subscription.canceled_at = None
    db.session.commit()

    current_app.logger.info(f"Started {plan.name} trial for company {company_id}")
    return success(subscription.to_dict(), 201)

@bp.route('/trial-ending', methods=['GET'])
@require_company
def check_trial_ending():
    subscription = _company_subscription()
    if subscription is None or subscription.status != 'trialing' or not subscription.trial_end:
        return success({'endingSoon': False, 'daysLeft': None})

    seconds_left = (as_utc(subscription.trial_end) - utcnow()).total_seconds()
    days_left = math.ceil(seconds_left / 86400)
    return success({
        'endingSoon': 0 < days_left <= 2,
        'daysLeft': days_left,
        'trialEnd': as_utc(subscription.trial_end).isoformat()
    })

@bp.route('/limits', methods=['GET'])
@require_company
def get_subscription_limits():
    """
    Plan caps for the caller's company
    ---
    tags:
      - Subscriptions
    security:
      - Bearer: []
    responses:
      200:
        description: maxUsers, maxDrivers, maxVehicles (null = unlimited), canUseELD and plan names
      403:
        description: Subscription is not active
      404:
        description: No subscription found
    """
    plan = _active_limits().plan
    return success({
        'maxUsers': plan.max_users if plan else None,
        'maxDrivers': plan.max_drivers if plan else None,
        'maxVehicles': plan.max_vehicles if plan else None,
        'canUseELD': bool(plan and plan.name in ELD_PLANS),
        'planName': plan.name if plan else None,
        'planDisplayName': plan.display_name if plan else None
    })

def _capacity(count, limit):
    return {
        'allowed': limit is None or count < limit,
        'current': count,
        'limit': limit
    }

@bp.route('/can-add-user', methods=['GET'])
@require_company
def can_add_user():
    plan = _active_limits().plan
    count = User.query.filter_by(company_id=request.current_user['company_id']).count()
    return success(_capacity(count, plan.max_users if plan else None))

@bp.route('/can-add-driver', methods=['GET'])
@require_company
def can_add_driver():
    plan = _active_limits().plan
    count = Driver.query.filter_by(company_id=request.current_user['company_id']).count()
    return success(_capacity(count, plan.max_drivers if plan else None))

@bp.route('/billing-history', methods=['GET'])
@require_company
def get_billing_history():
    invoices = BillingInvoice.query.filter_by(company_id=request.current_user['company_id']) \
        .order_by(BillingInvoice.created_at.desc()).limit(50).all()
    return success([invoice.to_dict() for invoice in invoices])

@bp.route('/checkout', methods=['POST'])
@require_company
def create_checkout_session():
    """
    Create a Stripe Checkout session for a plan
    ---
    tags:
      - Subscriptions
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - plan_id
            properties:
              plan_id:
                type: string
    responses:
      200:
        description: sessionId and redirect url
      404:
        description: Plan not found
      503:
        description: Stripe not configured
    """
    data = request.get_json() or {}
    if not data.get('plan_id'):
        raise ApiError('plan_id is required')

    plan = _get_plan(data['plan_id'])
    result = stripe_billing.create_checkout_session(
        request.current_user['company_id'], request.current_user, plan
    )
    return success(result)

@bp.route('/cancel', methods=['POST'])
@require_role(*MANAGER_ROLES, message='Only managers can cancel subscriptions')
def cancel_subscription():
    subscription = _company_subscription()
    if subscription is None or not subscription.is_active:
        raise NotFoundError('No active subscription found')

    stripe_billing.set_cancel_at_period_end(subscription, True)
    current_app.logger.info(f"Subscription {subscription.id} set to cancel at period end")
    return success(subscription.to_dict())

@bp.route('/reactivate', methods=['POST'])
@require_role(*MANAGER_ROLES, message='Only managers can reactivate subscriptions')
def reactivate_subscription():
    subscription = _company_subscription()
    if subscription is None:
        raise NotFoundError('No subscription found')

    stripe_billing.set_cancel_at_period_end(subscription, False)
    return success(subscription.to_dict())

@bp.route('/paypal', methods=['POST'])
@require_company
def create_paypal_subscription():
    """
    Create a PayPal subscription and return its approval link
    ---
    tags:
      - Subscriptions
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - plan_id
            properties:
              plan_id:
                type: string
    responses:
      200:
        description: subscriptionId and approvalUrl
      404:
        description: Plan not found
      502:
        description: PayPal error or not configured
    """
    user = request.current_user
    data = request.get_json() or {}
    if not data.get('plan_id'):
        raise ApiError('plan_id is required')

    plan = _get_plan(data['plan_id'])
    client = PayPalClient.from_config()
    product = client.create_product(plan)
    billing_plan = client.create_billing_plan(product['id'], plan)
    paypal_subscription = client.create_subscription(
        billing_plan['id'],
        user.get('email'),
        user.get('full_name'),
        f"{user['company_id']}:{plan.id}",
        current_app.config['APP_URL']
    )

    approval_url = next(
        (link['href'] for link in paypal_subscription.get('links', []) if link.get('rel') == 'approve'),
        None
    )
    if not approval_url:
        raise ApiError('No approval URL returned from PayPal', 502)

    return success({'subscriptionId': paypal_subscription['id'], 'approvalUrl': approval_url})

@bp.route('/paypal/<paypal_subscription_id>/verify', methods=['POST'])
@require_company
def verify_paypal_subscription(paypal_subscription_id):
    """Check the PayPal subscription status after the user returns from approval"""
    paypal_subscription = PayPalClient.from_config().get_subscription(paypal_subscription_id)
    status = paypal_subscription.get('status')
    return success({
        'subscriptionId': paypal_subscription.get('id'),
        'status': status,
        'active': status in ('ACTIVE', 'APPROVED')
    })

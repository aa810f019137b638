from app import db
from sqlalchemy import Uuid
import uuid
from datetime import datetime, timezone

# Plans created when the subscription_plans table is empty. None means unlimited.
DEFAULT_PLANS = [
    {
        'name': 'starter',
        'display_name': 'Starter',
        'price_monthly': 29,
        'max_users': 10,
        'max_drivers': 15,
        'max_vehicles': 10,
        'features': ['basic'],
    },
    {
        'name': 'professional',
        'display_name': 'Professional',
        'price_monthly': 59,
        'max_users': 25,
        'max_drivers': 40,
        'max_vehicles': 30,
        'features': ['basic', 'eld', 'advanced'],
    },
    {
        'name': 'enterprise',
        'display_name': 'Enterprise',
        'price_monthly': 99,
        'max_users': None,
        'max_drivers': None,
        'max_vehicles': None,
        'features': ['basic', 'eld', 'advanced', 'enterprise'],
    },
]

class SubscriptionPlan(db.Model):
    __tablename__ = 'subscription_plans'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(50), unique=True, nullable=False)
    display_name = db.Column(db.String(100))
    description = db.Column(db.Text)
    price_monthly = db.Column(db.Numeric(10, 2), nullable=False)
    max_users = db.Column(db.Integer)
    max_drivers = db.Column(db.Integer)
    max_vehicles = db.Column(db.Integer)
    features = db.Column(db.JSON, default=list)
    stripe_price_id_monthly = db.Column(db.String(255))
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'display_name': self.display_name,
            'description': self.description,
            'price_monthly': float(self.price_monthly) if self.price_monthly is not None else None,
            'max_users': self.max_users,
            'max_drivers': self.max_drivers,
            'max_vehicles': self.max_vehicles,
            'features': self.features or [],
            'is_active': self.is_active
        }

    def __repr__(self):
        return f'<SubscriptionPlan {self.name}>'

class Subscription(db.Model):
    """One subscription per company, fed by Stripe or PayPal"""
    __tablename__ = 'subscriptions'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, unique=True)
    plan_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('subscription_plans.id'))
    status = db.Column(db.String(20), nullable=False, default='trialing')  # trialing, active, past_due, canceled

    stripe_subscription_id = db.Column(db.String(255), unique=True)
    stripe_customer_id = db.Column(db.String(255))
    stripe_price_id = db.Column(db.String(255))
    paypal_subscription_id = db.Column(db.String(255), unique=True)
    paypal_plan_id = db.Column(db.String(255))

    current_period_start = db.Column(db.DateTime(timezone=True))
    current_period_end = db.Column(db.DateTime(timezone=True))
    cancel_at_period_end = db.Column(db.Boolean, default=False)
    trial_start = db.Column(db.DateTime(timezone=True))
    trial_end = db.Column(db.DateTime(timezone=True))
    canceled_at = db.Column(db.DateTime(timezone=True))

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    plan = db.relationship('SubscriptionPlan', lazy='joined')

    @property
    def is_active(self):
        return self.status in ('active', 'trialing')

    def to_dict(self):
        def iso(value):
            return value.isoformat() if value else None

        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'plan_id': str(self.plan_id) if self.plan_id else None,
            'status': self.status,
            'stripe_subscription_id': self.stripe_subscription_id,
            'stripe_customer_id': self.stripe_customer_id,
            'stripe_price_id': self.stripe_price_id,
            'paypal_subscription_id': self.paypal_subscription_id,
            'current_period_start': iso(self.current_period_start),
            'current_period_end': iso(self.current_period_end),
            'cancel_at_period_end': self.cancel_at_period_end,
            'trial_start': iso(self.trial_start),
            'trial_end': iso(self.trial_end),
            'canceled_at': iso(self.canceled_at),
            'created_at': iso(self.created_at),
            'subscription_plans': self.plan.to_dict() if self.plan else None
        }

    def __repr__(self):
        return f'<Subscription {self.company_id} {self.status}>'

class BillingInvoice(db.Model):
    """Invoice issued to the company for its own subscription"""
    __tablename__ = 'billing_invoices'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    subscription_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('subscriptions.id', ondelete='SET NULL'))
    stripe_invoice_id = db.Column(db.String(255), unique=True)
    paypal_sale_id = db.Column(db.String(255), unique=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), default='usd')
    status = db.Column(db.String(20), default='open')  # open, paid
    invoice_pdf = db.Column(db.Text)
    hosted_invoice_url = db.Column(db.Text)
    period_start = db.Column(db.DateTime(timezone=True))
    period_end = db.Column(db.DateTime(timezone=True))
    paid_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'subscription_id': str(self.subscription_id) if self.subscription_id else None,
            'stripe_invoice_id': self.stripe_invoice_id,
            'paypal_sale_id': self.paypal_sale_id,
            'amount': float(self.amount) if self.amount is not None else None,
            'currency': self.currency,
            'status': self.status,
            'invoice_pdf': self.invoice_pdf,
            'hosted_invoice_url': self.hosted_invoice_url,
            'period_start': self.period_start.isoformat() if self.period_start else None,
            'period_end': self.period_end.isoformat() if self.period_end else None,
            'paid_at': self.paid_at.isoformat() if self.paid_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

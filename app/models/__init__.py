"""
SQLAlchemy Models Package

This package contains all database models organized by domain:
- Tenancy: Company, User
- Fleet: Customer, Vendor, Contact, Driver, Truck, Route, RouteStop, Load, Expense, MaintenanceRecord
- Communication: ChatThread, ChatMessage, ContactHistory, Alert
- Compliance: CrmDocument, DriverOnboarding, EldLog, EldEvent
- Fuel & IFTA: FuelPurchase, IftaTaxRate, StateCrossing, IdleTimeSession, IftaReport
- Accounting: Invoice, InvoiceVerification, DriverPayRule
- Billing: SubscriptionPlan, Subscription, BillingInvoice
- Integrations: LoadBoardIntegration, ExternalLoad, LoadSyncHistory
"""

# Tenancy
from app.models.user import Company, User

# Fleet
from app.models.fleet import (
    Customer, Vendor, Contact, Driver, Truck, Route, RouteStop, Load, Expense, MaintenanceRecord
)

# Communication
from app.models.chat import ChatThread, ChatMessage
from app.models.crm import ContactHistory, CrmDocument
from app.models.notification import Alert

# Compliance
from app.models.onboarding import DriverOnboarding
from app.models.eld import EldLog, EldEvent

# Fuel & IFTA
from app.models.fuel import FuelPurchase
from app.models.ifta import IftaTaxRate, StateCrossing, IdleTimeSession, IftaReport

# Accounting
from app.models.invoice import Invoice, InvoiceVerification
from app.models.settlement import DriverPayRule

# Billing
from app.models.billing import SubscriptionPlan, Subscription, BillingInvoice

# Integrations
from app.models.integration import LoadBoardIntegration, ExternalLoad, LoadSyncHistory

__all__ = [
    # Tenancy
    'Company',
    'User',
    # Fleet
    'Customer',
    'Vendor',
    'Contact',
    'Driver',
    'Truck',
    'Route',
    'RouteStop',
    'Load',
    'Expense',
    'MaintenanceRecord',
    # Communication
    'ChatThread',
    'ChatMessage',
    'ContactHistory',
    'CrmDocument',
    'Alert',
    # Compliance
    'DriverOnboarding',
    'EldLog',
    'EldEvent',
    # Fuel & IFTA
    'FuelPurchase',
    'IftaTaxRate',
    'StateCrossing',
    'IdleTimeSession',
    'IftaReport',
    # Accounting
    'Invoice',
    'InvoiceVerification',
    'DriverPayRule',
    # Billing
    'SubscriptionPlan',
    'Subscription',
    'BillingInvoice',
    # Integrations
    'LoadBoardIntegration',
    'ExternalLoad',
    'LoadSyncHistory',
]

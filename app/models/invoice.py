from app import db
from sqlalchemy import Uuid
import uuid
from datetime import datetime, timezone

class Invoice(db.Model):
    """Freight invoice billed to a customer for a load"""
    __tablename__ = 'invoices'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    invoice_number = db.Column(db.String(50), nullable=False)
    customer_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('customers.id', ondelete='SET NULL'))
    customer_name = db.Column(db.String(255))
    load_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('loads.id', ondelete='SET NULL'), index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    status = db.Column(db.String(20), default='pending')  # pending, sent, paid, overdue
    issue_date = db.Column(db.Date)
    due_date = db.Column(db.Date)

    # Three-way match (invoice / load / BOL)
    matching_status = db.Column(db.String(20), default='pending')  # pending, verified, exception
    requires_manual_review = db.Column(db.Boolean, default=False)
    exception_reason = db.Column(db.Text)
    verification_details = db.Column(db.JSON)
    verified_by = db.Column(Uuid(as_uuid=True), db.ForeignKey('users.id', ondelete='SET NULL'))
    verified_at = db.Column(db.DateTime(timezone=True))

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    load = db.relationship('Load', lazy='joined')

    def to_dict(self, include_load=False):
        data = {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'invoice_number': self.invoice_number,
            'customer_id': str(self.customer_id) if self.customer_id else None,
            'customer_name': self.customer_name,
            'load_id': str(self.load_id) if self.load_id else None,
            'amount': float(self.amount) if self.amount is not None else 0.0,
            'status': self.status,
            'issue_date': self.issue_date.isoformat() if self.issue_date else None,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'matching_status': self.matching_status,
            'requires_manual_review': self.requires_manual_review,
            'exception_reason': self.exception_reason,
            'verification_details': self.verification_details,
            'verified_by': str(self.verified_by) if self.verified_by else None,
            'verified_at': self.verified_at.isoformat() if self.verified_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }
        if include_load:
            data['load'] = {
                'id': str(self.load.id),
                'shipment_number': self.load.shipment_number,
                'value': float(self.load.value) if self.load.value is not None else None,
                'total_revenue': float(self.load.total_revenue) if self.load.total_revenue is not None else None
            } if self.load else None
        return data

    def __repr__(self):
        return f'<Invoice {self.invoice_number}>'

class InvoiceVerification(db.Model):
    """Result of the three-way match for one invoice"""
    __tablename__ = 'invoice_verifications'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    invoice_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, unique=True)
    load_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('loads.id', ondelete='SET NULL'))
    bol_id = db.Column(Uuid(as_uuid=True))
    verification_status = db.Column(db.String(20), default='pending')  # pending, verified, exception
    invoice_amount = db.Column(db.Numeric(12, 2))
    load_amount = db.Column(db.Numeric(12, 2))
    amount_difference = db.Column(db.Numeric(12, 2))
    discrepancies = db.Column(db.JSON, default=list)
    verified_by = db.Column(Uuid(as_uuid=True), db.ForeignKey('users.id', ondelete='SET NULL'))
    verified_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    invoice = db.relationship('Invoice', lazy='joined')
    load = db.relationship('Load', lazy='joined')

    def to_dict(self):
        def num(value):
            return float(value) if value is not None else None

        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'invoice_id': str(self.invoice_id),
            'load_id': str(self.load_id) if self.load_id else None,
            'bol_id': str(self.bol_id) if self.bol_id else None,
            'verification_status': self.verification_status,
            'invoice_amount': num(self.invoice_amount),
            'load_amount': num(self.load_amount),
            'amount_difference': num(self.amount_difference),
            'discrepancies': self.discrepancies or [],
            'verified_by': str(self.verified_by) if self.verified_by else None,
            'verified_at': self.verified_at.isoformat() if self.verified_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'invoice': {
                'id': str(self.invoice.id),
                'invoice_number': self.invoice.invoice_number,
                'amount': num(self.invoice.amount),
                'customer_name': self.invoice.customer_name,
                'matching_status': self.invoice.matching_status
            } if self.invoice else None,
            'load': {
                'id': str(self.load.id),
                'shipment_number': self.load.shipment_number,
                'value': num(self.load.value),
                'total_revenue': num(self.load.total_revenue),
                'estimated_revenue': num(self.load.estimated_revenue),
                'company_name': self.load.company_name
            } if self.load else None
        }

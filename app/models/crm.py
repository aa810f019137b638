from app import db
from sqlalchemy import Uuid
import uuid
from datetime import datetime, timezone

COMMUNICATION_TYPES = ('email', 'phone', 'sms', 'meeting', 'note', 'invoice_sent', 'payment_received')
CRM_DOCUMENT_TYPES = ('w9', 'coi', 'mc_certificate', 'insurance_policy', 'license', 'contract', 'other')

class ContactHistory(db.Model):
    """One logged communication with a customer or vendor"""
    __tablename__ = 'contact_history'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    customer_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('customers.id', ondelete='CASCADE'), index=True)
    vendor_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('vendors.id', ondelete='CASCADE'), index=True)
    contact_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('contacts.id', ondelete='SET NULL'))
    type = db.Column(db.String(30), nullable=False)
    subject = db.Column(db.String(255))
    message = db.Column(db.Text)
    direction = db.Column(db.String(10), nullable=False, default='outbound')  # inbound, outbound
    load_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('loads.id', ondelete='SET NULL'))
    invoice_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('invoices.id', ondelete='SET NULL'))
    user_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('users.id', ondelete='SET NULL'))
    occurred_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    attachments = db.Column(db.JSON)
    external_id = db.Column(db.String(255), unique=True)
    source = db.Column(db.String(20), nullable=False, default='manual')  # manual, email, sms, webhook
    # 'metadata' is reserved on declarative models
    extra_metadata = db.Column('metadata', db.JSON, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    customer = db.relationship('Customer', lazy='joined')
    vendor = db.relationship('Vendor', lazy='joined')
    contact = db.relationship('Contact', lazy='joined')
    user = db.relationship('User', lazy='joined')

    def to_dict(self, include_names=False):
        data = {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'customer_id': str(self.customer_id) if self.customer_id else None,
            'vendor_id': str(self.vendor_id) if self.vendor_id else None,
            'contact_id': str(self.contact_id) if self.contact_id else None,
            'type': self.type,
            'subject': self.subject,
            'message': self.message,
            'direction': self.direction,
            'load_id': str(self.load_id) if self.load_id else None,
            'invoice_id': str(self.invoice_id) if self.invoice_id else None,
            'user_id': str(self.user_id) if self.user_id else None,
            'occurred_at': self.occurred_at.isoformat() if self.occurred_at else None,
            'attachments': self.attachments,
            'external_id': self.external_id,
            'source': self.source,
            'metadata': self.extra_metadata or {},
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
        if include_names:
            data['customer_name'] = self.customer.name if self.customer else None
            data['vendor_name'] = self.vendor.name if self.vendor else None
            data['contact_name'] = f'{self.contact.first_name} {self.contact.last_name}' if self.contact else None
            data['user_name'] = self.user.full_name if self.user else None
        return data

    def __repr__(self):
        return f'<ContactHistory {self.type} {self.direction}>'

class CrmDocument(db.Model):
    """W9, COI, MC certificate and similar paperwork with expiration tracking"""
    __tablename__ = 'crm_documents'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    customer_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('customers.id', ondelete='CASCADE'))
    vendor_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('vendors.id', ondelete='CASCADE'))
    document_type = db.Column(db.String(30), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    storage_key = db.Column(db.String(500), nullable=False)
    storage_url = db.Column(db.Text, nullable=False)
    file_size = db.Column(db.Integer)
    mime_type = db.Column(db.String(100))
    expiration_date = db.Column(db.Date, index=True)
    expiration_alert_sent = db.Column(db.Boolean, default=False)
    uploaded_by = db.Column(Uuid(as_uuid=True), db.ForeignKey('users.id', ondelete='SET NULL'))
    uploaded_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    customer = db.relationship('Customer', lazy='joined')
    vendor = db.relationship('Vendor', lazy='joined')

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'customer_id': str(self.customer_id) if self.customer_id else None,
            'vendor_id': str(self.vendor_id) if self.vendor_id else None,
            'document_type': self.document_type,
            'name': self.name,
            'description': self.description,
            'storage_url': self.storage_url,
            'file_size': self.file_size,
            'mime_type': self.mime_type,
            'expiration_date': self.expiration_date.isoformat() if self.expiration_date else None,
            'expiration_alert_sent': self.expiration_alert_sent,
            'uploaded_by': str(self.uploaded_by) if self.uploaded_by else None,
            'uploaded_at': self.uploaded_at.isoformat() if self.uploaded_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'customer_name': self.customer.name if self.customer else None,
            'vendor_name': self.vendor.name if self.vendor else None
        }

    def __repr__(self):
        return f'<CrmDocument {self.document_type} {self.name}>'

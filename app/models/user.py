from app import db
from sqlalchemy import Uuid
import uuid
from datetime import datetime, timezone

class Company(db.Model):
    """Tenant. Every business row carries a company_id pointing here."""
    __tablename__ = 'companies'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(255), nullable=False)
    dot_number = db.Column(db.String(20))
    mc_number = db.Column(db.String(20))
    email = db.Column(db.String(255))
    phone = db.Column(db.String(20))

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    users = db.relationship('User', backref='company', lazy='dynamic')

    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'dot_number': self.dot_number,
            'mc_number': self.mc_number,
            'email': self.email,
            'phone': self.phone,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    def __repr__(self):
        return f'<Company {self.name}>'

class User(db.Model):
    """Application user (dispatcher, manager, driver...)"""
    __tablename__ = 'users'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Subject claim of the access token
    auth_sub = db.Column(db.String(255), unique=True, nullable=False, index=True)

    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='SET NULL'), index=True)

    # Profile Info
    email = db.Column(db.String(255), unique=True, nullable=False)
    full_name = db.Column(db.String(100))
    phone_number = db.Column(db.String(20))
    role = db.Column(db.String(30), nullable=False, default='dispatcher')  # owner, manager, dispatcher, accountant, driver
    is_active = db.Column(db.Boolean, default=True)

    # Timestamps
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id) if self.company_id else None,
            'email': self.email,
            'full_name': self.full_name,
            'phone_number': self.phone_number,
            'role': self.role,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    def __repr__(self):
        return f'<User {self.email}>'

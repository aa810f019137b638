from app import db
from sqlalchemy import Uuid
import uuid
from datetime import datetime, timezone

PAY_TYPES = ('per_mile', 'percentage', 'flat', 'hybrid')

class DriverPayRule(db.Model):
    """Pay structure for a driver over an effective date range"""
    __tablename__ = 'driver_pay_rules'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    driver_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('drivers.id', ondelete='CASCADE'), nullable=False, index=True)
    pay_type = db.Column(db.String(20), nullable=False)
    base_rate_per_mile = db.Column(db.Numeric(10, 4))
    base_percentage = db.Column(db.Numeric(5, 2))
    base_flat_rate = db.Column(db.Numeric(10, 2))
    # [{type, amount, description, threshold?, condition?}]
    bonuses = db.Column(db.JSON, default=list)
    # [{type, percentage?, amount?, description}]
    deductions = db.Column(db.JSON, default=list)
    minimum_pay_guarantee = db.Column(db.Numeric(10, 2))
    effective_from = db.Column(db.Date, nullable=False)
    effective_to = db.Column(db.Date)
    is_active = db.Column(db.Boolean, default=True)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        def num(value):
            return float(value) if value is not None else None

        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'driver_id': str(self.driver_id),
            'pay_type': self.pay_type,
            'base_rate_per_mile': num(self.base_rate_per_mile),
            'base_percentage': num(self.base_percentage),
            'base_flat_rate': num(self.base_flat_rate),
            'bonuses': self.bonuses or [],
            'deductions': self.deductions or [],
            'minimum_pay_guarantee': num(self.minimum_pay_guarantee),
            'effective_from': self.effective_from.isoformat() if self.effective_from else None,
            'effective_to': self.effective_to.isoformat() if self.effective_to else None,
            'is_active': self.is_active,
            'notes': self.notes,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    def __repr__(self):
        return f'<DriverPayRule {self.driver_id} {self.pay_type}>'

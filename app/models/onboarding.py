from app import db
from sqlalchemy import Uuid
import uuid
from datetime import datetime, timezone

REQUIRED_ONBOARDING_DOCUMENTS = ['license', 'medical_card', 'insurance', 'w9', 'i9']
ONBOARDING_TOTAL_STEPS = 5

class DriverOnboarding(db.Model):
    __tablename__ = 'driver_onboarding'
    __table_args__ = (
        db.UniqueConstraint('company_id', 'driver_id', name='uq_driver_onboarding_driver'),
    )

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    driver_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('drivers.id', ondelete='CASCADE'), nullable=False)

    status = db.Column(db.String(20), nullable=False, default='in_progress')  # in_progress, completed
    current_step = db.Column(db.Integer, nullable=False, default=1)
    total_steps = db.Column(db.Integer, nullable=False, default=ONBOARDING_TOTAL_STEPS)
    completion_percentage = db.Column(db.Integer, nullable=False, default=0)

    documents_required = db.Column(db.JSON, default=list)
    documents_completed = db.Column(db.JSON, default=list)
    documents_missing = db.Column(db.JSON, default=list)

    license_uploaded = db.Column(db.Boolean, default=False)
    medical_card_uploaded = db.Column(db.Boolean, default=False)
    insurance_uploaded = db.Column(db.Boolean, default=False)
    w9_uploaded = db.Column(db.Boolean, default=False)
    i9_uploaded = db.Column(db.Boolean, default=False)

    assigned_to_user_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('users.id', ondelete='SET NULL'))
    assigned_at = db.Column(db.DateTime(timezone=True))
    started_at = db.Column(db.DateTime(timezone=True))
    completed_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    driver = db.relationship('Driver', lazy='joined')
    assigned_to = db.relationship('User', lazy='joined')

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'driver_id': str(self.driver_id),
            'status': self.status,
            'current_step': self.current_step,
            'total_steps': self.total_steps,
            'completion_percentage': self.completion_percentage,
            'documents_required': self.documents_required or [],
            'documents_completed': self.documents_completed or [],
            'documents_missing': self.documents_missing or [],
            'license_uploaded': self.license_uploaded,
            'medical_card_uploaded': self.medical_card_uploaded,
            'insurance_uploaded': self.insurance_uploaded,
            'w9_uploaded': self.w9_uploaded,
            'i9_uploaded': self.i9_uploaded,
            'assigned_to_user_id': str(self.assigned_to_user_id) if self.assigned_to_user_id else None,
            'assigned_at': self.assigned_at.isoformat() if self.assigned_at else None,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'driver': {
                'id': str(self.driver.id),
                'name': self.driver.name,
                'email': self.driver.email,
                'phone': self.driver.phone,
                'status': self.driver.status
            } if self.driver else None,
            'assigned_to': {
                'id': str(self.assigned_to.id),
                'full_name': self.assigned_to.full_name,
                'email': self.assigned_to.email
            } if self.assigned_to else None
        }

    def __repr__(self):
        return f'<DriverOnboarding {self.driver_id} {self.status}>'

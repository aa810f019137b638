from app import db
from sqlalchemy import Uuid
import uuid
from datetime import datetime, timezone

class Alert(db.Model):
    """Company-wide alert shown in the dashboard feed"""
    __tablename__ = 'alerts'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)

    # Content
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text)
    event_type = db.Column(db.String(50))  # 'document_expiration', 'hos_alert', etc.
    priority = db.Column(db.String(20), default='normal')  # low, normal, high, critical
    alert_metadata = db.Column('metadata', db.JSON, default=dict)

    is_read = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'title': self.title,
            'message': self.message,
            'event_type': self.event_type,
            'priority': self.priority,
            'metadata': self.alert_metadata or {},
            'is_read': self.is_read,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    def __repr__(self):
        return f'<Alert {self.id}>'

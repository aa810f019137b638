from app import db
from sqlalchemy import Uuid
import uuid
from datetime import datetime, timezone

LOG_TYPES = ('driving', 'on_duty', 'off_duty', 'sleeper_berth')

class EldLog(db.Model):
    """Duty status segment recorded by an ELD device"""
    __tablename__ = 'eld_logs'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    driver_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('drivers.id', ondelete='CASCADE'), nullable=False, index=True)
    truck_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('trucks.id', ondelete='SET NULL'))
    log_date = db.Column(db.Date, nullable=False, index=True)
    log_type = db.Column(db.String(20), nullable=False)
    start_time = db.Column(db.DateTime(timezone=True), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True))  # null while the segment is open
    duration_minutes = db.Column(db.Integer)
    miles_driven = db.Column(db.Numeric(10, 1))
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'driver_id': str(self.driver_id),
            'truck_id': str(self.truck_id) if self.truck_id else None,
            'log_date': self.log_date.isoformat() if self.log_date else None,
            'log_type': self.log_type,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'duration_minutes': self.duration_minutes,
            'miles_driven': float(self.miles_driven) if self.miles_driven is not None else None,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    def __repr__(self):
        return f'<EldLog {self.driver_id} {self.log_type}>'

class EldEvent(db.Model):
    """Fault code, violation or alert raised for a truck/driver"""
    __tablename__ = 'eld_events'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    driver_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('drivers.id', ondelete='SET NULL'))
    truck_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('trucks.id', ondelete='SET NULL'))
    event_type = db.Column(db.String(30), nullable=False)  # fault_code, hos_violation, hos_alert, ...
    severity = db.Column(db.String(20), default='info')  # info, warning, critical
    title = db.Column(db.String(255))
    description = db.Column(db.Text)
    fault_code = db.Column(db.String(50))
    maintenance_created = db.Column(db.Boolean, default=False)
    event_time = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    resolved = db.Column(db.Boolean, default=False)
    event_metadata = db.Column('metadata', db.JSON, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'driver_id': str(self.driver_id) if self.driver_id else None,
            'truck_id': str(self.truck_id) if self.truck_id else None,
            'event_type': self.event_type,
            'severity': self.severity,
            'title': self.title,
            'description': self.description,
            'fault_code': self.fault_code,
            'maintenance_created': self.maintenance_created,
            'event_time': self.event_time.isoformat() if self.event_time else None,
            'resolved': self.resolved,
            'metadata': self.event_metadata or {},
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    def __repr__(self):
        return f'<EldEvent {self.event_type} {self.severity}>'

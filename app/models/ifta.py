from app import db
from sqlalchemy import Uuid
import uuid
from datetime import datetime, timezone

def _num(value):
    return float(value) if value is not None else None

class IftaTaxRate(db.Model):
    """Per-gallon fuel tax rate for one state and quarter"""
    __tablename__ = 'ifta_tax_rates'
    __table_args__ = (
        db.UniqueConstraint('company_id', 'state_code', 'quarter', 'year', name='uq_ifta_tax_rate_period'),
    )

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    state_code = db.Column(db.String(2), nullable=False)
    state_name = db.Column(db.String(100))
    quarter = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)
    tax_rate_per_gallon = db.Column(db.Numeric(8, 4), nullable=False)
    effective_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date)
    notes = db.Column(db.Text)
    created_by = db.Column(Uuid(as_uuid=True), db.ForeignKey('users.id', ondelete='SET NULL'))
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'state_code': self.state_code,
            'state_name': self.state_name,
            'quarter': self.quarter,
            'year': self.year,
            'tax_rate_per_gallon': _num(self.tax_rate_per_gallon),
            'effective_date': self.effective_date.isoformat() if self.effective_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'notes': self.notes,
            'created_by': str(self.created_by) if self.created_by else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    def __repr__(self):
        return f'<IftaTaxRate {self.state_code} Q{self.quarter} {self.year}>'

class StateCrossing(db.Model):
    """State line crossing detected from a location update"""
    __tablename__ = 'state_crossings'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    truck_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('trucks.id', ondelete='SET NULL'), index=True)
    driver_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('drivers.id', ondelete='SET NULL'))
    eld_device_id = db.Column(db.String(100))
    route_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('routes.id', ondelete='SET NULL'))
    load_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('loads.id', ondelete='SET NULL'))
    state_code = db.Column(db.String(2), nullable=False)
    state_name = db.Column(db.String(100))
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    address = db.Column(db.String(500))
    speed = db.Column(db.Float)
    odometer = db.Column(db.Float)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'truck_id': str(self.truck_id) if self.truck_id else None,
            'driver_id': str(self.driver_id) if self.driver_id else None,
            'eld_device_id': self.eld_device_id,
            'route_id': str(self.route_id) if self.route_id else None,
            'load_id': str(self.load_id) if self.load_id else None,
            'state_code': self.state_code,
            'state_name': self.state_name,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'address': self.address,
            'speed': self.speed,
            'odometer': self.odometer,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

class IdleTimeSession(db.Model):
    __tablename__ = 'idle_time_sessions'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    truck_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('trucks.id', ondelete='CASCADE'), index=True)
    driver_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('drivers.id', ondelete='SET NULL'))
    start_time = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    end_time = db.Column(db.DateTime(timezone=True))
    duration_minutes = db.Column(db.Integer)
    location_latitude = db.Column(db.Float)
    location_longitude = db.Column(db.Float)
    idle_type = db.Column(db.String(30), default='engine_idle')
    engine_status = db.Column(db.String(20), default='unknown')
    speed = db.Column(db.Float, default=0)
    estimated_fuel_gallons = db.Column(db.Numeric(10, 3))
    estimated_fuel_cost = db.Column(db.Numeric(10, 2))
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    truck = db.relationship('Truck', lazy='joined')
    driver = db.relationship('Driver', lazy='joined')

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'truck_id': str(self.truck_id) if self.truck_id else None,
            'driver_id': str(self.driver_id) if self.driver_id else None,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'duration_minutes': self.duration_minutes,
            'location_latitude': self.location_latitude,
            'location_longitude': self.location_longitude,
            'idle_type': self.idle_type,
            'engine_status': self.engine_status,
            'speed': self.speed,
            'estimated_fuel_gallons': _num(self.estimated_fuel_gallons),
            'estimated_fuel_cost': _num(self.estimated_fuel_cost),
            'truck': {
                'truck_number': self.truck.truck_number,
                'make': self.truck.make,
                'model': self.truck.model
            } if self.truck else None,
            'driver': {'name': self.driver.name} if self.driver else None
        }

class IftaReport(db.Model):
    __tablename__ = 'ifta_reports'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    quarter = db.Column(db.String(2), nullable=False)  # Q1..Q4
    year = db.Column(db.Integer, nullable=False)
    period = db.Column(db.String(50))
    period_start = db.Column(db.Date)
    period_end = db.Column(db.Date)
    total_miles = db.Column(db.Numeric(12, 1), default=0)
    fuel_purchased = db.Column(db.Numeric(12, 1), default=0)
    tax_owed = db.Column(db.Numeric(12, 2), default=0)
    status = db.Column(db.String(20), default='draft')  # draft, filed
    truck_ids = db.Column(db.JSON, default=list)
    include_eld = db.Column(db.Boolean, default=False)
    # [{state_code, state_name, miles, fuel_gallons, tax_rate, tax}]
    state_breakdown = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'quarter': self.quarter,
            'year': self.year,
            'period': self.period,
            'period_start': self.period_start.isoformat() if self.period_start else None,
            'period_end': self.period_end.isoformat() if self.period_end else None,
            'total_miles': _num(self.total_miles),
            'fuel_purchased': _num(self.fuel_purchased),
            'tax_owed': _num(self.tax_owed),
            'status': self.status,
            'truck_ids': self.truck_ids or [],
            'include_eld': self.include_eld,
            'state_breakdown': self.state_breakdown or [],
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    def __repr__(self):
        return f'<IftaReport {self.quarter} {self.year}>'

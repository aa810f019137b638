from app import db
from sqlalchemy import Uuid
import uuid
from datetime import datetime, timezone

class FuelPurchase(db.Model):
    __tablename__ = 'fuel_purchases'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    truck_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('trucks.id', ondelete='SET NULL'), index=True)
    driver_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('drivers.id', ondelete='SET NULL'))
    purchase_date = db.Column(db.Date, nullable=False, index=True)
    state = db.Column(db.String(2), nullable=False)
    city = db.Column(db.String(255))
    station_name = db.Column(db.String(255))
    gallons = db.Column(db.Numeric(10, 3), nullable=False)
    price_per_gallon = db.Column(db.Numeric(10, 4))
    total_cost = db.Column(db.Numeric(12, 2), nullable=False)
    receipt_number = db.Column(db.String(100))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    truck = db.relationship('Truck', lazy='joined')

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'truck_id': str(self.truck_id) if self.truck_id else None,
            'truck_number': self.truck.truck_number if self.truck else None,
            'driver_id': str(self.driver_id) if self.driver_id else None,
            'purchase_date': self.purchase_date.isoformat() if self.purchase_date else None,
            'state': self.state,
            'city': self.city,
            'station_name': self.station_name,
            'gallons': float(self.gallons) if self.gallons is not None else None,
            'price_per_gallon': float(self.price_per_gallon) if self.price_per_gallon is not None else None,
            'total_cost': float(self.total_cost) if self.total_cost is not None else None,
            'receipt_number': self.receipt_number,
            'notes': self.notes,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    def __repr__(self):
        return f'<FuelPurchase {self.state} {self.gallons}gal>'

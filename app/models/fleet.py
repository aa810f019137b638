from app import db
from sqlalchemy import Uuid
import uuid
from datetime import datetime, timezone

def _iso(value):
    return value.isoformat() if value else None

def _id(value):
    return str(value) if value else None

class Customer(db.Model):
    __tablename__ = 'customers'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255))
    phone = db.Column(db.String(20))
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f'<Customer {self.name}>'

class Vendor(db.Model):
    __tablename__ = 'vendors'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255))
    phone = db.Column(db.String(20))
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f'<Vendor {self.name}>'

class Contact(db.Model):
    """Person at a customer or vendor"""
    __tablename__ = 'contacts'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    customer_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('customers.id', ondelete='CASCADE'))
    vendor_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('vendors.id', ondelete='CASCADE'))
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    email = db.Column(db.String(255))
    phone = db.Column(db.String(20))

    @property
    def full_name(self):
        return f'{self.first_name or ""} {self.last_name or ""}'.strip()

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'customer_id': _id(self.customer_id),
            'vendor_id': _id(self.vendor_id),
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
            'phone': self.phone
        }

class Driver(db.Model):
    __tablename__ = 'drivers'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('users.id', ondelete='SET NULL'))
    truck_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('trucks.id', ondelete='SET NULL', use_alter=True))
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255))
    phone = db.Column(db.String(20))
    license_number = db.Column(db.String(50))
    license_expiry = db.Column(db.Date)
    status = db.Column(db.String(30), default='pending')  # pending, active, inactive, on_leave
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'user_id': _id(self.user_id),
            'truck_id': _id(self.truck_id),
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'license_number': self.license_number,
            'license_expiry': _iso(self.license_expiry),
            'status': self.status,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }

    def __repr__(self):
        return f'<Driver {self.name}>'

class Truck(db.Model):
    __tablename__ = 'trucks'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    truck_number = db.Column(db.String(50), nullable=False)
    make = db.Column(db.String(100))
    model = db.Column(db.String(100))
    year = db.Column(db.Integer)
    vin = db.Column(db.String(17))
    current_driver_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('drivers.id', ondelete='SET NULL'))
    status = db.Column(db.String(30), default='available')
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'truck_number': self.truck_number,
            'make': self.make,
            'model': self.model,
            'year': self.year,
            'vin': self.vin,
            'current_driver_id': _id(self.current_driver_id),
            'status': self.status,
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f'<Truck {self.truck_number}>'

class Route(db.Model):
    __tablename__ = 'routes'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255))
    origin = db.Column(db.String(255))
    destination = db.Column(db.String(255))
    distance = db.Column(db.String(50))  # display string, e.g. "412 mi"
    truck_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('trucks.id', ondelete='SET NULL'))
    driver_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('drivers.id', ondelete='SET NULL'))
    status = db.Column(db.String(30), default='planned')
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    stops = db.relationship('RouteStop', backref='route', lazy='dynamic', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'name': self.name,
            'origin': self.origin,
            'destination': self.destination,
            'distance': self.distance,
            'truck_id': _id(self.truck_id),
            'driver_id': _id(self.driver_id),
            'status': self.status,
            'created_at': _iso(self.created_at)
        }

class RouteStop(db.Model):
    __tablename__ = 'route_stops'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    route_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('routes.id', ondelete='CASCADE'), nullable=False, index=True)
    sequence = db.Column(db.Integer, nullable=False, default=1)
    address = db.Column(db.String(255))
    stop_type = db.Column(db.String(30))  # pickup, delivery, fuel, rest

    def to_dict(self):
        return {
            'id': str(self.id),
            'route_id': str(self.route_id),
            'sequence': self.sequence,
            'address': self.address,
            'stop_type': self.stop_type
        }

class Load(db.Model):
    __tablename__ = 'loads'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    shipment_number = db.Column(db.String(50), nullable=False)
    status = db.Column(db.String(30), default='pending')  # pending, scheduled, assigned, in_transit, delivered, cancelled
    customer_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('customers.id', ondelete='SET NULL'))
    company_name = db.Column(db.String(255))  # customer name as entered on the load
    driver_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('drivers.id', ondelete='SET NULL'), index=True)
    truck_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('trucks.id', ondelete='SET NULL'), index=True)
    route_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('routes.id', ondelete='SET NULL'))
    origin = db.Column(db.String(255))
    destination = db.Column(db.String(255))
    load_type = db.Column(db.String(30))  # dry_van, reefer, hazmat, flatbed
    value = db.Column(db.Numeric(12, 2))
    total_revenue = db.Column(db.Numeric(12, 2))
    estimated_revenue = db.Column(db.Numeric(12, 2))
    miles = db.Column(db.Numeric(10, 1))
    on_time_delivery = db.Column(db.Boolean)
    pickup_date = db.Column(db.Date)
    delivery_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'shipment_number': self.shipment_number,
            'status': self.status,
            'customer_id': _id(self.customer_id),
            'company_name': self.company_name,
            'driver_id': _id(self.driver_id),
            'truck_id': _id(self.truck_id),
            'route_id': _id(self.route_id),
            'origin': self.origin,
            'destination': self.destination,
            'load_type': self.load_type,
            'value': float(self.value) if self.value is not None else None,
            'total_revenue': float(self.total_revenue) if self.total_revenue is not None else None,
            'estimated_revenue': float(self.estimated_revenue) if self.estimated_revenue is not None else None,
            'miles': float(self.miles) if self.miles is not None else None,
            'on_time_delivery': self.on_time_delivery,
            'pickup_date': _iso(self.pickup_date),
            'delivery_date': _iso(self.delivery_date),
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f'<Load {self.shipment_number}>'

class Expense(db.Model):
    __tablename__ = 'expenses'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    vendor_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('vendors.id', ondelete='SET NULL'))
    vendor = db.Column(db.String(255))
    description = db.Column(db.Text)
    amount = db.Column(db.Numeric(12, 2))
    date = db.Column(db.Date)

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'vendor_id': _id(self.vendor_id),
            'vendor': self.vendor,
            'description': self.description,
            'amount': float(self.amount) if self.amount is not None else None,
            'date': _iso(self.date)
        }

class MaintenanceRecord(db.Model):
    __tablename__ = 'maintenance'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    truck_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('trucks.id', ondelete='CASCADE'))
    vendor_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('vendors.id', ondelete='SET NULL'))
    vendor = db.Column(db.String(255))
    service_type = db.Column(db.String(100))
    scheduled_date = db.Column(db.Date)
    status = db.Column(db.String(30), default='scheduled')

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'truck_id': _id(self.truck_id),
            'vendor_id': _id(self.vendor_id),
            'vendor': self.vendor,
            'service_type': self.service_type,
            'scheduled_date': _iso(self.scheduled_date),
            'status': self.status
        }

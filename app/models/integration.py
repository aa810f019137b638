from app import db
from sqlalchemy import Uuid
import uuid
from datetime import datetime, timezone

LOAD_BOARD_PROVIDERS = ('dat', 'truckstop', '123loadboard')

def _mask(value):
    if not value:
        return None
    return '***' + value[-4:] if len(value) > 4 else '***'

class LoadBoardIntegration(db.Model):
    """Credentials and sync settings for one external load board"""
    __tablename__ = 'load_board_integrations'
    __table_args__ = (
        db.UniqueConstraint('company_id', 'provider', name='uq_load_board_integration_provider'),
    )

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    provider = db.Column(db.String(30), nullable=False)
    enabled = db.Column(db.Boolean, default=False)

    # Credentials
    api_key = db.Column(db.Text)
    api_secret = db.Column(db.Text)
    username = db.Column(db.String(255))
    password = db.Column(db.Text)
    subscription_tier = db.Column(db.String(50))

    # Sync settings
    sync_enabled = db.Column(db.Boolean, default=False)
    sync_filters = db.Column(db.JSON, default=dict)  # origin, destination, equipment_type, min_rate, max_rate
    max_loads_per_sync = db.Column(db.Integer, default=100)

    last_sync_at = db.Column(db.DateTime(timezone=True))
    last_sync_status = db.Column(db.String(20))  # success, partial, error
    last_sync_error = db.Column(db.Text)
    total_loads_synced = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'provider': self.provider,
            'enabled': self.enabled,
            'api_key': _mask(self.api_key),
            'api_secret': _mask(self.api_secret),
            'username': self.username,
            'password': '***' if self.password else None,
            'subscription_tier': self.subscription_tier,
            'sync_enabled': self.sync_enabled,
            'sync_filters': self.sync_filters or {},
            'max_loads_per_sync': self.max_loads_per_sync,
            'last_sync_at': self.last_sync_at.isoformat() if self.last_sync_at else None,
            'last_sync_status': self.last_sync_status,
            'last_sync_error': self.last_sync_error,
            'total_loads_synced': self.total_loads_synced,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

    def __repr__(self):
        return f'<LoadBoardIntegration {self.provider}>'

class ExternalLoad(db.Model):
    """Load posting pulled from an external load board"""
    __tablename__ = 'external_loads'
    __table_args__ = (
        db.UniqueConstraint('company_id', 'external_board', 'external_load_id', name='uq_external_load_board_id'),
    )

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False, index=True)
    integration_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('load_board_integrations.id', ondelete='CASCADE'))
    external_load_id = db.Column(db.String(100), nullable=False)
    external_board = db.Column(db.String(30), nullable=False)
    external_url = db.Column(db.Text)
    origin = db.Column(db.String(255))
    destination = db.Column(db.String(255))
    rate = db.Column(db.Numeric(12, 2))
    rate_type = db.Column(db.String(20), default='flat')
    equipment_type = db.Column(db.String(50))
    weight_lbs = db.Column(db.Integer)
    weight_kg = db.Column(db.Integer)
    pickup_date = db.Column(db.String(30))
    delivery_date = db.Column(db.String(30))
    distance_miles = db.Column(db.Numeric(10, 1))
    broker_name = db.Column(db.String(255))
    broker_mc_number = db.Column(db.String(50))
    broker_rating = db.Column(db.Numeric(3, 1))
    broker_days_to_pay = db.Column(db.Integer)
    broker_credit_score = db.Column(db.String(20))
    load_description = db.Column(db.Text)
    special_requirements = db.Column(db.Text)
    contact_name = db.Column(db.String(255))
    contact_phone = db.Column(db.String(50))
    contact_email = db.Column(db.String(255))
    status = db.Column(db.String(20), default='available')  # available, imported, expired
    imported_load_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('loads.id', ondelete='SET NULL'))
    expires_at = db.Column(db.String(40))
    raw_data = db.Column(db.JSON)
    synced_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        def num(value):
            return float(value) if value is not None else None

        return {
            'id': str(self.id),
            'company_id': str(self.company_id),
            'integration_id': str(self.integration_id) if self.integration_id else None,
            'external_load_id': self.external_load_id,
            'external_board': self.external_board,
            'external_url': self.external_url,
            'origin': self.origin,
            'destination': self.destination,
            'rate': num(self.rate),
            'rate_type': self.rate_type,
            'equipment_type': self.equipment_type,
            'weight_lbs': self.weight_lbs,
            'weight_kg': self.weight_kg,
            'pickup_date': self.pickup_date,
            'delivery_date': self.delivery_date,
            'distance_miles': num(self.distance_miles),
            'broker_name': self.broker_name,
            'broker_mc_number': self.broker_mc_number,
            'broker_rating': num(self.broker_rating),
            'broker_days_to_pay': self.broker_days_to_pay,
            'broker_credit_score': self.broker_credit_score,
            'load_description': self.load_description,
            'special_requirements': self.special_requirements,
            'contact_name': self.contact_name,
            'contact_phone': self.contact_phone,
            'contact_email': self.contact_email,
            'status': self.status,
            'imported_load_id': str(self.imported_load_id) if self.imported_load_id else None,
            'expires_at': self.expires_at,
            'synced_at': self.synced_at.isoformat() if self.synced_at else None
        }

    def __repr__(self):
        return f'<ExternalLoad {self.external_board}:{self.external_load_id}>'

class LoadSyncHistory(db.Model):
    __tablename__ = 'external_load_sync_history'

    id = db.Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('companies.id', ondelete='CASCADE'), nullable=False)
    integration_id = db.Column(Uuid(as_uuid=True), db.ForeignKey('load_board_integrations.id', ondelete='CASCADE'), nullable=False)
    sync_type = db.Column(db.String(20), default='manual')  # manual, automatic
    status = db.Column(db.String(20), default='success')
    loads_found = db.Column(db.Integer, default=0)
    loads_synced = db.Column(db.Integer, default=0)
    loads_updated = db.Column(db.Integer, default=0)
    errors_count = db.Column(db.Integer, default=0)
    error_message = db.Column(db.Text)
    started_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    completed_at = db.Column(db.DateTime(timezone=True))
    duration_seconds = db.Column(db.Integer)

    def to_dict(self):
        return {
            'id': str(self.id),
            'integration_id': str(self.integration_id),
            'sync_type': self.sync_type,
            'status': self.status,
            'loads_found': self.loads_found,
            'loads_synced': self.loads_synced,
            'loads_updated': self.loads_updated,
            'errors_count': self.errors_count,
            'error_message': self.error_message,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'duration_seconds': self.duration_seconds
        }

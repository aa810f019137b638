"""Pull postings from a load board into external_loads"""
import logging
import time

from app import db
from app.models.fleet import Load
from app.models.integration import ExternalLoad, LoadSyncHistory
from app.services.loadboards import get_client
from app.utils.errors import IntegrationError
from app.utils.helpers import parse_date, utcnow

logger = logging.getLogger(__name__)

SYNC_FILTER_KEYS = ('origin', 'destination', 'equipment_type', 'min_rate', 'max_rate')

def _sync_status(errors_count, loads_synced):
    if errors_count and loads_synced == 0:
        return 'error'
    if errors_count:
        return 'partial'
    return 'success'

def _upsert_external_load(row):
    """Returns True when a new row was inserted, False when an existing one was updated"""
    existing = ExternalLoad.query.filter_by(
        company_id=row['company_id'],
        external_board=row['external_board'],
        external_load_id=row['external_load_id']
    ).first()

    if existing is None:
        db.session.add(ExternalLoad(**row))
        db.session.commit()
        return True

    for key, value in row.items():
        setattr(existing, key, value)
    existing.synced_at = utcnow()
    db.session.commit()
    return False

def sync_integration(integration, sync_type='manual'):
    started = time.time()
    history = LoadSyncHistory(
        company_id=integration.company_id,
        integration_id=integration.id,
        sync_type=sync_type,
        status='success',
        started_at=utcnow()
    )
    db.session.add(history)
    db.session.commit()

    try:
        client = get_client(integration)
        filters = {key: (integration.sync_filters or {}).get(key) for key in SYNC_FILTER_KEYS}
        filters['limit'] = integration.max_loads_per_sync or 100
        postings = client.search_loads(filters)
    except IntegrationError as e:
        db.session.rollback()
        logger.error(f"Sync of {integration.provider} for company {integration.company_id} failed: {e.message}")
        history.status = 'error'
        history.errors_count = 1
        history.error_message = e.message
        history.completed_at = utcnow()
        history.duration_seconds = round(time.time() - started)
        integration.last_sync_status = 'error'
        integration.last_sync_error = e.message
        db.session.commit()
        raise

    synced = 0
    updated = 0
    errors = []
    for posting in postings:
        try:
            row = client.transform_load(posting, integration.id, integration.company_id)
            if _upsert_external_load(row):
                synced += 1
            else:
                updated += 1
        except Exception as e:
            db.session.rollback()
            errors.append(f'Error processing load {posting.get("id")}: {e}')

    status = _sync_status(len(errors), synced)
    history.status = status
    history.loads_found = len(postings)
    history.loads_synced = synced
    history.loads_updated = updated
    history.errors_count = len(errors)
    history.error_message = '; '.join(errors[:5]) or None
    history.completed_at = utcnow()
    history.duration_seconds = round(time.time() - started)

    integration.last_sync_at = utcnow()
    integration.last_sync_status = status
    integration.last_sync_error = errors[0] if errors else None
    integration.total_loads_synced = (integration.total_loads_synced or 0) + synced
    db.session.commit()

    message = f'Synced {synced} new loads, updated {updated} existing loads'
    if errors:
        message += f', {len(errors)} errors'
    logger.info(f"{integration.provider} sync for company {integration.company_id}: {message}")

    return {
        'sync_history_id': str(history.id),
        'loads_found': len(postings),
        'loads_synced': synced,
        'loads_updated': updated,
        'errors_count': len(errors),
        'duration_seconds': history.duration_seconds,
        'message': message
    }

def import_external_load(external_load):
    """Copy a board posting into the company's loads"""
    load = Load(
        company_id=external_load.company_id,
        shipment_number=f'EXT-{external_load.external_load_id}',
        status='pending',
        origin=external_load.origin,
        destination=external_load.destination,
        value=external_load.rate,
        miles=external_load.distance_miles,
        pickup_date=_safe_date(external_load.pickup_date),
        delivery_date=_safe_date(external_load.delivery_date)
    )
    db.session.add(load)
    db.session.flush()

    external_load.status = 'imported'
    external_load.imported_load_id = load.id
    db.session.commit()
    return load

def _safe_date(value):
    try:
        return parse_date(value)
    except ValueError:
        return None

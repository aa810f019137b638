"""Turn ELD fault-code events into maintenance records"""
import logging

from app.models.eld import EldEvent
from app.utils import rpc
from app.utils.errors import RpcError

logger = logging.getLogger(__name__)

def run(company_id=None, limit=100):
    query = EldEvent.query.filter(
        EldEvent.maintenance_created.is_(False),
        EldEvent.fault_code.isnot(None)
    )
    if company_id:
        query = query.filter(EldEvent.company_id == company_id)
    event_ids = [event.id for event in query.order_by(EldEvent.event_time.desc()).limit(limit).all()]

    processed = created = skipped = 0
    for event_id in event_ids:
        processed += 1
        try:
            maintenance_id = rpc.call_rpc_scalar('analyze_fault_code_and_create_maintenance', p_event_id=str(event_id))
        except RpcError as e:
            logger.error(f"Failed to analyze event {event_id}: {e.message}")
            skipped += 1
            continue

        if maintenance_id:
            created += 1
            logger.info(f"Created maintenance {maintenance_id} from fault code event {event_id}")
        else:
            skipped += 1

    return {
        'processed': processed,
        'created': created,
        'skipped': skipped,
        'message': f'Processed {processed} events, created {created} maintenance records'
    }

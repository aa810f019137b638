"""Daily maintenance reminders and expiring document count"""
import logging
from datetime import date, timedelta

from app.models.crm import CrmDocument
from app.utils import rpc
from app.utils.errors import RpcError
from app.utils.helpers import utcnow

logger = logging.getLogger(__name__)

def run(days_ahead=30):
    try:
        reminders_created = rpc.call_rpc_scalar('auto_create_maintenance_reminders_from_schedule') or 0
    except RpcError as e:
        logger.error(f"Error creating maintenance reminders: {e.message}")
        reminders_created = 0

    today = date.today()
    expiring_documents = CrmDocument.query.filter(
        CrmDocument.expiration_date.isnot(None),
        CrmDocument.expiration_date >= today,
        CrmDocument.expiration_date <= today + timedelta(days=days_ahead)
    ).count()

    logger.info(f"Created {reminders_created} maintenance reminders; {expiring_documents} documents expiring soon")
    return {
        'reminders_created': reminders_created,
        'expiring_documents': expiring_documents,
        'timestamp': utcnow().isoformat()
    }

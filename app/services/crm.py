"""CRM communication logging and document expiration lookups"""
import logging
from datetime import date, timedelta

from app import db
from app.models.crm import ContactHistory, CrmDocument
from app.models.fleet import Customer, Vendor
from app.utils import rpc
from app.utils.errors import ApiError, NotFoundError, RpcError
from app.utils.helpers import parse_datetime, to_uuid

logger = logging.getLogger(__name__)

COMMUNICATION_TYPES = ('email', 'phone', 'sms', 'meeting', 'note', 'invoice_sent', 'payment_received')
DIRECTIONS = ('inbound', 'outbound')

def log_communication(company_id, data, user_id=None, source='manual'):
    """Insert a contact_history row for a customer or vendor"""
    customer_id = to_uuid(data.get('customer_id'), 'customer_id')
    vendor_id = to_uuid(data.get('vendor_id'), 'vendor_id')
    if not customer_id and not vendor_id:
        raise ApiError('Either customer_id or vendor_id must be provided')
    if customer_id and Customer.query.filter_by(id=customer_id, company_id=company_id).first() is None:
        raise NotFoundError('Customer not found')
    if vendor_id and Vendor.query.filter_by(id=vendor_id, company_id=company_id).first() is None:
        raise NotFoundError('Vendor not found')
    if data.get('type') not in COMMUNICATION_TYPES:
        raise ApiError(f'type must be one of: {", ".join(COMMUNICATION_TYPES)}')

    direction = data.get('direction') or 'outbound'
    if direction not in DIRECTIONS:
        raise ApiError('direction must be inbound or outbound')

    try:
        occurred_at = parse_datetime(data.get('occurred_at'))
    except ValueError:
        raise ApiError('Invalid occurred_at')

    entry = ContactHistory(
        company_id=company_id,
        customer_id=customer_id,
        vendor_id=vendor_id,
        contact_id=to_uuid(data.get('contact_id'), 'contact_id'),
        type=data['type'],
        subject=data.get('subject'),
        message=data.get('message'),
        direction=direction,
        load_id=to_uuid(data.get('load_id'), 'load_id'),
        invoice_id=to_uuid(data.get('invoice_id'), 'invoice_id'),
        user_id=user_id,
        attachments=data.get('attachments'),
        external_id=data.get('external_id'),
        source=source,
        extra_metadata=data.get('metadata') or {}
    )
    if occurred_at:
        entry.occurred_at = occurred_at
    db.session.add(entry)
    db.session.commit()
    return entry

def _linked_ids(body):
    linked = body.get('metadata') or {}
    return {'customer_id': linked.get('customer_id'), 'vendor_id': linked.get('vendor_id')}

def normalize_webhook_payload(body, source=None):
    """Map a SendGrid/Postmark, Twilio or custom webhook body to communication fields"""
    source = source or body.get('source') or 'webhook'
    if source in ('sendgrid', 'postmark'):
        timestamp = body.get('timestamp') or body.get('Timestamp')
        event = body.get('event') or body.get('Event')
        return {
            'type': 'email',
            'direction': 'inbound' if event in ('bounce', 'spam_complaint') else 'outbound',
            'subject': body.get('subject') or body.get('Subject'),
            'message': body.get('text') or body.get('TextBody') or body.get('html') or body.get('HtmlBody'),
            'external_id': body.get('message_id') or body.get('MessageID') or body.get('message-id'),
            'source': 'email',
            'metadata': {'from': body.get('from') or body.get('From'), 'to': body.get('to') or body.get('To'),
                         'event': event, 'timestamp': timestamp},
            'occurred_at': timestamp,
            **_linked_ids(body)
        }
    if source == 'twilio':
        return {
            'type': 'sms',
            'direction': 'inbound' if body.get('Direction') == 'inbound' else 'outbound',
            'message': body.get('Body'),
            'external_id': body.get('MessageSid'),
            'source': 'sms',
            'metadata': {'from': body.get('From'), 'to': body.get('To'), 'status': body.get('MessageStatus')},
            'occurred_at': body.get('Timestamp'),
            **_linked_ids(body)
        }
    return {
        'type': body.get('type') or 'note',
        'direction': body.get('direction') or 'outbound',
        'subject': body.get('subject'),
        'message': body.get('message'),
        'customer_id': body.get('customer_id'),
        'vendor_id': body.get('vendor_id'),
        'contact_id': body.get('contact_id'),
        'load_id': body.get('load_id'),
        'invoice_id': body.get('invoice_id'),
        'external_id': body.get('external_id') or body.get('id'),
        'source': source,
        'metadata': body.get('metadata') or {},
        'occurred_at': body.get('occurred_at') or body.get('timestamp')
    }

def log_communication_from_webhook(data):
    """
    Log a communication pushed by an e-mail/SMS provider.

    The company comes from the customer or vendor; a repeated external_id
    returns the row that was already stored.
    """
    customer_id = to_uuid(data.get('customer_id'), 'customer_id')
    vendor_id = to_uuid(data.get('vendor_id'), 'vendor_id')
    if not customer_id and not vendor_id:
        raise ApiError('Either customer_id or vendor_id must be provided')

    owner = db.session.get(Customer, customer_id) if customer_id else db.session.get(Vendor, vendor_id)
    if owner is None:
        raise ApiError('Could not determine company', 404)

    if data.get('external_id'):
        existing = ContactHistory.query.filter_by(external_id=data['external_id']).first()
        if existing is not None:
            logger.info(f"Duplicate CRM webhook {data['external_id']} ignored")
            return existing, False

    source = data.get('source') or 'webhook'
    return log_communication(owner.company_id, data, source=source), True

def _days_until(expiration_date, today):
    return (expiration_date - today).days

def get_expiring_documents(company_id=None, days_ahead=30):
    """
    Documents expiring within days_ahead, soonest first, with
    days_until_expiration. Uses the database function when it exists.
    """
    try:
        rows = rpc.call_rpc('get_expiring_crm_documents', days_ahead=days_ahead)
    except RpcError as e:
        logger.warning(f"get_expiring_crm_documents unavailable, using direct query: {e.message}")
    else:
        rows = [rpc.jsonable(row) for row in rows]
        if company_id:
            rows = [row for row in rows if row.get('company_id') == str(company_id)]
        return rows

    today = date.today()
    query = CrmDocument.query.filter(
        CrmDocument.expiration_date.isnot(None),
        CrmDocument.expiration_date >= today,
        CrmDocument.expiration_date <= today + timedelta(days=days_ahead)
    )
    if company_id:
        query = query.filter(CrmDocument.company_id == company_id)

    documents = []
    for document in query.order_by(CrmDocument.expiration_date.asc()).all():
        row = document.to_dict()
        row['days_until_expiration'] = _days_until(document.expiration_date, today)
        documents.append(row)
    return documents

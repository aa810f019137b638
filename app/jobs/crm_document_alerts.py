"""Alert companies about customer/vendor documents that expire within 30 days"""
import logging
import uuid
from collections import defaultdict

from app import db
from app.models.crm import CrmDocument
from app.models.notification import Alert
from app.models.user import User
from app.services.crm import get_expiring_documents
from app.services.messaging import email_configured, send_email
from app.utils.auth import MANAGER_ROLES
from app.utils.errors import EmailError

logger = logging.getLogger(__name__)

DAYS_AHEAD = 30
HIGH_PRIORITY_DAYS = 7

DOCUMENT_LABELS = {
    'w9': 'W-9',
    'coi': 'Certificate of Insurance',
    'mc_certificate': 'MC Certificate',
    'insurance_policy': 'Insurance Policy',
    'license': 'License',
    'contract': 'Contract',
    'other': 'Document',
}

def _owner_name(row):
    return row.get('customer_name') or row.get('vendor_name') or 'Unknown'

def _alert_for(row):
    days = row.get('days_until_expiration')
    label = DOCUMENT_LABELS.get(row.get('document_type'), 'Document')
    return Alert(
        company_id=uuid.UUID(str(row['company_id'])),
        title=f"{label} expiring: {row.get('name')}",
        message=f"{label} for {_owner_name(row)} expires in {days} day(s) on {row.get('expiration_date')}",
        event_type='document_expiration',
        priority='high' if days is not None and days <= HIGH_PRIORITY_DAYS else 'normal',
        alert_metadata={
            'document_id': str(row['id']),
            'document_type': row.get('document_type'),
            'expiration_date': row.get('expiration_date'),
            'days_until_expiration': days
        }
    )

def _email_managers(company_id, rows):
    managers = User.query.filter(
        User.company_id == company_id,
        User.role.in_(MANAGER_ROLES),
        User.is_active.is_(True)
    ).all()
    recipients = [manager.email for manager in managers if manager.email]
    if not recipients:
        return 0

    items = ''.join(
        f"<li>{DOCUMENT_LABELS.get(row.get('document_type'), 'Document')} - {row.get('name')} "
        f"({_owner_name(row)}): expires {row.get('expiration_date')}</li>"
        for row in rows
    )
    html = f'<p>The following documents expire within {DAYS_AHEAD} days:</p><ul>{items}</ul>'
    try:
        send_email(recipients, f'{len(rows)} document(s) expiring soon', html)
    except EmailError as e:
        logger.error(f"Expiration e-mail for company {company_id} failed: {e.message}")
        return 0
    return len(recipients)

def run(days_ahead=DAYS_AHEAD):
    rows = [row for row in get_expiring_documents(days_ahead=days_ahead) if not row.get('expiration_alert_sent')]
    if not rows:
        logger.info("No expiring documents need alerts")
        return {'documents': 0, 'alerts_created': 0, 'emails_sent': 0}

    by_company = defaultdict(list)
    alerts_created = 0
    for row in rows:
        document = db.session.get(CrmDocument, uuid.UUID(str(row['id'])))
        if document is None:
            continue
        db.session.add(_alert_for(row))
        document.expiration_alert_sent = True
        by_company[document.company_id].append(row)
        alerts_created += 1
    db.session.commit()

    emails_sent = 0
    if email_configured():
        for company_id, company_rows in by_company.items():
            emails_sent += _email_managers(company_id, company_rows)
    else:
        logger.info("Resend not configured, skipping expiration e-mails")

    logger.info(f"Created {alerts_created} document expiration alerts, e-mailed {emails_sent} manager(s)")
    return {'documents': len(rows), 'alerts_created': alerts_created, 'emails_sent': emails_sent}

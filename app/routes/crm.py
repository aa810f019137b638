import os
import time
from datetime import date

from flask import Blueprint, request, current_app
from app import db
from app.models.crm import ContactHistory, CrmDocument
from app.services import crm as crm_service
from app.services.storage import upload_document, delete_document
from app.utils.auth import require_company
from app.utils.errors import ApiError, NotFoundError
from app.utils.helpers import parse_date, to_uuid
from app.utils.responses import success

bp = Blueprint('crm', __name__)

DOCUMENT_TYPES = ('w9', 'coi', 'mc_certificate', 'insurance_policy', 'license', 'contract', 'other')

@bp.route('/communications', methods=['POST'])
@require_company
def log_communication():
    """
    Log a call, e-mail, meeting or note against a customer or vendor
    ---
    tags:
      - CRM
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - type
            properties:
              customer_id:
                type: string
              vendor_id:
                type: string
              contact_id:
                type: string
              type:
                type: string
                enum: [email, phone, sms, meeting, note, invoice_sent, payment_received]
              subject:
                type: string
              message:
                type: string
              direction:
                type: string
                enum: [inbound, outbound]
              occurred_at:
                type: string
                format: date-time
    responses:
      201:
        description: Communication logged
      400:
        description: Missing customer/vendor or invalid type
    """
    user = request.current_user
    entry = crm_service.log_communication(
        user['company_id'], request.get_json() or {}, user_id=user['user_id']
    )
    return success(entry.to_dict(), 201)

@bp.route('/communications', methods=['GET'])
@require_company
def get_communication_timeline():
    """
    Communication timeline, newest first
    ---
    tags:
      - CRM
    parameters:
      - in: query
        name: customer_id
        schema:
          type: string
      - in: query
        name: vendor_id
        schema:
          type: string
      - in: query
        name: contact_id
        schema:
          type: string
      - in: query
        name: type
        schema:
          type: string
      - in: query
        name: limit
        schema:
          type: integer
    security:
      - Bearer: []
    responses:
      200:
        description: Entries with customer, vendor, contact and user names
    """
    query = ContactHistory.query.filter_by(company_id=request.current_user['company_id'])
    for key in ('customer_id', 'vendor_id', 'contact_id'):
        if request.args.get(key):
            query = query.filter(getattr(ContactHistory, key) == to_uuid(request.args[key], key))
    if request.args.get('type'):
        query = query.filter_by(type=request.args['type'])

    query = query.order_by(ContactHistory.occurred_at.desc())
    limit = request.args.get('limit', type=int)
    if limit:
        query = query.limit(limit)

    return success([entry.to_dict(include_names=True) for entry in query.all()])

@bp.route('/documents', methods=['POST'])
@require_company
def upload_crm_document():
    """
    Upload a customer or vendor document (multipart form)
    ---
    tags:
      - CRM
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        multipart/form-data:
          schema:
            type: object
            required:
              - file
              - document_type
              - name
            properties:
              file:
                type: string
                format: binary
              customer_id:
                type: string
              vendor_id:
                type: string
              document_type:
                type: string
              name:
                type: string
              description:
                type: string
              expiration_date:
                type: string
                format: date
    responses:
      201:
        description: Document stored
      400:
        description: Validation error
    """
    user = request.current_user
    upload = request.files.get('file')
    form = request.form
    if upload is None or not upload.filename:
        raise ApiError('No file provided')

    customer_id = to_uuid(form.get('customer_id'), 'customer_id')
    vendor_id = to_uuid(form.get('vendor_id'), 'vendor_id')
    if not customer_id and not vendor_id:
        raise ApiError('Either customer_id or vendor_id must be provided')
    if form.get('document_type') not in DOCUMENT_TYPES:
        raise ApiError(f'document_type must be one of: {", ".join(DOCUMENT_TYPES)}')
    if not form.get('name'):
        raise ApiError('name is required')
    try:
        expiration_date = parse_date(form.get('expiration_date'))
    except ValueError:
        raise ApiError('Invalid expiration_date')

    ext = os.path.splitext(upload.filename)[1].lstrip('.') or 'bin'
    key = f"crm/{user['company_id']}/{user['user_id']}/{int(time.time() * 1000)}.{ext}"
    url = upload_document(upload.stream, key, upload.mimetype)

    document = CrmDocument(
        company_id=user['company_id'],
        customer_id=customer_id,
        vendor_id=vendor_id,
        document_type=form['document_type'],
        name=form['name'],
        description=form.get('description'),
        storage_key=key,
        storage_url=url,
        file_size=upload.content_length or None,
        mime_type=upload.mimetype,
        expiration_date=expiration_date,
        uploaded_by=user['user_id']
    )
    db.session.add(document)
    db.session.commit()
    current_app.logger.info(f"Uploaded CRM document {document.id} ({document.document_type})")
    return success(document.to_dict(), 201)

@bp.route('/documents', methods=['GET'])
@require_company
def get_crm_documents():
    """
    List CRM documents; expired ones are hidden unless include_expired=true
    ---
    tags:
      - CRM
    parameters:
      - in: query
        name: customer_id
        schema:
          type: string
      - in: query
        name: vendor_id
        schema:
          type: string
      - in: query
        name: document_type
        schema:
          type: string
      - in: query
        name: include_expired
        schema:
          type: boolean
    security:
      - Bearer: []
    responses:
      200:
        description: Documents
    """
    query = CrmDocument.query.filter_by(company_id=request.current_user['company_id'])
    for key in ('customer_id', 'vendor_id'):
        if request.args.get(key):
            query = query.filter(getattr(CrmDocument, key) == to_uuid(request.args[key], key))
    if request.args.get('document_type'):
        query = query.filter_by(document_type=request.args['document_type'])
    if request.args.get('include_expired', 'false').lower() != 'true':
        query = query.filter(db.or_(
            CrmDocument.expiration_date.is_(None),
            CrmDocument.expiration_date >= date.today()
        ))

    documents = query.order_by(CrmDocument.created_at.desc()).all()
    return success([document.to_dict() for document in documents])

@bp.route('/documents/expiring', methods=['GET'])
@require_company
def get_expiring_documents():
    days_ahead = request.args.get('days_ahead', 30, type=int)
    documents = crm_service.get_expiring_documents(request.current_user['company_id'], days_ahead)
    return success(documents)

def _get_document(document_id):
    document = CrmDocument.query.filter_by(
        id=to_uuid(document_id, 'document_id'),
        company_id=request.current_user['company_id']
    ).first()
    if document is None:
        raise NotFoundError('Document not found')
    return document

@bp.route('/documents/<document_id>', methods=['DELETE'])
@require_company
def delete_crm_document(document_id):
    """
    Delete a CRM document and its stored file
    ---
    tags:
      - CRM
    parameters:
      - in: path
        name: document_id
        required: true
        schema:
          type: string
    security:
      - Bearer: []
    responses:
      200:
        description: Deleted
      404:
        description: Document not found
    """
    document = _get_document(document_id)
    delete_document(document.storage_key)
    db.session.delete(document)
    db.session.commit()
    return success({'deleted': True})

@bp.route('/documents/<document_id>/alert-sent', methods=['POST'])
@require_company
def mark_expiration_alert_sent(document_id):
    document = _get_document(document_id)
    document.expiration_alert_sent = True
    db.session.commit()
    return success(document.to_dict())

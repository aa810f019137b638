from flask import Blueprint, request, current_app
from app import db
from app.models.invoice import Invoice, InvoiceVerification
from app.utils import rpc
from app.utils.auth import require_company
from app.utils.errors import ApiError, NotFoundError, RpcError
from app.utils.helpers import to_uuid, utcnow
from app.utils.responses import success

bp = Blueprint('invoices', __name__)

def _get_invoice(invoice_id):
    invoice = Invoice.query.filter_by(
        id=to_uuid(invoice_id, 'invoice_id'), company_id=request.current_user['company_id']
    ).first()
    if invoice is None:
        raise NotFoundError('Invoice not found')
    return invoice

def _verify(invoice_id):
    rows = rpc.call_rpc('verify_invoice_three_way_match', p_invoice_id=str(invoice_id))
    if not rows:
        raise ApiError('Verification failed - no results returned')
    return rpc.jsonable(rows[0])

@bp.route('/<invoice_id>/verify', methods=['POST'])
@require_company
def verify_invoice_match(invoice_id):
    """
    Run the three-way match (invoice, load, BOL) for an invoice
    ---
    tags:
      - Invoices
    parameters:
      - in: path
        name: invoice_id
        required: true
        schema:
          type: string
    security:
      - Bearer: []
    responses:
      200:
        description: Match result row
      400:
        description: No results returned
      404:
        description: Invoice not found
    """
    invoice = _get_invoice(invoice_id)
    return success(_verify(invoice.id))

@bp.route('/<invoice_id>/verification', methods=['GET'])
@require_company
def get_invoice_verification(invoice_id):
    """Verification record for an invoice; null data when it has not been verified"""
    verification = InvoiceVerification.query.filter_by(
        invoice_id=to_uuid(invoice_id, 'invoice_id'), company_id=request.current_user['company_id']
    ).first()
    return success(verification.to_dict() if verification else None)

@bp.route('/review', methods=['GET'])
@require_company
def get_invoices_requiring_review():
    invoices = Invoice.query.filter_by(
        company_id=request.current_user['company_id'], requires_manual_review=True
    ).order_by(Invoice.created_at.desc()).all()
    return success([invoice.to_dict(include_load=True) for invoice in invoices])

@bp.route('/<invoice_id>/approve', methods=['POST'])
@require_company
def approve_invoice_manually(invoice_id):
    """
    Approve an invoice that failed automatic matching
    ---
    tags:
      - Invoices
    parameters:
      - in: path
        name: invoice_id
        required: true
        schema:
          type: string
    security:
      - Bearer: []
    requestBody:
      content:
        application/json:
          schema:
            type: object
            properties:
              reason:
                type: string
    responses:
      200:
        description: Invoice marked verified
      404:
        description: Invoice not found
    """
    user = request.current_user
    invoice = _get_invoice(invoice_id)
    reason = (request.get_json(silent=True) or {}).get('reason')
    now = utcnow()

    invoice.matching_status = 'verified'
    invoice.requires_manual_review = False
    invoice.verified_by = user['user_id']
    invoice.verified_at = now
    if reason:
        invoice.exception_reason = f'Manually approved: {reason}'

    verification = InvoiceVerification.query.filter_by(invoice_id=invoice.id).first()
    if verification is not None:
        verification.verification_status = 'verified'
        verification.verified_by = user['user_id']
        verification.verified_at = now

    db.session.commit()
    current_app.logger.info(f"Invoice {invoice.id} manually approved by {user['user_id']}")
    return success(invoice.to_dict())

@bp.route('/verify-batch', methods=['POST'])
@require_company
def batch_verify_invoices():
    """
    Verify every pending invoice that has a load
    ---
    tags:
      - Invoices
    security:
      - Bearer: []
    responses:
      200:
        description: Counts of verified invoices and per-invoice errors
    """
    invoices = Invoice.query.filter(
        Invoice.company_id == request.current_user['company_id'],
        Invoice.matching_status == 'pending',
        Invoice.load_id.isnot(None)
    ).all()
    if not invoices:
        return success({'verified': 0, 'message': 'No pending invoices to verify'})

    invoice_ids = [invoice.id for invoice in invoices]
    verified = 0
    error_details = []
    for invoice_id in invoice_ids:
        try:
            _verify(invoice_id)
            verified += 1
        except (RpcError, ApiError) as e:
            error_details.append({'invoice_id': str(invoice_id), 'error': e.message})

    return success({
        'verified': verified,
        'errors': len(error_details),
        'total': len(invoice_ids),
        'error_details': error_details,
        'message': f'Verified {verified} of {len(invoice_ids)} invoices'
    })

"""
Inbound webhooks from Stripe, PayPal and the e-mail/SMS providers.

These endpoints are called by third parties, so they answer with the shapes
those senders expect ({"received": true}, {"error": ...}) instead of the
data/error envelope used by the dashboard API.
"""
import hmac
import json

import stripe
from flask import Blueprint, request, jsonify, current_app
from app import db
from app.services import crm as crm_service
from app.services import paypal, stripe_billing
from app.utils.errors import ApiError, IntegrationError

bp = Blueprint('webhooks', __name__)

@bp.route('/stripe', methods=['POST'])
def stripe_webhook():
    """
    Stripe subscription and invoice events
    ---
    tags:
      - Webhooks
    parameters:
      - in: header
        name: stripe-signature
        required: true
        schema:
          type: string
    responses:
      200:
        description: Event received
      400:
        description: Missing or invalid signature
      500:
        description: Event handler failed
      503:
        description: Stripe not configured
    """
    payload = request.get_data()
    signature = request.headers.get('stripe-signature')
    if not signature:
        return jsonify({'error': 'No signature'}), 400

    webhook_secret = current_app.config.get('STRIPE_WEBHOOK_SECRET')
    if not stripe_billing.stripe_configured() or not webhook_secret:
        return jsonify({'error': 'Stripe not configured'}), 503

    try:
        stripe.Webhook.construct_event(payload, signature, webhook_secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        current_app.logger.warning(f"Stripe signature verification failed: {e}")
        return jsonify({'error': f'Webhook Error: {e}'}), 400

    event = json.loads(payload)
    try:
        stripe_billing.process_event(event)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"Stripe webhook {event.get('type')} failed")
        return jsonify({'error': str(e)}), 500

    return jsonify({'received': True}), 200

@bp.route('/paypal', methods=['POST'])
def paypal_webhook():
    """
    PayPal billing subscription and payment events
    ---
    tags:
      - Webhooks
    responses:
      200:
        description: Event received
      400:
        description: Signature verification failed
      500:
        description: Event handler failed
    """
    event = request.get_json(silent=True)
    if not event:
        return jsonify({'error': 'Invalid payload'}), 400

    webhook_id = current_app.config.get('PAYPAL_WEBHOOK_ID')
    if webhook_id:
        try:
            verified = paypal.PayPalClient.from_config().verify_webhook_signature(request.headers, event, webhook_id)
        except IntegrationError as e:
            current_app.logger.error(f"PayPal webhook verification error: {e.message}")
            return jsonify({'error': e.message}), 500
        if not verified:
            return jsonify({'error': 'Invalid signature'}), 400

    try:
        paypal.process_webhook_event(event)
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception(f"PayPal webhook {event.get('event_type')} failed")
        return jsonify({'error': str(e)}), 500

    return jsonify({'received': True}), 200

@bp.route('/crm-communication', methods=['POST'])
def crm_communication_webhook():
    """
    Log an e-mail or SMS pushed by SendGrid, Postmark, Twilio or a custom sender
    ---
    tags:
      - Webhooks
    parameters:
      - in: header
        name: X-Webhook-Secret
        required: true
        schema:
          type: string
      - in: header
        name: X-Webhook-Source
        schema:
          type: string
          enum: [sendgrid, postmark, twilio]
    responses:
      200:
        description: Communication logged (or already logged)
      400:
        description: Neither customer_id nor vendor_id given
      401:
        description: Bad webhook secret
    """
    expected = current_app.config.get('CRM_WEBHOOK_SECRET')
    provided = request.headers.get('X-Webhook-Secret') or ''
    if not expected or not hmac.compare_digest(provided, expected):
        return jsonify({'error': 'Unauthorized'}), 401

    body = request.get_json(silent=True) or {}
    data = crm_service.normalize_webhook_payload(body, request.headers.get('X-Webhook-Source'))
    try:
        entry, created = crm_service.log_communication_from_webhook(data)
    except ApiError as e:
        return jsonify({'error': e.message}), e.status

    if created:
        current_app.logger.info(f"Logged {entry.type} communication {entry.id} from {entry.source}")
    return jsonify({'message': 'Communication logged successfully', 'data': entry.to_dict()}), 200

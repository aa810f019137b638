"""Outbound SMS (Twilio) and e-mail (Resend) over their REST APIs"""
import logging

import requests
from flask import current_app

from app.utils.errors import EmailError, SmsError

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = 'https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json'
RESEND_EMAILS_URL = 'https://api.resend.com/emails'

def sms_configured():
    config = current_app.config
    return bool(config.get('TWILIO_ACCOUNT_SID') and config.get('TWILIO_AUTH_TOKEN'))

def email_configured():
    return bool(current_app.config.get('RESEND_API_KEY'))

def send_sms(to, body):
    """Send one SMS; returns the Twilio message sid"""
    config = current_app.config
    sid = config['TWILIO_ACCOUNT_SID']
    try:
        response = requests.post(
            TWILIO_MESSAGES_URL.format(sid=sid),
            data={'From': config['TWILIO_PHONE_NUMBER'], 'To': to, 'Body': body},
            auth=(sid, config['TWILIO_AUTH_TOKEN']),
            timeout=config['HTTP_TIMEOUT']
        )
    except requests.RequestException as e:
        raise SmsError(f'Failed to send SMS: {e}') from e

    if not response.ok:
        logger.error(f"Twilio returned {response.status_code}: {response.text}")
        raise SmsError(f'Twilio API error: {response.status_code}', response.status_code)
    return response.json().get('sid')

def send_email(to, subject, html):
    config = current_app.config
    try:
        response = requests.post(
            RESEND_EMAILS_URL,
            json={'from': config['ALERT_EMAIL_FROM'], 'to': to, 'subject': subject, 'html': html},
            headers={'Authorization': f'Bearer {config["RESEND_API_KEY"]}'},
            timeout=config['HTTP_TIMEOUT']
        )
    except requests.RequestException as e:
        raise EmailError(f'Failed to send email: {e}') from e

    if not response.ok:
        logger.error(f"Resend returned {response.status_code}: {response.text}")
        raise EmailError(f'Resend API error: {response.status_code}', response.status_code)
    return response.json().get('id')

"""Classify an uploaded document and extract its fields with OpenAI vision"""
import json
import logging
import re

import requests
from flask import current_app

from app.utils.errors import DocumentAnalysisError

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = 'https://api.openai.com/v1/chat/completions'

DOCUMENT_TYPES = ('driver', 'vehicle', 'load', 'route', 'route_and_load', 'maintenance', 'invoice', 'expense')

ANALYSIS_PROMPT = """You are a document analysis assistant for a trucking company.
Analyze the document and extract ALL structured data you can find.

Classify it by the kind of information it holds:
- driver: name, email, phone, license_number, license_expiry, status
- vehicle: truck_number, make, model, year, vin, license_plate, status
- load: shipment_number, origin, destination, weight, weight_kg, contents, value, status, delivery_points
- route: name, origin, destination, distance, estimated_time, priority, status, stops
- route_and_load: all route fields and all load fields (for documents holding both)
- maintenance: truck_number, service_type, scheduled_date, estimated_cost, vendor, notes
- invoice: invoice_number, customer_name, amount, issue_date, due_date, status
- expense: category, description, amount, date, vendor

Extract partial information when fields are missing. Extract every stop and every delivery point.

Return ONLY valid JSON in this format:
{"type": "<one of the types above>", "confidence": <0..1>, "data": {...}}"""

_CODE_FENCE = re.compile(r'```(?:json)?\n?')

def _error_message(response):
    try:
        body = response.json()
        message = body.get('error', {}).get('message') or response.text
    except ValueError:
        message = response.text or f'HTTP {response.status_code}'
    return message

def _translate_error(status, message, model):
    if status == 429 or 'quota' in message or 'rate' in message:
        return (f'OpenAI API rate limit reached. {message}. '
                'Please try again later or check your API usage.')
    if 'model' in message and ('not found' in message or 'not available' in message):
        return (f'OpenAI API model error: The model "{model}" may not be available for your API key. '
                f'{message}.')
    if status in (401, 403) or 'API key' in message:
        return ('OpenAI API authentication failed. '
                'Please check that OPENAI_API_KEY is correctly set in your environment variables.')
    return f'OpenAI API error ({status}): {message}'

def analyze_document(file_url, file_name=None):
    """
    Send the image at file_url to the vision model.

    Returns {document_type, extracted_data, confidence}.
    """
    api_key = current_app.config.get('OPENAI_API_KEY')
    if not api_key:
        raise DocumentAnalysisError(
            'OpenAI API key not configured. Please set OPENAI_API_KEY in environment variables.'
        )
    model = current_app.config['OPENAI_VISION_MODEL']

    prompt = ANALYSIS_PROMPT
    if file_name:
        prompt += f'\n\nFile name: {file_name}'

    payload = {
        'model': model,
        'messages': [{
            'role': 'user',
            'content': [
                {'type': 'text', 'text': prompt},
                {'type': 'image_url', 'image_url': {'url': file_url}}
            ]
        }],
        'temperature': 0.1,
        'max_tokens': 4000,
        'response_format': {'type': 'json_object'}
    }

    try:
        response = requests.post(
            OPENAI_CHAT_URL,
            json=payload,
            headers={'Authorization': f'Bearer {api_key}'},
            timeout=max(current_app.config['HTTP_TIMEOUT'], 60)
        )
    except requests.RequestException as e:
        raise DocumentAnalysisError(
            f'Failed to connect to OpenAI API: {e}. Please check your internet connection and try again.'
        ) from e

    if not response.ok:
        message = _error_message(response)
        logger.error(f"OpenAI returned {response.status_code} for {file_name or file_url}: {message}")
        raise DocumentAnalysisError(_translate_error(response.status_code, message, model), response.status_code)

    try:
        content = response.json()['choices'][0]['message']['content']
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise DocumentAnalysisError('OpenAI API returned an unexpected response format. Please try again.') from e

    try:
        analysis = json.loads(_CODE_FENCE.sub('', content).strip())
    except ValueError as e:
        raise DocumentAnalysisError(
            f'Failed to parse AI analysis result. The AI may have returned invalid JSON. Error: {e}'
        ) from e

    document_type = analysis.get('type')
    if document_type not in DOCUMENT_TYPES:
        logger.warning(f"Unrecognized document type from analysis: {document_type}")
    extracted = {'type': document_type, **(analysis.get('data') or {})}
    return {
        'document_type': document_type,
        'extracted_data': extracted,
        'confidence': analysis.get('confidence')
    }

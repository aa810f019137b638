"""Google Maps Geocoding API client"""
import logging

import requests
from flask import current_app

from app.utils.errors import ApiError, GeocodingError

logger = logging.getLogger(__name__)

GEOCODE_URL = 'https://maps.googleapis.com/maps/api/geocode/json'

def _api_key():
    api_key = current_app.config.get('GOOGLE_MAPS_API_KEY')
    if not api_key:
        raise GeocodingError('Google Maps API key error. Please contact support.')
    return api_key

def _get(params):
    try:
        response = requests.get(
            GEOCODE_URL,
            params={**params, 'key': _api_key()},
            headers={'Accept': 'application/json'},
            timeout=current_app.config['HTTP_TIMEOUT']
        )
    except requests.RequestException as e:
        logger.error(f"Geocoding request failed: {e}")
        raise GeocodingError('Network error. Please check your internet connection and try again.') from e

    if not response.ok:
        logger.error(f"Geocoding HTTP error {response.status_code}: {response.text}")
        raise GeocodingError(
            f'Google Maps API returned error {response.status_code}. '
            'Please check your API key and network connection.',
            response.status_code
        )
    return response.json()

def _status_message(data, address):
    status = data.get('status')
    if status == 'ZERO_RESULTS':
        return f'Address not found: "{address}". Please check the address format (include city, state, and zip code).'
    if status == 'REQUEST_DENIED':
        detail = data.get('error_message') or 'Check API key permissions and ensure Geocoding API is enabled'
        return f'Google Maps API request denied: {detail}.'
    if status == 'OVER_QUERY_LIMIT':
        return 'Google Maps API quota exceeded. Please try again later or contact support.'
    if status == 'INVALID_REQUEST':
        return f'Invalid address format: "{address}". Please provide a complete address.'
    if data.get('error_message'):
        return f'Geocoding failed: {data["error_message"]}'
    return f'Geocoding failed: {status}'

def geocode_address(address):
    """Forward geocode a street address to coordinates"""
    if not address or len(address.strip()) < 5:
        raise ApiError('Address is too short or empty. Please provide a complete address.')

    data = _get({'address': address})
    if data.get('status') != 'OK' or not data.get('results'):
        logger.warning(f"Geocoding returned {data.get('status')} for {address!r}")
        raise GeocodingError(_status_message(data, address))

    result = data['results'][0]
    return {
        'lat': result['geometry']['location']['lat'],
        'lng': result['geometry']['location']['lng'],
        'formatted_address': result.get('formatted_address'),
        'place_id': result.get('place_id'),
        'address_components': result.get('address_components')
    }

def reverse_geocode_state(latitude, longitude):
    """State (administrative_area_level_1) containing the given point"""
    data = _get({
        'latlng': f'{latitude},{longitude}',
        'result_type': 'administrative_area_level_1'
    })
    if data.get('status') != 'OK' or not data.get('results'):
        raise GeocodingError(f'Reverse geocoding failed: {data.get("status")}')

    result = data['results'][0]
    for component in result.get('address_components', []):
        if 'administrative_area_level_1' in component.get('types', []):
            if component.get('short_name') and component.get('long_name'):
                return {
                    'state_code': component['short_name'],
                    'state_name': component['long_name'],
                    'address': result.get('formatted_address')
                }
            break

    raise GeocodingError('State information not found in geocoding result')

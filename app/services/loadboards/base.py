"""Shared token handling and load transformation for load board clients"""
import logging
import time

import requests

from app.utils.errors import LoadBoardError
from app.utils.retry import with_retry

logger = logging.getLogger(__name__)

LBS_TO_KG = 0.453592

def format_place(place):
    """{'city', 'state', 'zip'} -> 'City, ST 12345'"""
    if not place:
        return None
    text = f"{place.get('city', '')}, {place.get('state', '')}"
    if place.get('zip'):
        text += f" {place['zip']}"
    return text

class LoadBoardClient:
    """
    Base class for load board API clients.

    Subclasses set `board`, `base_url`, `site_url` and `search_path` and
    implement `_token_request()`, which returns the raw token response.
    """

    board = None
    base_url = None
    site_url = None
    search_path = '/loads'

    def __init__(self, api_key=None, api_secret=None, username=None, password=None, timeout=15):
        self.api_key = api_key
        self.api_secret = api_secret
        self.username = username
        self.password = password
        self.timeout = timeout
        self.access_token = None
        self.token_expires_at = 0

    def _token_request(self):
        raise NotImplementedError

    @with_retry(max_attempts=3)
    def _fetch_token(self):
        response = self._token_request()
        response.raise_for_status()
        return response.json()

    def authenticate(self):
        try:
            data = self._fetch_token()
        except requests.HTTPError as e:
            logger.warning(f"{self.board} token request rejected with {e.response.status_code}")
            raise LoadBoardError(f'Authentication failed: {e.response.text}', e.response.status_code) from e
        except requests.RequestException as e:
            raise LoadBoardError(f'Authentication error: {e}') from e

        self.access_token = data.get('access_token') or data.get('token')
        self.token_expires_at = time.time() + (data.get('expires_in') or 3600)

    def _auth_header(self):
        if not self.access_token or time.time() >= self.token_expires_at:
            self.authenticate()
        return {'Authorization': f'Bearer {self.access_token}', 'Content-Type': 'application/json'}

    def _get(self, path, params=None, error_prefix='Request failed'):
        try:
            response = requests.get(
                f'{self.base_url}{path}', params=params, headers=self._auth_header(), timeout=self.timeout
            )
        except requests.RequestException as e:
            raise LoadBoardError(f'{error_prefix}: {e}') from e

        if not response.ok:
            raise LoadBoardError(f'{error_prefix}: {response.text}', response.status_code)
        return response.json()

    def test_connection(self):
        self.authenticate()
        self._get('/account', error_prefix='Connection test failed')
        return {'success': True, 'message': 'Connection successful'}

    def search_loads(self, filters=None):
        filters = filters or {}
        params = {
            key: filters[key]
            for key in ('origin', 'destination', 'equipment_type', 'min_rate', 'max_rate', 'limit', 'offset')
            if filters.get(key)
        }
        data = self._get(self.search_path, params=params, error_prefix='Failed to search loads')
        if isinstance(data, list):
            return data
        return data.get('data') or data.get('loads') or data.get('results') or []

    def get_load_details(self, load_id):
        data = self._get(f'/loads/{load_id}', error_prefix='Failed to get load')
        return data.get('data') or data

    def broker_fields(self, broker):
        return {}

    def transform_load(self, load, integration_id, company_id):
        """Map a board posting onto external_loads columns"""
        broker = load.get('broker') or {}
        contact = load.get('contact') or {}
        weight = load.get('weight')

        row = {
            'integration_id': integration_id,
            'company_id': company_id,
            'external_load_id': str(load['id']),
            'external_board': self.board,
            'external_url': load.get('url') or f'{self.site_url}/loads/{load["id"]}',
            'origin': format_place(load.get('origin')),
            'destination': format_place(load.get('destination')),
            'rate': load.get('rate'),
            'rate_type': load.get('rate_type') or 'flat',
            'equipment_type': load.get('equipment_type'),
            'weight_lbs': weight,
            'weight_kg': round(weight * LBS_TO_KG) if weight else None,
            'pickup_date': load.get('pickup_date'),
            'delivery_date': load.get('delivery_date'),
            'distance_miles': load.get('distance'),
            'broker_name': broker.get('name'),
            'broker_mc_number': broker.get('mc_number'),
            'broker_rating': broker.get('rating'),
            'load_description': load.get('description'),
            'special_requirements': load.get('special_requirements'),
            'contact_name': contact.get('name'),
            'contact_phone': contact.get('phone'),
            'contact_email': contact.get('email'),
            'status': 'available',
            'expires_at': load.get('expires_at'),
            'raw_data': load
        }
        row.update(self.broker_fields(broker))
        return row

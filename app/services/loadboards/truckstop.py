import requests

from app.services.loadboards.base import LoadBoardClient

class TruckstopClient(LoadBoardClient):
    """Truckstop.com: key and secret exchanged for a bearer token"""

    board = 'truckstop'
    base_url = 'https://api.truckstop.com/v1'
    site_url = 'https://www.truckstop.com'

    def _token_request(self):
        return requests.post(
            f'{self.base_url}/auth/token',
            headers={
                'Content-Type': 'application/json',
                'X-API-Key': self.api_key,
                'X-API-Secret': self.api_secret
            },
            timeout=self.timeout
        )

    def broker_fields(self, broker):
        return {
            'broker_days_to_pay': broker.get('days_to_pay'),
            'broker_credit_score': broker.get('credit_score')
        }

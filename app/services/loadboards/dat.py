import requests

from app.services.loadboards.base import LoadBoardClient

class DATClient(LoadBoardClient):
    """DAT One: OAuth2 client credentials grant"""

    board = 'dat'
    base_url = 'https://api.dat.com/v1'
    site_url = 'https://www.dat.com'
    search_path = '/loads/search'

    def _token_request(self):
        return requests.post(
            f'{self.base_url}/oauth/token',
            data={
                'grant_type': 'client_credentials',
                'client_id': self.api_key,
                'client_secret': self.api_secret
            },
            timeout=self.timeout
        )

    def broker_fields(self, broker):
        return {'broker_days_to_pay': broker.get('days_to_pay')}

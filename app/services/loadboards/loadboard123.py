import requests

from app.services.loadboards.base import LoadBoardClient

class LoadBoard123Client(LoadBoardClient):
    """123Loadboard: API key header plus account username/password login"""

    board = '123loadboard'
    base_url = 'https://api.123loadboard.com/v1'
    site_url = 'https://www.123loadboard.com'

    def _token_request(self):
        return requests.post(
            f'{self.base_url}/auth/login',
            headers={'Content-Type': 'application/json', 'X-API-Key': self.api_key},
            json={'username': self.username, 'password': self.password},
            timeout=self.timeout
        )

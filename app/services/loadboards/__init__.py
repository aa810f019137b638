"""
External load board clients

- DATClient: DAT One (OAuth2 client credentials)
- TruckstopClient: Truckstop.com (API key + secret)
- LoadBoard123Client: 123Loadboard (API key + username/password)
"""
from flask import current_app

from app.services.loadboards.dat import DATClient
from app.services.loadboards.truckstop import TruckstopClient
from app.services.loadboards.loadboard123 import LoadBoard123Client
from app.utils.errors import LoadBoardError

CLIENTS = {
    'dat': DATClient,
    'truckstop': TruckstopClient,
    '123loadboard': LoadBoard123Client,
}

PROVIDER_NAMES = {
    'dat': 'DAT',
    'truckstop': 'Truckstop',
    '123loadboard': '123Loadboard',
}

def get_client(integration):
    """Build the API client for an enabled integration row"""
    provider = integration.provider
    if provider not in CLIENTS or not integration.enabled:
        raise LoadBoardError(f'Provider {provider} is not enabled or not supported')

    if provider == '123loadboard':
        has_credentials = integration.api_key and integration.username and integration.password
    else:
        has_credentials = integration.api_key and integration.api_secret
    if not has_credentials:
        raise LoadBoardError(f'{PROVIDER_NAMES[provider]} API credentials are missing')

    return CLIENTS[provider](
        api_key=integration.api_key,
        api_secret=integration.api_secret,
        username=integration.username,
        password=integration.password,
        timeout=current_app.config['HTTP_TIMEOUT']
    )

__all__ = ['DATClient', 'TruckstopClient', 'LoadBoard123Client', 'CLIENTS', 'get_client']

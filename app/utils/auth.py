"""Authentication utilities and decorators"""
import base64
import time
from functools import wraps

import jwt
import requests
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from flask import request, current_app

from app.utils.responses import failure

ROLES = ('owner', 'manager', 'dispatcher', 'accountant', 'driver')
MANAGER_ROLES = ('owner', 'manager')

_jwks_cache = {'keys': None, 'fetched_at': 0}
JWKS_CACHE_SECONDS = 3600

def get_jwks():
    """Fetch (and cache) the signing keys of the auth provider"""
    jwks_url = current_app.config.get('AUTH_JWKS_URL')
    if not jwks_url:
        current_app.logger.error("AUTH_JWKS_URL not configured")
        return None

    if _jwks_cache['keys'] and time.time() - _jwks_cache['fetched_at'] < JWKS_CACHE_SECONDS:
        return _jwks_cache['keys']

    try:
        response = requests.get(jwks_url, timeout=5)
        response.raise_for_status()
    except requests.RequestException as e:
        current_app.logger.error(f"Error fetching JWKS: {e}")
        return None

    _jwks_cache['keys'] = response.json()
    _jwks_cache['fetched_at'] = time.time()
    return _jwks_cache['keys']

def get_public_key_from_jwk(jwk_data):
    """Convert JWK to PEM format for PyJWT"""
    n = base64.urlsafe_b64decode(jwk_data['n'] + '==')
    e = base64.urlsafe_b64decode(jwk_data['e'] + '==')

    public_key = rsa.RSAPublicNumbers(
        int.from_bytes(e, 'big'),
        int.from_bytes(n, 'big')
    ).public_key(default_backend())

    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )

def _decode_options():
    audience = current_app.config.get('JWT_AUDIENCE') or None
    issuer = current_app.config.get('AUTH_ISSUER') or None
    kwargs = {'options': {'verify_exp': True, 'verify_aud': audience is not None}}
    if audience:
        kwargs['audience'] = audience
    if issuer:
        kwargs['issuer'] = issuer
    return kwargs

def _rsa_key_for(token):
    unverified_header = jwt.get_unverified_header(token)
    kid = unverified_header.get('kid')
    if not kid:
        current_app.logger.error("Token missing 'kid' in header")
        return None

    keys = get_jwks()
    if not keys:
        return None

    for k in keys.get('keys', []):
        if k.get('kid') == kid:
            return get_public_key_from_jwk(k)

    current_app.logger.error(f"Key with kid '{kid}' not found in JWKS")
    return None

def verify_access_token(token):
    """Verify an access token and return its claims, or None"""
    try:
        algorithm = jwt.get_unverified_header(token).get('alg')
        if algorithm == 'HS256':
            key = current_app.config['JWT_SECRET_KEY']
        elif algorithm == 'RS256':
            key = _rsa_key_for(token)
            if key is None:
                return None
        else:
            current_app.logger.warning(f"Unsupported token algorithm: {algorithm}")
            return None

        return jwt.decode(token, key, algorithms=[algorithm], **_decode_options())
    except jwt.ExpiredSignatureError:
        current_app.logger.info("Token has expired")
        return None
    except jwt.InvalidTokenError as e:
        current_app.logger.warning(f"Invalid token: {e}")
        return None

def get_current_user():
    """Resolve the caller from the Authorization header"""
    auth_header = request.headers.get('Authorization')
    if not auth_header:
        return None

    token = auth_header.split(' ')[1] if ' ' in auth_header else auth_header
    claims = verify_access_token(token)
    if not claims or not claims.get('sub'):
        return None

    from app.models.user import User
    user = User.query.filter_by(auth_sub=claims['sub']).first()
    if user is not None and not user.is_active:
        return None

    return {
        'user_id': user.id if user else None,
        'auth_sub': claims['sub'],
        'email': user.email if user else claims.get('email'),
        'full_name': user.full_name if user else None,
        'role': user.role if user else None,
        'company_id': user.company_id if user else None,
        'claims': claims
    }

def require_auth(f):
    """Decorator to require authentication"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_user()
        if not user:
            return failure('Not authenticated', 401)

        # Attach user to request context
        request.current_user = user
        return f(*args, **kwargs)
    return decorated_function

def require_company(f):
    """Decorator to require an authenticated user attached to a company"""
    @wraps(f)
    @require_auth
    def decorated_function(*args, **kwargs):
        if not request.current_user.get('company_id'):
            return failure('No company found', 403)
        return f(*args, **kwargs)
    return decorated_function

def require_role(*roles, message=None):
    """Decorator to require specific role(s) within the caller's company"""
    def decorator(f):
        @wraps(f)
        @require_company
        def decorated_function(*args, **kwargs):
            user_role = request.current_user.get('role')
            if not user_role or user_role not in roles:
                return failure(message or f'Forbidden - Required role: {", ".join(roles)}', 403)
            return f(*args, **kwargs)
        return decorated_function
    return decorator

"""Firebase Auth integration: ID token verification and custom claim management"""
import base64
import json
import re
import time

import jwt
import requests
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from flask import current_app

from ethiomaids.utils.claims import build_custom_claims, BASE_ROLE, VALID_ROLES

_jwks_cache = {'keys': None, 'expires_at': 0}

DEFAULT_JWKS_MAX_AGE = 3600


class FirebaseAdminError(Exception):
    """Raised when an Identity Toolkit admin call fails"""


def _cache_max_age(cache_control):
    match = re.search(r'max-age=(\d+)', cache_control or '')
    return int(match.group(1)) if match else DEFAULT_JWKS_MAX_AGE


def get_firebase_public_keys():
    """Fetch Firebase public keys for ID token verification (cached per Cache-Control)"""
    now = time.time()
    if _jwks_cache['keys'] and _jwks_cache['expires_at'] > now:
        return _jwks_cache['keys']

    keys_url = current_app.config.get('FIREBASE_JWKS_URL')
    try:
        response = requests.get(keys_url, timeout=5)
        response.raise_for_status()
        keys = response.json()
    except (requests.RequestException, ValueError) as e:
        current_app.logger.error(f"Error fetching Firebase keys: {e}")
        return None

    _jwks_cache['keys'] = keys
    _jwks_cache['expires_at'] = now + _cache_max_age(response.headers.get('Cache-Control'))
    return keys


def clear_key_cache():
    _jwks_cache['keys'] = None
    _jwks_cache['expires_at'] = 0


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


def verify_firebase_token(token):
    """Verify and decode a Firebase ID token; None when it is not valid"""
    project_id = current_app.config.get('FIREBASE_PROJECT_ID')
    if not project_id:
        current_app.logger.error("FIREBASE_PROJECT_ID not configured")
        return None

    try:
        unverified_header = jwt.get_unverified_header(token)
    except jwt.InvalidTokenError as e:
        current_app.logger.warning(f"Malformed token: {e}")
        return None

    kid = unverified_header.get('kid')
    if not kid:
        current_app.logger.warning("Token missing 'kid' in header")
        return None

    keys = get_firebase_public_keys()
    if not keys:
        return None

    key_data = next((k for k in keys.get('keys', []) if k.get('kid') == kid), None)
    if not key_data:
        current_app.logger.warning(f"Key with kid '{kid}' not found in JWKS")
        return None

    try:
        public_key_pem = get_public_key_from_jwk(key_data)
    except (KeyError, ValueError) as e:
        current_app.logger.error(f"Error converting JWK to PEM: {e}")
        return None

    expected_issuer = f'https://securetoken.google.com/{project_id}'
    try:
        claims = jwt.decode(
            token,
            public_key_pem,
            algorithms=['RS256'],
            audience=project_id,
            issuer=expected_issuer,
            options={"verify_exp": True}
        )
    except jwt.ExpiredSignatureError:
        current_app.logger.info("Token has expired")
        return None
    except jwt.InvalidIssuerError:
        current_app.logger.warning(f"Invalid issuer. Expected: {expected_issuer}")
        return None
    except jwt.InvalidTokenError as e:
        current_app.logger.warning(f"Invalid token: {e}")
        return None

    # Firebase puts the uid in both 'sub' and 'user_id'
    if not claims.get('sub'):
        current_app.logger.warning("Token has no subject")
        return None
    return claims


# =============================================
# IDENTITY TOOLKIT (ADMIN) CALLS
# =============================================

def _admin_request(method, action, **kwargs):
    project_id = current_app.config.get('FIREBASE_PROJECT_ID')
    access_token = current_app.config.get('GOOGLE_OAUTH_ACCESS_TOKEN')
    if not project_id or not access_token:
        raise FirebaseAdminError('FIREBASE_PROJECT_ID and GOOGLE_OAUTH_ACCESS_TOKEN must be configured')

    base_url = current_app.config.get('IDENTITY_TOOLKIT_URL')
    url = f'{base_url}/projects/{project_id}/{action}'
    try:
        response = requests.request(
            method, url,
            headers={'Authorization': f'Bearer {access_token}'},
            timeout=10,
            **kwargs
        )
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        raise FirebaseAdminError(f'{action} failed: {e}') from e


def get_user(uid):
    """Return the Identity Toolkit user record, or None when it does not exist"""
    data = _admin_request('POST', 'accounts:lookup', json={'localId': [uid]})
    users = data.get('users') or []
    return users[0] if users else None


def get_custom_claims(user_record):
    raw = (user_record or {}).get('customAttributes')
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        return {}


def set_custom_claims(uid, claims):
    _admin_request('POST', 'accounts:update', json={
        'localId': uid,
        'customAttributes': json.dumps(claims),
    })
    current_app.logger.info(f"Set custom claims for user {uid}: user_type={claims.get('user_type')}")


def list_users(page_token=None, max_results=1000):
    """One page of users: (users, next_page_token)"""
    params = {'maxResults': max_results}
    if page_token:
        params['nextPageToken'] = page_token
    data = _admin_request('GET', 'accounts:batchGet', params=params)
    return data.get('users') or [], data.get('nextPageToken')


def set_user_role(uid, role):
    """Write full custom claims (user_type + Hasura namespace) for ``role``"""
    if role not in VALID_ROLES:
        raise ValueError(f'Invalid role: {role}')
    namespace = current_app.config.get('HASURA_CLAIMS_NAMESPACE')
    claims = build_custom_claims(uid, role, namespace)
    set_custom_claims(uid, claims)
    return claims


def fetch_user_role_from_database(uid, email=None):
    """Role recorded on the profile (by uid, then email); 'user' when there is none"""
    from ethiomaids import db
    from ethiomaids.models.profile import Profile

    profile = db.session.get(Profile, uid)
    if profile is None and email:
        profile = Profile.query.filter_by(email=email).first()
    if profile is None:
        current_app.logger.info(f"No profile found for user {uid}, using default role")
        return BASE_ROLE
    return profile.user_type or BASE_ROLE


def sync_claims_for_user(uid, email=None):
    role = fetch_user_role_from_database(uid, email)
    set_user_role(uid, role)
    return role

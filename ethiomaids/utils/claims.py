"""Firebase custom claims consumed by Hasura's JWT mode

Claims structure written to every Firebase user:

    {
      "user_type": "maid",
      "https://hasura.io/jwt/claims": {
        "x-hasura-allowed-roles": ["user", "maid"],
        "x-hasura-default-role": "maid",
        "x-hasura-user-id": "<firebase-uid>"
      }
    }

``user_type`` is duplicated at the top level so clients can read it without
parsing the Hasura namespace.
"""

HASURA_CLAIMS_NAMESPACE = 'https://hasura.io/jwt/claims'

BASE_ROLE = 'user'
VALID_ROLES = ('user', 'maid', 'sponsor', 'agency', 'admin')
SELF_SERVICE_USER_TYPES = ('maid', 'sponsor', 'agency')


def build_hasura_claims(uid, role=BASE_ROLE):
    role = role or BASE_ROLE
    allowed_roles = [BASE_ROLE]
    if role != BASE_ROLE:
        allowed_roles.append(role)
    return {
        'x-hasura-allowed-roles': allowed_roles,
        'x-hasura-default-role': role,
        'x-hasura-user-id': uid,
    }


def build_custom_claims(uid, role=BASE_ROLE, namespace=HASURA_CLAIMS_NAMESPACE):
    """Full custom claims: direct ``user_type`` plus the Hasura namespace"""
    role = role or BASE_ROLE
    return {
        'user_type': role,
        namespace: build_hasura_claims(uid, role),
    }


def extract_hasura_claims(token_claims, namespace=HASURA_CLAIMS_NAMESPACE):
    if not token_claims:
        return None
    hasura_claims = token_claims.get(namespace)
    return hasura_claims if isinstance(hasura_claims, dict) else None


def role_from_claims(token_claims, namespace=HASURA_CLAIMS_NAMESPACE):
    if not token_claims:
        return BASE_ROLE
    user_type = token_claims.get('user_type')
    if user_type in VALID_ROLES:
        return user_type
    hasura_claims = extract_hasura_claims(token_claims, namespace)
    if hasura_claims and hasura_claims.get('x-hasura-default-role') in VALID_ROLES:
        return hasura_claims['x-hasura-default-role']
    return BASE_ROLE


def is_admin_claims(token_claims, namespace=HASURA_CLAIMS_NAMESPACE):
    hasura_claims = extract_hasura_claims(token_claims, namespace)
    return bool(hasura_claims) and hasura_claims.get('x-hasura-default-role') == 'admin'


def session_variables(uid, role):
    """Session variables returned to Hasura in webhook auth mode"""
    return {
        'X-Hasura-User-Id': uid,
        'X-Hasura-Role': role,
    }

"""Authentication utilities and decorators"""
from functools import wraps

from flask import request, jsonify, current_app

from ethiomaids.utils.claims import role_from_claims
from ethiomaids.utils.firebase import verify_firebase_token
from ethiomaids.utils.rate_limit import limiter
from ethiomaids.utils import rbac


def get_bearer_token():
    auth_header = request.headers.get('Authorization')
    if not auth_header:
        return None
    # Extract token (format: "Bearer <token>")
    parts = auth_header.split(' ', 1)
    if len(parts) == 2 and parts[0].lower() == 'bearer':
        return parts[1].strip() or None
    return auth_header.strip() or None


def get_current_user():
    """Get current user from the Firebase ID token"""
    token = get_bearer_token()
    if not token:
        return None

    claims = verify_firebase_token(token)
    if not claims:
        return None

    uid = claims.get('user_id') or claims.get('sub')
    namespace = current_app.config.get('HASURA_CLAIMS_NAMESPACE')

    # Profile role wins over the token claims
    from ethiomaids import db
    from ethiomaids.models.profile import Profile
    profile = db.session.get(Profile, uid) if uid else None
    role = profile.user_type if profile else role_from_claims(claims, namespace)

    return {
        'uid': uid,
        'email': claims.get('email') or (profile.email if profile else None),
        'role': role,
        'profile': profile,
        'token_claims': claims
    }


def require_auth(f):
    """Decorator to require authentication"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_user()
        if not user:
            return jsonify({'error': 'Unauthorized - Invalid or missing token'}), 401

        profile = user.get('profile')
        if profile is not None and profile.is_active is False:
            return jsonify({'error': 'Forbidden - Account is suspended'}), 403

        # Attach user to request context
        request.current_user = user
        return f(*args, **kwargs)
    return decorated_function


def require_role(*roles):
    """Decorator to require specific role(s)"""
    def decorator(f):
        @wraps(f)
        @require_auth
        def decorated_function(*args, **kwargs):
            user_role = request.current_user.get('role')
            if not user_role or user_role not in roles:
                return jsonify({
                    'error': f'Forbidden - Required role: {", ".join(roles)}'
                }), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def require_permission(*permissions, any_of=False):
    """Decorator to require platform permission(s); all of them unless any_of"""
    def decorator(f):
        @wraps(f)
        @require_auth
        def decorated_function(*args, **kwargs):
            role = request.current_user.get('role')
            check = rbac.has_any_permission if any_of else rbac.has_all_permissions
            if not check(role, permissions):
                return jsonify({
                    'error': f'Forbidden - Missing permission: {", ".join(permissions)}'
                }), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def rate_limit(limit=None):
    """Decorator limiting requests per user (or client address) per endpoint per minute.

    Apply below the auth decorators so the user is known.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            max_requests = limit or current_app.config.get('RATE_LIMIT_PER_MINUTE', 60)
            user = getattr(request, 'current_user', None)
            identity = user['uid'] if user else (request.remote_addr or 'anonymous')
            key = f'{identity}:{request.endpoint}'

            allowed, retry_after = limiter.hit(key, max_requests)
            if not allowed:
                current_app.logger.warning(f"Rate limit exceeded for {key}")
                response = jsonify({
                    'error': 'Too many requests',
                    'retry_after': retry_after
                })
                response.headers['Retry-After'] = str(retry_after)
                return response, 429
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def is_admin():
    user = getattr(request, 'current_user', None)
    return bool(user) and user.get('role') == 'admin'

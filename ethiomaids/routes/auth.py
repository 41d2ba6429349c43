from flask import Blueprint, request, jsonify, current_app
from ethiomaids import db
from ethiomaids.utils.auth import require_auth, get_current_user, get_bearer_token, is_admin
from ethiomaids.utils.claims import (
    SELF_SERVICE_USER_TYPES, extract_hasura_claims, is_admin_claims, session_variables
)
from ethiomaids.utils.firebase import (
    FirebaseAdminError, get_user, set_user_role, sync_claims_for_user
)

bp = Blueprint('auth', __name__)

REFRESH_TOKEN_MESSAGE = 'Call getIdToken(true) to get updated token.'


@bp.route('/me', methods=['GET'])
@require_auth
def get_current_user_info():
    """
    Get current user information
    ---
    tags:
      - Authentication
    security:
      - Bearer: []
    responses:
      200:
        description: Current user with profile and Hasura claims
      401:
        description: Unauthorized
    """
    current_user = request.current_user
    namespace = current_app.config.get('HASURA_CLAIMS_NAMESPACE')
    profile = current_user.get('profile')

    return jsonify({
        'uid': current_user['uid'],
        'email': current_user.get('email'),
        'role': current_user.get('role'),
        'has_profile': profile is not None,
        'profile': profile.to_dict() if profile else None,
        'hasura_claims': extract_hasura_claims(current_user['token_claims'], namespace)
    }), 200


@bp.route('/user-type', methods=['POST'])
@require_auth
def set_user_type():
    """
    Set the user type right after registration
    ---
    tags:
      - Authentication
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - user_type
            properties:
              user_type:
                type: string
                enum: [maid, sponsor, agency]
    responses:
      200:
        description: Claims written; the client must force-refresh its ID token
      400:
        description: Invalid user type
      502:
        description: Firebase rejected the claims update
    """
    data = request.get_json(silent=True) or {}
    uid = request.current_user['uid']
    requested_type = (data.get('user_type') or data.get('userType') or '').strip().lower()

    if requested_type not in SELF_SERVICE_USER_TYPES:
        return jsonify({
            'error': f'Invalid user type: "{requested_type}". Must be one of: {", ".join(SELF_SERVICE_USER_TYPES)}'
        }), 400

    try:
        set_user_role(uid, requested_type)
    except FirebaseAdminError as e:
        current_app.logger.error(f"Failed to set user type for {uid}: {e}")
        return jsonify({'error': 'Failed to set user type. Please try again.'}), 502

    profile = request.current_user.get('profile')
    if profile is not None and profile.user_type != requested_type:
        profile.user_type = requested_type
        db.session.commit()

    current_app.logger.info(f"User {uid} now has user_type={requested_type}")
    return jsonify({
        'success': True,
        'user_type': requested_type,
        'message': f'User type set to "{requested_type}". {REFRESH_TOKEN_MESSAGE}'
    }), 200


@bp.route('/user-type', methods=['GET'])
@require_auth
def get_user_type():
    """User type and Hasura claims exactly as carried by the token"""
    claims = request.current_user['token_claims']
    namespace = current_app.config.get('HASURA_CLAIMS_NAMESPACE')
    return jsonify({
        'user_type': claims.get('user_type'),
        'hasura_claims': extract_hasura_claims(claims, namespace)
    }), 200


@bp.route('/claims/sync', methods=['POST'])
@require_auth
def sync_claims():
    """Rewrite custom claims from the profile table (admins may target other users)"""
    data = request.get_json(silent=True) or {}
    current_user = request.current_user
    target_uid = data.get('user_id') or data.get('userId') or current_user['uid']
    namespace = current_app.config.get('HASURA_CLAIMS_NAMESPACE')

    if target_uid != current_user['uid'] and not (is_admin() or is_admin_claims(current_user['token_claims'], namespace)):
        return jsonify({'error': 'Cannot sync claims for other users'}), 403

    try:
        if target_uid == current_user['uid']:
            email = current_user.get('email')
        else:
            user_record = get_user(target_uid)
            if user_record is None:
                return jsonify({'error': 'User not found'}), 404
            email = user_record.get('email')
        role = sync_claims_for_user(target_uid, email)
    except FirebaseAdminError as e:
        current_app.logger.error(f"Failed to sync claims for {target_uid}: {e}")
        return jsonify({'error': 'Failed to sync claims'}), 502

    return jsonify({'success': True, 'user_id': target_uid, 'role': role}), 200


@bp.route('/claims/refresh', methods=['POST'])
@require_auth
def refresh_claims():
    current_user = request.current_user
    try:
        role = sync_claims_for_user(current_user['uid'], current_user.get('email'))
    except FirebaseAdminError as e:
        current_app.logger.error(f"Failed to refresh claims for {current_user['uid']}: {e}")
        return jsonify({'error': 'Failed to refresh claims'}), 502

    return jsonify({
        'success': True,
        'role': role,
        'message': f'Claims refreshed. {REFRESH_TOKEN_MESSAGE}'
    }), 200


@bp.route('/hasura', methods=['GET'])
def hasura_webhook():
    """
    Hasura webhook-mode authentication
    ---
    tags:
      - Authentication
    responses:
      200:
        description: Session variables (X-Hasura-User-Id, X-Hasura-Role)
      401:
        description: Invalid token, or no token and no unauthorized role configured
    """
    if not get_bearer_token():
        unauthorized_role = current_app.config.get('HASURA_UNAUTHORIZED_ROLE')
        if unauthorized_role:
            return jsonify({'X-Hasura-Role': unauthorized_role}), 200
        return jsonify({'error': 'Unauthorized - Invalid or missing token'}), 401

    user = get_current_user()
    if not user:
        return jsonify({'error': 'Unauthorized - Invalid or missing token'}), 401

    profile = user.get('profile')
    if profile is not None and profile.is_active is False:
        return jsonify({'error': 'Forbidden - Account is suspended'}), 401

    return jsonify(session_variables(user['uid'], user['role'])), 200

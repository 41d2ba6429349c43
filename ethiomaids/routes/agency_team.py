from flask import Blueprint, request, jsonify, current_app
from functools import wraps
from ethiomaids import db
from ethiomaids.models.profile import AgencyTeamMember
from ethiomaids.utils.auth import require_auth
from ethiomaids.utils.rbac import (
    PermissionManager, AGENCY_ROLES, AGENCY_PERMISSIONS, PERMISSION_CATEGORIES, ROLE_HIERARCHY,
    check_usage_quota
)
from ethiomaids.utils.subscriptions import get_quota_plan_type
from ethiomaids.utils.validators import validate_email

bp = Blueprint('agency_team', __name__)

P = AGENCY_PERMISSIONS


def resolve_agency_member():
    """(agency_id, role, extra permissions) for the caller, or None outside any agency"""
    current_user = request.current_user
    if current_user.get('role') == 'agency':
        return current_user['uid'], 'owner', []

    member = AgencyTeamMember.query.filter_by(member_id=current_user['uid'], status='active').first()
    if member is None:
        return None
    return member.agency_id, member.role, member.permissions or []


def require_agency_permission(permission=None):
    """Decorator resolving the caller's agency membership and checking an agency permission"""
    def decorator(f):
        @wraps(f)
        @require_auth
        def decorated_function(*args, **kwargs):
            membership = resolve_agency_member()
            if membership is None:
                return jsonify({'error': 'Forbidden - Not a member of an agency'}), 403

            agency_id, role, extra = membership
            manager = PermissionManager(role, extra)
            if permission and not manager.has_permission(permission):
                return jsonify({'error': f'Forbidden - Missing permission: {permission}'}), 403

            request.agency_id = agency_id
            request.permission_manager = manager
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def clean_permissions(permissions):
    known = set(AGENCY_PERMISSIONS.values())
    if not isinstance(permissions, list):
        return None
    if any(not isinstance(p, str) or p not in known for p in permissions):
        return None
    return sorted(set(permissions))


def ungrantable(manager, permissions):
    """Permissions the caller is asking to grant without holding them"""
    return [p for p in permissions if not manager.has_permission(p)]


@bp.route('/team', methods=['GET'])
@require_agency_permission(P['VIEW_TEAM'])
def list_team():
    members = AgencyTeamMember.query.filter_by(agency_id=request.agency_id) \
        .order_by(AgencyTeamMember.created_at.asc()).all()
    return jsonify({'members': [m.to_dict() for m in members], 'total': len(members)}), 200


@bp.route('/team', methods=['POST'])
@require_agency_permission(P['INVITE_MEMBERS'])
def invite_member():
    """
    Invite a team member
    ---
    tags:
      - Agency Team
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - email
              - role
            properties:
              email:
                type: string
              role:
                type: string
                enum: [manager, coordinator, assistant]
              permissions:
                type: array
                items:
                  type: string
    responses:
      201:
        description: Invitation created
      400:
        description: Invalid email, role or permissions
      403:
        description: Caller cannot assign this role, or team member quota reached
      409:
        description: Email already on the team
    """
    data = request.get_json(silent=True) or {}
    email = data.get('email')
    email = email.strip().lower() if isinstance(email, str) else ''
    role = data.get('role', 'assistant')
    permissions = clean_permissions(data.get('permissions', []))

    if not validate_email(email):
        return jsonify({'error': 'A valid email is required'}), 400
    if not isinstance(role, str) or role not in AGENCY_ROLES or role == 'owner':
        return jsonify({'error': 'Role must be manager, coordinator or assistant'}), 400
    if permissions is None:
        return jsonify({'error': 'Unknown permission in permissions'}), 400
    if not request.permission_manager.can_manage_user(role):
        return jsonify({'error': f'Forbidden - You cannot assign the {role} role'}), 403
    denied = ungrantable(request.permission_manager, permissions)
    if denied:
        return jsonify({'error': f'Forbidden - You cannot grant: {", ".join(denied)}'}), 403

    if AgencyTeamMember.query.filter_by(agency_id=request.agency_id, email=email).first():
        return jsonify({'error': 'This email is already on the team'}), 409

    current_members = AgencyTeamMember.query.filter(
        AgencyTeamMember.agency_id == request.agency_id,
        AgencyTeamMember.status != 'suspended'
    ).count()
    quota = check_usage_quota('agency', get_quota_plan_type(request.agency_id), 'team_members', current_members)
    if not quota['allowed']:
        return jsonify({
            'error': 'Team member limit reached for your plan',
            'upgrade_required': True,
            'quota': quota
        }), 403

    member = AgencyTeamMember(
        agency_id=request.agency_id,
        email=email,
        role=role,
        permissions=permissions,
        status='invited',
        invited_by=request.current_user['uid']
    )
    db.session.add(member)
    db.session.commit()

    current_app.logger.info(f"Agency {request.agency_id} invited {email} as {role}")
    return jsonify(member.to_dict()), 201


@bp.route('/team/accept', methods=['POST'])
@require_auth
def accept_invitation():
    """Link the caller's account to a pending invitation sent to their email"""
    email = (request.current_user.get('email') or '').lower()
    data = request.get_json(silent=True) or {}

    query = AgencyTeamMember.query.filter_by(email=email, status='invited')
    if data.get('agency_id'):
        query = query.filter_by(agency_id=data['agency_id'])
    member = query.first() if email else None
    if member is None:
        return jsonify({'error': 'Invitation not found'}), 404

    member.member_id = request.current_user['uid']
    member.status = 'active'
    db.session.commit()
    return jsonify(member.to_dict()), 200


@bp.route('/team/<member_id>', methods=['PUT'])
@require_agency_permission(P['MANAGE_ROLES'])
def update_member(member_id):
    """Change a member's role and/or extra permissions"""
    member = AgencyTeamMember.query.filter_by(id=member_id, agency_id=request.agency_id).first_or_404()
    data = request.get_json(silent=True) or {}
    manager = request.permission_manager

    if not manager.can_manage_user(member.role):
        return jsonify({'error': 'Forbidden - You cannot manage this member'}), 403

    if 'role' in data:
        new_role = data['role']
        if not isinstance(new_role, str) or new_role not in AGENCY_ROLES or new_role == 'owner':
            return jsonify({'error': 'Role must be manager, coordinator or assistant'}), 400
        if not manager.can_manage_user(new_role):
            return jsonify({'error': f'Forbidden - You cannot assign the {new_role} role'}), 403
        member.role = new_role

    if 'permissions' in data:
        permissions = clean_permissions(data['permissions'])
        if permissions is None:
            return jsonify({'error': 'Unknown permission in permissions'}), 400
        denied = ungrantable(manager, permissions)
        if denied:
            return jsonify({'error': f'Forbidden - You cannot grant: {", ".join(denied)}'}), 403
        member.permissions = permissions

    if 'status' in data:
        if not isinstance(data['status'], str) or data['status'] not in ('active', 'suspended'):
            return jsonify({'error': 'status must be active or suspended'}), 400
        if data['status'] == 'active' and member.member_id is None:
            return jsonify({'error': 'Invitation has not been accepted yet'}), 409
        member.status = data['status']

    db.session.commit()
    return jsonify(member.to_dict()), 200


@bp.route('/team/<member_id>', methods=['DELETE'])
@require_agency_permission(P['MANAGE_TEAM'])
def remove_member(member_id):
    member = AgencyTeamMember.query.filter_by(id=member_id, agency_id=request.agency_id).first_or_404()
    if not request.permission_manager.can_manage_user(member.role):
        return jsonify({'error': 'Forbidden - You cannot manage this member'}), 403

    db.session.delete(member)
    db.session.commit()
    current_app.logger.info(f"Agency {request.agency_id} removed team member {member.email}")
    return jsonify({'message': 'Team member removed'}), 200


@bp.route('/team/permissions', methods=['GET'])
@require_agency_permission()
def get_my_permissions():
    """Effective permissions of the caller inside their agency"""
    manager = request.permission_manager
    return jsonify({
        'agency_id': request.agency_id,
        'role': manager.user_role,
        'permissions': manager.get_effective_permissions(),
        'accessible_features': manager.get_accessible_features(),
        'hierarchy_level': manager.get_role_hierarchy_level()
    }), 200


@bp.route('/team/roles', methods=['GET'])
@require_auth
def get_roles_catalog():
    roles = [
        dict(role, hierarchy_level=ROLE_HIERARCHY.get(role_id, 0))
        for role_id, role in AGENCY_ROLES.items()
    ]
    return jsonify({'roles': roles, 'permission_categories': PERMISSION_CATEGORIES}), 200


@bp.route('/team/access', methods=['GET'])
@require_agency_permission()
def check_route_access():
    route = request.args.get('route')
    if not route:
        return jsonify({'error': 'route is required'}), 400
    return jsonify({
        'route': route,
        'allowed': request.permission_manager.can_access_route(route)
    }), 200

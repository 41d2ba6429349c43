from flask import Blueprint, request, jsonify, current_app
from ethiomaids import db
from ethiomaids.models.profile import Profile, USER_TYPES
from ethiomaids.models.job import Job, JobApplication, JOB_STATUSES
from ethiomaids.models.booking import BookingRequest, BOOKING_STATUSES
from ethiomaids.models.review import Review
from ethiomaids.models.payout import Payout
from ethiomaids.models.subscription import Subscription, Payment
from ethiomaids.models.whatsapp import WhatsAppMessage, MaidBooking
from ethiomaids.models.settings import SystemSetting
from ethiomaids.models.columns import utcnow
from ethiomaids.utils.auth import require_role
from ethiomaids.utils.claims import VALID_ROLES
from ethiomaids.utils.firebase import FirebaseAdminError, set_user_role
from ethiomaids.utils.helpers import get_pagination_args, paginated_response, ilike_pattern
from datetime import timedelta

bp = Blueprint('admin', __name__)

VERIFICATION_STATUSES = ('pending', 'verified', 'rejected')


def counts_by(column, values, *criteria):
    rows = dict(db.session.query(column, db.func.count()).filter(*criteria).group_by(column).all())
    return {value: rows.get(value, 0) for value in values}


@bp.route('/dashboard', methods=['GET'])
@require_role('admin')
def get_dashboard():
    """
    Platform-wide aggregates for the admin dashboard
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    responses:
      200:
        description: users, jobs, bookings, reviews, payouts, subscriptions, revenue and whatsapp sections
      403:
        description: Forbidden (admin only)
    """
    week_ago = utcnow() - timedelta(days=7)

    users_by_type = counts_by(Profile.user_type, USER_TYPES)
    average_rating = db.session.query(db.func.avg(Review.rating)).filter(Review.status == 'approved').scalar()
    pending_payouts = db.session.query(
        db.func.count(Payout.id), db.func.coalesce(db.func.sum(Payout.amount), 0)
    ).filter(Payout.status == 'pending').one()
    revenue = db.session.query(db.func.coalesce(db.func.sum(Payment.amount), 0)) \
        .filter(Payment.status == 'succeeded').scalar()

    return jsonify({
        'users': {
            'total': sum(users_by_type.values()),
            'by_type': users_by_type,
            'active': Profile.query.filter(Profile.is_active.is_(True)).count(),
            'verified': Profile.query.filter(Profile.verification_status == 'verified').count(),
            'pending_verification': Profile.query.filter(Profile.verification_status == 'pending').count(),
            'new_last_7_days': Profile.query.filter(Profile.created_at >= week_ago).count(),
        },
        'jobs': {
            'total': Job.query.count(),
            'by_status': counts_by(Job.status, JOB_STATUSES),
        },
        'applications': {
            'total': JobApplication.query.count(),
        },
        'bookings': {
            'total': BookingRequest.query.count(),
            'by_status': counts_by(BookingRequest.status, BOOKING_STATUSES),
        },
        'reviews': {
            'pending_moderation': Review.query.filter(Review.status == 'pending').count(),
            'average_rating': round(float(average_rating), 2) if average_rating is not None else 0,
        },
        'payouts': {
            'pending_count': pending_payouts[0],
            'pending_amount': float(pending_payouts[1]),
        },
        'subscriptions': {
            'active': Subscription.query.filter(Subscription.status == 'active').count(),
        },
        'revenue': {
            'total': int(revenue or 0),
        },
        'whatsapp': {
            'messages': WhatsAppMessage.query.count(),
            'pending_bookings': MaidBooking.query.filter(MaidBooking.status == 'pending').count(),
        },
    }), 200


# =============================================
# USERS
# =============================================

@bp.route('/users', methods=['GET'])
@require_role('admin')
def list_users():
    """List user profiles with filters"""
    page, per_page = get_pagination_args()
    query = Profile.query

    user_type = request.args.get('user_type')
    if user_type:
        query = query.filter(Profile.user_type == user_type)
    status = request.args.get('status')
    if status == 'active':
        query = query.filter(Profile.is_active.is_(True))
    elif status == 'suspended':
        query = query.filter(Profile.is_active.is_(False))
    verification_status = request.args.get('verification_status')
    if verification_status:
        query = query.filter(Profile.verification_status == verification_status)
    search = request.args.get('search', '').strip()
    if search:
        pattern = ilike_pattern(search)
        query = query.filter(db.or_(
            Profile.full_name.ilike(pattern, escape='\\'),
            Profile.email.ilike(pattern, escape='\\'),
            Profile.phone_number.ilike(pattern, escape='\\')
        ))

    pagination = query.order_by(Profile.created_at.desc(), Profile.id) \
        .paginate(page=page, per_page=per_page, error_out=False)
    return jsonify(paginated_response('users', pagination, Profile.to_dict, page, per_page)), 200


@bp.route('/users/<user_id>', methods=['PATCH'])
@require_role('admin')
def update_user(user_id):
    """Suspend/reactivate a user or change their verification status"""
    profile = db.get_or_404(Profile, user_id)
    data = request.get_json(silent=True) or {}

    if 'is_active' in data:
        if not isinstance(data['is_active'], bool):
            return jsonify({'error': 'is_active must be true or false'}), 400
        profile.is_active = data['is_active']
    if 'verification_status' in data:
        if data['verification_status'] not in VERIFICATION_STATUSES:
            return jsonify({'error': f'verification_status must be one of: {", ".join(VERIFICATION_STATUSES)}'}), 400
        profile.verification_status = data['verification_status']

    db.session.commit()
    current_app.logger.info(f"Admin {request.current_user['uid']} updated user {user_id}")
    return jsonify(profile.to_dict()), 200


@bp.route('/users/<user_id>/role', methods=['PUT'])
@require_role('admin')
def set_role(user_id):
    """
    Set a user's platform role (profile and Firebase claims)
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - role
            properties:
              role:
                type: string
                enum: [user, maid, sponsor, agency, admin]
    responses:
      200:
        description: Role updated
      400:
        description: Invalid role
      502:
        description: Firebase rejected the claims update
    """
    data = request.get_json(silent=True) or {}
    role = data.get('role')
    if role not in VALID_ROLES:
        return jsonify({'error': f'Invalid role: {role}'}), 400

    try:
        claims = set_user_role(user_id, role)
    except FirebaseAdminError as e:
        current_app.logger.error(f"Failed to set role for {user_id}: {e}")
        return jsonify({'error': 'Failed to update user claims'}), 502

    profile = db.session.get(Profile, user_id)
    if profile is not None:
        profile.user_type = role
        db.session.commit()

    current_app.logger.info(f"Admin {request.current_user['uid']} set role of {user_id} to {role}")
    return jsonify({'success': True, 'user_id': user_id, 'role': role, 'claims': claims}), 200


# =============================================
# SYSTEM SETTINGS
# =============================================

@bp.route('/settings', methods=['GET'])
@require_role('admin')
def list_system_settings():
    settings = SystemSetting.query.order_by(SystemSetting.key).all()
    return jsonify({'settings': [s.to_dict() for s in settings]}), 200


@bp.route('/settings/<key>', methods=['GET'])
@require_role('admin')
def get_system_setting(key):
    setting = db.get_or_404(SystemSetting, key)
    return jsonify(setting.to_dict()), 200


@bp.route('/settings/<key>', methods=['PUT'])
@require_role('admin')
def upsert_system_setting(key):
    """Create or replace a system setting value"""
    data = request.get_json(silent=True) or {}
    if 'value' not in data:
        return jsonify({'error': 'value is required'}), 400

    setting = db.session.get(SystemSetting, key)
    created = setting is None
    if created:
        setting = SystemSetting(key=key)
        db.session.add(setting)
    setting.value = data['value']
    if 'description' in data:
        setting.description = data['description']
    setting.updated_by = request.current_user['uid']
    db.session.commit()

    return jsonify(setting.to_dict()), 201 if created else 200

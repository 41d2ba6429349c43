from flask import Blueprint, request, jsonify
from ethiomaids import db
from ethiomaids.models.subscription import Subscription, Payment
from ethiomaids.models.job import Job, JobApplication
from ethiomaids.models.booking import BookingRequest
from ethiomaids.models.profile import Profile, AgencyTeamMember
from ethiomaids.models.message import Message
from ethiomaids.models.favorite import Favorite
from ethiomaids.utils.auth import require_auth, require_role
from ethiomaids.utils.helpers import get_pagination_args, paginated_response
from ethiomaids.utils.rbac import check_usage_quota, get_plan_limits
from ethiomaids.utils.subscriptions import (
    get_latest_subscription, get_subscription_status, get_plan_type, get_days_remaining,
    get_quota_plan_type
)

bp = Blueprint('subscriptions', __name__)


def count_message_threads(uid):
    sent = db.session.query(Message.recipient_id).filter(Message.sender_id == uid).distinct()
    received = db.session.query(Message.sender_id).filter(Message.recipient_id == uid).distinct()
    return len({row[0] for row in sent.all() + received.all() if row[0]})


# resource -> current usage for a user id
USAGE_COUNTERS = {
    'job_postings': lambda uid: Job.query.filter(
        Job.sponsor_id == uid, Job.status.in_(('active', 'draft'))).count(),
    'booking_requests': lambda uid: BookingRequest.query.filter(
        BookingRequest.sponsor_id == uid, BookingRequest.status.in_(('pending', 'accepted'))).count(),
    'job_applications': lambda uid: JobApplication.query.filter(
        JobApplication.maid_id == uid, JobApplication.status != 'withdrawn').count(),
    'maid_listings': lambda uid: Profile.query.filter(
        Profile.agency_id == uid, Profile.user_type == 'maid').count(),
    'team_members': lambda uid: AgencyTeamMember.query.filter(
        AgencyTeamMember.agency_id == uid, AgencyTeamMember.status != 'suspended').count(),
    'saved_candidates': lambda uid: Favorite.query.filter(Favorite.sponsor_id == uid).count(),
    'message_threads': count_message_threads,
}


@bp.route('/me', methods=['GET'])
@require_auth
def get_my_subscription():
    """
    Current user's subscription summary
    ---
    tags:
      - Subscriptions
    security:
      - Bearer: []
    responses:
      200:
        description: Subscription row (or null), status, plan type, days remaining and plan limits
    """
    current_user = request.current_user
    subscription = get_latest_subscription(current_user['uid'])
    plan_type = get_plan_type(subscription)

    return jsonify({
        'subscription': subscription.to_dict() if subscription else None,
        'status': get_subscription_status(subscription),
        'plan_type': plan_type,
        'days_remaining': get_days_remaining(subscription),
        'limits': get_plan_limits(current_user.get('role'), get_quota_plan_type(current_user['uid']))
    }), 200


@bp.route('/usage/<resource>', methods=['GET'])
@require_auth
def get_usage(resource):
    """Usage of one resource against the caller's plan quota"""
    counter = USAGE_COUNTERS.get(resource)
    if counter is None:
        return jsonify({'error': f'Unknown resource: {resource}'}), 400

    uid = request.current_user['uid']
    quota = check_usage_quota(request.current_user.get('role'), get_quota_plan_type(uid), resource, counter(uid))
    quota['resource'] = resource
    return jsonify(quota), 200


@bp.route('/payments/mine', methods=['GET'])
@require_auth
def get_my_payments():
    payments = Payment.query.filter_by(user_id=request.current_user['uid']) \
        .order_by(Payment.created_at.desc()).all()
    return jsonify({'payments': [p.to_dict() for p in payments], 'total': len(payments)}), 200


@bp.route('/', methods=['GET'])
@require_role('admin')
def list_subscriptions():
    """All subscriptions (admin)"""
    page, per_page = get_pagination_args()
    query = Subscription.query
    status = request.args.get('status')
    if status:
        query = query.filter(Subscription.status == status)
    plan_type = request.args.get('plan_type')
    if plan_type:
        query = query.filter(Subscription.plan_type == plan_type)
    user_type = request.args.get('user_type')
    if user_type:
        query = query.filter(Subscription.user_type == user_type)

    pagination = query.order_by(Subscription.created_at.desc(), Subscription.id) \
        .paginate(page=page, per_page=per_page, error_out=False)
    return jsonify(paginated_response('subscriptions', pagination, Subscription.to_dict, page, per_page)), 200

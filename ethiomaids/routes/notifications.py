from flask import Blueprint, request, jsonify
from ethiomaids import db
from ethiomaids.models.notification import Notification
from ethiomaids.utils.auth import require_auth
from ethiomaids.utils.helpers import get_pagination_args, paginated_response

bp = Blueprint('notifications', __name__)

@bp.route('/', methods=['GET'])
@require_auth
def get_notifications():
    """Get notifications for current user"""
    page, per_page = get_pagination_args()
    unread_only = request.args.get('unread_only', 'false').lower() == 'true'

    query = Notification.query.filter_by(user_id=request.current_user['uid'])
    if unread_only:
        query = query.filter_by(is_read=False)

    pagination = query.order_by(Notification.created_at.desc(), Notification.id).paginate(
        page=page, per_page=per_page, error_out=False
    )
    return jsonify(paginated_response('notifications', pagination, Notification.to_dict, page, per_page)), 200

@bp.route('/<notification_id>/read', methods=['PUT'])
@require_auth
def mark_notification_read(notification_id):
    """Mark notification as read"""
    notification = db.get_or_404(Notification, notification_id)
    if notification.user_id != request.current_user['uid']:
        return jsonify({'error': 'Forbidden - Not your notification'}), 403
    notification.is_read = True
    db.session.commit()
    return jsonify(notification.to_dict()), 200

@bp.route('/read-all', methods=['PUT'])
@require_auth
def mark_all_read():
    """Mark all notifications as read for current user"""
    updated = Notification.query.filter_by(user_id=request.current_user['uid'], is_read=False) \
        .update({'is_read': True}, synchronize_session=False)
    db.session.commit()
    return jsonify({'message': 'All notifications marked as read', 'updated': updated}), 200

@bp.route('/unread-count', methods=['GET'])
@require_auth
def get_unread_count():
    """Get unread notification count for current user"""
    count = Notification.query.filter_by(user_id=request.current_user['uid'], is_read=False).count()
    return jsonify({'unread_count': count}), 200

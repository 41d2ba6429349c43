from flask import Blueprint, request, jsonify, current_app
from ethiomaids import db
from ethiomaids.models.booking import BookingRequest, BOOKING_STATUSES
from ethiomaids.models.profile import Profile
from ethiomaids.models.columns import utcnow
from ethiomaids.utils.auth import require_auth, require_role, is_admin
from ethiomaids.utils.helpers import (
    normalize_keys, parse_date, parse_decimal, get_pagination_args, create_notification
)
from ethiomaids.utils.validators import validate_booking
from decimal import Decimal

bp = Blueprint('bookings', __name__)

UPDATABLE_FIELDS = ('start_date', 'end_date', 'message', 'special_requirements', 'amount', 'currency')

# action -> (target status, notification type)
TRANSITION_ACTIONS = {
    'accept': ('accepted', 'BOOKING_ACCEPTED'),
    'reject': ('rejected', 'BOOKING_REJECTED'),
    'cancel': ('cancelled', 'BOOKING_CANCELLED'),
    'complete': ('completed', 'BOOKING_COMPLETED'),
}


def booking_not_found():
    return jsonify({'error': 'Booking request not found', 'code': 'BOOKING_NOT_FOUND'}), 404


def is_maid_side(booking, uid):
    """The maid herself or the agency managing her"""
    if booking.maid_id == uid:
        return True
    return booking.maid is not None and booking.maid.agency_id == uid


def can_view(booking, uid):
    return is_admin() or booking.sponsor_id == uid or is_maid_side(booking, uid)


def apply_booking_fields(booking, data):
    for field in UPDATABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field in ('start_date', 'end_date'):
            value = parse_date(value)
        elif field == 'amount':
            value = parse_decimal(value, Decimal('0'))
        setattr(booking, field, value)


@bp.route('/', methods=['POST'])
@require_role('sponsor')
def create_booking():
    """
    Send a booking request to a maid
    ---
    tags:
      - Bookings
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - maid_id
            properties:
              maid_id:
                type: string
              start_date:
                type: string
                format: date
              end_date:
                type: string
                format: date
              message:
                type: string
              amount:
                type: number
              currency:
                type: string
    responses:
      201:
        description: Booking request created (status pending)
      400:
        description: Validation failed
      404:
        description: Maid not found
    """
    data = normalize_keys(request.get_json(silent=True))
    errors = validate_booking(data)
    if errors:
        return jsonify({'error': 'Validation failed', 'errors': errors}), 400

    maid = db.session.get(Profile, data['maid_id'])
    if maid is None or maid.user_type != 'maid':
        return jsonify({'error': 'Maid not found'}), 404

    booking = BookingRequest(
        sponsor_id=request.current_user['uid'],
        maid_id=maid.id,
        message=data.get('message') or '',
        currency=data.get('currency') or 'USD',
        payment_status='pending',
        status='pending'
    )
    apply_booking_fields(booking, {k: v for k, v in data.items() if k != 'currency'})
    if booking.amount is None:
        booking.amount = Decimal('0')

    db.session.add(booking)
    db.session.flush()
    create_notification(
        maid.id, 'BOOKING_REQUEST', 'New booking request',
        'You have received a new booking request', 'booking', booking.id
    )
    if maid.agency_id:
        create_notification(
            maid.agency_id, 'BOOKING_REQUEST', 'New booking request',
            f'{maid.full_name} received a new booking request', 'booking', booking.id
        )
    db.session.commit()

    current_app.logger.info(f"Booking {booking.id} created for maid {maid.id}")
    return jsonify(booking.to_dict()), 201


@bp.route('/', methods=['GET'])
@require_auth
def get_bookings():
    """Bookings for the caller (sponsor side or maid side)"""
    page, per_page = get_pagination_args()
    uid = request.current_user['uid']
    role = request.current_user.get('role')

    query = BookingRequest.query
    if role == 'sponsor':
        query = query.filter(BookingRequest.sponsor_id == uid)
    elif role == 'maid':
        query = query.filter(BookingRequest.maid_id == uid)
    elif role == 'agency':
        maid_ids = db.session.query(Profile.id).filter(Profile.agency_id == uid)
        query = query.filter(BookingRequest.maid_id.in_(maid_ids))
    elif role != 'admin':
        query = query.filter(db.or_(BookingRequest.sponsor_id == uid, BookingRequest.maid_id == uid))

    status = request.args.get('status')
    if status:
        if status not in BOOKING_STATUSES:
            return jsonify({'error': f'Status must be one of: {", ".join(BOOKING_STATUSES)}'}), 400
        query = query.filter(BookingRequest.status == status)

    pagination = query.order_by(BookingRequest.created_at.desc(), BookingRequest.id) \
        .paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        'bookings': [b.to_dict() for b in pagination.items],
        'count': pagination.total,
        'page': page,
        'per_page': per_page,
        'pages': pagination.pages
    }), 200


@bp.route('/<booking_id>', methods=['GET'])
@require_auth
def get_booking(booking_id):
    booking = db.session.get(BookingRequest, booking_id)
    if booking is None:
        return booking_not_found()
    if not can_view(booking, request.current_user['uid']):
        return jsonify({'error': 'Forbidden - Not a participant in this booking'}), 403
    return jsonify(booking.to_dict()), 200


@bp.route('/<booking_id>', methods=['PUT'])
@require_auth
def update_booking(booking_id):
    """Update booking details (sponsor, while the request is pending)"""
    booking = db.session.get(BookingRequest, booking_id)
    if booking is None:
        return booking_not_found()
    if booking.sponsor_id != request.current_user['uid']:
        return jsonify({'error': 'Forbidden - Only the sponsor can edit this booking'}), 403
    if booking.status != 'pending':
        return jsonify({'error': f'Cannot edit a {booking.status} booking'}), 409

    data = normalize_keys(request.get_json(silent=True))
    merged = {
        'start_date': booking.start_date,
        'end_date': booking.end_date,
    }
    merged.update(data)
    errors = validate_booking(merged, partial=True)
    if errors:
        return jsonify({'error': 'Validation failed', 'errors': errors}), 400

    apply_booking_fields(booking, data)
    db.session.commit()
    return jsonify(booking.to_dict()), 200


@bp.route('/<booking_id>', methods=['DELETE'])
@require_auth
def delete_booking(booking_id):
    booking = db.session.get(BookingRequest, booking_id)
    if booking is None:
        return booking_not_found()

    if not is_admin():
        if booking.sponsor_id != request.current_user['uid']:
            return jsonify({'error': 'Forbidden - Only the sponsor can delete this booking'}), 403
        if booking.status != 'pending':
            return jsonify({'error': f'Cannot delete a {booking.status} booking'}), 409

    db.session.delete(booking)
    db.session.commit()
    return jsonify({'message': 'Booking deleted successfully'}), 200


@bp.route('/<booking_id>/<action>', methods=['POST'])
@require_auth
def transition_booking(booking_id, action):
    """
    Accept, reject, cancel or complete a booking request
    ---
    tags:
      - Bookings
    security:
      - Bearer: []
    parameters:
      - name: booking_id
        in: path
        required: true
        schema:
          type: string
      - name: action
        in: path
        required: true
        schema:
          type: string
          enum: [accept, reject, cancel, complete]
    responses:
      200:
        description: Booking moved to the new status; the other party is notified
      403:
        description: Caller may not perform this action
      404:
        description: Booking not found
      409:
        description: Transition not allowed from the current status
    """
    if action not in TRANSITION_ACTIONS:
        return jsonify({'error': 'Invalid action'}), 400

    booking = db.session.get(BookingRequest, booking_id)
    if booking is None:
        return booking_not_found()

    uid = request.current_user['uid']
    if action in ('accept', 'reject'):
        allowed = is_maid_side(booking, uid)
    elif action == 'cancel':
        allowed = booking.sponsor_id == uid
    else:
        allowed = booking.sponsor_id == uid or is_admin()
    if not allowed:
        return jsonify({'error': f'Forbidden - You cannot {action} this booking'}), 403

    new_status, notification_type = TRANSITION_ACTIONS[action]
    if not booking.can_transition_to(new_status):
        return jsonify({'error': f'Cannot {action} a {booking.status} booking'}), 409

    data = request.get_json(silent=True) or {}
    booking.status = new_status
    if action in ('accept', 'reject'):
        booking.responded_at = utcnow()
    if action == 'reject':
        booking.rejection_reason = data.get('reason') or data.get('rejection_reason')

    # Notify the counter-party
    recipient = booking.maid_id if uid == booking.sponsor_id else booking.sponsor_id
    create_notification(
        recipient, notification_type, f'Booking {new_status}',
        f'Booking request has been {new_status}', 'booking', booking.id
    )
    db.session.commit()

    current_app.logger.info(f"Booking {booking.id} {new_status} by {uid}")
    return jsonify(booking.to_dict()), 200

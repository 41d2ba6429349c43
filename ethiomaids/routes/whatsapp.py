from flask import Blueprint, request, jsonify, current_app, Response
from sqlalchemy.exc import SQLAlchemyError
from ethiomaids import db
from ethiomaids.models.whatsapp import WhatsAppMessage, MaidBooking, WHATSAPP_BOOKING_STATUSES
from ethiomaids.models.settings import PlatformSettings
from ethiomaids.models.columns import isoformat
from ethiomaids.utils.auth import require_role
from ethiomaids.utils.helpers import (
    normalize_keys, parse_datetime, get_limit_offset, ilike_pattern, to_csv
)

bp = Blueprint('whatsapp', __name__)

BOOKING_UPDATABLE_FIELDS = (
    'sponsor_name', 'sponsor_id', 'maid_id', 'maid_name', 'booking_type',
    'booking_date', 'status', 'notes', 'metadata'
)

CSV_HEADERS = [
    'ID', 'Phone Number', 'Sponsor Name', 'Maid Name', 'Booking Type',
    'Booking Date', 'Status', 'Notes', 'Created At'
]


def filtered_bookings():
    """MaidBooking query filtered by the request's query string; ValueError on bad dates"""
    query = MaidBooking.query
    phone_number = request.args.get('phone_number')
    if phone_number:
        query = query.filter(MaidBooking.phone_number == phone_number)
    status = request.args.get('status')
    if status:
        query = query.filter(MaidBooking.status == status)
    booking_type = request.args.get('booking_type')
    if booking_type:
        query = query.filter(MaidBooking.booking_type == booking_type)
    start_date = parse_datetime(request.args.get('start_date'))
    if start_date:
        query = query.filter(MaidBooking.booking_date >= start_date)
    end_date = parse_datetime(request.args.get('end_date'))
    if end_date:
        query = query.filter(MaidBooking.booking_date <= end_date)
    return query.order_by(MaidBooking.created_at.desc(), MaidBooking.id)


# =============================================
# MESSAGES
# =============================================

@bp.route('/messages', methods=['GET'])
@require_role('admin')
def get_messages():
    """
    List WhatsApp messages
    ---
    tags:
      - WhatsApp
    security:
      - Bearer: []
    parameters:
      - name: phone_number
        in: query
        schema:
          type: string
      - name: sender
        in: query
        schema:
          type: string
          enum: [user, assistant]
      - name: limit
        in: query
        schema:
          type: integer
      - name: offset
        in: query
        schema:
          type: integer
    responses:
      200:
        description: messages, total, limit, offset
    """
    limit, offset = get_limit_offset(50)
    query = WhatsAppMessage.query
    phone_number = request.args.get('phone_number')
    if phone_number:
        query = query.filter(WhatsAppMessage.phone_number == phone_number)
    sender = request.args.get('sender')
    if sender:
        query = query.filter(WhatsAppMessage.sender == sender)

    total = query.count()
    messages = query.order_by(WhatsAppMessage.received_at.desc(), WhatsAppMessage.id) \
        .offset(offset).limit(limit).all()
    return jsonify({
        'messages': [m.to_dict() for m in messages],
        'total': total,
        'limit': limit,
        'offset': offset
    }), 200


@bp.route('/messages', methods=['POST'])
@require_role('admin')
def record_message():
    """Record an inbound or outbound WhatsApp message"""
    data = normalize_keys(request.get_json(silent=True))
    phone_number = (data.get('phone_number') or '').strip()
    content = data.get('message_content')
    sender = data.get('sender', 'user')

    if not phone_number or not content:
        return jsonify({'error': 'phone_number and message_content are required'}), 400
    if sender not in ('user', 'assistant'):
        return jsonify({'error': 'sender must be user or assistant'}), 400

    try:
        received_at = parse_datetime(data.get('received_at'))
    except ValueError:
        return jsonify({'error': 'Invalid received_at'}), 400

    message = WhatsAppMessage(phone_number=phone_number, message_content=content, sender=sender)
    if received_at:
        message.received_at = received_at
    db.session.add(message)
    db.session.commit()
    return jsonify(message.to_dict()), 201


@bp.route('/messages/conversation/<phone_number>', methods=['GET'])
@require_role('admin')
def get_conversation(phone_number):
    """Messages with one phone number, oldest first"""
    limit, _ = get_limit_offset(100)
    messages = WhatsAppMessage.query.filter_by(phone_number=phone_number) \
        .order_by(WhatsAppMessage.received_at.asc(), WhatsAppMessage.id).limit(limit).all()
    return jsonify({'messages': [m.to_dict() for m in messages], 'total': len(messages)}), 200


@bp.route('/messages/search', methods=['GET'])
@require_role('admin')
def search_messages():
    term = request.args.get('q', '').strip()
    if not term:
        return jsonify({'error': 'Search term (q) is required'}), 400

    limit, _ = get_limit_offset(50)
    messages = WhatsAppMessage.query \
        .filter(WhatsAppMessage.message_content.ilike(ilike_pattern(term), escape='\\')) \
        .order_by(WhatsAppMessage.received_at.desc(), WhatsAppMessage.id).limit(limit).all()
    return jsonify({'messages': [m.to_dict() for m in messages], 'total': len(messages)}), 200


@bp.route('/contacts', methods=['GET'])
@require_role('admin')
def get_contacts():
    """Phone numbers that have messaged, newest conversation first"""
    limit, _ = get_limit_offset(100)
    counts = dict(
        db.session.query(WhatsAppMessage.phone_number, db.func.count(WhatsAppMessage.id))
        .group_by(WhatsAppMessage.phone_number).all()
    )

    contacts = {}
    messages = WhatsAppMessage.query.order_by(WhatsAppMessage.received_at.desc(), WhatsAppMessage.id).all()
    for message in messages:
        if message.phone_number in contacts:
            continue
        contacts[message.phone_number] = {
            'phone_number': message.phone_number,
            'last_message': message.message_content,
            'last_message_at': isoformat(message.received_at),
            'last_sender': message.sender,
            'message_count': counts.get(message.phone_number, 0)
        }
        if len(contacts) >= limit:
            break

    return jsonify({'contacts': list(contacts.values()), 'total': len(counts)}), 200


# =============================================
# BOOKINGS
# =============================================

@bp.route('/bookings', methods=['GET'])
@require_role('admin')
def get_bookings():
    limit, offset = get_limit_offset(50)
    try:
        query = filtered_bookings()
    except ValueError:
        return jsonify({'error': 'Invalid date filter'}), 400

    total = query.count()
    bookings = query.offset(offset).limit(limit).all()
    return jsonify({
        'bookings': [b.to_dict() for b in bookings],
        'total': total,
        'limit': limit,
        'offset': offset
    }), 200


@bp.route('/bookings/stats', methods=['GET'])
@require_role('admin')
def get_booking_stats():
    try:
        counts = dict(
            db.session.query(MaidBooking.status, db.func.count(MaidBooking.id))
            .group_by(MaidBooking.status).all()
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error loading WhatsApp booking stats: {e}")
        counts = {}

    stats = {'total_bookings': sum(counts.values())}
    for status in WHATSAPP_BOOKING_STATUSES:
        stats[f'{status}_bookings'] = counts.get(status, 0)
    return jsonify(stats), 200


@bp.route('/bookings/export', methods=['GET'])
@require_role('admin')
def export_bookings():
    """
    Export WhatsApp bookings as CSV
    ---
    tags:
      - WhatsApp
    security:
      - Bearer: []
    responses:
      200:
        description: CSV file
        content:
          text/csv:
            schema:
              type: string
    """
    try:
        query = filtered_bookings()
    except ValueError:
        return jsonify({'error': 'Invalid date filter'}), 400

    bookings = query.limit(current_app.config.get('BOOKING_EXPORT_LIMIT', 1000)).all()
    rows = [
        [
            b.id,
            b.phone_number,
            b.sponsor_name or 'N/A',
            b.maid_name or 'N/A',
            b.booking_type,
            isoformat(b.booking_date) or 'Not scheduled',
            b.status,
            b.notes or '',
            isoformat(b.created_at),
        ]
        for b in bookings
    ]
    return Response(
        to_csv(CSV_HEADERS, rows),
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename=whatsapp-bookings.csv'}
    )


@bp.route('/bookings/<booking_id>/status', methods=['PATCH'])
@require_role('admin')
def update_booking_status(booking_id):
    booking = db.get_or_404(MaidBooking, booking_id)
    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if status not in WHATSAPP_BOOKING_STATUSES:
        return jsonify({'error': f'Status must be one of: {", ".join(WHATSAPP_BOOKING_STATUSES)}'}), 400

    booking.status = status
    if data.get('notes') is not None:
        booking.notes = data['notes']
    db.session.commit()
    current_app.logger.info(f"WhatsApp booking {booking.id} status updated to {status}")
    return jsonify(booking.to_dict()), 200


@bp.route('/bookings/<booking_id>', methods=['PUT'])
@require_role('admin')
def update_booking(booking_id):
    booking = db.get_or_404(MaidBooking, booking_id)
    data = normalize_keys(request.get_json(silent=True))

    if 'status' in data and data['status'] not in WHATSAPP_BOOKING_STATUSES:
        return jsonify({'error': f'Status must be one of: {", ".join(WHATSAPP_BOOKING_STATUSES)}'}), 400

    for field in BOOKING_UPDATABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field == 'booking_date':
            try:
                value = parse_datetime(value)
            except ValueError:
                return jsonify({'error': 'Invalid booking_date'}), 400
        if field == 'metadata':
            booking.extra_data = value or {}
        else:
            setattr(booking, field, value)

    db.session.commit()
    return jsonify(booking.to_dict()), 200


@bp.route('/bookings/<booking_id>', methods=['DELETE'])
@require_role('admin')
def delete_booking(booking_id):
    booking = db.get_or_404(MaidBooking, booking_id)
    db.session.delete(booking)
    db.session.commit()
    current_app.logger.info(f"WhatsApp booking {booking_id} deleted")
    return jsonify({'message': 'Booking deleted successfully'}), 200


# =============================================
# PLATFORM SETTINGS
# =============================================

@bp.route('/settings', methods=['GET'])
@require_role('admin')
def get_platform_settings():
    settings = PlatformSettings.query.first()
    return jsonify(settings.to_dict() if settings else {}), 200


@bp.route('/settings', methods=['PUT'])
@require_role('admin')
def update_platform_settings():
    settings = PlatformSettings.query.first()
    if settings is None:
        return jsonify({'error': 'Platform settings not found'}), 404

    data = normalize_keys(request.get_json(silent=True))
    for field in PlatformSettings.EDITABLE_FIELDS:
        if field in data:
            setattr(settings, field, data[field])
    db.session.commit()
    current_app.logger.info("Platform settings updated successfully")
    return jsonify(settings.to_dict()), 200

from flask import Blueprint, request, jsonify
from ethiomaids import db
from ethiomaids.models.availability import MaidAvailability
from ethiomaids.models.profile import Profile
from ethiomaids.utils.auth import require_auth, require_role
from ethiomaids.utils.helpers import normalize_keys, parse_date
from datetime import time

bp = Blueprint('availability', __name__)

DEFAULT_START = '08:00:00'
DEFAULT_END = '18:00:00'


def can_manage_maid(maid_id):
    """Maids manage their own calendar, agencies the calendars of their maids"""
    user = request.current_user
    if user.get('role') == 'admin':
        return True
    if user.get('role') == 'maid':
        return maid_id == user['uid']
    if user.get('role') == 'agency':
        maid = db.session.get(Profile, maid_id)
        return maid is not None and maid.user_type == 'maid' and maid.agency_id == user['uid']
    return False


def upsert_day(maid_id, item):
    """Create or update the entry for one day; ValueError on malformed dates/times"""
    available_date = parse_date(item.get('available_date'))
    if available_date is None:
        raise ValueError('available_date is required')
    start_time = time.fromisoformat(item.get('start_time') or DEFAULT_START)
    end_time = time.fromisoformat(item.get('end_time') or DEFAULT_END)
    if start_time >= end_time:
        raise ValueError('start_time must be before end_time')

    record = MaidAvailability.query.filter_by(maid_id=maid_id, available_date=available_date).first()
    if record is None:
        record = MaidAvailability(maid_id=maid_id, available_date=available_date)
        db.session.add(record)
    record.is_available = bool(item.get('is_available', True))
    record.start_time = start_time
    record.end_time = end_time
    record.notes = item.get('notes')
    return record


@bp.route('/', methods=['GET'])
@require_auth
def get_availability():
    """
    Get availability records
    ---
    tags:
      - Availability
    parameters:
      - in: query
        name: maid_id
        schema:
          type: string
        description: Filter by maid ID
      - in: query
        name: available_date
        schema:
          type: string
          format: date
        description: Filter by specific date
      - in: query
        name: start_date
        schema:
          type: string
          format: date
        description: Start date for range filter
      - in: query
        name: end_date
        schema:
          type: string
          format: date
        description: End date for range filter
    security:
      - Bearer: []
    responses:
      200:
        description: List of availability records
      400:
        description: Malformed date filter
      401:
        description: Unauthorized
    """
    query = MaidAvailability.query
    maid_id = request.args.get('maid_id')
    if maid_id:
        query = query.filter_by(maid_id=maid_id)

    try:
        available_date = parse_date(request.args.get('available_date'))
        start_date = parse_date(request.args.get('start_date'))
        end_date = parse_date(request.args.get('end_date'))
    except ValueError:
        return jsonify({'error': 'Invalid date filter'}), 400

    if available_date:
        query = query.filter_by(available_date=available_date)
    if start_date:
        query = query.filter(MaidAvailability.available_date >= start_date)
    if end_date:
        query = query.filter(MaidAvailability.available_date <= end_date)

    records = query.order_by(MaidAvailability.available_date.asc(), MaidAvailability.maid_id).all()
    return jsonify({'availability': [record.to_dict() for record in records]}), 200


@bp.route('/', methods=['POST'])
@require_role('maid', 'agency', 'admin')
def create_availability():
    """
    Create availability record(s) - a single day or a list of days
    ---
    tags:
      - Availability
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            properties:
              maid_id:
                type: string
                description: Required for agencies, defaults to the caller for maids
              available_date:
                type: string
                format: date
              is_available:
                type: boolean
              start_time:
                type: string
                format: time
              end_time:
                type: string
                format: time
              notes:
                type: string
              days:
                type: array
                items:
                  type: object
    responses:
      201:
        description: Availability record(s) saved (existing days are updated)
      400:
        description: Bad request
      403:
        description: Not allowed to manage this maid's calendar
    """
    data = normalize_keys(request.get_json(silent=True))
    maid_id = data.get('maid_id')
    if not maid_id and request.current_user.get('role') == 'maid':
        maid_id = request.current_user['uid']
    if not maid_id:
        return jsonify({'error': 'maid_id is required'}), 400
    if not can_manage_maid(maid_id):
        return jsonify({'error': "Forbidden - You cannot manage this maid's availability"}), 403

    days = data.get('days')
    bulk = days is not None
    if bulk and (not isinstance(days, list) or not days):
        return jsonify({'error': 'days must be a non-empty list'}), 400

    try:
        if bulk:
            records = [upsert_day(maid_id, normalize_keys(item)) for item in days]
        else:
            records = [upsert_day(maid_id, data)]
    except (ValueError, TypeError, AttributeError) as e:
        db.session.rollback()
        return jsonify({'error': str(e) or 'Invalid availability entry'}), 400

    db.session.commit()
    if bulk:
        return jsonify({'availability': [record.to_dict() for record in records]}), 201
    return jsonify(records[0].to_dict()), 201


@bp.route('/<availability_id>', methods=['PUT'])
@require_role('maid', 'agency', 'admin')
def update_availability(availability_id):
    """Update availability record"""
    availability = db.get_or_404(MaidAvailability, availability_id)
    if not can_manage_maid(availability.maid_id):
        return jsonify({'error': "Forbidden - You cannot manage this maid's availability"}), 403

    data = normalize_keys(request.get_json(silent=True))
    try:
        if 'available_date' in data:
            new_date = parse_date(data['available_date']) or availability.available_date
            clash = MaidAvailability.query.filter(
                MaidAvailability.maid_id == availability.maid_id,
                MaidAvailability.available_date == new_date,
                MaidAvailability.id != availability.id
            ).first()
            if clash:
                return jsonify({'error': 'An entry for this date already exists'}), 409
            availability.available_date = new_date
        if 'start_time' in data:
            availability.start_time = time.fromisoformat(data['start_time'])
        if 'end_time' in data:
            availability.end_time = time.fromisoformat(data['end_time'])
    except (ValueError, TypeError):
        db.session.rollback()
        return jsonify({'error': 'Invalid date or time'}), 400

    if availability.start_time and availability.end_time and availability.start_time >= availability.end_time:
        db.session.rollback()
        return jsonify({'error': 'start_time must be before end_time'}), 400
    if 'is_available' in data:
        availability.is_available = bool(data['is_available'])
    if 'notes' in data:
        availability.notes = data['notes']

    db.session.commit()
    return jsonify(availability.to_dict()), 200


@bp.route('/<availability_id>', methods=['DELETE'])
@require_role('maid', 'agency', 'admin')
def delete_availability(availability_id):
    availability = db.get_or_404(MaidAvailability, availability_id)
    if not can_manage_maid(availability.maid_id):
        return jsonify({'error': "Forbidden - You cannot manage this maid's availability"}), 403
    db.session.delete(availability)
    db.session.commit()
    return jsonify({'message': 'Availability record deleted'}), 200

from flask import Blueprint, request, jsonify, current_app
from ethiomaids import db
from ethiomaids.models.payout import Payout, PAYOUT_STATUSES
from ethiomaids.models.profile import Profile
from ethiomaids.models.settings import SystemSetting
from ethiomaids.models.columns import utcnow
from ethiomaids.utils.auth import require_role
from ethiomaids.utils.helpers import (
    normalize_keys, parse_decimal, parse_json_field, ilike_pattern, create_notification
)
from ethiomaids.utils.validators import validate_payout_request
from decimal import Decimal, ROUND_HALF_UP
import math

bp = Blueprint('payouts', __name__)

SORTABLE_COLUMNS = {
    'requested_at': Payout.requested_at,
    'created_at': Payout.created_at,
    'amount': Payout.amount,
    'status': Payout.status,
    'payout_number': Payout.payout_number,
    'completed_at': Payout.completed_at,
}

STAT_STATUSES = ('completed', 'pending', 'processing', 'failed', 'on_hold')
STAT_USER_TYPES = ('maid', 'sponsor', 'agency')

# action -> (allowed source statuses, target status)
PAYOUT_ACTIONS = {
    'approve': (('pending',), 'processing'),
    'complete': (('processing',), 'completed'),
    'reject': (('pending', 'processing', 'on_hold'), 'failed'),
    'hold': (('pending', 'processing'), 'on_hold'),
    'release': (('on_hold',), 'pending'),
}

CENTS = Decimal('0.01')


def calculate_fees(amount):
    """(platform_fee, processing_fee) from the system settings"""
    fee_percent = parse_decimal(SystemSetting.get_value('platform_fee_percent', 0), Decimal('0'))
    processing_fee = parse_decimal(SystemSetting.get_value('processing_fee', 0), Decimal('0'))
    platform_fee = (amount * fee_percent / Decimal('100')).quantize(CENTS, rounding=ROUND_HALF_UP)
    return platform_fee, processing_fee.quantize(CENTS, rounding=ROUND_HALF_UP)


def enrich_payouts(payouts):
    """Attach recipient, parsed bank details and the display payout id"""
    user_ids = {p.user_id for p in payouts if p.user_id}
    profiles = {}
    if user_ids:
        profiles = {profile.id: profile for profile in Profile.query.filter(Profile.id.in_(user_ids)).all()}

    enriched = []
    for payout in payouts:
        payout_dict = payout.to_dict()
        profile = profiles.get(payout.user_id)
        if profile is not None:
            recipient = {
                'id': payout.user_id,
                'name': profile.display_name,
                'email': profile.email,
                'type': payout.user_type or profile.user_type
            }
        else:
            recipient = {
                'id': payout.user_id,
                'name': 'Unknown User',
                'email': None,
                'type': payout.user_type or 'unknown'
            }
        payout_dict['recipient'] = recipient
        payout_dict['bank_details'] = parse_json_field(payout.payout_destination, {}) or {}
        payout_dict['payout_id'] = payout.payout_number
        enriched.append(payout_dict)
    return enriched


def count_and_sum(*criteria):
    count, total = db.session.query(
        db.func.count(Payout.id), db.func.coalesce(db.func.sum(Payout.amount), 0)
    ).filter(*criteria).one()
    return {'count': count, 'amount': float(total)}


# =============================================
# USER SIDE
# =============================================

@bp.route('/', methods=['POST'])
@require_role('maid', 'agency')
def request_payout():
    """
    Request a payout of earned funds
    ---
    tags:
      - Payouts
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - amount
            properties:
              amount:
                type: number
              currency:
                type: string
              payout_method:
                type: string
                enum: [bank_transfer, stripe, mobile_money, paypal]
              payout_destination:
                type: object
              description:
                type: string
    responses:
      201:
        description: Payout requested (status pending)
      400:
        description: Validation failed or amount does not cover fees
    """
    data = normalize_keys(request.get_json(silent=True))
    errors = validate_payout_request(data)
    if errors:
        return jsonify({'error': 'Validation failed', 'errors': errors}), 400

    amount = parse_decimal(data['amount']).quantize(CENTS, rounding=ROUND_HALF_UP)
    platform_fee, processing_fee = calculate_fees(amount)
    net_amount = amount - platform_fee - processing_fee
    if net_amount <= 0:
        return jsonify({'error': 'Amount does not cover the payout fees'}), 400

    current_user = request.current_user
    payout = Payout(
        payout_number=Payout.generate_payout_number(),
        user_id=current_user['uid'],
        user_type=current_user.get('role'),
        amount=amount,
        net_amount=net_amount,
        platform_fee=platform_fee,
        processing_fee=processing_fee,
        currency=(data.get('currency') or 'USD').upper(),
        payout_method=data.get('payout_method', 'bank_transfer'),
        payout_destination=data.get('payout_destination'),
        description=data.get('description'),
        status='pending'
    )
    db.session.add(payout)
    db.session.commit()

    current_app.logger.info(f"Payout {payout.payout_number} requested by {payout.user_id}")
    return jsonify(payout.to_dict()), 201


@bp.route('/mine', methods=['GET'])
@require_role('maid', 'agency', 'sponsor')
def get_my_payouts():
    payouts = Payout.query.filter_by(user_id=request.current_user['uid']) \
        .order_by(Payout.requested_at.desc()).all()
    return jsonify({
        'payouts': [p.to_dict() for p in payouts],
        'total': len(payouts)
    }), 200


# =============================================
# ADMIN
# =============================================

@bp.route('/admin', methods=['GET'])
@require_role('admin')
def list_payouts():
    """
    List payouts for the admin console
    ---
    tags:
      - Payouts
    security:
      - Bearer: []
    parameters:
      - name: page
        in: query
        schema:
          type: integer
      - name: limit
        in: query
        schema:
          type: integer
      - name: status
        in: query
        schema:
          type: string
      - name: method
        in: query
        schema:
          type: string
      - name: user_type
        in: query
        schema:
          type: string
      - name: search
        in: query
        schema:
          type: string
      - name: sort_by
        in: query
        schema:
          type: string
      - name: sort_direction
        in: query
        schema:
          type: string
          enum: [asc, desc]
    responses:
      200:
        description: payouts, total_count, total_pages, current_page
    """
    page = max(1, request.args.get('page', 1, type=int) or 1)
    limit = min(max(1, request.args.get('limit', 10, type=int) or 10), current_app.config.get('MAX_PAGE_SIZE', 100))

    query = Payout.query
    status = request.args.get('status', 'all')
    if status and status != 'all':
        query = query.filter(Payout.status == status)
    method = request.args.get('method', 'all')
    if method and method != 'all':
        query = query.filter(Payout.payout_method == method)
    user_type = request.args.get('user_type', 'all')
    if user_type and user_type != 'all':
        query = query.filter(Payout.user_type == user_type)
    search = request.args.get('search', '').strip()
    if search:
        pattern = ilike_pattern(search)
        query = query.filter(db.or_(
            Payout.payout_number.ilike(pattern, escape='\\'),
            Payout.description.ilike(pattern, escape='\\'),
            Payout.user_id.ilike(pattern, escape='\\')
        ))

    sort_column = SORTABLE_COLUMNS.get(request.args.get('sort_by'), Payout.requested_at)
    direction = request.args.get('sort_direction', 'desc').lower()
    order = sort_column.asc() if direction == 'asc' else sort_column.desc()

    total_count = query.count()
    payouts = query.order_by(order, Payout.id).offset((page - 1) * limit).limit(limit).all()

    return jsonify({
        'payouts': enrich_payouts(payouts),
        'total_count': total_count,
        'total_pages': math.ceil(total_count / limit),
        'current_page': page
    }), 200


@bp.route('/admin/stats', methods=['GET'])
@require_role('admin')
def get_payout_stats():
    """Payout counts and amounts per status and per user type"""
    count, amount, fees = db.session.query(
        db.func.count(Payout.id),
        db.func.coalesce(db.func.sum(Payout.amount), 0),
        db.func.coalesce(db.func.sum(Payout.processing_fee), 0)
    ).one()

    stats = {
        'total': {'count': count, 'amount': float(amount), 'fees': float(fees)},
        'by_user_type': {
            user_type: count_and_sum(Payout.user_type == user_type) for user_type in STAT_USER_TYPES
        }
    }
    for status in STAT_STATUSES:
        stats[status] = count_and_sum(Payout.status == status)
    return jsonify(stats), 200


@bp.route('/admin/<payout_id>', methods=['GET'])
@require_role('admin')
def get_payout(payout_id):
    payout = db.get_or_404(Payout, payout_id)
    return jsonify(enrich_payouts([payout])[0]), 200


@bp.route('/admin/<payout_id>/<action>', methods=['POST'])
@require_role('admin')
def update_payout_status(payout_id, action):
    """
    Apply an admin action to a payout
    ---
    tags:
      - Payouts
    security:
      - Bearer: []
    parameters:
      - name: payout_id
        in: path
        required: true
        schema:
          type: string
      - name: action
        in: path
        required: true
        schema:
          type: string
          enum: [approve, complete, reject, hold, release, retry]
    requestBody:
      content:
        application/json:
          schema:
            type: object
            properties:
              failure_code:
                type: string
              failure_message:
                type: string
              notes:
                type: string
    responses:
      200:
        description: Updated payout
      400:
        description: Invalid action
      404:
        description: Payout not found
      409:
        description: Action not allowed from the current status
    """
    if action == 'retry':
        return retry_payout(payout_id)
    if action not in PAYOUT_ACTIONS:
        return jsonify({'error': 'Invalid action'}), 400

    payout = db.get_or_404(Payout, payout_id)
    allowed_from, new_status = PAYOUT_ACTIONS[action]
    if payout.status not in allowed_from:
        return jsonify({'error': f'Cannot {action} a payout that is {payout.status}'}), 409

    data = request.get_json(silent=True) or {}
    now = utcnow()
    payout.status = new_status
    if action == 'approve':
        payout.processing_at = now
    elif action == 'complete':
        payout.completed_at = now
        if data.get('provider_reference'):
            payout.provider_reference = data['provider_reference']
    elif action == 'reject':
        payout.failed_at = now
        payout.failure_code = data.get('failure_code') or 'REJECTED'
        payout.failure_message = data.get('failure_message') or 'Payout rejected by admin'
    elif action == 'hold':
        payout.notes = data.get('notes') or 'Placed on hold by admin'
    elif action == 'release':
        payout.notes = data.get('notes') or 'Released from hold'

    create_notification(
        payout.user_id, f'PAYOUT_{new_status.upper()}', 'Payout update',
        f'Payout {payout.payout_number} is now {new_status.replace("_", " ")}', 'payout', payout.id
    )
    db.session.commit()

    current_app.logger.info(f"Payout {payout.payout_number} {action} -> {new_status}")
    return jsonify(enrich_payouts([payout])[0]), 200


def retry_payout(payout_id):
    """Failed payout back to pending with the failure cleared"""
    payout = db.get_or_404(Payout, payout_id)
    if payout.status != 'failed':
        return jsonify({'error': 'Only failed payouts can be retried'}), 409

    payout.status = 'pending'
    payout.retry_count = (payout.retry_count or 0) + 1
    payout.failed_at = None
    payout.failure_code = None
    payout.failure_message = None
    db.session.commit()

    current_app.logger.info(f"Payout {payout.payout_number} queued for retry #{payout.retry_count}")
    return jsonify(enrich_payouts([payout])[0]), 200


@bp.route('/admin/statuses', methods=['GET'])
@require_role('admin')
def get_payout_statuses():
    return jsonify({'statuses': list(PAYOUT_STATUSES), 'actions': sorted(PAYOUT_ACTIONS) + ['retry']}), 200

from flask import Blueprint, request, jsonify
from ethiomaids import db
from ethiomaids.models.message import Message
from ethiomaids.models.profile import Profile
from ethiomaids.models.columns import isoformat
from ethiomaids.utils.auth import require_auth, rate_limit
from ethiomaids.utils.helpers import normalize_keys, get_limit_offset

bp = Blueprint('messages', __name__)

MAX_MESSAGE_LENGTH = 5000


def between(uid, other_id):
    return db.or_(
        db.and_(Message.sender_id == uid, Message.recipient_id == other_id),
        db.and_(Message.sender_id == other_id, Message.recipient_id == uid)
    )


@bp.route('/', methods=['POST'])
@require_auth
@rate_limit()
def send_message():
    """
    Send a direct message
    ---
    tags:
      - Messages
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - recipient_id
            properties:
              recipient_id:
                type: string
              content:
                type: string
              attachment_url:
                type: string
    responses:
      201:
        description: Message sent
      400:
        description: Empty message or message to self
      404:
        description: Recipient not found
      429:
        description: Too many messages
    """
    data = normalize_keys(request.get_json(silent=True))
    uid = request.current_user['uid']
    recipient_id = data.get('recipient_id')
    content = data.get('content') or ''
    attachment_url = data.get('attachment_url')

    if not all(isinstance(v, str) for v in (content, recipient_id or '', attachment_url or '')):
        return jsonify({'error': 'recipient_id, content and attachment_url must be strings'}), 400
    content = content.strip()
    if not recipient_id:
        return jsonify({'error': 'recipient_id is required'}), 400
    if recipient_id == uid:
        return jsonify({'error': 'You cannot message yourself'}), 400
    if not content and not attachment_url:
        return jsonify({'error': 'Message content is required'}), 400
    if len(content) > MAX_MESSAGE_LENGTH:
        return jsonify({'error': f'Message must be at most {MAX_MESSAGE_LENGTH} characters'}), 400

    recipient = db.session.get(Profile, recipient_id)
    if recipient is None:
        return jsonify({'error': 'Recipient not found'}), 404

    message = Message(sender_id=uid, recipient_id=recipient_id, content=content, attachment_url=attachment_url)
    db.session.add(message)
    db.session.commit()
    return jsonify(message.to_dict()), 201


@bp.route('/conversations', methods=['GET'])
@require_auth
def get_conversations():
    """One entry per conversation partner, newest first"""
    uid = request.current_user['uid']
    messages = Message.query.filter(db.or_(Message.sender_id == uid, Message.recipient_id == uid)) \
        .order_by(Message.sent_at.desc(), Message.id).all()

    conversations = {}
    for message in messages:
        partner_id = message.recipient_id if message.sender_id == uid else message.sender_id
        if partner_id is None:
            continue
        conversation = conversations.get(partner_id)
        if conversation is None:
            conversation = conversations[partner_id] = {
                'partner_id': partner_id,
                'last_message': message.content,
                'last_message_at': isoformat(message.sent_at),
                'last_sender_id': message.sender_id,
                'unread_count': 0
            }
        if message.recipient_id == uid and not message.is_read:
            conversation['unread_count'] += 1

    partners = {}
    if conversations:
        partners = {p.id: p for p in Profile.query.filter(Profile.id.in_(list(conversations))).all()}
    for partner_id, conversation in conversations.items():
        partner = partners.get(partner_id)
        conversation['partner'] = partner.to_public_dict() if partner else None

    return jsonify({'conversations': list(conversations.values())}), 200


@bp.route('/conversations/<user_id>', methods=['GET'])
@require_auth
def get_conversation(user_id):
    """Messages exchanged with one user, oldest first"""
    limit, offset = get_limit_offset(50)
    query = Message.query.filter(between(request.current_user['uid'], user_id))
    total = query.count()
    messages = query.order_by(Message.sent_at.asc(), Message.id).offset(offset).limit(limit).all()
    return jsonify({
        'messages': [m.to_dict() for m in messages],
        'total': total,
        'limit': limit,
        'offset': offset
    }), 200


@bp.route('/conversations/<user_id>/read', methods=['PUT'])
@require_auth
def mark_conversation_read(user_id):
    updated = Message.query.filter(
        Message.sender_id == user_id,
        Message.recipient_id == request.current_user['uid'],
        Message.is_read.is_(False)
    ).update({'is_read': True}, synchronize_session=False)
    db.session.commit()
    return jsonify({'message': 'Conversation marked as read', 'updated': updated}), 200

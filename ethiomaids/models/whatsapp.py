from ethiomaids import db
from ethiomaids.models.columns import JSONType, new_id, utcnow, isoformat

WHATSAPP_BOOKING_STATUSES = ('pending', 'confirmed', 'cancelled', 'completed')

class WhatsAppMessage(db.Model):
    """Message exchanged with the WhatsApp Business assistant"""
    __tablename__ = 'whatsapp_messages'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    phone_number = db.Column(db.String(20), nullable=False, index=True)
    message_content = db.Column(db.Text, nullable=False)
    sender = db.Column(db.Enum('user', 'assistant', name='whatsapp_sender_enum'), nullable=False, default='user')
    received_at = db.Column(db.DateTime(timezone=True), default=utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'phone_number': self.phone_number,
            'message_content': self.message_content,
            'sender': self.sender,
            'received_at': isoformat(self.received_at)
        }

    def __repr__(self):
        return f'<WhatsAppMessage {self.phone_number}>'


class MaidBooking(db.Model):
    """Booking captured through the WhatsApp assistant"""
    __tablename__ = 'maid_bookings'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    phone_number = db.Column(db.String(20), nullable=False, index=True)
    sponsor_name = db.Column(db.String(100))
    sponsor_id = db.Column(db.String(128))
    maid_id = db.Column(db.String(128))
    maid_name = db.Column(db.String(100))
    booking_type = db.Column(db.String(50), default='interview')
    booking_date = db.Column(db.DateTime(timezone=True))
    status = db.Column(db.Enum(*WHATSAPP_BOOKING_STATUSES, name='maid_booking_status_enum'), default='pending', index=True)
    notes = db.Column(db.Text)
    extra_data = db.Column('metadata', JSONType, default=dict)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'phone_number': self.phone_number,
            'sponsor_name': self.sponsor_name,
            'sponsor_id': self.sponsor_id,
            'maid_id': self.maid_id,
            'maid_name': self.maid_name,
            'booking_type': self.booking_type,
            'booking_date': isoformat(self.booking_date),
            'status': self.status,
            'notes': self.notes,
            'metadata': self.extra_data or {},
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at)
        }

    def __repr__(self):
        return f'<MaidBooking {self.id} {self.status}>'

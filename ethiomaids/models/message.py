from ethiomaids import db
from ethiomaids.models.columns import new_id, utcnow, isoformat

class Message(db.Model):
    """Direct message between two marketplace users"""
    __tablename__ = 'messages'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    sender_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='SET NULL'), index=True)
    recipient_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    content = db.Column(db.Text)
    attachment_url = db.Column(db.Text)
    is_read = db.Column(db.Boolean, default=False)
    sent_at = db.Column(db.DateTime(timezone=True), default=utcnow, index=True)

    sender = db.relationship('Profile', foreign_keys=[sender_id])

    def to_dict(self):
        return {
            'id': self.id,
            'sender_id': self.sender_id,
            'sender_name': self.sender.full_name if self.sender else None,
            'recipient_id': self.recipient_id,
            'content': self.content,
            'attachment_url': self.attachment_url,
            'is_read': self.is_read,
            'sent_at': isoformat(self.sent_at)
        }

    def __repr__(self):
        return f'<Message {self.id}>'

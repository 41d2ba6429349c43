from ethiomaids import db
from ethiomaids.models.columns import new_id, utcnow, isoformat

class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)

    # Content
    type = db.Column(db.String(50))  # 'BOOKING_ACCEPTED', 'APPLICATION_UPDATED', etc.
    title = db.Column(db.String(255))
    body = db.Column(db.Text)
    # Entity the notification points at, e.g. ('booking', <id>)
    related_type = db.Column(db.String(50))
    related_id = db.Column(db.String(36))

    channel = db.Column(db.Enum('in_app', 'email', 'sms', 'push', name='notification_channel_enum'), default='in_app')
    delivery_status = db.Column(db.String(50), default='sent')  # 'sent', 'failed', 'delivered'

    is_read = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'type': self.type,
            'title': self.title,
            'body': self.body,
            'related_type': self.related_type,
            'related_id': self.related_id,
            'channel': self.channel,
            'delivery_status': self.delivery_status,
            'is_read': self.is_read,
            'created_at': isoformat(self.created_at)
        }

    def __repr__(self):
        return f'<Notification {self.id}>'

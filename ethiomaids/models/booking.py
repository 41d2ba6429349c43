from ethiomaids import db
from ethiomaids.models.columns import new_id, utcnow, isoformat, as_float

BOOKING_STATUSES = ('pending', 'accepted', 'rejected', 'cancelled', 'completed')

# status -> statuses reachable from it
BOOKING_TRANSITIONS = {
    'pending': ('accepted', 'rejected', 'cancelled'),
    'accepted': ('cancelled', 'completed'),
    'rejected': (),
    'cancelled': (),
    'completed': (),
}

class BookingRequest(db.Model):
    """Booking request sent by a sponsor to a maid"""
    __tablename__ = 'booking_requests'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    sponsor_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    maid_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)

    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    message = db.Column(db.Text, default='')
    special_requirements = db.Column(db.Text)

    amount = db.Column(db.Numeric(12, 2), default=0)
    currency = db.Column(db.String(3), default='USD')
    payment_status = db.Column(db.String(50), default='pending')

    status = db.Column(db.Enum(*BOOKING_STATUSES, name='booking_status_enum'), default='pending', index=True)
    rejection_reason = db.Column(db.Text)
    responded_at = db.Column(db.DateTime(timezone=True))

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    sponsor = db.relationship('Profile', foreign_keys=[sponsor_id])
    maid = db.relationship('Profile', foreign_keys=[maid_id])

    def can_transition_to(self, status):
        return status in BOOKING_TRANSITIONS.get(self.status, ())

    def involves(self, user_id):
        return user_id in (self.sponsor_id, self.maid_id)

    def to_dict(self):
        return {
            'id': self.id,
            'sponsor_id': self.sponsor_id,
            'sponsor_name': self.sponsor.full_name if self.sponsor else None,
            'maid_id': self.maid_id,
            'maid_name': self.maid.full_name if self.maid else None,
            'start_date': isoformat(self.start_date),
            'end_date': isoformat(self.end_date),
            'message': self.message,
            'special_requirements': self.special_requirements,
            'amount': as_float(self.amount),
            'currency': self.currency,
            'payment_status': self.payment_status,
            'status': self.status,
            'rejection_reason': self.rejection_reason,
            'responded_at': isoformat(self.responded_at),
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at)
        }

    def __repr__(self):
        return f'<BookingRequest {self.id} {self.status}>'

from ethiomaids import db
from ethiomaids.models.columns import new_id, utcnow, isoformat
from datetime import time

class MaidAvailability(db.Model):
    """Maid availability calendar entry (one row per maid per day)"""
    __tablename__ = 'maid_availability'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    maid_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)

    # The specific date the maid is available/unavailable
    available_date = db.Column(db.Date, nullable=False, index=True)

    # TRUE = maid can start/interview this day, FALSE = blocked off
    is_available = db.Column(db.Boolean, default=True, index=True)

    # Optional: Specific hours (defaults to 08:00-18:00)
    start_time = db.Column(db.Time, default=time(8, 0))
    end_time = db.Column(db.Time, default=time(18, 0))

    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (db.UniqueConstraint('maid_id', 'available_date', name='_maid_date_uc'),)

    def to_dict(self):
        return {
            'id': self.id,
            'maid_id': self.maid_id,
            'available_date': isoformat(self.available_date),
            'is_available': self.is_available,
            'start_time': self.start_time.strftime('%H:%M:%S') if self.start_time else None,
            'end_time': self.end_time.strftime('%H:%M:%S') if self.end_time else None,
            'notes': self.notes,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at)
        }

    def __repr__(self):
        return f'<MaidAvailability {self.id}>'

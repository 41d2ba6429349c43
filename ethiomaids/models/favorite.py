from ethiomaids import db
from ethiomaids.models.columns import new_id, utcnow, isoformat

class Favorite(db.Model):
    """Maid saved to a sponsor's shortlist"""
    __tablename__ = 'favorites'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    sponsor_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    maid_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    notes = db.Column(db.Text, default='')

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    maid = db.relationship('Profile', foreign_keys=[maid_id])

    __table_args__ = (db.UniqueConstraint('sponsor_id', 'maid_id', name='favorites_sponsor_id_maid_id_key'),)

    def to_dict(self):
        return {
            'id': self.id,
            'sponsor_id': self.sponsor_id,
            'maid_id': self.maid_id,
            'notes': self.notes,
            'created_at': isoformat(self.created_at),
            'maid_profile': self.maid.to_public_dict() if self.maid else None,
        }

    def __repr__(self):
        return f'<Favorite {self.sponsor_id} -> {self.maid_id}>'

from ethiomaids import db
from ethiomaids.models.columns import new_id, utcnow, isoformat

REVIEW_TYPES = ('sponsor_to_maid', 'maid_to_sponsor', 'sponsor_to_agency', 'maid_to_agency', 'agency_to_maid')

class Review(db.Model):
    __tablename__ = 'reviews'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    reviewer_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    reviewee_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    booking_id = db.Column(db.String(36), db.ForeignKey('booking_requests.id', ondelete='SET NULL'))

    rating = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(200))
    comment = db.Column(db.Text)
    review_type = db.Column(db.Enum(*REVIEW_TYPES, name='review_type_enum'), nullable=False)

    # Detailed ratings (1-5, optional)
    communication_rating = db.Column(db.Integer)
    professionalism_rating = db.Column(db.Integer)
    work_quality_rating = db.Column(db.Integer)
    reliability_rating = db.Column(db.Integer)

    is_anonymous = db.Column(db.Boolean, default=False)

    # Moderation
    status = db.Column(db.Enum('pending', 'approved', 'rejected', name='review_status_enum'), default='pending', index=True)
    rejection_reason = db.Column(db.Text)
    moderated_at = db.Column(db.DateTime(timezone=True))

    # Reviewee response
    response = db.Column(db.Text)
    response_at = db.Column(db.DateTime(timezone=True))

    helpful_count = db.Column(db.Integer, default=0)
    not_helpful_count = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    reviewer = db.relationship('Profile', foreign_keys=[reviewer_id])
    votes = db.relationship('ReviewHelpfulVote', backref='review', lazy='dynamic', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'reviewer_id': None if self.is_anonymous else self.reviewer_id,
            'reviewer_name': 'Anonymous' if self.is_anonymous else (self.reviewer.full_name if self.reviewer else None),
            'reviewee_id': self.reviewee_id,
            'booking_id': self.booking_id,
            'rating': self.rating,
            'title': self.title,
            'comment': self.comment,
            'review_type': self.review_type,
            'communication_rating': self.communication_rating,
            'professionalism_rating': self.professionalism_rating,
            'work_quality_rating': self.work_quality_rating,
            'reliability_rating': self.reliability_rating,
            'is_anonymous': self.is_anonymous,
            'status': self.status,
            'rejection_reason': self.rejection_reason,
            'response': self.response,
            'response_at': isoformat(self.response_at),
            'helpful_count': self.helpful_count or 0,
            'not_helpful_count': self.not_helpful_count or 0,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at)
        }

    def __repr__(self):
        return f'<Review {self.id} {self.rating}>'


class ReviewHelpfulVote(db.Model):
    __tablename__ = 'review_helpful_votes'

    review_id = db.Column(db.String(36), db.ForeignKey('reviews.id', ondelete='CASCADE'), primary_key=True)
    user_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='CASCADE'), primary_key=True)
    is_helpful = db.Column(db.Boolean, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            'review_id': self.review_id,
            'user_id': self.user_id,
            'is_helpful': self.is_helpful,
            'created_at': isoformat(self.created_at)
        }

from ethiomaids import db
from ethiomaids.models.columns import JSONType, new_id, utcnow, isoformat, as_float
import secrets

PAYOUT_STATUSES = ('pending', 'processing', 'completed', 'failed', 'on_hold', 'cancelled')
PAYOUT_METHODS = ('bank_transfer', 'stripe', 'mobile_money', 'paypal')

class Payout(db.Model):
    """Payout owed to a maid, agency or sponsor (refunds)"""
    __tablename__ = 'payouts'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    payout_number = db.Column(db.String(30), unique=True, nullable=False, index=True)
    user_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='SET NULL'), index=True)
    user_type = db.Column(db.String(20))

    # Amounts
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    net_amount = db.Column(db.Numeric(12, 2))
    currency = db.Column(db.String(3), default='USD')
    processing_fee = db.Column(db.Numeric(12, 2), default=0)
    platform_fee = db.Column(db.Numeric(12, 2), default=0)

    status = db.Column(db.Enum(*PAYOUT_STATUSES, name='payout_status_enum'), default='pending', index=True)
    payout_method = db.Column(db.String(30), default='bank_transfer')
    # Bank / wallet details; older rows hold a JSON string
    payout_destination = db.Column(JSONType)
    description = db.Column(db.Text)
    notes = db.Column(db.Text)

    # Lifecycle
    requested_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    processing_at = db.Column(db.DateTime(timezone=True))
    completed_at = db.Column(db.DateTime(timezone=True))
    failed_at = db.Column(db.DateTime(timezone=True))
    failure_code = db.Column(db.String(50))
    failure_message = db.Column(db.Text)

    # Provider
    provider_reference = db.Column(db.String(255))
    stripe_payout_id = db.Column(db.String(255))
    stripe_transfer_id = db.Column(db.String(255))
    retry_count = db.Column(db.Integer, default=0)
    extra_data = db.Column('metadata', JSONType, default=dict)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @staticmethod
    def generate_payout_number(now=None):
        now = now or utcnow()
        return f"PO-{now.strftime('%Y%m%d')}-{secrets.token_hex(3).upper()}"

    def to_dict(self):
        return {
            'id': self.id,
            'payout_number': self.payout_number,
            'user_id': self.user_id,
            'user_type': self.user_type,
            'amount': as_float(self.amount),
            'net_amount': as_float(self.net_amount),
            'currency': self.currency,
            'processing_fee': as_float(self.processing_fee),
            'platform_fee': as_float(self.platform_fee),
            'status': self.status,
            'payout_method': self.payout_method,
            'payout_destination': self.payout_destination,
            'description': self.description,
            'notes': self.notes,
            'requested_at': isoformat(self.requested_at),
            'processing_at': isoformat(self.processing_at),
            'completed_at': isoformat(self.completed_at),
            'failed_at': isoformat(self.failed_at),
            'failure_code': self.failure_code,
            'failure_message': self.failure_message,
            'provider_reference': self.provider_reference,
            'stripe_payout_id': self.stripe_payout_id,
            'stripe_transfer_id': self.stripe_transfer_id,
            'retry_count': self.retry_count or 0,
            'metadata': self.extra_data or {},
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at)
        }

    def __repr__(self):
        return f'<Payout {self.payout_number} {self.status}>'

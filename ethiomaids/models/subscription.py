from ethiomaids import db
from ethiomaids.models.columns import new_id, utcnow, isoformat, as_float

class Subscription(db.Model):
    """Subscription mirrored from Stripe by the webhook handler"""
    __tablename__ = 'subscriptions'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(128), nullable=False, index=True)
    stripe_subscription_id = db.Column(db.String(255), unique=True, index=True)
    stripe_customer_id = db.Column(db.String(255))

    status = db.Column(db.String(50), nullable=False, default='active')
    plan_name = db.Column(db.String(255))
    plan_type = db.Column(db.String(50), default='free')
    user_type = db.Column(db.String(20))
    amount = db.Column(db.Numeric(12, 2), default=0)
    currency = db.Column(db.String(3), default='aed')
    billing_period = db.Column(db.String(20), default='month')
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'stripe_subscription_id': self.stripe_subscription_id,
            'stripe_customer_id': self.stripe_customer_id,
            'status': self.status,
            'plan_name': self.plan_name,
            'plan_type': self.plan_type,
            'user_type': self.user_type,
            'amount': as_float(self.amount),
            'currency': self.currency,
            'billing_period': self.billing_period,
            'start_date': isoformat(self.start_date),
            'end_date': isoformat(self.end_date),
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at)
        }

    def __repr__(self):
        return f'<Subscription {self.stripe_subscription_id} {self.status}>'


class Payment(db.Model):
    """Successful one-off payment recorded from a Stripe PaymentIntent"""
    __tablename__ = 'payments'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(128), nullable=False, index=True)
    stripe_payment_intent_id = db.Column(db.String(255), unique=True, nullable=False)
    # Smallest currency unit, as reported by Stripe
    amount = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(3), nullable=False)
    status = db.Column(db.String(50), nullable=False)
    payment_method = db.Column(db.String(50), default='card')
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'stripe_payment_intent_id': self.stripe_payment_intent_id,
            'amount': self.amount,
            'currency': self.currency,
            'status': self.status,
            'payment_method': self.payment_method,
            'created_at': isoformat(self.created_at)
        }

    def __repr__(self):
        return f'<Payment {self.stripe_payment_intent_id}>'

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError
from ethiomaids import db
from ethiomaids.models.subscription import Subscription, Payment
from ethiomaids.utils.stripe_api import (
    StripeAPIError, StripeSignatureError, verify_webhook_signature,
    retrieve_subscription, retrieve_customer
)
from datetime import datetime, timezone
import json
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('webhooks', __name__)


def get_user_id_from_metadata(metadata):
    if not metadata:
        return None
    return metadata.get('userId') or metadata.get('firebaseUid') or None


def user_id_from_customer(customer_id):
    if not customer_id:
        return None
    customer = retrieve_customer(customer_id)
    if not customer or customer.get('deleted'):
        return None
    return get_user_id_from_metadata(customer.get('metadata'))


def format_period_date(timestamp):
    if not timestamp:
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).date()


def infer_plan_type(plan_tier, price_id):
    if plan_tier:
        return plan_tier
    if price_id:
        for plan_type in ('premium', 'pro', 'basic'):
            if plan_type in price_id:
                return plan_type
    return 'subscription'


def sync_subscription(stripe_subscription, user_id):
    """Upsert the local row for a Stripe subscription object"""
    items = (stripe_subscription.get('items') or {}).get('data') or []
    price = (items[0].get('price') or {}) if items else {}
    metadata = stripe_subscription.get('metadata') or {}

    price_id = price.get('id')
    plan_tier = metadata.get('planTier') or metadata.get('plan_tier')
    values = {
        'user_id': user_id,
        'stripe_customer_id': stripe_subscription.get('customer'),
        'status': stripe_subscription.get('status'),
        'plan_name': metadata.get('planName') or metadata.get('plan_tier') or price_id,
        'plan_type': infer_plan_type(plan_tier, price_id),
        'user_type': metadata.get('userType') or metadata.get('user_type'),
        'amount': price.get('unit_amount') or 0,
        'currency': price.get('currency') or 'aed',
        'billing_period': (price.get('recurring') or {}).get('interval') or 'month',
        'start_date': format_period_date(stripe_subscription.get('current_period_start')),
        'end_date': format_period_date(stripe_subscription.get('current_period_end')),
    }

    subscription = Subscription.query.filter_by(stripe_subscription_id=stripe_subscription['id']).first()
    if subscription is None:
        subscription = Subscription(stripe_subscription_id=stripe_subscription['id'])
        db.session.add(subscription)
    else:
        # Ownership and customer never change on update
        values.pop('user_id')
        values.pop('stripe_customer_id')
    for key, value in values.items():
        setattr(subscription, key, value)
    db.session.commit()

    logger.info(f"Subscription {stripe_subscription['id']} synced for user {user_id}, status: {subscription.status}")
    return subscription


def handle_checkout_completed(session):
    user_id = get_user_id_from_metadata(session.get('metadata'))
    if not user_id:
        user_id = user_id_from_customer(session.get('customer'))
        if not user_id:
            logger.info(f"Checkout session {session.get('id')} has no userId in metadata or customer")
            return
        logger.info(f"Found userId {user_id} from customer")

    if session.get('mode') == 'subscription' and session.get('subscription'):
        stripe_subscription = retrieve_subscription(session['subscription'])
        sync_subscription(stripe_subscription, user_id)
    logger.info(f"Checkout completed for user {user_id}")


def handle_subscription_updated(stripe_subscription):
    user_id = get_user_id_from_metadata(stripe_subscription.get('metadata'))
    if not user_id:
        logger.warning(f"No userId in metadata of subscription {stripe_subscription.get('id')}")
        user_id = user_id_from_customer(stripe_subscription.get('customer'))
        if not user_id:
            return
    sync_subscription(stripe_subscription, user_id)


def handle_subscription_deleted(stripe_subscription):
    updated = Subscription.query.filter_by(stripe_subscription_id=stripe_subscription.get('id')) \
        .update({'status': 'canceled'})
    db.session.commit()
    logger.info(f"Subscription {stripe_subscription.get('id')} marked as canceled ({updated} rows)")


def handle_invoice_paid(invoice):
    if not invoice.get('subscription'):
        return
    stripe_subscription = retrieve_subscription(invoice['subscription'])
    user_id = get_user_id_from_metadata(stripe_subscription.get('metadata'))
    if user_id:
        sync_subscription(stripe_subscription, user_id)
        logger.info(f"Refreshed subscription {stripe_subscription['id']} after invoice paid")


def handle_invoice_payment_failed(invoice):
    logger.warning(f"Invoice payment failed: {invoice.get('id')}")


def handle_payment_intent_succeeded(payment_intent):
    user_id = get_user_id_from_metadata(payment_intent.get('metadata'))
    if not user_id:
        logger.info(f"PaymentIntent {payment_intent.get('id')} has no userId in metadata")
        return

    if Payment.query.filter_by(stripe_payment_intent_id=payment_intent['id']).first():
        logger.info(f"Payment {payment_intent['id']} already recorded")
        return

    method_types = payment_intent.get('payment_method_types') or []
    db.session.add(Payment(
        user_id=user_id,
        stripe_payment_intent_id=payment_intent['id'],
        amount=payment_intent.get('amount') or 0,
        currency=payment_intent.get('currency') or 'aed',
        status='succeeded',
        payment_method=method_types[0] if method_types else 'card'
    ))
    db.session.commit()
    logger.info(f"Payment {payment_intent['id']} recorded for user {user_id}")


EVENT_HANDLERS = {
    'checkout.session.completed': handle_checkout_completed,
    'customer.subscription.created': handle_subscription_updated,
    'customer.subscription.updated': handle_subscription_updated,
    'customer.subscription.deleted': handle_subscription_deleted,
    'invoice.paid': handle_invoice_paid,
    'invoice.payment_failed': handle_invoice_payment_failed,
    'payment_intent.succeeded': handle_payment_intent_succeeded,
}


@bp.route('/stripe', methods=['POST'])
def stripe_webhook():
    """
    Stripe webhook receiver
    ---
    tags:
      - Webhooks
    parameters:
      - name: Stripe-Signature
        in: header
        required: true
        schema:
          type: string
    responses:
      200:
        description: Event received (a warning is included when processing failed)
      400:
        description: Missing or invalid signature
      500:
        description: Webhook secret not configured
    """
    signature = request.headers.get('Stripe-Signature')
    if not signature:
        current_app.logger.error("Missing stripe-signature header")
        return jsonify({'error': 'Missing stripe-signature header'}), 400

    secret = current_app.config.get('STRIPE_WEBHOOK_SECRET')
    if not secret:
        current_app.logger.error("STRIPE_WEBHOOK_SECRET not configured")
        return jsonify({'error': 'Webhook secret not configured'}), 500

    payload = request.get_data(as_text=True)
    try:
        verify_webhook_signature(
            payload, signature, secret,
            tolerance=current_app.config.get('STRIPE_SIGNATURE_TOLERANCE', 300)
        )
        event = json.loads(payload)
    except (StripeSignatureError, ValueError) as e:
        current_app.logger.warning(f"Webhook signature verification failed: {e}")
        return jsonify({'error': f'Webhook Error: {e}'}), 400

    event_type = event.get('type')
    current_app.logger.info(f"Received Stripe webhook: {event_type}")

    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        current_app.logger.info(f"Unhandled event type: {event_type}")
        return jsonify({'received': True}), 200

    try:
        handler((event.get('data') or {}).get('object') or {})
    except (StripeAPIError, SQLAlchemyError, KeyError, TypeError, ValueError) as e:
        # Still acknowledged; the error is logged for replay
        db.session.rollback()
        current_app.logger.error(
            f"Error processing webhook: {e} (event type: {event_type}, event id: {event.get('id')})"
        )
        return jsonify({
            'received': True,
            'warning': 'Event received but processing had an error - check logs'
        }), 200

    return jsonify({'received': True}), 200

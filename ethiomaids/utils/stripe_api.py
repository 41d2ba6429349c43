"""Minimal Stripe client: webhook signature verification and object retrieval"""
import hashlib
import hmac
import time

import requests
from flask import current_app


class StripeSignatureError(Exception):
    """Raised when a webhook payload does not carry a valid Stripe signature"""


class StripeAPIError(Exception):
    """Raised when a Stripe API call fails"""


def parse_signature_header(header):
    """Split ``t=...,v1=...,v1=...`` into (timestamp, [v1 signatures])"""
    timestamp = None
    signatures = []
    for item in header.split(','):
        key, _, value = item.strip().partition('=')
        if key == 't':
            timestamp = value
        elif key == 'v1':
            signatures.append(value)
    return timestamp, signatures


def compute_signature(payload, timestamp, secret):
    if isinstance(payload, bytes):
        payload = payload.decode('utf-8')
    signed_payload = f'{timestamp}.{payload}'
    return hmac.new(secret.encode('utf-8'), signed_payload.encode('utf-8'), hashlib.sha256).hexdigest()


def verify_webhook_signature(payload, header, secret, tolerance=300, now=None):
    """Check ``header`` against ``payload``; raises StripeSignatureError when it does not match"""
    timestamp, signatures = parse_signature_header(header or '')
    if not timestamp:
        raise StripeSignatureError('Unable to extract timestamp from header')
    if not signatures:
        raise StripeSignatureError('No v1 signatures found in header')

    expected = compute_signature(payload, timestamp, secret)
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise StripeSignatureError('No signatures found matching the expected signature for payload')

    try:
        timestamp = int(timestamp)
    except ValueError:
        raise StripeSignatureError('Invalid timestamp in header')
    now = int(now if now is not None else time.time())
    if tolerance and timestamp < now - tolerance:
        raise StripeSignatureError('Timestamp outside the tolerance zone')
    return True


def _get(path):
    secret_key = current_app.config.get('STRIPE_SECRET_KEY')
    if not secret_key:
        raise StripeAPIError('STRIPE_SECRET_KEY not configured')
    url = f"{current_app.config.get('STRIPE_API_URL')}/{path}"
    try:
        response = requests.get(url, auth=(secret_key, ''), timeout=10)
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        raise StripeAPIError(f'GET {path} failed: {e}') from e


def retrieve_subscription(subscription_id):
    return _get(f'subscriptions/{subscription_id}')


def retrieve_customer(customer_id):
    return _get(f'customers/{customer_id}')

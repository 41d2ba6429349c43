"""Subscription state helpers shared by the quota checks and the subscription routes"""
from datetime import date

from ethiomaids.models.subscription import Subscription
from ethiomaids.utils.helpers import parse_date
from ethiomaids.utils.rbac import PLAN_TYPES

CANCELLED_STATUSES = ('cancelled', 'canceled')


def _end_date(subscription):
    end_date = subscription.end_date
    if isinstance(end_date, str):
        end_date = parse_date(end_date)
    return end_date


def get_latest_subscription(user_id):
    return Subscription.query.filter_by(user_id=user_id) \
        .order_by(Subscription.created_at.desc()).first()


def get_subscription_status(subscription, today=None):
    if subscription is None:
        return 'free'
    today = today or date.today()
    end_date = _end_date(subscription)
    if subscription.status == 'active' and end_date and end_date < today:
        return 'expired'
    return subscription.status


def get_plan_type(subscription, today=None):
    status = get_subscription_status(subscription, today)
    if subscription is None or status == 'expired' or status in CANCELLED_STATUSES:
        return 'free'
    return subscription.plan_type or 'free'


def get_days_remaining(subscription, today=None):
    if subscription is None:
        return 0
    end_date = _end_date(subscription)
    if not end_date:
        return 0
    today = today or date.today()
    return max(0, (end_date - today).days)


def get_quota_plan_type(user_id):
    """Plan used for quota lookups; plans without quota rows count as free"""
    plan_type = get_plan_type(get_latest_subscription(user_id))
    return plan_type if plan_type in PLAN_TYPES else 'free'

"""Helper utility functions"""
import csv
import io
import json
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from flask import current_app, request


def camel_to_snake(name):
    """Convert camelCase to snake_case"""
    s1 = re.sub('(.)([A-Z][a-z]+)', r'\1_\2', name)
    return re.sub('([a-z0-9])([A-Z])', r'\1_\2', s1).lower()


def snake_to_camel(name):
    """Convert snake_case to camelCase"""
    components = name.split('_')
    return components[0] + ''.join(x.capitalize() for x in components[1:])


def normalize_keys(data):
    """Convert camelCase payload keys to snake_case (snake_case keys win)"""
    if not isinstance(data, dict):
        return {}
    converted = {}
    for key, value in data.items():
        snake = camel_to_snake(key)
        if snake not in converted or key == snake:
            converted[snake] = value
    return converted


def parse_date(value):
    """Parse an ISO date (or datetime) string; None for empty input, ValueError when malformed"""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)[:10]).date()


def parse_datetime(value):
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace('Z', '+00:00'))


def parse_decimal(value, default=None):
    """Decimal from a number or numeric string; NaN and infinities count as malformed"""
    if value in (None, '') or isinstance(value, bool):
        return default
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    return number if number.is_finite() else default


def parse_json_field(value, default=None):
    """Decode JSON stored as a string; dicts/lists pass through"""
    if value is None:
        return default
    if isinstance(value, (dict, list)):
        return value
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return default
    return default


def get_pagination_args(default_per_page=None):
    """page / per_page from the query string, clamped to MAX_PAGE_SIZE"""
    default_per_page = default_per_page or current_app.config.get('DEFAULT_PAGE_SIZE', 20)
    max_per_page = current_app.config.get('MAX_PAGE_SIZE', 100)
    page = max(1, request.args.get('page', 1, type=int) or 1)
    per_page = request.args.get('per_page', None, type=int) or request.args.get('limit', default_per_page, type=int)
    per_page = min(max(1, per_page or default_per_page), max_per_page)
    return page, per_page


def get_limit_offset(default_limit=50):
    max_limit = current_app.config.get('MAX_PAGE_SIZE', 100)
    limit = min(max(1, request.args.get('limit', default_limit, type=int) or default_limit), max_limit)
    offset = max(0, request.args.get('offset', 0, type=int) or 0)
    return limit, offset


def paginated_response(key, pagination, serializer, page, per_page):
    return {
        key: [serializer(item) for item in pagination.items],
        'total': pagination.total,
        'page': page,
        'per_page': per_page,
        'pages': pagination.pages
    }


def ilike_pattern(term):
    # Escape LIKE wildcards typed by the user
    escaped = term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'


def to_csv(headers, rows):
    """CSV with a plain header line and every data cell double-quoted"""
    output = io.StringIO()
    output.write(','.join(headers) + '\n')
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator='\n')
    writer.writerows(rows)
    return output.getvalue().rstrip('\n')


def create_notification(user_id, type, title, body, related_type=None, related_id=None, channel='in_app'):
    """Queue an in-app notification on the current session (caller commits)"""
    from ethiomaids import db
    from ethiomaids.models.notification import Notification

    if not user_id:
        return None
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        body=body,
        related_type=related_type,
        related_id=related_id,
        channel=channel
    )
    db.session.add(notification)
    return notification

"""Request payload validation

Each ``validate_*`` function takes the (snake_case) payload and returns a dict
of ``{field: message}``; an empty dict means the payload is valid.
"""
import re
from datetime import date

from ethiomaids.models.job import JOB_TYPES
from ethiomaids.models.payout import PAYOUT_METHODS
from ethiomaids.models.profile import AVAILABILITY_STATUSES
from ethiomaids.utils.claims import SELF_SERVICE_USER_TYPES
from ethiomaids.utils.helpers import parse_date, parse_decimal

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_PATTERN = re.compile(r'^\+?[1-9]\d{1,14}$')
NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]{2,50}$")

MIN_MAID_AGE = 21
MAX_MAID_AGE = 55
MAX_EXPERIENCE_YEARS = 50
MAX_COMMENT_LENGTH = 2000
MAX_REVIEW_TITLE_LENGTH = 200
CURRENCY_PATTERN = re.compile(r'^[A-Za-z]{3}$')
PROFILE_TEXT_FIELDS = ('phone_number', 'email', 'country', 'city', 'avatar_url', 'agency_name', 'license_number')
SUB_RATING_FIELDS = ('communication_rating', 'professionalism_rating', 'work_quality_rating', 'reliability_rating')


def _number(value):
    return parse_decimal(value)


def _blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def _not_text(value):
    return value is not None and not isinstance(value, str)


def _check_text(data, fields, errors):
    for field in fields:
        if field not in errors and _not_text(data.get(field)):
            errors[field] = 'Must be a string'


def _check_currency(data, errors):
    currency = data.get('currency')
    if not _blank(currency) and not (isinstance(currency, str) and CURRENCY_PATTERN.match(currency)):
        errors['currency'] = 'Currency must be a 3-letter code'


def _calculate_age(birth_date, today=None):
    today = today or date.today()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def _validate_rating(value):
    if isinstance(value, bool) or not isinstance(value, int):
        return 'Rating must be a whole number'
    if value < 1 or value > 5:
        return 'Rating must be between 1 and 5'
    return None


def _validate_length(data, field, minimum, maximum, message, partial):
    """Required string field between ``minimum`` and ``maximum`` characters once stripped"""
    if partial and field not in data:
        return None
    value = data.get(field)
    if _not_text(value):
        return 'Must be a string'
    length = len((value or '').strip())
    if length < minimum or (maximum is not None and length > maximum):
        return message
    return None


def validate_email(email):
    return isinstance(email, str) and bool(EMAIL_PATTERN.match(email))


def validate_phone(phone):
    if not phone or not isinstance(phone, str):
        return False
    return bool(PHONE_PATTERN.match(re.sub(r'[\s()-]', '', phone)))


def validate_profile(data, partial=False):
    errors = {}

    if not partial or 'user_type' in data:
        if data.get('user_type') not in SELF_SERVICE_USER_TYPES:
            errors['user_type'] = f'User type must be one of: {", ".join(SELF_SERVICE_USER_TYPES)}'

    if not partial or 'full_name' in data:
        full_name = data.get('full_name')
        if _not_text(full_name):
            errors['full_name'] = 'Must be a string'
        elif not (full_name or '').strip():
            errors['full_name'] = 'Name is required'
        elif not NAME_PATTERN.match(full_name.strip()):
            errors['full_name'] = 'Name must be 2-50 letters, spaces, apostrophes or hyphens'

    _check_text(data, PROFILE_TEXT_FIELDS, errors)

    if 'phone_number' not in errors and not _blank(data.get('phone_number')) \
            and not validate_phone(data['phone_number']):
        errors['phone_number'] = 'Please enter a valid phone number'

    if 'email' not in errors and not _blank(data.get('email')) and not validate_email(data['email']):
        errors['email'] = 'Please enter a valid email address'

    return errors


def validate_maid_details(data):
    errors = {}

    if not _blank(data.get('date_of_birth')):
        try:
            birth_date = parse_date(data['date_of_birth'])
        except ValueError:
            errors['date_of_birth'] = 'Invalid date of birth'
        else:
            age = _calculate_age(birth_date)
            if age < MIN_MAID_AGE or age > MAX_MAID_AGE:
                errors['date_of_birth'] = f'Age must be between {MIN_MAID_AGE} and {MAX_MAID_AGE}'

    if data.get('experience_years') is not None:
        years = data['experience_years']
        if isinstance(years, bool) or not isinstance(years, int) or years < 0 or years > MAX_EXPERIENCE_YEARS:
            errors['experience_years'] = f'Experience must be between 0 and {MAX_EXPERIENCE_YEARS} years'

    for field in ('skills', 'languages'):
        if field in data:
            value = data[field]
            if not isinstance(value, list) or not value:
                errors[field] = f'At least one {field[:-1]} is required'
            elif not all(isinstance(item, str) for item in value):
                errors[field] = f'Each {field[:-1]} must be a string'

    if not _blank(data.get('expected_salary')):
        salary = _number(data['expected_salary'])
        if salary is None or salary < 0:
            errors['expected_salary'] = 'Salary must be a positive number'

    if 'availability_status' in data and data['availability_status'] not in AVAILABILITY_STATUSES:
        errors['availability_status'] = f'Availability must be one of: {", ".join(AVAILABILITY_STATUSES)}'

    _check_currency(data, errors)
    _check_text(data, ('nationality', 'bio', 'agency_id'), errors)

    return errors


def validate_job(data, partial=False):
    errors = {}

    message = _validate_length(data, 'title', 5, 100, 'Title must be between 5 and 100 characters', partial)
    if message:
        errors['title'] = message

    message = _validate_length(data, 'description', 20, None, 'Description must be at least 20 characters', partial)
    if message:
        errors['description'] = message

    if 'job_type' in data and data['job_type'] not in JOB_TYPES:
        errors['job_type'] = f'Job type must be one of: {", ".join(JOB_TYPES)}'

    salary_min = data.get('salary_min')
    salary_max = data.get('salary_max')
    for field, value in (('salary_min', salary_min), ('salary_max', salary_max)):
        if not _blank(value):
            number = _number(value)
            if number is None or number < 0:
                errors[field] = 'Salary must be a positive number'
    if 'salary_min' not in errors and 'salary_max' not in errors \
            and not _blank(salary_min) and not _blank(salary_max):
        if _number(salary_min) > _number(salary_max):
            errors['salary_max'] = 'Maximum salary must be greater than minimum salary'

    try:
        parse_date(data.get('start_date'))
    except ValueError:
        errors['start_date'] = 'Invalid date'

    for field in ('required_skills', 'required_languages'):
        value = data.get(field)
        if value is not None and not (isinstance(value, list) and all(isinstance(item, str) for item in value)):
            errors[field] = 'Must be a list of strings'

    _check_currency(data, errors)
    _check_text(data, ('country', 'city'), errors)

    return errors


def validate_booking(data, partial=False):
    errors = {}

    if not partial and _blank(data.get('maid_id')):
        errors['maid_id'] = 'Maid is required'
    _check_text(data, ('maid_id', 'message', 'special_requirements'), errors)

    dates = {}
    for field in ('start_date', 'end_date'):
        try:
            dates[field] = parse_date(data.get(field))
        except ValueError:
            errors[field] = 'Invalid date'
    if dates.get('start_date') and dates.get('end_date') and dates['start_date'] > dates['end_date']:
        errors['end_date'] = 'End date must be after start date'

    if not _blank(data.get('amount')):
        amount = _number(data['amount'])
        if amount is None or amount < 0:
            errors['amount'] = 'Amount must be a positive number'

    _check_currency(data, errors)

    return errors


def validate_review(data, partial=False):
    errors = {}

    if not partial or 'rating' in data:
        message = _validate_rating(data.get('rating'))
        if message:
            errors['rating'] = message

    for field in SUB_RATING_FIELDS:
        if data.get(field) is not None:
            message = _validate_rating(data[field])
            if message:
                errors[field] = message

    _check_text(data, ('title', 'comment', 'reviewee_id', 'booking_id', 'review_type'), errors)

    title = data.get('title')
    if 'title' not in errors and title and len(title) > MAX_REVIEW_TITLE_LENGTH:
        errors['title'] = f'Title must be at most {MAX_REVIEW_TITLE_LENGTH} characters'

    comment = data.get('comment')
    if 'comment' not in errors and comment and len(comment) > MAX_COMMENT_LENGTH:
        errors['comment'] = f'Comment must be at most {MAX_COMMENT_LENGTH} characters'

    if 'is_anonymous' in data and not isinstance(data['is_anonymous'], bool):
        errors['is_anonymous'] = 'Must be true or false'

    return errors


def validate_payout_request(data):
    errors = {}

    amount = _number(data.get('amount')) if not _blank(data.get('amount')) else None
    if amount is None or amount <= 0:
        errors['amount'] = 'Amount must be greater than zero'

    method = data.get('payout_method', 'bank_transfer')
    if method not in PAYOUT_METHODS:
        errors['payout_method'] = f'Payout method must be one of: {", ".join(PAYOUT_METHODS)}'

    _check_currency(data, errors)
    _check_text(data, ('description',), errors)

    return errors

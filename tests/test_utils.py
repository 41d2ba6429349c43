"""
Unit tests for payload helpers, validators, the rate limiter and Stripe signatures.
"""

import hashlib
import hmac
from datetime import date, timedelta
from decimal import Decimal

import pytest

from ethiomaids.utils.helpers import (
    camel_to_snake, snake_to_camel, normalize_keys, parse_date, parse_decimal,
    parse_json_field, ilike_pattern, to_csv
)
from ethiomaids.utils.rate_limit import RateLimiter
from ethiomaids.utils.stripe_api import (
    StripeSignatureError, compute_signature, parse_signature_header, verify_webhook_signature
)
from ethiomaids.utils.validators import (
    validate_booking, validate_email, validate_job, validate_maid_details, validate_payout_request,
    validate_phone, validate_profile, validate_review
)


class TestHelpers:
    def test_case_conversion(self) -> None:
        assert camel_to_snake('fullName') == 'full_name'
        assert camel_to_snake('already_snake') == 'already_snake'
        assert snake_to_camel('expected_salary') == 'expectedSalary'

    def test_normalize_keys_prefers_snake_case(self) -> None:
        data = normalize_keys({'fullName': 'camel', 'full_name': 'snake', 'userType': 'maid'})
        assert data == {'full_name': 'snake', 'user_type': 'maid'}

    def test_normalize_keys_tolerates_non_dicts(self) -> None:
        assert normalize_keys(None) == {}
        assert normalize_keys(['a']) == {}

    def test_parse_date(self) -> None:
        assert parse_date('2025-03-01') == date(2025, 3, 1)
        assert parse_date('2025-03-01T10:00:00Z') == date(2025, 3, 1)
        assert parse_date('') is None
        with pytest.raises(ValueError):
            parse_date('not a date')

    def test_parse_decimal(self) -> None:
        assert parse_decimal('12.50') == Decimal('12.50')
        assert parse_decimal('abc', Decimal('0')) == Decimal('0')
        assert parse_decimal(None) is None
        assert parse_decimal('Infinity') is None
        assert parse_decimal('NaN', Decimal('0')) == Decimal('0')
        assert parse_decimal(True) is None

    def test_parse_json_field(self) -> None:
        assert parse_json_field('{"iban": "ET00"}') == {'iban': 'ET00'}
        assert parse_json_field({'iban': 'ET00'}) == {'iban': 'ET00'}
        assert parse_json_field('{broken', {}) == {}

    def test_ilike_pattern_escapes_wildcards(self) -> None:
        assert ilike_pattern('50%_off') == '%50\\%\\_off%'

    def test_to_csv_quotes_data_cells_only(self) -> None:
        csv_text = to_csv(['ID', 'Notes'], [['1', 'says "hi", twice']])
        assert csv_text == 'ID,Notes\n"1","says ""hi"", twice"'


class TestValidators:
    def test_email_and_phone(self) -> None:
        assert validate_email('a@b.co')
        assert not validate_email('a@b')
        assert validate_phone('+251 (911) 234-567')
        assert not validate_phone('12ab')

    def test_profile_requires_self_service_type(self) -> None:
        errors = validate_profile({'full_name': 'Abebe Kebede', 'user_type': 'admin'})
        assert set(errors) == {'user_type'}

    def test_profile_name_pattern(self) -> None:
        errors = validate_profile({'full_name': 'R2-D2', 'user_type': 'maid'})
        assert 'full_name' in errors

    def test_partial_profile_skips_missing_fields(self) -> None:
        assert validate_profile({'city': 'Dubai'}, partial=True) == {}

    def test_maid_age_bounds(self) -> None:
        too_young = (date.today() - timedelta(days=365 * 19)).isoformat()
        assert 'date_of_birth' in validate_maid_details({'date_of_birth': too_young})
        ok = (date.today() - timedelta(days=365 * 30)).isoformat()
        assert validate_maid_details({'date_of_birth': ok}) == {}

    def test_maid_lists_must_not_be_empty(self) -> None:
        errors = validate_maid_details({'skills': [], 'languages': 'Amharic', 'experience_years': 60})
        assert set(errors) == {'skills', 'languages', 'experience_years'}

    def test_job_rules(self) -> None:
        errors = validate_job({
            'title': 'Job',
            'description': 'too short',
            'job_type': 'forever',
            'salary_min': 900,
            'salary_max': 500,
        })
        assert set(errors) == {'title', 'description', 'job_type', 'salary_max'}

    def test_booking_dates(self) -> None:
        errors = validate_booking({'maid_id': 'm1', 'start_date': '2025-05-10', 'end_date': '2025-05-01'})
        assert set(errors) == {'end_date'}
        assert 'maid_id' in validate_booking({})
        assert validate_booking({}, partial=True) == {}

    @pytest.mark.parametrize('rating', [0, 6, 3.5, True, '4'])
    def test_review_rating_rejected(self, rating) -> None:
        assert 'rating' in validate_review({'rating': rating})

    def test_review_sub_ratings(self) -> None:
        errors = validate_review({'rating': 5, 'communication_rating': 9})
        assert set(errors) == {'communication_rating'}

    def test_payout_request(self) -> None:
        assert validate_payout_request({'amount': '100'}) == {}
        errors = validate_payout_request({'amount': 0, 'payout_method': 'cash'})
        assert set(errors) == {'amount', 'payout_method'}

    @pytest.mark.parametrize('amount', ['NaN', 'nan', 'Infinity', '-Infinity', 'sNaN'])
    def test_non_finite_amounts_rejected(self, amount) -> None:
        assert 'amount' in validate_payout_request({'amount': amount})
        assert 'amount' in validate_booking({'maid_id': 'm1', 'amount': amount})
        assert 'salary_min' in validate_job({'title': 'Live-in nanny', 'description': 'x' * 20, 'salary_min': amount})
        assert 'expected_salary' in validate_maid_details({'expected_salary': amount})

    def test_availability_status_and_currency(self) -> None:
        errors = validate_maid_details({'availability_status': 'sleeping', 'currency': 'DOLLARS'})
        assert set(errors) == {'availability_status', 'currency'}
        assert validate_maid_details({'availability_status': 'busy', 'currency': 'aed'}) == {}

    def test_job_start_date(self) -> None:
        job = {'title': 'Live-in nanny', 'description': 'Caring for two children in Dubai'}
        assert set(validate_job(dict(job, start_date='next-monday'))) == {'start_date'}
        assert validate_job(dict(job, start_date='2025-09-01')) == {}

    @pytest.mark.parametrize('validator,payload,field', [
        (validate_profile, {'user_type': 'maid', 'full_name': 123}, 'full_name'),
        (validate_profile, {'user_type': 'maid', 'full_name': 'Amina', 'phone_number': 251911}, 'phone_number'),
        (validate_profile, {'user_type': 'maid', 'full_name': 'Amina', 'email': ['a@b.co']}, 'email'),
        (validate_job, {'title': 12345, 'description': 'x' * 20}, 'title'),
        (validate_job, {'title': 'Live-in nanny', 'description': 'x' * 20, 'required_skills': 'cooking'},
         'required_skills'),
        (validate_booking, {'maid_id': 'm1', 'message': {'text': 'hi'}}, 'message'),
        (validate_review, {'rating': 4, 'comment': 5}, 'comment'),
        (validate_review, {'rating': 4, 'is_anonymous': 'yes'}, 'is_anonymous'),
        (validate_maid_details, {'experience_years': '3'}, 'experience_years'),
    ])
    def test_wrong_json_types(self, validator, payload, field) -> None:
        assert field in validator(payload)


class TestRateLimiter:
    def test_window_blocks_then_resets(self) -> None:
        now = [1000.0]
        limiter = RateLimiter(window_seconds=60, clock=lambda: now[0])

        assert limiter.hit('u1', 2) == (True, 0)
        assert limiter.hit('u1', 2) == (True, 0)
        allowed, retry_after = limiter.hit('u1', 2)
        assert not allowed
        assert retry_after == 60
        assert limiter.remaining('u1', 2) == 0

        now[0] += 61
        assert limiter.hit('u1', 2) == (True, 0)

    def test_keys_are_independent(self) -> None:
        limiter = RateLimiter()
        limiter.hit('a', 1)
        assert limiter.hit('b', 1) == (True, 0)
        limiter.reset('a')
        assert limiter.remaining('a', 1) == 1


class TestStripeSignature:
    SECRET = 'whsec_test'
    PAYLOAD = '{"id": "evt_1"}'

    def sign(self, timestamp) -> str:
        signed = f'{timestamp}.{self.PAYLOAD}'.encode()
        return hmac.new(self.SECRET.encode(), signed, hashlib.sha256).hexdigest()

    def test_parse_header(self) -> None:
        assert parse_signature_header('t=1,v1=abc,v0=zzz,v1=def') == ('1', ['abc', 'def'])

    def test_compute_matches_hmac(self) -> None:
        assert compute_signature(self.PAYLOAD, 1700000000, self.SECRET) == self.sign(1700000000)

    def test_valid_signature(self) -> None:
        header = f't=1700000000,v1=deadbeef,v1={self.sign(1700000000)}'
        assert verify_webhook_signature(self.PAYLOAD, header, self.SECRET, now=1700000100)

    def test_wrong_secret(self) -> None:
        header = f't=1700000000,v1={self.sign(1700000000)}'
        with pytest.raises(StripeSignatureError):
            verify_webhook_signature(self.PAYLOAD, header, 'whsec_other', now=1700000000)

    def test_stale_timestamp(self) -> None:
        header = f't=1700000000,v1={self.sign(1700000000)}'
        with pytest.raises(StripeSignatureError):
            verify_webhook_signature(self.PAYLOAD, header, self.SECRET, tolerance=300, now=1700000301)

    @pytest.mark.parametrize('header', ['', 'v1=abc', 't=1700000000'])
    def test_malformed_header(self, header) -> None:
        with pytest.raises(StripeSignatureError):
            verify_webhook_signature(self.PAYLOAD, header, self.SECRET)

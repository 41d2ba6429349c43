"""
Tests for payout requests and the admin payout workflow.
"""

import pytest

from ethiomaids import db
from ethiomaids.models import Notification, Payout, SystemSetting


@pytest.fixture
def users(login):
    return {
        'maid': login('m1', 'maid', full_name='Amina Bekele'),
        'agency': login('ag1', 'agency', agency_name='Addis Placement'),
        'sponsor': login('sp1', 'sponsor'),
        'admin': login('admin1', 'admin'),
    }


@pytest.fixture
def fees(app):
    db.session.add_all([
        SystemSetting(key='platform_fee_percent', value=10),
        SystemSetting(key='processing_fee', value='2.50'),
    ])
    db.session.commit()


@pytest.fixture
def payout_id(client, users):
    response = client.post('/api/payouts/', json={
        'amount': 200,
        'payoutMethod': 'bank_transfer',
        'payoutDestination': {'bank': 'CBE', 'account': '1000123456'},
    }, headers=users['maid'])
    assert response.status_code == 201
    return response.get_json()['id']


def _act(client, users, payout_id, action, **body):
    return client.post(f'/api/payouts/admin/{payout_id}/{action}', json=body, headers=users['admin'])


class TestRequestPayout:
    def test_fees_applied(self, client, users, fees) -> None:
        body = client.post('/api/payouts/', json={'amount': '100'}, headers=users['maid']).get_json()
        assert body['platform_fee'] == 10.0
        assert body['processing_fee'] == 2.5
        assert body['net_amount'] == 87.5
        assert body['status'] == 'pending'
        assert body['user_type'] == 'maid'
        assert body['payout_number'].startswith('PO-')

    def test_no_fees_configured(self, client, users, payout_id) -> None:
        payout = db.session.get(Payout, payout_id)
        assert float(payout.net_amount) == 200.0

    def test_amount_must_cover_fees(self, client, users, fees) -> None:
        response = client.post('/api/payouts/', json={'amount': 2}, headers=users['agency'])
        assert response.status_code == 400

    def test_validation(self, client, users) -> None:
        response = client.post('/api/payouts/', json={'amount': -5, 'payout_method': 'cash'}, headers=users['maid'])
        assert response.status_code == 400
        assert set(response.get_json()['errors']) == {'amount', 'payout_method'}

    @pytest.mark.parametrize('amount', ['NaN', 'Infinity', '-Infinity'])
    def test_non_finite_amount(self, client, users, amount) -> None:
        response = client.post('/api/payouts/', json={'amount': amount}, headers=users['maid'])
        assert response.status_code == 400
        assert 'amount' in response.get_json()['errors']
        assert Payout.query.count() == 0

    def test_sponsors_cannot_request(self, client, users) -> None:
        assert client.post('/api/payouts/', json={'amount': 50}, headers=users['sponsor']).status_code == 403

    def test_mine(self, client, users, payout_id) -> None:
        body = client.get('/api/payouts/mine', headers=users['maid']).get_json()
        assert [p['id'] for p in body['payouts']] == [payout_id]
        assert client.get('/api/payouts/mine', headers=users['agency']).get_json()['total'] == 0


class TestAdminList:
    def test_enriched_rows(self, client, users, payout_id) -> None:
        body = client.get('/api/payouts/admin', headers=users['admin']).get_json()
        assert body['total_count'] == 1
        assert body['total_pages'] == 1
        assert body['current_page'] == 1
        row = body['payouts'][0]
        assert row['recipient']['name'] == 'Amina Bekele'
        assert row['bank_details'] == {'bank': 'CBE', 'account': '1000123456'}
        assert row['payout_id'] == row['payout_number']

    def test_unknown_recipient(self, client, users) -> None:
        payout = Payout(payout_number='PO-20250101-ABC123', user_id='gone', amount=10,
                        payout_destination='{"iban": "AE07"}')
        db.session.add(payout)
        db.session.commit()
        body = client.get(f'/api/payouts/admin/{payout.id}', headers=users['admin']).get_json()
        assert body['recipient']['name'] == 'Unknown User'
        assert body['bank_details'] == {'iban': 'AE07'}

    def test_filters_and_paging(self, client, users) -> None:
        for i in range(3):
            client.post('/api/payouts/', json={'amount': 10 + i}, headers=users['maid'])
        client.post('/api/payouts/', json={'amount': 99, 'payout_method': 'paypal'}, headers=users['agency'])

        def fetch(query):
            return client.get(f'/api/payouts/admin{query}', headers=users['admin']).get_json()

        assert fetch('?user_type=agency')['total_count'] == 1
        assert fetch('?method=paypal')['payouts'][0]['amount'] == 99.0
        assert fetch('?status=completed')['total_count'] == 0
        page = fetch('?limit=3&page=2&sort_by=amount&sort_direction=asc')
        assert page['total_pages'] == 2
        assert [p['amount'] for p in page['payouts']] == [99.0]

    def test_admin_only(self, client, users) -> None:
        assert client.get('/api/payouts/admin', headers=users['maid']).status_code == 403


class TestAdminActions:
    def test_happy_path(self, client, users, payout_id) -> None:
        body = _act(client, users, payout_id, 'approve').get_json()
        assert body['status'] == 'processing'
        assert body['processing_at'] is not None

        body = _act(client, users, payout_id, 'complete', provider_reference='TRX-9').get_json()
        assert body['status'] == 'completed'
        assert body['provider_reference'] == 'TRX-9'
        assert Notification.query.filter_by(user_id='m1').count() == 2

    def test_reject_defaults(self, client, users, payout_id) -> None:
        body = _act(client, users, payout_id, 'reject').get_json()
        assert body['status'] == 'failed'
        assert body['failure_code'] == 'REJECTED'
        assert body['failure_message'] == 'Payout rejected by admin'

    def test_hold_and_release(self, client, users, payout_id) -> None:
        assert _act(client, users, payout_id, 'hold').get_json()['notes'] == 'Placed on hold by admin'
        body = _act(client, users, payout_id, 'release').get_json()
        assert body['status'] == 'pending'
        assert body['notes'] == 'Released from hold'

    def test_retry_failed(self, client, users, payout_id) -> None:
        assert _act(client, users, payout_id, 'retry').status_code == 409
        _act(client, users, payout_id, 'reject')
        body = _act(client, users, payout_id, 'retry').get_json()
        assert body['status'] == 'pending'
        assert body['retry_count'] == 1
        assert body['failure_code'] is None

    def test_wrong_source_status(self, client, users, payout_id) -> None:
        assert _act(client, users, payout_id, 'complete').status_code == 409

    def test_unknown_action(self, client, users, payout_id) -> None:
        response = _act(client, users, payout_id, 'explode')
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Invalid action'


class TestStats:
    def test_stats(self, client, users, fees) -> None:
        client.post('/api/payouts/', json={'amount': 100}, headers=users['maid'])
        response = client.post('/api/payouts/', json={'amount': 50}, headers=users['agency'])
        _act(client, users, response.get_json()['id'], 'hold')

        body = client.get('/api/payouts/admin/stats', headers=users['admin']).get_json()
        assert body['total'] == {'count': 2, 'amount': 150.0, 'fees': 5.0}
        assert body['pending'] == {'count': 1, 'amount': 100.0}
        assert body['on_hold'] == {'count': 1, 'amount': 50.0}
        assert body['by_user_type']['agency'] == {'count': 1, 'amount': 50.0}
        assert body['completed'] == {'count': 0, 'amount': 0.0}

    def test_statuses(self, client, users) -> None:
        body = client.get('/api/payouts/admin/statuses', headers=users['admin']).get_json()
        assert 'on_hold' in body['statuses']
        assert 'retry' in body['actions']

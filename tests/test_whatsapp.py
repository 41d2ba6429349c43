"""
Tests for the WhatsApp assistant admin routes: messages, bookings, CSV export and settings.
"""

from datetime import datetime

import pytest

from ethiomaids import db
from ethiomaids.models import MaidBooking, PlatformSettings, WhatsAppMessage


@pytest.fixture
def admin(login):
    return login('admin1', 'admin')


@pytest.fixture
def messages(app):
    rows = [
        WhatsAppMessage(phone_number='+971500000001', message_content='Hello, I need a nanny',
                        sender='user', received_at=datetime(2025, 5, 1, 9, 0)),
        WhatsAppMessage(phone_number='+971500000001', message_content='Sure, which city?',
                        sender='assistant', received_at=datetime(2025, 5, 1, 9, 1)),
        WhatsAppMessage(phone_number='+971500000002', message_content='Is 100% live-in possible?',
                        sender='user', received_at=datetime(2025, 5, 2, 10, 0)),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows


@pytest.fixture
def bookings(app):
    rows = [
        MaidBooking(phone_number='+971500000001', sponsor_name='Omar', maid_name='Amina',
                    booking_type='interview', booking_date=datetime(2025, 6, 1, 10, 0), status='pending'),
        MaidBooking(phone_number='+971500000002', booking_type='hire', status='confirmed',
                    notes='Prefers "live-in"'),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows


class TestMessages:
    def test_admin_only(self, client, login, messages) -> None:
        assert client.get('/api/whatsapp/messages', headers=login('sp1', 'sponsor')).status_code == 403

    def test_list_newest_first(self, client, admin, messages) -> None:
        body = client.get('/api/whatsapp/messages?limit=2', headers=admin).get_json()
        assert body['total'] == 3
        assert body['limit'] == 2
        assert body['messages'][0]['phone_number'] == '+971500000002'

    def test_filter_by_sender(self, client, admin, messages) -> None:
        body = client.get('/api/whatsapp/messages?sender=assistant', headers=admin).get_json()
        assert [m['message_content'] for m in body['messages']] == ['Sure, which city?']

    def test_conversation_oldest_first(self, client, admin, messages) -> None:
        body = client.get('/api/whatsapp/messages/conversation/+971500000001', headers=admin).get_json()
        assert [m['sender'] for m in body['messages']] == ['user', 'assistant']

    def test_search_escapes_wildcards(self, client, admin, messages) -> None:
        body = client.get('/api/whatsapp/messages/search?q=100%25', headers=admin).get_json()
        assert body['total'] == 1
        assert client.get('/api/whatsapp/messages/search', headers=admin).status_code == 400

    def test_record_message(self, client, admin) -> None:
        response = client.post('/api/whatsapp/messages', json={
            'phoneNumber': '+971500000003', 'messageContent': 'Thanks!', 'sender': 'assistant'
        }, headers=admin)
        assert response.status_code == 201
        assert WhatsAppMessage.query.count() == 1

    def test_record_message_validation(self, client, admin) -> None:
        assert client.post('/api/whatsapp/messages', json={'phone_number': '+9715'}, headers=admin).status_code == 400
        response = client.post('/api/whatsapp/messages', json={
            'phone_number': '+9715', 'message_content': 'hi', 'sender': 'bot'
        }, headers=admin)
        assert response.status_code == 400

    def test_contacts(self, client, admin, messages) -> None:
        body = client.get('/api/whatsapp/contacts', headers=admin).get_json()
        assert body['total'] == 2
        first, second = body['contacts']
        assert first['phone_number'] == '+971500000002'
        assert second['message_count'] == 2
        assert second['last_sender'] == 'assistant'


class TestBookings:
    def test_list_and_filter(self, client, admin, bookings) -> None:
        assert client.get('/api/whatsapp/bookings', headers=admin).get_json()['total'] == 2
        body = client.get('/api/whatsapp/bookings?status=confirmed', headers=admin).get_json()
        assert [b['booking_type'] for b in body['bookings']] == ['hire']
        body = client.get('/api/whatsapp/bookings?start_date=2025-05-30', headers=admin).get_json()
        assert body['total'] == 1
        assert client.get('/api/whatsapp/bookings?start_date=soon', headers=admin).status_code == 400

    def test_stats(self, client, admin, bookings) -> None:
        assert client.get('/api/whatsapp/bookings/stats', headers=admin).get_json() == {
            'total_bookings': 2,
            'pending_bookings': 1,
            'confirmed_bookings': 1,
            'cancelled_bookings': 0,
            'completed_bookings': 0,
        }

    def test_update_status(self, client, admin, bookings) -> None:
        url = f'/api/whatsapp/bookings/{bookings[0].id}/status'
        body = client.patch(url, json={'status': 'completed', 'notes': 'Hired'}, headers=admin).get_json()
        assert body['status'] == 'completed'
        assert body['notes'] == 'Hired'
        assert client.patch(url, json={'status': 'lost'}, headers=admin).status_code == 400

    def test_update_booking(self, client, admin, bookings) -> None:
        url = f'/api/whatsapp/bookings/{bookings[1].id}'
        body = client.put(url, json={
            'maidName': 'Hana', 'bookingDate': '2025-07-01T15:00:00', 'metadata': {'source': 'ad'}
        }, headers=admin).get_json()
        assert body['maid_name'] == 'Hana'
        assert body['booking_date'].startswith('2025-07-01T15:00:00')
        assert body['metadata'] == {'source': 'ad'}
        assert client.put(url, json={'booking_date': 'tomorrow'}, headers=admin).status_code == 400

    def test_delete(self, client, admin, bookings) -> None:
        booking_id = bookings[0].id
        assert client.delete(f'/api/whatsapp/bookings/{booking_id}', headers=admin).status_code == 200
        assert client.delete(f'/api/whatsapp/bookings/{booking_id}', headers=admin).status_code == 404


class TestExport:
    def test_csv(self, client, admin, bookings) -> None:
        response = client.get('/api/whatsapp/bookings/export?status=confirmed', headers=admin)
        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        assert 'filename=whatsapp-bookings.csv' in response.headers['Content-Disposition']

        header, row = response.get_data(as_text=True).split('\n')
        assert header == 'ID,Phone Number,Sponsor Name,Maid Name,Booking Type,Booking Date,Status,Notes,Created At'
        cells = row.split('","')
        assert cells[2:7] == ['N/A', 'N/A', 'hire', 'Not scheduled', 'confirmed']
        assert cells[7] == 'Prefers ""live-in""'

    def test_empty_export_has_header_only(self, client, admin) -> None:
        response = client.get('/api/whatsapp/bookings/export', headers=admin)
        assert response.get_data(as_text=True) == (
            'ID,Phone Number,Sponsor Name,Maid Name,Booking Type,Booking Date,Status,Notes,Created At'
        )


class TestPlatformSettings:
    def test_empty_settings(self, client, admin) -> None:
        assert client.get('/api/whatsapp/settings', headers=admin).get_json() == {}
        assert client.put('/api/whatsapp/settings', json={'platform_name': 'X'}, headers=admin).status_code == 404

    def test_update_editable_fields(self, client, admin) -> None:
        db.session.add(PlatformSettings())
        db.session.commit()
        body = client.put('/api/whatsapp/settings', json={
            'whatsappNumber': '+971500000099', 'autoResponseEnabled': False, 'id': 'hijack'
        }, headers=admin).get_json()
        assert body['whatsapp_number'] == '+971500000099'
        assert body['auto_response_enabled'] is False
        assert body['platform_name'] == 'Ethio Maids'
        assert body['id'] != 'hijack'

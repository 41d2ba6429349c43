"""
Tests for agency team invitations, role management and permission lookups.
"""

import pytest

from ethiomaids import db
from ethiomaids.models import AgencyTeamMember, Subscription


@pytest.fixture
def owner(login):
    return login('ag1', 'agency', agency_name='Addis Placement')


@pytest.fixture
def pro_plan(owner):
    db.session.add(Subscription(user_id='ag1', status='active', plan_type='pro'))
    db.session.commit()


def _invite(client, headers, email, role='assistant', **body):
    return client.post('/api/agency/team', json=dict(body, email=email, role=role), headers=headers)


def _join(client, login, uid, email, owner, role):
    """Invite ``email`` and accept it as ``uid``; returns (member id, headers)"""
    member_id = _invite(client, owner, email, role).get_json()['id']
    headers = login(uid, 'user', email=email)
    assert client.post('/api/agency/team/accept', headers=headers).status_code == 200
    return member_id, headers


class TestInvite:
    def test_owner_invites(self, client, owner) -> None:
        response = _invite(client, owner, 'Coordinator@Example.com', 'coordinator', permissions=['view_team'])
        assert response.status_code == 201
        body = response.get_json()
        assert body['email'] == 'coordinator@example.com'
        assert body['status'] == 'invited'
        assert body['member_id'] is None
        assert body['invited_by'] == 'ag1'
        assert body['permissions'] == ['view_team']

    @pytest.mark.parametrize('email,role', [
        ('not-an-email', 'assistant'),
        ('a@example.com', 'owner'),
        ('a@example.com', 'superuser'),
    ])
    def test_invalid_invites(self, client, owner, email, role) -> None:
        assert _invite(client, owner, email, role).status_code == 400

    def test_unknown_permission(self, client, owner) -> None:
        assert _invite(client, owner, 'a@example.com', permissions=['launch_rockets']).status_code == 400

    def test_duplicate_email(self, client, owner, pro_plan) -> None:
        _invite(client, owner, 'a@example.com')
        assert _invite(client, owner, 'A@example.com').status_code == 409

    def test_free_plan_limit(self, client, owner) -> None:
        assert _invite(client, owner, 'a@example.com').status_code == 201
        response = _invite(client, owner, 'b@example.com')
        assert response.status_code == 403
        body = response.get_json()
        assert body['upgrade_required'] is True
        assert body['quota']['limit'] == 1

    def test_suspended_members_do_not_count(self, client, owner) -> None:
        member_id = _invite(client, owner, 'a@example.com').get_json()['id']
        client.put(f'/api/agency/team/{member_id}', json={'status': 'suspended'}, headers=owner)
        assert _invite(client, owner, 'b@example.com').status_code == 201

    def test_outsider_forbidden(self, client, login) -> None:
        response = _invite(client, login('sp1', 'sponsor'), 'a@example.com')
        assert response.status_code == 403
        assert 'Not a member' in response.get_json()['error']


class TestMembership:
    def test_accept_links_account(self, client, login, owner) -> None:
        member_id, _ = _join(client, login, 'u1', 'helper@example.com', owner, 'assistant')
        member = db.session.get(AgencyTeamMember, member_id)
        assert member.member_id == 'u1'
        assert member.status == 'active'

    def test_accept_without_invitation(self, client, login) -> None:
        assert client.post('/api/agency/team/accept', headers=login('u1', 'user')).status_code == 404

    def test_assistant_can_view_but_not_invite(self, client, login, owner, pro_plan) -> None:
        _, headers = _join(client, login, 'u1', 'helper@example.com', owner, 'assistant')
        assert client.get('/api/agency/team', headers=headers).status_code == 403

        client.put(f'/api/agency/team/{_members(client, owner)[0]["id"]}',
                   json={'permissions': ['view_team']}, headers=owner)
        body = client.get('/api/agency/team', headers=headers).get_json()
        assert body['total'] == 1
        assert _invite(client, headers, 'x@example.com').status_code == 403

    def test_manager_cannot_assign_equal_role(self, client, login, owner, pro_plan) -> None:
        member_id, headers = _join(client, login, 'u1', 'manager@example.com', owner, 'manager')
        client.put(f'/api/agency/team/{member_id}', json={'permissions': ['invite_members']}, headers=owner)

        assert _invite(client, headers, 'c@example.com', 'coordinator').status_code == 201
        assert _invite(client, headers, 'm@example.com', 'manager').status_code == 403

    def test_manager_grants_only_held_permissions(self, client, login, owner, pro_plan) -> None:
        member_id, headers = _join(client, login, 'u1', 'manager@example.com', owner, 'manager')
        client.put(f'/api/agency/team/{member_id}', json={'permissions': ['invite_members', 'manage_roles']},
                   headers=owner)

        response = _invite(client, headers, 'c@example.com', 'coordinator', permissions=['export_data'])
        assert response.status_code == 403
        assert 'export_data' in response.get_json()['error']
        coordinator = _invite(client, headers, 'c@example.com', 'coordinator', permissions=['view_team'])
        assert coordinator.status_code == 201

        url = f"/api/agency/team/{coordinator.get_json()['id']}"
        assert client.put(url, json={'permissions': ['delete_agency_data']}, headers=headers).status_code == 403
        body = client.put(url, json={'permissions': ['manage_maids']}, headers=headers).get_json()
        assert body['permissions'] == ['manage_maids']

    def test_non_string_payloads(self, client, owner) -> None:
        assert _invite(client, owner, 12345).status_code == 400
        assert _invite(client, owner, 'a@example.com', ['manager']).status_code == 400
        assert _invite(client, owner, 'a@example.com', permissions=[['view_team']]).status_code == 400

    def test_activate_before_acceptance(self, client, owner) -> None:
        member_id = _invite(client, owner, 'a@example.com').get_json()['id']
        response = client.put(f'/api/agency/team/{member_id}', json={'status': 'active'}, headers=owner)
        assert response.status_code == 409

    def test_change_role(self, client, owner) -> None:
        member_id = _invite(client, owner, 'a@example.com').get_json()['id']
        url = f'/api/agency/team/{member_id}'
        assert client.put(url, json={'role': 'manager'}, headers=owner).get_json()['role'] == 'manager'
        assert client.put(url, json={'role': 'owner'}, headers=owner).status_code == 400
        assert client.put(url, json={'status': 'gone'}, headers=owner).status_code == 400

    def test_other_agency_members_are_hidden(self, client, login, owner) -> None:
        member_id = _invite(client, owner, 'a@example.com').get_json()['id']
        other = login('ag2', 'agency')
        assert client.put(f'/api/agency/team/{member_id}', json={'role': 'manager'}, headers=other).status_code == 404

    def test_remove(self, client, owner) -> None:
        member_id = _invite(client, owner, 'a@example.com').get_json()['id']
        assert client.delete(f'/api/agency/team/{member_id}', headers=owner).status_code == 200
        assert _members(client, owner) == []


def _members(client, headers):
    return client.get('/api/agency/team', headers=headers).get_json()['members']


class TestPermissionLookups:
    def test_owner_has_everything(self, client, owner) -> None:
        body = client.get('/api/agency/team/permissions', headers=owner).get_json()
        assert body['agency_id'] == 'ag1'
        assert body['role'] == 'owner'
        assert body['hierarchy_level'] == 4
        assert 'delete_agency_data' in body['permissions']

    def test_member_permissions(self, client, login, owner) -> None:
        _, headers = _join(client, login, 'u1', 'helper@example.com', owner, 'assistant')
        body = client.get('/api/agency/team/permissions', headers=headers).get_json()
        assert body['role'] == 'assistant'
        assert body['accessible_features']['Maid Management'] == ['view_maids']
        assert 'manage_maids' not in body['permissions']

    def test_route_access(self, client, login, owner) -> None:
        _, headers = _join(client, login, 'u1', 'helper@example.com', owner, 'assistant')

        def allowed(route):
            return client.get(f'/api/agency/team/access?route={route}', headers=headers).get_json()['allowed']

        assert allowed('/dashboard/agency/maids') is True
        assert allowed('/dashboard/agency/maids/add') is False
        assert allowed('/dashboard/agency') is True
        assert client.get('/api/agency/team/access', headers=headers).status_code == 400

    def test_roles_catalog(self, client, login) -> None:
        body = client.get('/api/agency/team/roles', headers=login('sp1', 'sponsor')).get_json()
        levels = {role['id']: role['hierarchy_level'] for role in body['roles']}
        assert levels == {'owner': 4, 'manager': 3, 'coordinator': 2, 'assistant': 1}
        assert 'Team & Settings' in body['permission_categories']

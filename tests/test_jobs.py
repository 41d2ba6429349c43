"""
Tests for job postings and job applications.
"""

import pytest

from ethiomaids import db
from ethiomaids.models import Job, Notification, Subscription

JOB = {
    'title': 'Live-in housekeeper',
    'description': 'Family of four in Dubai looking for an experienced housekeeper.',
    'country': 'UAE',
    'city': 'Dubai',
    'jobType': 'live_in',
    'salaryMin': 400,
    'salaryMax': 600,
    'requiredSkills': ['cooking', 'cleaning'],
}


@pytest.fixture
def sponsor(login):
    return login('sp1', 'sponsor')


@pytest.fixture
def maid(login):
    return login('m1', 'maid')


@pytest.fixture
def job_id(client, sponsor):
    response = client.post('/api/jobs/', json=JOB, headers=sponsor)
    assert response.status_code == 201
    return response.get_json()['id']


class TestCreateJob:
    def test_defaults_to_active(self, client, sponsor) -> None:
        body = client.post('/api/jobs/', json=JOB, headers=sponsor).get_json()
        assert body['status'] == 'active'
        assert body['salary_range'] == '400-600'
        assert body['required_skills'] == ['cooking', 'cleaning']
        assert body['sponsor_name'] == 'Sp1 Tester'

    def test_only_sponsors(self, client, maid) -> None:
        assert client.post('/api/jobs/', json=JOB, headers=maid).status_code == 403

    def test_validation(self, client, sponsor) -> None:
        response = client.post('/api/jobs/', json=dict(JOB, title='Hi', status='filled'), headers=sponsor)
        assert response.status_code == 400
        assert set(response.get_json()['errors']) == {'title', 'status'}

    @pytest.mark.parametrize('overrides,field', [
        ({'startDate': 'next-monday'}, 'start_date'),
        ({'salaryMin': 'NaN'}, 'salary_min'),
        ({'salaryMax': 'Infinity'}, 'salary_max'),
        ({'title': 12345}, 'title'),
        ({'currency': 'dollars'}, 'currency'),
    ])
    def test_malformed_fields(self, client, sponsor, overrides, field) -> None:
        response = client.post('/api/jobs/', json=dict(JOB, **overrides), headers=sponsor)
        assert response.status_code == 400
        assert field in response.get_json()['errors']
        assert Job.query.count() == 0

    def test_start_date(self, client, sponsor) -> None:
        body = client.post('/api/jobs/', json=dict(JOB, startDate='2025-09-01'), headers=sponsor).get_json()
        assert body['start_date'] == '2025-09-01'

    def test_free_plan_quota(self, client, sponsor) -> None:
        assert client.post('/api/jobs/', json=JOB, headers=sponsor).status_code == 201
        response = client.post('/api/jobs/', json=JOB, headers=sponsor)
        assert response.status_code == 403
        body = response.get_json()
        assert body['upgrade_required'] is True
        assert body['quota']['limit'] == 1

    def test_pro_plan_quota(self, client, sponsor) -> None:
        db.session.add(Subscription(user_id='sp1', status='active', plan_type='pro'))
        db.session.commit()
        for _ in range(5):
            assert client.post('/api/jobs/', json=JOB, headers=sponsor).status_code == 201
        assert client.post('/api/jobs/', json=JOB, headers=sponsor).status_code == 403

    def test_closed_jobs_do_not_count(self, client, sponsor, job_id) -> None:
        client.patch(f'/api/jobs/{job_id}/status', json={'status': 'closed'}, headers=sponsor)
        assert client.post('/api/jobs/', json=JOB, headers=sponsor).status_code == 201


class TestBrowseJobs:
    @pytest.fixture
    def jobs(self, make_profile):
        make_profile('sp1', 'sponsor')
        rows = [
            Job(sponsor_id='sp1', title='Nanny in Riyadh', description='x' * 30, city='Riyadh',
                job_type='full_time', salary_min=300, status='active', required_skills=['childcare']),
            Job(sponsor_id='sp1', title='Cook in Dubai', description='y' * 30, city='Dubai',
                job_type='live_out', salary_min=700, status='active', required_skills=['cooking']),
            Job(sponsor_id='sp1', title='Draft job', description='z' * 30, city='Dubai',
                salary_min=500, status='draft'),
        ]
        db.session.add_all(rows)
        db.session.commit()
        return rows

    def _titles(self, client, query='', headers=None):
        body = client.get(f'/api/jobs/{query}', headers=headers).get_json()
        return [j['title'] for j in body['jobs']]

    def test_public_sees_active_only(self, client, jobs) -> None:
        assert sorted(self._titles(client)) == ['Cook in Dubai', 'Nanny in Riyadh']
        assert 'Draft job' not in self._titles(client, '?status=draft')

    def test_admin_can_filter_status(self, client, jobs, login) -> None:
        headers = login('admin1', 'admin')
        assert self._titles(client, '?status=draft', headers) == ['Draft job']

    def test_filters(self, client, jobs) -> None:
        assert self._titles(client, '?city=Dubai') == ['Cook in Dubai']
        assert self._titles(client, '?job_type=full_time') == ['Nanny in Riyadh']
        assert self._titles(client, '?salary_min=500') == ['Cook in Dubai']
        assert self._titles(client, '?skill=childcare') == ['Nanny in Riyadh']
        assert self._titles(client, '?search=riyadh') == ['Nanny in Riyadh']

    def test_salary_sort(self, client, jobs) -> None:
        assert self._titles(client, '?sort=salary_high') == ['Cook in Dubai', 'Nanny in Riyadh']
        assert self._titles(client, '?sort=salary_low') == ['Nanny in Riyadh', 'Cook in Dubai']

    def test_draft_visible_to_owner_only(self, client, jobs, auth_headers) -> None:
        draft_id = jobs[2].id
        assert client.get(f'/api/jobs/{draft_id}').status_code == 404
        assert client.get(f'/api/jobs/{draft_id}', headers=auth_headers('sp1')).status_code == 200

    def test_views_counted_for_visitors(self, client, jobs, auth_headers) -> None:
        job_id = jobs[0].id
        client.get(f'/api/jobs/{job_id}')
        client.get(f'/api/jobs/{job_id}', headers=auth_headers('sp1'))
        assert client.get(f'/api/jobs/{job_id}').get_json()['views_count'] == 2


class TestManageJob:
    def test_update_by_owner(self, client, sponsor, job_id) -> None:
        response = client.put(f'/api/jobs/{job_id}', json={'city': 'Abu Dhabi'}, headers=sponsor)
        assert response.status_code == 200
        assert response.get_json()['city'] == 'Abu Dhabi'

    def test_update_rejects_malformed_start_date(self, client, sponsor, job_id) -> None:
        response = client.put(f'/api/jobs/{job_id}', json={'start_date': 'soon'}, headers=sponsor)
        assert response.status_code == 400
        assert 'start_date' in response.get_json()['errors']

    def test_update_by_stranger(self, client, job_id, login) -> None:
        other = login('sp2', 'sponsor')
        assert client.put(f'/api/jobs/{job_id}', json={'city': 'Doha'}, headers=other).status_code == 403

    def test_invalid_status(self, client, sponsor, job_id) -> None:
        response = client.patch(f'/api/jobs/{job_id}/status', json={'status': 'archived'}, headers=sponsor)
        assert response.status_code == 400

    def test_feature(self, client, sponsor, job_id) -> None:
        body = client.post(f'/api/jobs/{job_id}/feature', json={'days': 3}, headers=sponsor).get_json()
        assert body['is_featured'] is True
        assert body['featured_until'] is not None

        response = client.post(f'/api/jobs/{job_id}/feature', json={'days': 0}, headers=sponsor)
        assert response.status_code == 400

    def test_stats(self, client, sponsor, job_id) -> None:
        body = client.get('/api/jobs/stats', headers=sponsor).get_json()
        assert body['total_jobs'] == 1
        assert body['active_jobs'] == 1

    def test_delete(self, client, sponsor, job_id) -> None:
        assert client.delete(f'/api/jobs/{job_id}', headers=sponsor).status_code == 200
        assert db.session.get(Job, job_id) is None


class TestApplications:
    @pytest.fixture
    def application_id(self, client, maid, job_id):
        response = client.post(f'/api/jobs/{job_id}/applications',
                               json={'coverLetter': 'I have 5 years of experience.'}, headers=maid)
        assert response.status_code == 201
        return response.get_json()['id']

    def test_apply_notifies_sponsor(self, client, job_id, application_id) -> None:
        notification = Notification.query.filter_by(user_id='sp1').one()
        assert notification.type == 'APPLICATION_RECEIVED'
        assert notification.related_id == application_id
        assert db.session.get(Job, job_id).applications_count == 1

    def test_apply_twice(self, client, maid, job_id, application_id) -> None:
        assert client.post(f'/api/jobs/{job_id}/applications', json={}, headers=maid).status_code == 409

    def test_apply_to_inactive_job(self, client, sponsor, maid, job_id) -> None:
        client.patch(f'/api/jobs/{job_id}/status', json={'status': 'paused'}, headers=sponsor)
        assert client.post(f'/api/jobs/{job_id}/applications', json={}, headers=maid).status_code == 409

    def test_owner_lists_applications(self, client, sponsor, job_id, application_id) -> None:
        body = client.get(f'/api/jobs/{job_id}/applications', headers=sponsor).get_json()
        assert [a['id'] for a in body['applications']] == [application_id]
        assert body['applications'][0]['maid_name'] == 'M1 Tester'

    def test_maid_lists_own_applications(self, client, maid, application_id) -> None:
        body = client.get('/api/jobs/applications/mine', headers=maid).get_json()
        assert body['total'] == 1
        assert body['applications'][0]['job']['title'] == JOB['title']

    def test_status_update_notifies_maid(self, client, sponsor, application_id) -> None:
        response = client.patch(f'/api/jobs/applications/{application_id}/status',
                                json={'status': 'shortlisted'}, headers=sponsor)
        assert response.status_code == 200
        assert Notification.query.filter_by(user_id='m1').count() == 1

    def test_final_status_is_final(self, client, sponsor, application_id) -> None:
        url = f'/api/jobs/applications/{application_id}/status'
        client.patch(url, json={'status': 'rejected'}, headers=sponsor)
        assert client.patch(url, json={'status': 'accepted'}, headers=sponsor).status_code == 409

    def test_owner_cannot_withdraw(self, client, sponsor, application_id) -> None:
        response = client.patch(f'/api/jobs/applications/{application_id}/status',
                                json={'status': 'withdrawn'}, headers=sponsor)
        assert response.status_code == 400

    def test_maid_withdraws(self, client, maid, application_id) -> None:
        url = f'/api/jobs/applications/{application_id}/withdraw'
        assert client.post(url, headers=maid).get_json()['status'] == 'withdrawn'
        assert client.post(url, headers=maid).status_code == 409

    def test_notes_are_owner_only(self, client, sponsor, maid, application_id) -> None:
        url = f'/api/jobs/applications/{application_id}/notes'
        assert client.put(url, json={'notes': 'Call back'}, headers=maid).status_code == 403
        assert client.put(url, json={'notes': 'Call back'}, headers=sponsor).get_json()['notes'] == 'Call back'

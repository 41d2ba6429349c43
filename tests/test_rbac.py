"""
Unit tests for platform permissions, usage quotas, agency team roles and Hasura claims.
"""

import pytest

from ethiomaids.utils import rbac
from ethiomaids.utils.claims import (
    build_custom_claims, build_hasura_claims, extract_hasura_claims, is_admin_claims,
    role_from_claims, session_variables, HASURA_CLAIMS_NAMESPACE
)
from ethiomaids.utils.rbac import PermissionManager, AGENCY_PERMISSIONS, UNLIMITED


class TestPlatformPermissions:
    def test_admin_has_everything(self) -> None:
        assert rbac.has_permission('admin', 'anything_at_all')

    def test_role_permissions(self) -> None:
        assert rbac.has_permission('sponsor', 'create_jobs')
        assert not rbac.has_permission('maid', 'create_jobs')
        assert rbac.has_permission('maid', 'apply_jobs')

    def test_extra_grants(self) -> None:
        assert rbac.has_permission('user', 'create_jobs', extra=['create_jobs'])

    def test_unknown_role_has_nothing(self) -> None:
        assert rbac.get_role_permissions('ghost') == []
        assert not rbac.has_permission('ghost', 'view_jobs')

    def test_any_and_all(self) -> None:
        assert rbac.has_any_permission('maid', ['create_jobs', 'apply_jobs'])
        assert not rbac.has_all_permissions('maid', ['create_jobs', 'apply_jobs'])
        assert rbac.has_any_permission('maid', [])


class TestUsageQuotas:
    def test_limits_by_plan(self) -> None:
        assert rbac.get_usage_limit('sponsor', 'free', 'job_postings') == 1
        assert rbac.get_usage_limit('sponsor', 'pro', 'job_postings') == 5
        assert rbac.get_usage_limit('sponsor', 'premium', 'job_postings') == UNLIMITED

    def test_missing_row_means_zero(self) -> None:
        assert rbac.get_usage_limit('maid', 'free', 'job_postings') == 0

    def test_admin_is_unlimited(self) -> None:
        assert rbac.get_usage_limit('admin', 'free', 'job_postings') == UNLIMITED

    def test_check_quota_within_and_over(self) -> None:
        within = rbac.check_usage_quota('sponsor', 'free', 'booking_requests', 1)
        assert within == {'allowed': True, 'limit': 2, 'used': 1, 'remaining': 1, 'plan_type': 'free'}

        over = rbac.check_usage_quota('sponsor', 'free', 'booking_requests', 2)
        assert not over['allowed']
        assert over['remaining'] == 0

    def test_unlimited_quota(self) -> None:
        quota = rbac.check_usage_quota('sponsor', 'premium', 'job_postings', 500)
        assert quota['allowed']
        assert quota['limit'] == UNLIMITED
        assert quota['remaining'] is None

    def test_plan_limits(self) -> None:
        limits = rbac.get_plan_limits('agency', 'pro')
        assert limits == {'maid_listings': 25, 'team_members': 5, 'message_threads': 50}


class TestPermissionManager:
    def test_owner_has_all_permissions(self) -> None:
        manager = PermissionManager('owner')
        assert manager.has_permission(AGENCY_PERMISSIONS['DELETE_AGENCY_DATA'])
        assert manager.get_effective_permissions() == sorted(AGENCY_PERMISSIONS.values())

    def test_assistant_is_view_only(self) -> None:
        manager = PermissionManager('assistant')
        assert manager.has_permission('view_maids')
        assert not manager.has_permission('edit_maids')

    def test_extra_permissions(self) -> None:
        manager = PermissionManager('assistant', ['edit_maids'])
        assert manager.has_permission('edit_maids')
        assert 'edit_maids' in manager.get_effective_permissions()

    def test_role_lookup_by_display_name(self) -> None:
        assert PermissionManager('Manager').has_permission('view_billing')

    def test_route_access(self) -> None:
        assistant = PermissionManager('assistant')
        assert assistant.can_access_route('/dashboard/agency')
        assert assistant.can_access_route('/dashboard/agency/maids')
        assert not assistant.can_access_route('/dashboard/agency/maids/add')
        assert assistant.can_access_route('/not/listed')

    def test_hierarchy(self) -> None:
        manager = PermissionManager('manager')
        assert manager.get_role_hierarchy_level() == 3
        assert manager.can_manage_user('coordinator')
        assert not manager.can_manage_user('manager')
        assert not manager.can_manage_user('owner')

    def test_accessible_features_are_grouped(self) -> None:
        features = PermissionManager('coordinator').get_accessible_features()
        assert 'upload_documents' in features['Documents & Compliance']
        assert features['System Administration'] == []


class TestHasuraClaims:
    def test_base_role_claims(self) -> None:
        assert build_hasura_claims('u1') == {
            'x-hasura-allowed-roles': ['user'],
            'x-hasura-default-role': 'user',
            'x-hasura-user-id': 'u1',
        }

    def test_custom_claims_include_user_type(self) -> None:
        claims = build_custom_claims('u1', 'maid')
        assert claims['user_type'] == 'maid'
        assert claims[HASURA_CLAIMS_NAMESPACE]['x-hasura-allowed-roles'] == ['user', 'maid']
        assert claims[HASURA_CLAIMS_NAMESPACE]['x-hasura-default-role'] == 'maid'

    def test_empty_role_falls_back_to_user(self) -> None:
        assert build_custom_claims('u1', None)['user_type'] == 'user'

    def test_extract_ignores_malformed_namespace(self) -> None:
        assert extract_hasura_claims({HASURA_CLAIMS_NAMESPACE: 'oops'}) is None
        assert extract_hasura_claims(None) is None

    @pytest.mark.parametrize(
        'claims, expected',
        [
            ({'user_type': 'agency'}, 'agency'),
            ({HASURA_CLAIMS_NAMESPACE: {'x-hasura-default-role': 'sponsor'}}, 'sponsor'),
            ({'user_type': 'wizard'}, 'user'),
            ({}, 'user'),
        ],
    )
    def test_role_from_claims(self, claims, expected) -> None:
        assert role_from_claims(claims) == expected

    def test_admin_claims(self) -> None:
        assert is_admin_claims(build_custom_claims('u1', 'admin'))
        assert not is_admin_claims({'user_type': 'admin'})

    def test_session_variables(self) -> None:
        assert session_variables('u1', 'maid') == {'X-Hasura-User-Id': 'u1', 'X-Hasura-Role': 'maid'}

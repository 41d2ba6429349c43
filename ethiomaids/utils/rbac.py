"""Role-based access control tables and subscription usage quotas

Two permission systems live here:

- platform roles (user, maid, sponsor, agency, admin) carried in the Firebase
  claims and checked by ``require_permission``;
- agency team roles (owner, manager, coordinator, assistant) used by agency
  staff accounts, wrapped by ``PermissionManager``.
"""

ALL = 'all'

# =============================================
# PLATFORM ROLES
# =============================================

PLATFORM_PERMISSIONS = {
    'user': [
        'view_maids',
        'view_jobs',
        'view_reviews',
        'send_messages',
    ],
    'maid': [
        'view_jobs',
        'apply_jobs',
        'respond_bookings',
        'manage_availability',
        'write_reviews',
        'view_reviews',
        'respond_reviews',
        'request_payouts',
        'send_messages',
    ],
    'sponsor': [
        'view_maids',
        'view_jobs',
        'create_jobs',
        'manage_jobs',
        'create_bookings',
        'write_reviews',
        'view_reviews',
        'respond_reviews',
        'send_messages',
        'manage_subscriptions',
    ],
    'agency': [
        'view_maids',
        'manage_maids',
        'view_jobs',
        'respond_bookings',
        'manage_availability',
        'write_reviews',
        'view_reviews',
        'respond_reviews',
        'request_payouts',
        'send_messages',
        'manage_team',
        'manage_subscriptions',
    ],
    'admin': [ALL],
}


def get_role_permissions(role):
    return PLATFORM_PERMISSIONS.get(role, [])


def has_permission(role, permission, extra=()):
    """True when ``role`` (or the per-user ``extra`` grants) carries ``permission``"""
    role_permissions = get_role_permissions(role)
    if ALL in role_permissions:
        return True
    return permission in role_permissions or permission in extra


def has_any_permission(role, permissions, extra=()):
    if not permissions:
        return True
    return any(has_permission(role, p, extra) for p in permissions)


def has_all_permissions(role, permissions, extra=()):
    return all(has_permission(role, p, extra) for p in permissions)


# =============================================
# USAGE QUOTAS
# =============================================

UNLIMITED = -1

PLAN_TYPES = ('free', 'pro', 'premium')

# (user_type, plan_type, resource, limit) - first matching row wins
USAGE_LIMITS = [
    ('sponsor', 'free', 'job_postings', 1),
    ('sponsor', 'free', 'candidate_searches', 10),
    ('sponsor', 'free', 'saved_candidates', 5),
    ('sponsor', 'free', 'message_threads', 3),
    ('sponsor', 'free', 'booking_requests', 2),
    ('sponsor', 'pro', 'job_postings', 5),
    ('sponsor', 'pro', 'candidate_searches', 100),
    ('sponsor', 'pro', 'saved_candidates', 50),
    ('sponsor', 'pro', 'message_threads', 25),
    ('sponsor', 'pro', 'booking_requests', 20),
    ('sponsor', 'premium', 'job_postings', UNLIMITED),
    ('sponsor', 'premium', 'candidate_searches', UNLIMITED),
    ('sponsor', 'premium', 'saved_candidates', UNLIMITED),
    ('sponsor', 'premium', 'message_threads', UNLIMITED),
    ('sponsor', 'premium', 'booking_requests', UNLIMITED),
    ('agency', 'free', 'maid_listings', 3),
    ('agency', 'free', 'team_members', 1),
    ('agency', 'free', 'message_threads', 5),
    ('agency', 'pro', 'maid_listings', 25),
    ('agency', 'pro', 'team_members', 5),
    ('agency', 'pro', 'message_threads', 50),
    ('agency', 'premium', 'maid_listings', UNLIMITED),
    ('agency', 'premium', 'team_members', 25),
    ('agency', 'premium', 'message_threads', UNLIMITED),
    ('maid', 'free', 'job_applications', 5),
    ('maid', 'free', 'message_threads', 5),
    ('maid', 'pro', 'job_applications', 25),
    ('maid', 'pro', 'message_threads', 50),
    ('maid', 'premium', 'job_applications', UNLIMITED),
    ('maid', 'premium', 'message_threads', UNLIMITED),
]


def get_usage_limit(user_type, plan_type, resource):
    """Limit for ``resource``; ``UNLIMITED`` (-1) or 0 when the plan has no row"""
    if user_type == 'admin':
        return UNLIMITED
    for row_user_type, row_plan, row_resource, limit in USAGE_LIMITS:
        if row_user_type == user_type and row_plan == plan_type and row_resource == resource:
            return limit
    return 0


def get_plan_limits(user_type, plan_type):
    return {
        resource: limit
        for row_user_type, row_plan, resource, limit in USAGE_LIMITS
        if row_user_type == user_type and row_plan == plan_type
    }


def check_usage_quota(user_type, plan_type, resource, current_usage):
    limit = get_usage_limit(user_type, plan_type, resource)
    if limit == UNLIMITED:
        return {
            'allowed': True,
            'limit': UNLIMITED,
            'used': current_usage,
            'remaining': None,
            'plan_type': plan_type,
        }
    return {
        'allowed': current_usage < limit,
        'limit': limit,
        'used': current_usage,
        'remaining': max(0, limit - current_usage),
        'plan_type': plan_type,
    }


# =============================================
# AGENCY TEAM ROLES
# =============================================

AGENCY_PERMISSIONS = {
    # Maid Management
    'VIEW_MAIDS': 'view_maids',
    'MANAGE_MAIDS': 'manage_maids',
    'CREATE_MAIDS': 'create_maids',
    'EDIT_MAIDS': 'edit_maids',
    'DELETE_MAIDS': 'delete_maids',
    'APPROVE_MAIDS': 'approve_maids',
    # Client/Sponsor Management
    'VIEW_CLIENTS': 'view_clients',
    'MANAGE_CLIENTS': 'manage_clients',
    'CREATE_CLIENTS': 'create_clients',
    'EDIT_CLIENTS': 'edit_clients',
    'DELETE_CLIENTS': 'delete_clients',
    # Job Management
    'VIEW_JOBS': 'view_jobs',
    'MANAGE_JOBS': 'manage_jobs',
    'CREATE_JOBS': 'create_jobs',
    'EDIT_JOBS': 'edit_jobs',
    'DELETE_JOBS': 'delete_jobs',
    # Application & Matching
    'VIEW_APPLICATIONS': 'view_applications',
    'MANAGE_APPLICATIONS': 'manage_applications',
    'PROCESS_APPLICATIONS': 'process_applications',
    'APPROVE_MATCHES': 'approve_matches',
    # Documents & Compliance
    'VIEW_DOCUMENTS': 'view_documents',
    'MANAGE_DOCUMENTS': 'manage_documents',
    'UPLOAD_DOCUMENTS': 'upload_documents',
    'VERIFY_DOCUMENTS': 'verify_documents',
    'DELETE_DOCUMENTS': 'delete_documents',
    # Financial & Billing
    'VIEW_BILLING': 'view_billing',
    'MANAGE_BILLING': 'manage_billing',
    'PROCESS_PAYMENTS': 'process_payments',
    'VIEW_REPORTS': 'view_reports',
    'MANAGE_SUBSCRIPTIONS': 'manage_subscriptions',
    # Communication
    'VIEW_MESSAGES': 'view_messages',
    'SEND_MESSAGES': 'send_messages',
    'MANAGE_TEMPLATES': 'manage_templates',
    # Analytics & Reports
    'VIEW_ANALYTICS': 'view_analytics',
    'EXPORT_REPORTS': 'export_reports',
    'VIEW_FINANCIAL_REPORTS': 'view_financial_reports',
    # Support & Disputes
    'VIEW_SUPPORT': 'view_support',
    'MANAGE_SUPPORT': 'manage_support',
    'RESOLVE_DISPUTES': 'resolve_disputes',
    # Team & Settings
    'VIEW_TEAM': 'view_team',
    'MANAGE_TEAM': 'manage_team',
    'INVITE_MEMBERS': 'invite_members',
    'MANAGE_ROLES': 'manage_roles',
    'VIEW_SETTINGS': 'view_settings',
    'MANAGE_SETTINGS': 'manage_settings',
    # System Administration
    'MANAGE_SYSTEM': 'manage_system',
    'VIEW_AUDIT_LOGS': 'view_audit_logs',
    'MANAGE_SECURITY': 'manage_security',
    'EXPORT_DATA': 'export_data',
    'DELETE_AGENCY_DATA': 'delete_agency_data',
}

P = AGENCY_PERMISSIONS

AGENCY_ROLES = {
    'owner': {
        'id': 'owner',
        'name': 'Owner',
        'description': 'Full access to all features and settings',
        'permissions': [ALL],
    },
    'manager': {
        'id': 'manager',
        'name': 'Manager',
        'description': 'Manage operations, view reports, and handle billing',
        'permissions': [
            P['VIEW_MAIDS'], P['MANAGE_MAIDS'], P['CREATE_MAIDS'], P['EDIT_MAIDS'], P['APPROVE_MAIDS'],
            P['VIEW_CLIENTS'], P['MANAGE_CLIENTS'], P['CREATE_CLIENTS'], P['EDIT_CLIENTS'],
            P['VIEW_JOBS'], P['MANAGE_JOBS'], P['CREATE_JOBS'], P['EDIT_JOBS'],
            P['VIEW_APPLICATIONS'], P['MANAGE_APPLICATIONS'], P['PROCESS_APPLICATIONS'], P['APPROVE_MATCHES'],
            P['VIEW_DOCUMENTS'], P['MANAGE_DOCUMENTS'], P['VERIFY_DOCUMENTS'],
            P['VIEW_BILLING'], P['MANAGE_BILLING'], P['VIEW_REPORTS'],
            P['VIEW_MESSAGES'], P['SEND_MESSAGES'],
            P['VIEW_ANALYTICS'], P['EXPORT_REPORTS'],
            P['VIEW_SUPPORT'], P['MANAGE_SUPPORT'],
            P['VIEW_TEAM'], P['VIEW_SETTINGS'],
        ],
    },
    'coordinator': {
        'id': 'coordinator',
        'name': 'Coordinator',
        'description': 'Handle day-to-day operations and maid management',
        'permissions': [
            P['VIEW_MAIDS'], P['MANAGE_MAIDS'], P['CREATE_MAIDS'], P['EDIT_MAIDS'],
            P['VIEW_CLIENTS'], P['MANAGE_CLIENTS'],
            P['VIEW_JOBS'], P['MANAGE_JOBS'],
            P['VIEW_APPLICATIONS'], P['MANAGE_APPLICATIONS'], P['PROCESS_APPLICATIONS'],
            P['VIEW_DOCUMENTS'], P['MANAGE_DOCUMENTS'], P['UPLOAD_DOCUMENTS'],
            P['VIEW_MESSAGES'], P['SEND_MESSAGES'],
            P['VIEW_REPORTS'], P['VIEW_SUPPORT'], P['VIEW_SETTINGS'],
        ],
    },
    'assistant': {
        'id': 'assistant',
        'name': 'Assistant',
        'description': 'View-only access to basic features',
        'permissions': [
            P['VIEW_MAIDS'], P['VIEW_CLIENTS'], P['VIEW_JOBS'], P['VIEW_APPLICATIONS'],
            P['VIEW_DOCUMENTS'], P['VIEW_MESSAGES'], P['VIEW_SUPPORT'], P['VIEW_SETTINGS'],
        ],
    },
}

PERMISSION_CATEGORIES = {
    'Maid Management': [
        P['VIEW_MAIDS'], P['MANAGE_MAIDS'], P['CREATE_MAIDS'], P['EDIT_MAIDS'], P['DELETE_MAIDS'], P['APPROVE_MAIDS'],
    ],
    'Client Management': [
        P['VIEW_CLIENTS'], P['MANAGE_CLIENTS'], P['CREATE_CLIENTS'], P['EDIT_CLIENTS'], P['DELETE_CLIENTS'],
    ],
    'Job Management': [
        P['VIEW_JOBS'], P['MANAGE_JOBS'], P['CREATE_JOBS'], P['EDIT_JOBS'], P['DELETE_JOBS'],
    ],
    'Applications & Matching': [
        P['VIEW_APPLICATIONS'], P['MANAGE_APPLICATIONS'], P['PROCESS_APPLICATIONS'], P['APPROVE_MATCHES'],
    ],
    'Documents & Compliance': [
        P['VIEW_DOCUMENTS'], P['MANAGE_DOCUMENTS'], P['UPLOAD_DOCUMENTS'], P['VERIFY_DOCUMENTS'], P['DELETE_DOCUMENTS'],
    ],
    'Financial & Billing': [
        P['VIEW_BILLING'], P['MANAGE_BILLING'], P['PROCESS_PAYMENTS'], P['VIEW_REPORTS'], P['MANAGE_SUBSCRIPTIONS'],
    ],
    'Communication': [
        P['VIEW_MESSAGES'], P['SEND_MESSAGES'], P['MANAGE_TEMPLATES'],
    ],
    'Analytics & Reports': [
        P['VIEW_ANALYTICS'], P['EXPORT_REPORTS'], P['VIEW_FINANCIAL_REPORTS'],
    ],
    'Support & Disputes': [
        P['VIEW_SUPPORT'], P['MANAGE_SUPPORT'], P['RESOLVE_DISPUTES'],
    ],
    'Team & Settings': [
        P['VIEW_TEAM'], P['MANAGE_TEAM'], P['INVITE_MEMBERS'], P['MANAGE_ROLES'], P['VIEW_SETTINGS'], P['MANAGE_SETTINGS'],
    ],
    'System Administration': [
        P['MANAGE_SYSTEM'], P['VIEW_AUDIT_LOGS'], P['MANAGE_SECURITY'], P['EXPORT_DATA'], P['DELETE_AGENCY_DATA'],
    ],
}

ROUTE_PERMISSIONS = {
    '/dashboard/agency': [],
    '/dashboard/agency/maids': [P['VIEW_MAIDS']],
    '/dashboard/agency/maids/add': [P['CREATE_MAIDS']],
    '/dashboard/agency/maids/bulk-upload': [P['CREATE_MAIDS']],
    '/dashboard/agency/jobs': [P['VIEW_JOBS']],
    '/dashboard/agency/jobs/create': [P['CREATE_JOBS']],
    '/dashboard/agency/applicants': [P['VIEW_APPLICATIONS']],
    '/dashboard/agency/shortlists': [P['VIEW_APPLICATIONS']],
    '/dashboard/agency/sponsors': [P['VIEW_CLIENTS']],
    '/dashboard/agency/messaging': [P['VIEW_MESSAGES']],
    '/dashboard/agency/calendar': [P['VIEW_JOBS'], P['VIEW_APPLICATIONS']],
    '/dashboard/agency/documents': [P['VIEW_DOCUMENTS']],
    '/dashboard/agency/billing': [P['VIEW_BILLING']],
    '/dashboard/agency/analytics': [P['VIEW_ANALYTICS']],
    '/dashboard/agency/support': [P['VIEW_SUPPORT']],
    '/dashboard/agency/settings': [P['VIEW_SETTINGS']],
    '/dashboard/agency/settings/team': [P['VIEW_TEAM']],
}

ROLE_HIERARCHY = {
    'owner': 4,
    'manager': 3,
    'coordinator': 2,
    'assistant': 1,
}


class PermissionManager:
    """Permission checks for one agency team member"""

    def __init__(self, user_role, user_permissions=None):
        self.user_role = user_role
        self.user_permissions = list(user_permissions or [])
        self.role_permissions = self.get_role_permissions(user_role)

    @staticmethod
    def get_role_permissions(role):
        for role_data in AGENCY_ROLES.values():
            if role in (role_data['id'], role_data['name']):
                return role_data['permissions']
        return []

    def has_permission(self, permission):
        # Owner has all permissions
        if ALL in self.role_permissions:
            return True
        return permission in self.role_permissions or permission in self.user_permissions

    def has_any_permission(self, permissions):
        return any(self.has_permission(p) for p in permissions)

    def has_all_permissions(self, permissions):
        return all(self.has_permission(p) for p in permissions)

    def can_access_route(self, route):
        route_permissions = ROUTE_PERMISSIONS.get(route)
        if not route_permissions:
            return True  # No permissions required
        return self.has_any_permission(route_permissions)

    def get_accessible_features(self):
        return {
            category: [p for p in permissions if self.has_permission(p)]
            for category, permissions in PERMISSION_CATEGORIES.items()
        }

    def get_effective_permissions(self):
        if ALL in self.role_permissions:
            return sorted(AGENCY_PERMISSIONS.values())
        return sorted(set(self.role_permissions) | set(self.user_permissions))

    def get_role_hierarchy_level(self):
        return ROLE_HIERARCHY.get(self.user_role, 0)

    def can_manage_user(self, target_role):
        return self.get_role_hierarchy_level() > ROLE_HIERARCHY.get(target_role, 0)

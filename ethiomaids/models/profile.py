from ethiomaids import db
from ethiomaids.models.columns import JSONType, new_id, utcnow, isoformat, as_float

USER_TYPES = ('user', 'maid', 'sponsor', 'agency', 'admin')
AVAILABILITY_STATUSES = ('available', 'busy', 'hired')

class Profile(db.Model):
    """Marketplace profile keyed by the Firebase uid"""
    __tablename__ = 'profiles'

    # Firebase Auth uid
    id = db.Column(db.String(128), primary_key=True)

    # Profile Info
    email = db.Column(db.String(255), unique=True, index=True)
    full_name = db.Column(db.String(100), nullable=False)
    phone_number = db.Column(db.String(20))
    user_type = db.Column(db.Enum(*USER_TYPES, name='user_type_enum'), nullable=False, default='user', index=True)
    country = db.Column(db.String(100))
    city = db.Column(db.String(100))
    avatar_url = db.Column(db.Text)

    # Moderation
    is_active = db.Column(db.Boolean, default=True)
    verification_status = db.Column(db.Enum('pending', 'verified', 'rejected', name='verification_status_enum'), default='pending')

    # Maid details
    agency_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='SET NULL'), index=True)
    date_of_birth = db.Column(db.Date)
    nationality = db.Column(db.String(100))
    experience_years = db.Column(db.Integer, default=0)
    skills = db.Column(JSONType, default=list)
    languages = db.Column(JSONType, default=list)
    expected_salary = db.Column(db.Numeric(12, 2))
    currency = db.Column(db.String(3), default='USD')
    availability_status = db.Column(db.Enum(*AVAILABILITY_STATUSES, name='availability_status_enum'), default='available')
    bio = db.Column(db.Text)

    # Agency details
    agency_name = db.Column(db.String(255))
    license_number = db.Column(db.String(100))

    # Timestamps
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    managed_maids = db.relationship('Profile', backref=db.backref('agency', remote_side=[id]), lazy='dynamic')
    notifications = db.relationship('Notification', backref='user', lazy='dynamic', cascade='all, delete-orphan')

    @property
    def display_name(self):
        if self.user_type == 'agency' and self.agency_name:
            return self.agency_name
        return self.full_name

    def to_public_dict(self):
        data = {
            'id': self.id,
            'full_name': self.full_name,
            'user_type': self.user_type,
            'country': self.country,
            'city': self.city,
            'avatar_url': self.avatar_url,
            'verification_status': self.verification_status,
            'created_at': isoformat(self.created_at),
        }
        if self.user_type == 'maid':
            data.update({
                'agency_id': self.agency_id,
                'nationality': self.nationality,
                'experience_years': self.experience_years,
                'skills': self.skills or [],
                'languages': self.languages or [],
                'expected_salary': as_float(self.expected_salary),
                'currency': self.currency,
                'availability_status': self.availability_status,
                'bio': self.bio,
            })
        elif self.user_type == 'agency':
            data.update({
                'agency_name': self.agency_name,
                'license_number': self.license_number,
            })
        return data

    def to_dict(self):
        data = self.to_public_dict()
        data.update({
            'email': self.email,
            'phone_number': self.phone_number,
            'is_active': self.is_active,
            'date_of_birth': isoformat(self.date_of_birth),
            'updated_at': isoformat(self.updated_at),
        })
        return data

    def __repr__(self):
        return f'<Profile {self.id} {self.user_type}>'


class AgencyTeamMember(db.Model):
    """Staff member of an agency with an agency role (manager, coordinator, assistant)"""
    __tablename__ = 'agency_team_members'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    agency_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    member_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='CASCADE'), index=True)
    email = db.Column(db.String(255), nullable=False)
    role = db.Column(db.Enum('owner', 'manager', 'coordinator', 'assistant', name='agency_role_enum'), nullable=False, default='assistant')
    permissions = db.Column(JSONType, default=list)
    status = db.Column(db.Enum('invited', 'active', 'suspended', name='team_member_status_enum'), default='invited')
    invited_by = db.Column(db.String(128))

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (db.UniqueConstraint('agency_id', 'email', name='_agency_member_email_uc'),)

    def to_dict(self):
        return {
            'id': self.id,
            'agency_id': self.agency_id,
            'member_id': self.member_id,
            'email': self.email,
            'role': self.role,
            'permissions': self.permissions or [],
            'status': self.status,
            'invited_by': self.invited_by,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<AgencyTeamMember {self.email} {self.role}>'

from ethiomaids import db
from ethiomaids.models.columns import JSONType, new_id, utcnow, isoformat, as_float

JOB_STATUSES = ('draft', 'active', 'paused', 'filled', 'closed', 'expired')
JOB_TYPES = ('full_time', 'part_time', 'live_in', 'live_out', 'temporary')
APPLICATION_STATUSES = ('pending', 'reviewed', 'shortlisted', 'interviewed', 'offered', 'accepted', 'rejected', 'withdrawn')
FINAL_APPLICATION_STATUSES = ('accepted', 'rejected', 'withdrawn')

class Job(db.Model):
    """Job posting created by a sponsor"""
    __tablename__ = 'jobs'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    sponsor_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)

    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False)
    country = db.Column(db.String(100))
    city = db.Column(db.String(100))
    job_type = db.Column(db.Enum(*JOB_TYPES, name='job_type_enum'), default='full_time')

    # Compensation
    salary_min = db.Column(db.Numeric(12, 2))
    salary_max = db.Column(db.Numeric(12, 2))
    currency = db.Column(db.String(3), default='USD')

    # Requirements
    required_skills = db.Column(JSONType, default=list)
    required_languages = db.Column(JSONType, default=list)
    start_date = db.Column(db.Date)

    # Status Workflow
    status = db.Column(db.Enum(*JOB_STATUSES, name='job_status_enum'), default='draft', index=True)
    is_featured = db.Column(db.Boolean, default=False)
    featured_until = db.Column(db.DateTime(timezone=True))

    # Counters
    views_count = db.Column(db.Integer, default=0)
    applications_count = db.Column(db.Integer, default=0)

    # Timestamps
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    sponsor = db.relationship('Profile', foreign_keys=[sponsor_id])
    applications = db.relationship('JobApplication', backref='job', lazy='dynamic', cascade='all, delete-orphan')

    @property
    def salary_range(self):
        if self.salary_min is not None and self.salary_max is not None:
            return f'{as_float(self.salary_min):g}-{as_float(self.salary_max):g}'
        if self.salary_min is not None:
            return f'{as_float(self.salary_min):g}'
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'sponsor_id': self.sponsor_id,
            'sponsor_name': self.sponsor.display_name if self.sponsor else 'Sponsor',
            'title': self.title,
            'description': self.description,
            'country': self.country,
            'city': self.city,
            'job_type': self.job_type,
            'salary_min': as_float(self.salary_min),
            'salary_max': as_float(self.salary_max),
            'salary_range': self.salary_range,
            'currency': self.currency,
            'required_skills': self.required_skills or [],
            'required_languages': self.required_languages or [],
            'start_date': isoformat(self.start_date),
            'status': self.status,
            'is_featured': self.is_featured,
            'featured_until': isoformat(self.featured_until),
            'views_count': self.views_count or 0,
            'applications_count': self.applications_count or 0,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at)
        }

    def __repr__(self):
        return f'<Job {self.id}>'


class JobApplication(db.Model):
    """Application of a maid to a job posting"""
    __tablename__ = 'job_applications'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    job_id = db.Column(db.String(36), db.ForeignKey('jobs.id', ondelete='CASCADE'), nullable=False, index=True)
    maid_id = db.Column(db.String(128), db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)

    cover_letter = db.Column(db.Text)
    expected_salary = db.Column(db.Numeric(12, 2))
    status = db.Column(db.Enum(*APPLICATION_STATUSES, name='application_status_enum'), default='pending', index=True)
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    maid = db.relationship('Profile', foreign_keys=[maid_id])

    __table_args__ = (db.UniqueConstraint('job_id', 'maid_id', name='_job_maid_uc'),)

    def to_dict(self):
        return {
            'id': self.id,
            'job_id': self.job_id,
            'maid_id': self.maid_id,
            'maid_name': self.maid.full_name if self.maid else None,
            'cover_letter': self.cover_letter,
            'expected_salary': as_float(self.expected_salary),
            'status': self.status,
            'notes': self.notes,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at)
        }

    def __repr__(self):
        return f'<JobApplication {self.id}>'
